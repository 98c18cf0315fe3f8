"""BundleCatalog — the single source of truth for which files get patched and how.

Adding a product line means adding a ``BundleDefinition``, either to
``DEFAULT_BUNDLES`` below or to a YAML catalog file loaded with
``BundleCatalog.load``.  No control flow is bundle-specific.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

import yaml

from patchforge.models.catalog import (
    Annotation,
    BundleDefinition,
    DescriptorTarget,
    SlotKind,
    SlotUpdate,
    ValueSource,
)

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when a catalog file is malformed or defines duplicate bundles."""


class BundleCatalog:
    """Ordered, name-keyed collection of bundle definitions."""

    def __init__(self, bundles: Iterable[BundleDefinition]) -> None:
        self._bundles: dict[str, BundleDefinition] = {}
        for bundle in bundles:
            if bundle.name in self._bundles:
                raise CatalogError(f"Duplicate bundle name: {bundle.name}")
            self._bundles[bundle.name] = bundle

    @classmethod
    def load(cls, path: Path) -> BundleCatalog:
        """Load a catalog from a YAML file with a top-level ``bundles`` list."""
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        entries = raw.get("bundles") if isinstance(raw, dict) else None
        if not isinstance(entries, list):
            raise CatalogError(f"{path}: expected a top-level 'bundles' list")
        catalog = cls(BundleDefinition.model_validate(e) for e in entries)
        logger.info("Loaded %d bundle(s) from %s", len(catalog), path)
        return catalog

    def get(self, name: str) -> BundleDefinition:
        try:
            return self._bundles[name]
        except KeyError:
            raise KeyError(f"Unknown bundle: {name}") from None

    @property
    def names(self) -> list[str]:
        return list(self._bundles)

    def __iter__(self) -> Iterator[BundleDefinition]:
        return iter(list(self._bundles.values()))

    def __len__(self) -> int:
        return len(self._bundles)

    def __contains__(self, name: object) -> bool:
        return name in self._bundles


# ---------------------------------------------------------------------------
# Default product lines
# ---------------------------------------------------------------------------

def _target_annotation(target_file: str) -> Annotation:
    """Restore the ``# <file name>`` comment under a ``target:`` line."""
    return Annotation(anchor=f'target: "{target_file}"', text="  # {file_name}")


_SLF4J_ANNOTATION = Annotation(
    anchor='target: "slf4j-simple.jar"',
    text="  # slf4j-simple-1.7.22.redhat-2.jar",
)

_RHPAM_MONITORING = "rhpam-{version}.PAM-redhat-{build_date}-monitoring-ee7.zip"
_RHPAM_BUSINESS_CENTRAL = "rhpam-{version}.PAM-redhat-{build_date}-business-central-eap7-deployable.zip"
_RHPAM_ADD_ONS = "rhpam-{version}.PAM-redhat-{build_date}-add-ons.zip"
_RHPAM_KIE_SERVER = "rhpam-{version}.PAM-redhat-{build_date}-kie-server-ee8.zip"
_RHPAM_BACKEND_JAR = "jbpm-wb-kie-server-backend-{version}.redhat-{build_date}.jar"

_RHDM_ADD_ONS = "rhdm-{version}.DM-redhat-{build_date}-add-ons.zip"
_RHDM_DECISION_CENTRAL = "rhdm-{version}.DM-redhat-{build_date}-decision-central-eap7-deployable.zip"
_RHDM_KIE_SERVER = "rhdm-{version}.DM-redhat-{build_date}-kie-server-ee8.zip"
_RHDM_EMPLOYEE_WAR = (
    "employee-rostering-distribution-{version}.redhat-{build_date}/binaries/"
    "employee-rostering-webapp-{version}.redhat-{build_date}.war"
)


def _module(image: str) -> str:
    return f"{image}/modules/{image}/module.yaml"


RHPAM_BUNDLE = BundleDefinition(
    name="rhpam",
    prefix="rhpam-",
    repository="rhpam-7-image",
    required_artifacts=[
        _RHPAM_MONITORING,
        _RHPAM_BUSINESS_CENTRAL,
        _RHPAM_ADD_ONS,
        _RHPAM_KIE_SERVER,
    ],
    targets=[
        DescriptorTarget(
            file_path=_module("businesscentral-monitoring"),
            slot_updates=[
                SlotUpdate(
                    slot_name="BUSINESS_CENTRAL_MONITORING_DISTRIBUTION_ZIP",
                    file_template=_RHPAM_MONITORING,
                    annotation=_target_annotation("business_central_monitoring_distribution.zip"),
                ),
            ],
        ),
        DescriptorTarget(
            file_path=_module("businesscentral"),
            slot_updates=[
                SlotUpdate(
                    slot_name="BUSINESS_CENTRAL_DISTRIBUTION_ZIP",
                    file_template=_RHPAM_BUSINESS_CENTRAL,
                    annotation=_target_annotation("business_central_distribution.zip"),
                ),
            ],
        ),
        DescriptorTarget(
            file_path=_module("controller"),
            slot_updates=[
                SlotUpdate(
                    slot_name="ADD_ONS_DISTRIBUTION_ZIP",
                    file_template=_RHPAM_ADD_ONS,
                    annotation=_target_annotation("add_ons_distribution.zip"),
                ),
            ],
        ),
        DescriptorTarget(
            file_path=_module("kieserver"),
            slot_updates=[
                SlotUpdate(
                    kind=SlotKind.ENV,
                    slot_name="JBPM_WB_KIE_SERVER_BACKEND_JAR",
                    file_template=_RHPAM_BACKEND_JAR,
                    source=ValueSource.FILE_NAME,
                    annotation=Annotation(
                        anchor='value: "{file_name}"',
                        text='# remember to also update "JBPM_WB_KIE_SERVER_BACKEND_JAR" value',
                    ),
                ),
                SlotUpdate(
                    slot_name="KIE_SERVER_DISTRIBUTION_ZIP",
                    file_template=_RHPAM_KIE_SERVER,
                    annotation=_target_annotation("kie_server_distribution.zip"),
                ),
                SlotUpdate(
                    slot_name="BUSINESS_CENTRAL_DISTRIBUTION_ZIP",
                    file_template=_RHPAM_BUSINESS_CENTRAL,
                    annotation=_target_annotation("business_central_distribution.zip"),
                ),
            ],
            annotations=[_SLF4J_ANNOTATION],
        ),
        DescriptorTarget(
            file_path=_module("smartrouter"),
            slot_updates=[
                SlotUpdate(
                    slot_name="ADD_ONS_DISTRIBUTION_ZIP",
                    file_template=_RHPAM_ADD_ONS,
                    annotation=_target_annotation("add_ons_distribution.zip"),
                ),
            ],
        ),
    ],
    review_title="Updating RHPAM artifacts based on the latest nightly build {build_date}",
)

RHDM_BUNDLE = BundleDefinition(
    name="rhdm",
    prefix="rhdm-",
    repository="rhdm-7-image",
    required_artifacts=[
        _RHDM_ADD_ONS,
        _RHDM_DECISION_CENTRAL,
        _RHDM_KIE_SERVER,
    ],
    targets=[
        DescriptorTarget(
            file_path=_module("controller"),
            slot_updates=[
                SlotUpdate(
                    slot_name="ADD_ONS_DISTRIBUTION_ZIP",
                    file_template=_RHDM_ADD_ONS,
                    annotation=_target_annotation("add_ons_distribution.zip"),
                ),
            ],
        ),
        DescriptorTarget(
            file_path=_module("decisioncentral"),
            slot_updates=[
                SlotUpdate(
                    slot_name="DECISION_CENTRAL_DISTRIBUTION_ZIP",
                    file_template=_RHDM_DECISION_CENTRAL,
                    annotation=_target_annotation("decision_central_distribution.zip"),
                ),
            ],
        ),
        DescriptorTarget(
            file_path=_module("kieserver"),
            slot_updates=[
                SlotUpdate(
                    slot_name="KIE_SERVER_DISTRIBUTION_ZIP",
                    file_template=_RHDM_KIE_SERVER,
                    annotation=_target_annotation("kie_server_distribution.zip"),
                ),
            ],
            annotations=[_SLF4J_ANNOTATION],
        ),
        DescriptorTarget(
            file_path=_module("optaweb-employee-rostering"),
            slot_updates=[
                SlotUpdate(
                    kind=SlotKind.ENV,
                    slot_name="EMPLOYEE_ROSTERING_DISTRIBUTION_WAR",
                    file_template=_RHDM_EMPLOYEE_WAR,
                    source=ValueSource.FILE_NAME,
                    annotation=Annotation(
                        anchor='value: "{file_name}"',
                        text='# remember to also update "EMPLOYEE_ROSTERING_DISTRIBUTION_WAR" value',
                    ),
                ),
                SlotUpdate(
                    slot_name="ADD_ONS_DISTRIBUTION_ZIP",
                    file_template=_RHDM_ADD_ONS,
                    annotation=_target_annotation("add_ons_distribution.zip"),
                ),
            ],
        ),
    ],
    review_description=(
        "This PR was created automatically, please review carefully before merge, "
        "the base build date is {build_date}"
    ),
)

DEFAULT_BUNDLES: list[BundleDefinition] = [RHPAM_BUNDLE, RHDM_BUNDLE]


def default_catalog() -> BundleCatalog:
    """The built-in RHPAM and RHDM product lines."""
    return BundleCatalog(DEFAULT_BUNDLES)
