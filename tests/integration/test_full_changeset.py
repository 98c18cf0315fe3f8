"""End-to-end: artifact store -> acceptor -> orchestrator on the default catalog.

Real descriptor files and the real YAML patcher; git and GitHub are the
in-memory fakes from conftest.
"""

from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
import yaml

from patchforge.catalog import RHDM_BUNDLE, RHPAM_BUNDLE, default_catalog
from patchforge.core.acceptor import Acceptor
from patchforge.core.artifact_store import ArtifactStore
from patchforge.core.orchestrator import ChangesetOrchestrator
from patchforge.core.patcher import DescriptorPatcher
from patchforge.models.changeset import ChangesetState

VERSION = "7.5.0"
BUILD_DATE = "20190813"

_SIMPLE_MODULES = {
    "businesscentral-monitoring": ("BUSINESS_CENTRAL_MONITORING_DISTRIBUTION_ZIP",
                                   "business_central_monitoring_distribution.zip"),
    "businesscentral": ("BUSINESS_CENTRAL_DISTRIBUTION_ZIP", "business_central_distribution.zip"),
    "controller": ("ADD_ONS_DISTRIBUTION_ZIP", "add_ons_distribution.zip"),
    "smartrouter": ("ADD_ONS_DISTRIBUTION_ZIP", "add_ons_distribution.zip"),
}

_KIESERVER_MODULE = """\
schema_version: 1
name: "rhpam-7-image.kieserver"
version: "1.0"
envs:
  - name: "JBPM_WB_KIE_SERVER_BACKEND_JAR"
    value: "jbpm-wb-kie-server-backend-7.5.0.redhat-20190801.jar"
    # remember to also update "JBPM_WB_KIE_SERVER_BACKEND_JAR" value
artifacts:
  - name: "slf4j-simple.jar"
    target: "slf4j-simple.jar"
    # slf4j-simple-1.7.22.redhat-2.jar
    md5: "d41d8cd98f00b204e9800998ecf8427e"
  - name: "KIE_SERVER_DISTRIBUTION_ZIP"
    # rhpam-7.5.0.PAM-redhat-20190801-kie-server-ee8.zip
    target: "kie_server_distribution.zip"
    md5: "old-kie-server"
  - name: "BUSINESS_CENTRAL_DISTRIBUTION_ZIP"
    # rhpam-7.5.0.PAM-redhat-20190801-business-central-eap7-deployable.zip
    target: "business_central_distribution.zip"
    md5: "old-business-central"
"""

_RHDM_KIESERVER_MODULE = """\
schema_version: 1
name: "rhdm-7-image.kieserver"
artifacts:
  - name: "slf4j-simple.jar"
    target: "slf4j-simple.jar"
    # slf4j-simple-1.7.22.redhat-2.jar
    md5: "d41d8cd98f00b204e9800998ecf8427e"
  - name: "KIE_SERVER_DISTRIBUTION_ZIP"
    # rhdm-7.5.0.DM-redhat-20190801-kie-server-ee8.zip
    target: "kie_server_distribution.zip"
    md5: "old-kie-server"
"""

_OPTAWEB_MODULE = """\
schema_version: 1
name: "rhdm-7-image.optaweb-employee-rostering"
envs:
  - name: "EMPLOYEE_ROSTERING_DISTRIBUTION_WAR"
    value: "employee-rostering-distribution-7.5.0.redhat-20190801/binaries/employee-rostering-webapp-7.5.0.redhat-20190801.war"
    # remember to also update "EMPLOYEE_ROSTERING_DISTRIBUTION_WAR" value
artifacts:
  - name: "ADD_ONS_DISTRIBUTION_ZIP"
    # rhdm-7.5.0.DM-redhat-20190801-add-ons.zip
    target: "add_ons_distribution.zip"
    md5: "old-add-ons"
"""

_WAR = (
    "employee-rostering-distribution-7.5.0.redhat-20190813/binaries/"
    "employee-rostering-webapp-7.5.0.redhat-20190813.war"
)


def _simple_module(image: str, slot: str, target: str, repo: str = "rhpam-7-image") -> str:
    return (
        "schema_version: 1\n"
        f'name: "{repo}.{image}"\n'
        "artifacts:\n"
        f'  - name: "{slot}"\n'
        f'    target: "{target}"\n'
        '    md5: "old"\n'
    )


def _module_path(root: Path, image: str, repo: str = "rhpam-7-image") -> Path:
    return root / repo / image / "modules" / image / "module.yaml"


@pytest.fixture
def rhpam_git_dir(tmp_path: Path) -> Path:
    root = tmp_path / "git"
    for image, (slot, target) in _SIMPLE_MODULES.items():
        path = _module_path(root, image)
        path.parent.mkdir(parents=True)
        path.write_text(_simple_module(image, slot, target), encoding="utf-8")
    kieserver = _module_path(root, "kieserver")
    kieserver.parent.mkdir(parents=True)
    kieserver.write_text(_KIESERVER_MODULE, encoding="utf-8")
    return root


@pytest.fixture
def rhdm_git_dir(rhpam_git_dir: Path) -> Path:
    """Adds an ``rhdm-7-image`` working tree next to the RHPAM one."""
    root = rhpam_git_dir
    modules = {
        "controller": _simple_module(
            "controller", "ADD_ONS_DISTRIBUTION_ZIP", "add_ons_distribution.zip", "rhdm-7-image"
        ),
        "decisioncentral": _simple_module(
            "decisioncentral", "DECISION_CENTRAL_DISTRIBUTION_ZIP",
            "decision_central_distribution.zip", "rhdm-7-image",
        ),
        "kieserver": _RHDM_KIESERVER_MODULE,
        "optaweb-employee-rostering": _OPTAWEB_MODULE,
    }
    for image, text in modules.items():
        path = _module_path(root, image, "rhdm-7-image")
        path.parent.mkdir(parents=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def pipeline(rhpam_git_dir: Path, vcs, review, tracker, tmp_path: Path):
    orchestrator = ChangesetOrchestrator(
        vcs,
        review,
        DescriptorPatcher(),
        git_dir=rhpam_git_dir,
        version=VERSION,
        step_timeout=5.0,
    )
    acceptor = Acceptor(default_catalog(), tracker, orchestrator)
    store = ArtifactStore(tmp_path / "artifacts")
    store.register_listener(acceptor)
    return acceptor, store


def _build_files(tmp_path: Path, names: list[str]) -> dict[str, Path]:
    downloads = tmp_path / "downloads"
    downloads.mkdir(exist_ok=True)
    files = {}
    for name in names:
        path = downloads / name
        path.write_bytes(f"payload of {name}".encode())
        files[name] = path
    return files


def _md5(name: str) -> str:
    return hashlib.md5(f"payload of {name}".encode()).hexdigest()


class TestRhpamChangeset:
    def test_concurrent_downloads_produce_one_pull_request(
        self, pipeline, rhpam_git_dir: Path, tmp_path: Path, vcs, review
    ):
        acceptor, store = pipeline
        names = RHPAM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        files = _build_files(tmp_path, names)

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(store.ingest, files.values()))

        (result,) = acceptor.history
        assert result.bundle == "rhpam"
        assert result.final_state == ChangesetState.BRANCH_DELETED
        assert result.fully_succeeded
        assert result.purged == 4
        assert len(acceptor.tracker) == 0
        assert vcs.ops() == ["create_branch", "stage_all", "commit", "delete_branch"]
        assert review.submitted[0]["title"] == (
            "Updating RHPAM artifacts based on the latest nightly build 20190813"
        )

    def test_descriptors_patched(self, pipeline, rhpam_git_dir: Path, tmp_path: Path):
        acceptor, store = pipeline
        names = RHPAM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        for path in _build_files(tmp_path, names).values():
            store.ingest(path)

        monitoring, business_central, add_ons, kie_server = names
        kieserver_path = _module_path(rhpam_git_dir, "kieserver")
        document = yaml.safe_load(kieserver_path.read_text(encoding="utf-8"))
        md5s = {a["name"]: a["md5"] for a in document["artifacts"]}
        assert md5s == {
            "slf4j-simple.jar": "d41d8cd98f00b204e9800998ecf8427e",
            "KIE_SERVER_DISTRIBUTION_ZIP": _md5(kie_server),
            "BUSINESS_CENTRAL_DISTRIBUTION_ZIP": _md5(business_central),
        }
        assert document["envs"][0]["value"] == (
            "jbpm-wb-kie-server-backend-7.5.0.redhat-20190813.jar"
        )

        for image, file_name in (
            ("businesscentral-monitoring", monitoring),
            ("controller", add_ons),
            ("smartrouter", add_ons),
        ):
            doc = yaml.safe_load(_module_path(rhpam_git_dir, image).read_text(encoding="utf-8"))
            assert doc["artifacts"][0]["md5"] == _md5(file_name)

    def test_comments_restored_once(self, pipeline, rhpam_git_dir: Path, tmp_path: Path):
        acceptor, store = pipeline
        names = RHPAM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        for path in _build_files(tmp_path, names).values():
            store.ingest(path)

        lines = _module_path(rhpam_git_dir, "kieserver").read_text(encoding="utf-8").splitlines()
        kie_server = names[3]
        assert lines.count(f"  # {kie_server}") == 1
        assert lines.count("  # slf4j-simple-1.7.22.redhat-2.jar") == 1
        jar_line = lines.index(
            '    value: "jbpm-wb-kie-server-backend-7.5.0.redhat-20190813.jar"'
        )
        assert lines[jar_line + 1] == (
            '# remember to also update "JBPM_WB_KIE_SERVER_BACKEND_JAR" value'
        )
        slf4j_line = lines.index('    target: "slf4j-simple.jar"')
        assert lines[slf4j_line + 1] == "  # slf4j-simple-1.7.22.redhat-2.jar"


class TestPartialBundles:
    def test_incomplete_rhdm_waits(self, pipeline, tmp_path: Path, vcs):
        acceptor, store = pipeline
        names = RHDM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        for path in _build_files(tmp_path, names[:2]).values():
            store.ingest(path)

        assert acceptor.history == []
        assert vcs.calls == []
        assert sorted(acceptor.tracker.snapshot()) == sorted(names[:2])

    def test_previous_build_ignored(self, pipeline, tmp_path: Path, vcs):
        acceptor, store = pipeline
        names = RHPAM_BUNDLE.artifact_names(VERSION, "20190801")
        for path in _build_files(tmp_path, names).values():
            store.ingest(path)

        assert acceptor.history == []
        assert len(acceptor.tracker) == 0


class TestRhdmChangeset:
    def test_three_downloads_produce_one_pull_request(
        self, pipeline, rhdm_git_dir: Path, tmp_path: Path, vcs, review
    ):
        acceptor, store = pipeline
        names = RHDM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        for path in _build_files(tmp_path, names).values():
            store.ingest(path)

        (result,) = acceptor.history
        assert result.bundle == "rhdm"
        assert result.final_state == ChangesetState.BRANCH_DELETED
        assert result.fully_succeeded
        assert result.purged == 3
        assert [t.file_path for t in result.targets] == [
            "controller/modules/controller/module.yaml",
            "decisioncentral/modules/decisioncentral/module.yaml",
            "kieserver/modules/kieserver/module.yaml",
            "optaweb-employee-rostering/modules/optaweb-employee-rostering/module.yaml",
        ]
        assert review.submitted[0]["repo"] == "rhdm-7-image"

    def test_descriptors_patched(self, pipeline, rhdm_git_dir: Path, tmp_path: Path):
        acceptor, store = pipeline
        names = RHDM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        for path in _build_files(tmp_path, names).values():
            store.ingest(path)

        add_ons, decision_central, kie_server = names
        for image, file_name in (
            ("controller", add_ons),
            ("decisioncentral", decision_central),
        ):
            path = _module_path(rhdm_git_dir, image, "rhdm-7-image")
            doc = yaml.safe_load(path.read_text(encoding="utf-8"))
            assert doc["artifacts"][0]["md5"] == _md5(file_name)

        kieserver = yaml.safe_load(
            _module_path(rhdm_git_dir, "kieserver", "rhdm-7-image").read_text(encoding="utf-8")
        )
        assert {a["name"]: a["md5"] for a in kieserver["artifacts"]} == {
            "slf4j-simple.jar": "d41d8cd98f00b204e9800998ecf8427e",
            "KIE_SERVER_DISTRIBUTION_ZIP": _md5(kie_server),
        }

        optaweb = yaml.safe_load(
            _module_path(rhdm_git_dir, "optaweb-employee-rostering", "rhdm-7-image")
            .read_text(encoding="utf-8")
        )
        assert optaweb["envs"][0]["value"] == _WAR
        assert optaweb["artifacts"][0]["md5"] == _md5(add_ons)

    def test_optaweb_comments_restored(self, pipeline, rhdm_git_dir: Path, tmp_path: Path):
        acceptor, store = pipeline
        names = RHDM_BUNDLE.artifact_names(VERSION, BUILD_DATE)
        for path in _build_files(tmp_path, names).values():
            store.ingest(path)

        path = _module_path(rhdm_git_dir, "optaweb-employee-rostering", "rhdm-7-image")
        lines = path.read_text(encoding="utf-8").splitlines()
        war_line = lines.index(f'    value: "{_WAR}"')
        assert lines[war_line + 1] == (
            '# remember to also update "EMPLOYEE_ROSTERING_DISTRIBUTION_WAR" value'
        )
        target_line = lines.index('    target: "add_ons_distribution.zip"')
        assert lines[target_line + 1] == f"  # {names[0]}"
        assert sum(line.startswith("# remember") for line in lines) == 1

        kieserver = _module_path(rhdm_git_dir, "kieserver", "rhdm-7-image")
        kie_lines = kieserver.read_text(encoding="utf-8").splitlines()
        assert kie_lines.count("  # slf4j-simple-1.7.22.redhat-2.jar") == 1
        assert kie_lines.count(f"  # {names[2]}") == 1
