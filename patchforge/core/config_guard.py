"""Startup configuration guard.

Validates the settings the orchestrator cannot run without, once, before
any collaborator is constructed.  All violations are collected and
reported together in a single ``RequiredParameterMissingError``.
"""

from __future__ import annotations

import logging

from patchforge.config import ProdConfig

logger = logging.getLogger(__name__)

# ProdConfig fields that must be non-empty when the GitHub bot is enabled.
GITHUB_BOT_REQUIRED_FIELDS: list[str] = [
    "github_username",
    "github_token",
    "github_email",
    "github_reviewers",
    "rhdm_upstream",
    "rhpam_upstream",
]


class RequiredParameterMissingError(RuntimeError):
    """Raised when a required configuration parameter is not set.

    The process should not start with this error outstanding.
    """


def missing_parameters(config: ProdConfig) -> list[str]:
    """Return the ``PATCHFORGE_*`` names of every missing required parameter."""
    missing: list[str] = []

    if not config.product_version:
        missing.append("product_version")

    if config.enable_github_bot:
        for field_name in GITHUB_BOT_REQUIRED_FIELDS:
            if not getattr(config, field_name, ""):
                missing.append(field_name)

    return [f"PATCHFORGE_{name.upper()}" for name in missing]


def enforce_bot_constraints(config: ProdConfig) -> None:
    """Fail hard if the configuration cannot drive a changeset.

    Raises
    ------
    RequiredParameterMissingError
        Listing every missing parameter.
    """
    missing = missing_parameters(config)
    if missing:
        msg = "Required configuration missing.\n" + "\n".join(
            f"  - The parameter {name} is required!" for name in missing
        )
        logger.critical(msg)
        raise RequiredParameterMissingError(msg)

    logger.info(
        "Configuration guard passed (github bot %s).",
        "enabled" if config.enable_github_bot else "disabled",
    )
