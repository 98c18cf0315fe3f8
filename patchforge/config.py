"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and PATCHFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProdConfig(BaseSettings):
    """patchforge configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export PATCHFORGE_BASE_DIR=/data/patchforge
        export PATCHFORGE_PRODUCT_VERSION=7.5.0
        export PATCHFORGE_ENABLE_GITHUB_BOT=true

    Or via .env file::

        PATCHFORGE_GITHUB_USERNAME=nightly-bot
        PATCHFORGE_GITHUB_REVIEWERS=alice,bob
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PATCHFORGE_",
        env_file_encoding="utf-8",
    )

    # Logging
    log_level: str = "INFO"

    # Storage
    base_dir: Path = Path(".patchforge")

    # Product
    product_version: str = ""
    catalog_path: Path | None = None

    # GitHub bot
    enable_github_bot: bool = False
    github_username: str = ""
    github_email: str = ""
    github_token: str = ""
    github_reviewers: str = ""
    rhpam_upstream: str = ""
    rhdm_upstream: str = ""
    default_branch: str = "main"

    # Descriptor whose newest YYYYMMDD tag is the current upstream build date,
    # relative to git_dir.
    upstream_reference_file: str = "rhpam-7-image/kieserver/modules/kieserver/module.yaml"

    # Deadline applied to every git / GitHub call
    step_timeout_seconds: float = 300.0

    @property
    def git_dir(self) -> Path:
        """Directory holding one clone per target repository."""
        return self.base_dir / "git"

    @property
    def artifacts_dir(self) -> Path:
        return self.base_dir / "artifacts"

    @property
    def reviewers(self) -> list[str]:
        """GitHub logins requested as reviewers on every pull request."""
        return [r.strip() for r in self.github_reviewers.split(",") if r.strip()]

    @property
    def upstream_projects(self) -> dict[str, str]:
        """Target repository name -> upstream ``owner/project``."""
        projects = {
            "rhpam-7-image": self.rhpam_upstream,
            "rhdm-7-image": self.rhdm_upstream,
        }
        return {repo: project for repo, project in projects.items() if project}
