"""Subprocess helper shared by the git and GitHub gateways."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Raised when an external command fails, times out, or cannot be started."""


def run_command(
    cmd: list[str],
    *,
    operation: str,
    cwd: Path | None = None,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
    check: bool = True,
    error_class: type[GatewayError] = GatewayError,
) -> subprocess.CompletedProcess[str]:
    """Run *cmd* and return the completed process.

    Failures are re-raised as *error_class* with *operation* in the message
    so the caller's log line says what was being attempted.
    """
    full_env = {**os.environ, **env} if env else None
    logger.debug("Running %s: %s (cwd=%s)", operation, " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise error_class(f"Failed to {operation}: timed out after {timeout}s") from exc
    except OSError as exc:
        raise error_class(f"Failed to {operation}: {exc}") from exc

    if check and result.returncode != 0:
        stderr = (result.stderr or result.stdout or "").strip()
        raise error_class(
            f"Failed to {operation} (exit {result.returncode}): {stderr}"
        )
    return result
