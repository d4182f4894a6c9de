"""Shared subprocess helpers for the wrapped command-line tools."""
from __future__ import annotations

import logging
import shutil
import subprocess

_LOG = logging.getLogger(__name__)

PROBE_TIMEOUT = 30

INSTALL_HINTS = {
    "docker": "https://docs.docker.com/get-docker/",
    "trivy": "https://aquasecurity.github.io/trivy/latest/getting-started/installation/",
}


class ToolError(Exception):
    """Raised when a wrapped tool cannot be run or exits non-zero."""


def missing_tools(tools: list[str]) -> list[str]:
    """Return the subset of tools that are not on PATH, in order."""
    return [t for t in tools if shutil.which(t) is None]


def run_tool(cmd: list[str], timeout: float | None = PROBE_TIMEOUT) -> str:
    """Run a command and return its stdout. Raise ToolError on any failure."""
    result, error = _run(cmd, timeout)
    if result is None:
        raise ToolError(error)
    if result.returncode != 0:
        raise ToolError(f"{cmd[0]} {cmd[1] if len(cmd) > 1 else ''} failed: {_stderr_excerpt(result)}".strip())
    return result.stdout


def try_run(cmd: list[str], timeout: float | None = PROBE_TIMEOUT) -> tuple[subprocess.CompletedProcess | None, str | None]:
    """Return (result, None) when the command ran at all, or (None, reason)."""
    return _run(cmd, timeout)


def _run(cmd: list[str], timeout: float | None) -> tuple[subprocess.CompletedProcess | None, str | None]:
    _LOG.debug("running: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        return None, f"{cmd[0]} binary not found"
    except subprocess.TimeoutExpired:
        return None, f"{cmd[0]} command timed out"
    except OSError as e:
        return None, f"OS error running {cmd[0]}: {e}"
    _LOG.debug("%s exited with %d", cmd[0], result.returncode)
    return result, None


def _stderr_excerpt(result: subprocess.CompletedProcess) -> str:
    stderr = (result.stderr or "").strip()[:200]
    return stderr or f"exit code {result.returncode}"
