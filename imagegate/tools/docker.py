from __future__ import annotations

import gzip
import logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from .process import ToolError, run_tool, try_run

_LOG = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class DockerClient:
    """Thin wrapper over the docker CLI for build, inspect, remove and export."""

    name = "docker"

    def __init__(self, binary: str = "docker") -> None:
        self._binary = binary

    def version(self) -> str:
        """Return the bare version number, e.g. "27.3.1"."""
        return parse_version_output(run_tool([self._binary, "--version"]))

    def build(
        self,
        dockerfile: Path,
        image: str,
        context: Path,
        log_path: Path,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        """Build an image, teeing combined output into log_path.

        Raises ToolError when the build cannot start or exits non-zero.
        """
        cmd = [
            self._binary, "build",
            "--file", str(dockerfile),
            "--tag", image,
            "--progress=plain",
            "--no-cache",
            str(context),
        ]
        _LOG.debug("running: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise ToolError(f"cannot start docker build: {e}") from e

        with proc, open(log_path, "w", encoding="utf-8") as log:
            assert proc.stdout is not None
            for line in proc.stdout:
                log.write(line)
                if echo:
                    echo(line.rstrip("\n"))
        if proc.returncode != 0:
            raise ToolError(f"docker build exited with code {proc.returncode} (see {log_path})")

    def image_size(self, image: str) -> str:
        out = run_tool([self._binary, "images", image, "--format", "{{.Size}}"])
        lines = [line.strip() for line in out.splitlines() if line.strip()]
        return lines[0] if lines else "unknown"

    def remove_image(self, image: str) -> bool:
        """Delete an image. Best-effort: returns False instead of raising."""
        result, error = try_run([self._binary, "rmi", image])
        if result is None:
            _LOG.warning("could not remove %s: %s", image, error)
            return False
        if result.returncode != 0:
            _LOG.warning("could not remove %s: %s", image, result.stderr.strip()[:200])
            return False
        return True

    def save(self, image: str, dest: Path) -> None:
        """Stream `docker save` through gzip into dest.

        A partially written file is removed on failure.
        """
        cmd = [self._binary, "save", image]
        _LOG.debug("running: %s | gzip > %s", " ".join(cmd), dest)
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ToolError(f"cannot start docker save: {e}") from e

        try:
            with proc:
                assert proc.stdout is not None
                with gzip.open(dest, "wb") as out:
                    shutil.copyfileobj(proc.stdout, out, _CHUNK_SIZE)
                stderr = proc.stderr.read().decode("utf-8", "replace") if proc.stderr else ""
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise ToolError(f"writing {dest} failed: {e}") from e

        if proc.returncode != 0:
            dest.unlink(missing_ok=True)
            raise ToolError(f"docker save failed: {stderr.strip()[:200] or f'exit code {proc.returncode}'}")


def parse_version_output(output: str) -> str:
    """Extract the version from `docker --version` output.

    "Docker version 27.3.1, build ce12230" -> "27.3.1"
    """
    parts = output.strip().split()
    if len(parts) >= 3 and parts[0].lower() == "docker":
        return parts[2].rstrip(",")
    return output.strip() or "unknown"
