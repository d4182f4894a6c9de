from __future__ import annotations

import json
from pathlib import Path

from ..core.models import CleanScan, FindingsPresent, ScanError, ScanOutcome
from ..core.report import ReportError, load_report
from .process import run_tool, try_run

DEFAULT_SCAN_SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM")


class TrivyScanner:
    """Runs trivy against a local image.

    `scan` never raises: every failure becomes a ScanError outcome so the
    caller can tell "scanner broke" apart from "vulnerabilities found".
    """

    name = "trivy"

    def __init__(self, binary: str = "trivy", severities: tuple[str, ...] = DEFAULT_SCAN_SEVERITIES) -> None:
        self._binary = binary
        self._severities = severities

    def version(self) -> str:
        """Return the bare version number, e.g. "0.56.2"."""
        return parse_version_output(run_tool([self._binary, "--version"]))

    def download_db(self) -> None:
        run_tool([self._binary, "image", "--download-db-only"], timeout=None)

    def scan(self, image: str, report_path: Path) -> ScanOutcome:
        # No --exit-code: a non-zero exit now only ever means the tool failed.
        result, error = try_run(
            [
                self._binary, "image",
                "--severity", ",".join(self._severities),
                "--format", "json",
                "--output", str(report_path),
                image,
            ],
            timeout=None,
        )
        if result is None:
            return ScanError(reason=error or "trivy did not run")
        if result.returncode != 0:
            stderr = result.stderr.strip()[:200]
            return ScanError(
                reason=f"trivy exited with code {result.returncode} ({stderr or 'no output'})",
                report_path=report_path if report_path.exists() else None,
            )

        try:
            findings = load_report(report_path)
        except ReportError as e:
            return ScanError(reason=str(e), report_path=report_path)

        if not findings:
            return CleanScan(report_path=report_path)
        return FindingsPresent(report_path=report_path, findings=findings)

    def table_report(self, image: str, dest: Path) -> None:
        run_tool(
            [
                self._binary, "image",
                "--severity", ",".join(self._severities),
                "--format", "table",
                "--output", str(dest),
                image,
            ],
            timeout=None,
        )

    def sbom(self, image: str, dest: Path) -> None:
        run_tool(
            [self._binary, "image", "--format", "spdx-json", "--output", str(dest), image],
            timeout=None,
        )


def sbom_package_count(sbom_path: Path) -> int | None:
    """Number of entries in an SPDX document's packages array, or None."""
    try:
        data = json.loads(sbom_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    packages = data.get("packages")
    return len(packages) if isinstance(packages, list) else None


def parse_version_output(output: str) -> str:
    """Extract the version from `trivy --version` output ("Version: 0.56.2")."""
    lines = output.strip().splitlines()
    if not lines:
        return "unknown"
    parts = lines[0].split()
    return parts[1] if len(parts) >= 2 else parts[0]
