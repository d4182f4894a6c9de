"""Parse Trivy JSON scan reports into findings."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .gate import normalize_severity
from .models import Finding

_LISTING_LIMIT = 10


class ReportError(Exception):
    """Raised when a scan report cannot be read or is not a JSON object."""


def load_report(path: Path) -> list[Finding]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReportError(f"cannot read scan report {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ReportError(f"scan report {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ReportError(f"scan report {path}: expected a JSON object at top level")

    return parse_report(data)


def parse_report(data: dict) -> list[Finding]:
    """Flatten Results[].Vulnerabilities[] into findings.

    Trivy writes "Vulnerabilities": null for clean targets and omits
    "Results" entirely for some image types; both mean no findings.
    """
    findings: list[Finding] = []
    for result in data.get("Results") or []:
        if not isinstance(result, dict):
            continue
        target = str(result.get("Target") or "")
        for vuln in result.get("Vulnerabilities") or []:
            if not isinstance(vuln, dict):
                continue
            findings.append(_to_finding(vuln, target))
    return findings


def _to_finding(vuln: dict[str, Any], target: str) -> Finding:
    fixed = vuln.get("FixedVersion")
    severity = vuln.get("Severity")
    return Finding(
        vulnerability_id=str(vuln.get("VulnerabilityID") or "unknown"),
        package_name=str(vuln.get("PkgName") or "unknown"),
        installed_version=str(vuln.get("InstalledVersion") or ""),
        severity=severity if isinstance(severity, str) else "",
        fixed_version=str(fixed) if fixed else None,
        target=target,
    )


def format_findings(findings: list[Finding], severity: str, limit: int = _LISTING_LIMIT) -> list[str]:
    """Render findings of one severity as console listing lines."""
    wanted = normalize_severity(severity)
    lines: list[str] = []
    for f in findings:
        if normalize_severity(f.severity) != wanted:
            continue
        lines.append(
            f"  - {f.vulnerability_id}: {f.package_name} {f.installed_version}"
            f" → Fix: {f.fixed_version or 'N/A'}"
        )
        if len(lines) >= limit:
            break
    return lines
