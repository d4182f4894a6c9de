"""Security gate: accept or reject a build from its vulnerability findings."""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .models import Finding, GatePolicy, GateVerdict, SeverityCounts

CRITICAL = "CRITICAL"
HIGH = "HIGH"
MEDIUM = "MEDIUM"


def normalize_severity(value: Any) -> str:
    """Upper-case and strip a severity label. Non-strings map to ''."""
    if not isinstance(value, str):
        return ""
    return value.strip().upper()


def count_severities(findings: Iterable[Finding]) -> SeverityCounts:
    """Count CRITICAL/HIGH/MEDIUM findings. Unknown labels are ignored."""
    buckets = {CRITICAL: 0, HIGH: 0, MEDIUM: 0}
    for finding in findings:
        label = normalize_severity(finding.severity)
        if label in buckets:
            buckets[label] += 1
    return SeverityCounts(
        critical=buckets[CRITICAL],
        high=buckets[HIGH],
        medium=buckets[MEDIUM],
    )


def evaluate_gate(findings: Iterable[Finding], policy: GatePolicy | None = None) -> GateVerdict:
    """Decide whether a build passes the security gate.

    CRITICAL is checked before HIGH, so when both would reject, the
    verdict reports CRITICAL. MEDIUM is counted for reporting only.
    """
    policy = policy or GatePolicy()
    counts = count_severities(findings)

    if counts.critical > 0 and policy.fail_on_critical:
        return GateVerdict(accepted=False, counts=counts, triggered_by=CRITICAL)
    if counts.high > 0 and policy.fail_on_high:
        return GateVerdict(accepted=False, counts=counts, triggered_by=HIGH)

    return GateVerdict(
        accepted=True,
        counts=counts,
        tolerated=counts.critical > 0 or counts.high > 0,
    )
