import pytest

from imagegate.core.gate import count_severities, evaluate_gate, normalize_severity
from imagegate.core.models import Finding, GatePolicy


def _findings(**by_severity: int) -> list[Finding]:
    out: list[Finding] = []
    for severity, n in by_severity.items():
        for i in range(n):
            out.append(Finding(
                vulnerability_id=f"CVE-2024-{severity}-{i}",
                package_name="pkg",
                installed_version="1.0",
                severity=severity.upper(),
            ))
    return out


ALL_POLICIES = [
    GatePolicy(fail_on_critical=c, fail_on_high=h)
    for c in (True, False)
    for h in (True, False)
]


# --- concrete scenarios ---

def test_critical_and_high_rejected_on_critical_with_full_counts():
    findings = _findings(critical=2, high=1, medium=3)
    verdict = evaluate_gate(findings, GatePolicy(fail_on_critical=True, fail_on_high=False))
    assert verdict.accepted is False
    assert verdict.counts.as_tuple() == (2, 1, 3)
    assert verdict.triggered_by == "CRITICAL"
    assert verdict.reason == "CRITICAL vulnerabilities"


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_empty_findings_accepted_under_any_policy(policy):
    verdict = evaluate_gate([], policy)
    assert verdict.accepted is True
    assert verdict.counts.as_tuple() == (0, 0, 0)
    assert verdict.reason is None
    assert verdict.tolerated is False


def test_high_only_tolerated_by_default_policy():
    verdict = evaluate_gate(_findings(high=5), GatePolicy(fail_on_critical=True, fail_on_high=False))
    assert verdict.accepted is True
    assert verdict.counts.as_tuple() == (0, 5, 0)
    assert verdict.tolerated is True


def test_default_policy_when_none_given():
    assert evaluate_gate(_findings(critical=1)).accepted is False
    assert evaluate_gate(_findings(high=1)).accepted is True


# --- properties ---

@pytest.mark.parametrize("policy", ALL_POLICIES)
@pytest.mark.parametrize("medium", [0, 1, 7])
def test_no_critical_no_high_always_accepted(policy, medium):
    verdict = evaluate_gate(_findings(medium=medium, low=2), policy)
    assert verdict.accepted is True
    assert verdict.counts.medium == medium


@pytest.mark.parametrize("fail_on_high", [True, False])
@pytest.mark.parametrize("high", [0, 3])
def test_critical_rejects_when_enabled(fail_on_high, high):
    policy = GatePolicy(fail_on_critical=True, fail_on_high=fail_on_high)
    verdict = evaluate_gate(_findings(critical=1, high=high), policy)
    assert verdict.accepted is False
    assert verdict.reason == "CRITICAL vulnerabilities"


@pytest.mark.parametrize("fail_on_critical", [True, False])
def test_high_rejects_when_enabled_and_no_critical(fail_on_critical):
    policy = GatePolicy(fail_on_critical=fail_on_critical, fail_on_high=True)
    verdict = evaluate_gate(_findings(high=2, medium=1), policy)
    assert verdict.accepted is False
    assert verdict.triggered_by == "HIGH"
    assert verdict.reason == "HIGH vulnerabilities"


def test_critical_tolerated_when_disabled():
    verdict = evaluate_gate(_findings(critical=4), GatePolicy(fail_on_critical=False, fail_on_high=False))
    assert verdict.accepted is True
    assert verdict.tolerated is True
    assert verdict.counts.critical == 4


def test_high_reported_when_critical_disabled_and_high_enabled():
    verdict = evaluate_gate(
        _findings(critical=1, high=1),
        GatePolicy(fail_on_critical=False, fail_on_high=True),
    )
    assert verdict.accepted is False
    assert verdict.triggered_by == "HIGH"


def test_critical_takes_precedence_over_high():
    verdict = evaluate_gate(
        _findings(critical=1, high=1),
        GatePolicy(fail_on_critical=True, fail_on_high=True),
    )
    assert verdict.triggered_by == "CRITICAL"


@pytest.mark.parametrize("policy", ALL_POLICIES)
def test_gate_is_idempotent(policy):
    findings = _findings(critical=1, high=2, medium=3)
    assert evaluate_gate(findings, policy) == evaluate_gate(findings, policy)


def test_gate_accepts_generator_input():
    verdict = evaluate_gate((f for f in _findings(high=2)), GatePolicy())
    assert verdict.counts.high == 2


# --- malformed severities ---

def test_unknown_severities_are_ignored():
    findings = [
        Finding("CVE-1", "a", "1", severity="UNKNOWN"),
        Finding("CVE-2", "b", "1", severity=""),
        Finding("CVE-3", "c", "1", severity="crit"),
        Finding("CVE-4", "d", "1", severity=None),  # type: ignore[arg-type]
        Finding("CVE-5", "e", "1", severity=3),  # type: ignore[arg-type]
    ]
    verdict = evaluate_gate(findings, GatePolicy(fail_on_critical=True, fail_on_high=True))
    assert verdict.accepted is True
    assert verdict.counts.as_tuple() == (0, 0, 0)


def test_severity_matching_is_case_and_whitespace_insensitive():
    findings = [
        Finding("CVE-1", "a", "1", severity="critical"),
        Finding("CVE-2", "b", "1", severity=" High "),
    ]
    counts = count_severities(findings)
    assert counts.as_tuple() == (1, 1, 0)


def test_normalize_severity_non_string():
    assert normalize_severity(None) == ""
    assert normalize_severity(["HIGH"]) == ""
    assert normalize_severity("medium") == "MEDIUM"
