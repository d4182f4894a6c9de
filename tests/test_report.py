from pathlib import Path

import pytest

from imagegate.core.gate import count_severities
from imagegate.core.report import ReportError, format_findings, load_report, parse_report

FIXTURES = Path(__file__).parent / "fixtures"


def test_load_mixed_report():
    findings = load_report(FIXTURES / "trivy_mixed.json")
    assert len(findings) == 6
    assert count_severities(findings).as_tuple() == (2, 1, 3)

    openssl = findings[0]
    assert openssl.vulnerability_id == "CVE-2024-0001"
    assert openssl.package_name == "openssl"
    assert openssl.installed_version == "3.3.1-r0"
    assert openssl.fixed_version == "3.3.2-r0"
    assert openssl.target.startswith("localsafe-eth:latest")


def test_missing_fixed_version_is_none():
    findings = load_report(FIXTURES / "trivy_mixed.json")
    busybox = [f for f in findings if f.package_name == "busybox"][0]
    assert busybox.fixed_version is None


def test_null_and_missing_vulnerabilities_mean_clean():
    assert load_report(FIXTURES / "trivy_clean.json") == []


def test_missing_results_key():
    assert parse_report({"SchemaVersion": 2}) == []
    assert parse_report({"Results": None}) == []


def test_non_dict_entries_skipped():
    data = {
        "Results": [
            "garbage",
            {"Target": "x", "Vulnerabilities": [42, {"VulnerabilityID": "CVE-1", "Severity": "HIGH"}]},
        ]
    }
    findings = parse_report(data)
    assert len(findings) == 1
    assert findings[0].package_name == "unknown"
    assert findings[0].severity == "HIGH"


def test_non_string_severity_becomes_empty():
    findings = parse_report({"Results": [{"Vulnerabilities": [{"VulnerabilityID": "CVE-1", "Severity": 5}]}]})
    assert findings[0].severity == ""


def test_invalid_json_raises(tmp_path):
    bad = tmp_path / "scan.json"
    bad.write_text("{not json")
    with pytest.raises(ReportError, match="not valid JSON"):
        load_report(bad)


def test_top_level_list_raises(tmp_path):
    bad = tmp_path / "scan.json"
    bad.write_text("[]")
    with pytest.raises(ReportError, match="expected a JSON object"):
        load_report(bad)


def test_missing_file_raises(tmp_path):
    with pytest.raises(ReportError, match="cannot read"):
        load_report(tmp_path / "absent.json")


def test_format_critical_listing():
    findings = load_report(FIXTURES / "trivy_mixed.json")
    lines = format_findings(findings, "CRITICAL")
    assert lines == [
        "  - CVE-2024-0001: openssl 3.3.1-r0 → Fix: 3.3.2-r0",
        "  - CVE-2024-0002: busybox 1.36.1-r29 → Fix: N/A",
    ]


def test_format_listing_is_capped():
    data = {"Results": [{"Vulnerabilities": [
        {"VulnerabilityID": f"CVE-{i}", "PkgName": "p", "InstalledVersion": "1", "Severity": "CRITICAL"}
        for i in range(25)
    ]}]}
    assert len(format_findings(parse_report(data), "critical")) == 10
    assert len(format_findings(parse_report(data), "CRITICAL", limit=3)) == 3
