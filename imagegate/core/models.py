from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Finding:
    vulnerability_id: str
    package_name: str
    installed_version: str
    severity: str
    fixed_version: str | None = None
    target: str = ""


@dataclass(frozen=True)
class SeverityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.critical, self.high, self.medium)


@dataclass(frozen=True)
class GatePolicy:
    """Which severity classes reject a build."""
    fail_on_critical: bool = True
    fail_on_high: bool = False


@dataclass(frozen=True)
class GateVerdict:
    """Outcome of the security gate.

    A rejected verdict obliges the caller to discard the built image;
    the gate itself never touches the filesystem or Docker.
    """
    accepted: bool
    counts: SeverityCounts
    triggered_by: str | None = None
    tolerated: bool = False

    @property
    def reason(self) -> str | None:
        if self.triggered_by is None:
            return None
        return f"{self.triggered_by} vulnerabilities"


# --- Scan outcomes ---
#
# A scanner run ends in exactly one of these. Findings presence is decided
# from report content, never from the scanner's exit code.

@dataclass(frozen=True)
class CleanScan:
    report_path: Path

    @property
    def findings(self) -> list[Finding]:
        return []


@dataclass(frozen=True)
class FindingsPresent:
    report_path: Path
    findings: list[Finding] = field(default_factory=list)


@dataclass(frozen=True)
class ScanError:
    reason: str
    report_path: Path | None = None


ScanOutcome = CleanScan | FindingsPresent | ScanError
