"""Six-step secure build: prerequisites, build, scan + gate, SBOM, export, certificate."""
from __future__ import annotations

import getpass
import logging
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .artifacts.certificate import CertificateInfo, write_certificate
from .artifacts.checksums import write_sidecar
from .artifacts.layout import ArtifactLayout
from .config import BuildConfig
from .console import Console
from .core.gate import CRITICAL, evaluate_gate
from .core.models import GateVerdict, ScanError
from .core.report import format_findings
from .tools.docker import DockerClient
from .tools.process import INSTALL_HINTS, ToolError, missing_tools
from .tools.trivy import TrivyScanner, sbom_package_count

_LOG = logging.getLogger(__name__)

REQUIRED_TOOLS = ["docker", "trivy"]
TOTAL_STEPS = 6


class PipelineError(Exception):
    """Base class for failures that end a pipeline run."""


class PrerequisiteError(PipelineError):
    """A required tool is missing or unusable."""


class BuildError(PipelineError):
    """The image could not be built."""


class ScanFailedError(PipelineError):
    """The scanner itself failed; says nothing about vulnerabilities."""


class GateRejectedError(PipelineError):
    """The security gate rejected the image."""

    def __init__(self, verdict: GateVerdict, report_path: Path, image_removed: bool) -> None:
        super().__init__(f"BUILD REJECTED: {verdict.reason} found")
        self.verdict = verdict
        self.report_path = report_path
        self.image_removed = image_removed


class ArtifactError(PipelineError):
    """A post-gate artifact (SBOM, export, checksums, certificate) failed."""


@dataclass
class BuildSummary:
    image: str
    image_size: str
    build_seconds: int
    verdict: GateVerdict
    package_count: int | None
    sha256: str
    sha512: str
    layout: ArtifactLayout

    @property
    def approved(self) -> bool:
        return self.verdict.counts.critical == 0

    def as_dict(self) -> dict:
        c = self.verdict.counts
        return {
            "image": self.image,
            "image_size": self.image_size,
            "build_seconds": self.build_seconds,
            "counts": {"critical": c.critical, "high": c.high, "medium": c.medium},
            "gate": {
                "accepted": self.verdict.accepted,
                "tolerated": self.verdict.tolerated,
                "approved_for_distribution": self.approved,
            },
            "sbom_packages": self.package_count,
            "sha256": self.sha256,
            "sha512": self.sha512,
            "artifacts": self.layout.as_dict(),
        }


def _builder_identity() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


class SecureBuildPipeline:
    def __init__(
        self,
        config: BuildConfig,
        docker: DockerClient | None = None,
        scanner: TrivyScanner | None = None,
        console: Console | None = None,
        tool_check: Callable[[list[str]], list[str]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.layout = ArtifactLayout(config.output_dir, config.image_name, config.tag)
        self.docker = docker or DockerClient()
        self.scanner = scanner or TrivyScanner()
        self.console = console or Console()
        self._tool_check = tool_check or missing_tools
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self) -> BuildSummary:
        out = self.console
        out.section(f"{self.config.image_name} - Secure Build Pipeline")
        out.line()

        scanner_version = self._check_prerequisites()
        build_seconds, image_size = self._build()
        verdict = self._scan_and_gate()
        package_count = self._generate_sbom()
        sha256, sha512 = self._export()
        self._certify(verdict, image_size, sha256, package_count, scanner_version)

        summary = BuildSummary(
            image=self.config.full_image,
            image_size=image_size,
            build_seconds=build_seconds,
            verdict=verdict,
            package_count=package_count,
            sha256=sha256,
            sha512=sha512,
            layout=self.layout,
        )
        self._print_summary(summary)
        return summary

    # --- step 1 ---

    def _check_prerequisites(self) -> str:
        out = self.console
        out.info(f"Step 1/{TOTAL_STEPS}: Checking requirements...")

        missing = self._tool_check(REQUIRED_TOOLS)
        if missing:
            for tool in missing:
                out.error(f"{tool} not found. Install it: {INSTALL_HINTS.get(tool, 'see tool documentation')}")
            raise PrerequisiteError(f"missing required tools: {', '.join(missing)}")

        try:
            scanner_version = self.scanner.version()
        except ToolError as e:
            raise PrerequisiteError(f"trivy is not usable: {e}") from e
        out.success(f"Trivy found: {scanner_version}")

        # Export, sidecars and certificate are only valid as a set
        leftovers = self.layout.existing_outputs()
        if leftovers:
            names = ", ".join(p.name for p in leftovers)
            out.error(f"Artifacts from a previous run found in {self.layout.output_dir}: {names}")
            raise PrerequisiteError(
                f"output directory already holds artifacts for {self.config.full_image} ({names}); "
                "remove them or choose another --output-dir"
            )

        try:
            self.layout.prepare()
        except OSError as e:
            raise PrerequisiteError(f"cannot prepare output directory {self.layout.output_dir}: {e}") from e
        out.success(f"Output directory: {self.layout.output_dir}")
        out.line()
        return scanner_version

    # --- step 2 ---

    def _build(self) -> tuple[int, str]:
        out = self.console
        image = self.config.full_image
        out.info(f"Step 2/{TOTAL_STEPS}: Building Docker image...")
        out.line()

        start = time.monotonic()
        try:
            self.docker.build(
                self.config.dockerfile,
                image,
                self.config.context,
                self.layout.build_log,
                echo=out.line,
            )
        except ToolError as e:
            out.error("Docker build failed")
            raise BuildError(str(e)) from e
        build_seconds = int(time.monotonic() - start)
        out.success(f"Image built in {build_seconds}s")
        out.line()

        try:
            image_size = self.docker.image_size(image)
        except ToolError as e:
            _LOG.debug("image size lookup failed: %s", e)
            image_size = "unknown"
        out.info(f"Image size: {image_size}")
        out.line()
        return build_seconds, image_size

    # --- step 3 ---

    def _scan_and_gate(self) -> GateVerdict:
        out = self.console
        image = self.config.full_image
        report_path = self.layout.scan_json

        out.section(f"Step 3/{TOTAL_STEPS}: Vulnerability Scanning")
        out.line()
        out.warning("If the security gate rejects the image:")
        out.warning("  → Image will be DELETED automatically")
        out.warning("  → Build will be marked as FAILED")
        out.line()

        out.info("Updating Trivy vulnerability database...")
        try:
            self.scanner.download_db()
        except ToolError as e:
            raise ScanFailedError(f"vulnerability database update failed: {e}") from e

        out.info("Scanning image for vulnerabilities...")
        outcome = self.scanner.scan(image, report_path)
        if isinstance(outcome, ScanError):
            out.error("Vulnerability scan did not complete; image NOT certified")
            raise ScanFailedError(f"vulnerability scan failed: {outcome.reason}")

        findings = outcome.findings
        verdict = evaluate_gate(findings, self.config.policy)
        c = verdict.counts

        if not findings or (c.critical == 0 and c.high == 0):
            out.success("✅ SECURITY GATE: PASSED")
            out.success("No CRITICAL or HIGH vulnerabilities found")
        else:
            out.line("Vulnerabilities found:")
            out.line(f"   • CRITICAL: {c.critical}")
            out.line(f"   • HIGH: {c.high}")
            out.line(f"   • MEDIUM: {c.medium}")
            out.line()
            if c.critical:
                out.line("CRITICAL Vulnerabilities:")
                for line in format_findings(findings, CRITICAL):
                    out.line(line)
                out.line()

        if not verdict.accepted:
            out.error("❌ SECURITY GATE: FAILED")
            out.warning("DELETING vulnerable image...")
            removed = self.docker.remove_image(image)
            if not removed:
                out.warning(f"Could not delete {image}; remove it manually")
            raise GateRejectedError(verdict, report_path, removed)

        if verdict.tolerated:
            out.warning("Continuing with vulnerabilities (policy allows)")

        try:
            self.scanner.table_report(image, self.layout.scan_table)
        except ToolError as e:
            out.warning(f"Human-readable report not generated: {e}")
        out.line()
        return verdict

    # --- step 4 ---

    def _generate_sbom(self) -> int | None:
        out = self.console
        out.info(f"Step 4/{TOTAL_STEPS}: Generating SBOM (Software Bill of Materials)...")
        try:
            self.scanner.sbom(self.config.full_image, self.layout.sbom)
        except ToolError as e:
            raise ArtifactError(f"SBOM generation failed: {e}") from e

        package_count = sbom_package_count(self.layout.sbom)
        out.success(f"SBOM generated: {'N/A' if package_count is None else package_count} packages")
        out.line()
        return package_count

    # --- step 5 ---

    def _export(self) -> tuple[str, str]:
        out = self.console
        export = self.layout.export
        out.info(f"Step 5/{TOTAL_STEPS}: Exporting image...")
        out.info(f"Exporting to {export}...")
        try:
            self.docker.save(self.config.full_image, export)
        except ToolError as e:
            raise ArtifactError(f"image export failed: {e}") from e
        out.success(f"Exported: {human_size(export.stat().st_size)}")

        try:
            sha256 = write_sidecar(export, "sha256")
            sha512 = write_sidecar(export, "sha512")
        except OSError as e:
            raise ArtifactError(f"checksum generation failed: {e}") from e
        out.success(f"SHA256: {sha256}")
        out.success(f"SHA512: {sha512}")
        out.line()
        return sha256, sha512

    # --- step 6 ---

    def _certify(
        self,
        verdict: GateVerdict,
        image_size: str,
        sha256: str,
        package_count: int | None,
        scanner_version: str,
    ) -> None:
        out = self.console
        out.info(f"Step 6/{TOTAL_STEPS}: Generating security certificate...")
        try:
            docker_version = self.docker.version()
        except ToolError as e:
            _LOG.debug("docker version lookup failed: %s", e)
            docker_version = "unknown"

        info = CertificateInfo(
            image=self.config.full_image,
            artifact_name=self.layout.export.name,
            build_date=self._clock(),
            builder=_builder_identity(),
            docker_version=docker_version,
            scanner_version=scanner_version,
            image_size=image_size,
            sha256=sha256,
            counts=verdict.counts,
            package_count=package_count,
        )
        try:
            write_certificate(self.layout.certificate, info)
        except FileExistsError:
            raise ArtifactError(f"certificate already exists: {self.layout.certificate}") from None
        except OSError as e:
            raise ArtifactError(f"certificate generation failed: {e}") from e
        out.success("Certificate generated")
        out.line()

    def _print_summary(self, summary: BuildSummary) -> None:
        out = self.console
        c = summary.verdict.counts
        out.section("Build Complete")
        out.line()
        out.line(f"📦 Image: {summary.image}")
        out.line(f"💾 Size: {summary.image_size}")
        out.line(f"🔐 SHA256: {summary.sha256}")
        out.line(f"🐛 Vulnerabilities: {c.critical} CRITICAL, {c.high} HIGH")
        out.line()
        if summary.approved:
            out.highlight("✅ IMAGE APPROVED FOR DISTRIBUTION", ok=True)
        else:
            out.highlight("⚠️  REVIEW VULNERABILITIES BEFORE DISTRIBUTION", ok=False)
        out.line()
        out.line("📋 Generated files:")
        for path in sorted(self.layout.output_dir.iterdir()):
            if path.is_file():
                out.line(f"   • {path.name} ({human_size(path.stat().st_size)})")
        out.line()


def human_size(num_bytes: int) -> str:
    """Format a byte count like `du -h` (1024-based, one decimal)."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            return f"{int(size)}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"
