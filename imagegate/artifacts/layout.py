from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ArtifactLayout:
    """File names produced by one pipeline run inside the output directory."""

    output_dir: Path
    image_name: str
    tag: str

    @property
    def export(self) -> Path:
        return self.output_dir / f"{self.image_name}-{self.tag}.tar.gz"

    @property
    def sha256(self) -> Path:
        return self.export.with_name(self.export.name + ".sha256")

    @property
    def sha512(self) -> Path:
        return self.export.with_name(self.export.name + ".sha512")

    @property
    def scan_json(self) -> Path:
        return self.output_dir / "vulnerability-scan.json"

    @property
    def scan_table(self) -> Path:
        return self.output_dir / "vulnerability-scan.txt"

    @property
    def sbom(self) -> Path:
        return self.output_dir / "sbom.json"

    @property
    def build_log(self) -> Path:
        return self.output_dir / "build.log"

    @property
    def certificate(self) -> Path:
        return self.output_dir / "SECURITY_CERTIFICATE.md"

    def existing_outputs(self) -> list[Path]:
        """Distributable files (export, sidecars, certificate) left by an earlier run."""
        return [p for p in (self.export, self.sha256, self.sha512, self.certificate) if p.exists()]

    def prepare(self) -> None:
        """Create the output directory and drop stale logs from earlier runs."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for old_log in self.output_dir.glob("*.log"):
            old_log.unlink(missing_ok=True)

    def as_dict(self) -> dict[str, str]:
        return {
            "export": str(self.export),
            "sha256": str(self.sha256),
            "sha512": str(self.sha512),
            "scan_json": str(self.scan_json),
            "scan_table": str(self.scan_table),
            "sbom": str(self.sbom),
            "build_log": str(self.build_log),
            "certificate": str(self.certificate),
        }
