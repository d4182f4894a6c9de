"""Entry point: python -m imagegate [--json] [--policy FILE] [TAG]"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .artifacts.checksums import ChecksumError, verify_sidecar
from .config import BuildConfig, ConfigError
from .console import Console, color_enabled
from .pipeline import GateRejectedError, PipelineError, SecureBuildPipeline

_SCHEMA_VERSION = "0.1"


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="imagegate",
        description="Build a container image, gate it on vulnerability scan results, and package it with checksums",
    )
    parser.add_argument("tag", nargs="?", help="Image tag (default: latest)")
    parser.add_argument("--image-name", help="Image name (env: IMAGE_NAME, default: localsafe-eth)")
    parser.add_argument("--dockerfile", type=Path, help="Path to Dockerfile (env: DOCKERFILE)")
    parser.add_argument("--context", type=Path, help="Docker build context (default: .)")
    parser.add_argument("--output-dir", type=Path, help="Artifact directory (env: OUTPUT_DIR, default: ./dist-package)")
    parser.add_argument("--policy", type=Path, help="Path to security gate policy YAML")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Print the build summary as JSON")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log tool invocations")
    parser.add_argument("--verify", type=Path, metavar="SIDECAR", help="Verify an artifact against a .sha256/.sha512 file and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.verify:
        return _verify(args.verify)

    try:
        config = BuildConfig.from_env(
            tag=args.tag,
            policy_path=args.policy,
            image_name=args.image_name,
            dockerfile=args.dockerfile,
            context=args.context,
            output_dir=args.output_dir,
        )
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    console = Console(
        color=color_enabled(sys.stdout, no_color=args.no_color),
        quiet=args.json_output,
    )
    pipeline = SecureBuildPipeline(config, console=console)

    try:
        summary = pipeline.run()
    except GateRejectedError as e:
        _report_rejection(e, console)
        if args.json_output:
            c = e.verdict.counts
            print(json.dumps({
                "meta": _meta(),
                "image": config.full_image,
                "counts": {"critical": c.critical, "high": c.high, "medium": c.medium},
                "gate": {"accepted": False, "reason": e.verdict.reason, "triggered_by": e.verdict.triggered_by},
                "image_removed": e.image_removed,
                "report": str(e.report_path),
            }, indent=2))
        return 1
    except PipelineError as e:
        print(f"error: {e}", file=sys.stderr)
        if args.json_output:
            print(json.dumps({
                "meta": _meta(),
                "image": config.full_image,
                "error": {"kind": type(e).__name__, "message": str(e)},
            }, indent=2))
        return 1

    if args.json_output:
        print(json.dumps({"meta": _meta(), **summary.as_dict()}, indent=2))
    return 0


def _meta() -> dict:
    return {"schema_version": _SCHEMA_VERSION, "tool_version": __version__}


def _report_rejection(e: GateRejectedError, console: Console) -> None:
    bar = "═" * 48
    console.error(bar)
    console.error(str(e))
    console.error(bar)
    if e.image_removed:
        console.error("Image deleted for security. Cannot distribute.")
    console.error("Next steps:")
    console.error("  1. Update vulnerable dependencies")
    console.error("  2. Rebuild")
    console.error("  3. Security gate must pass")
    console.error(f"Full report: {e.report_path}")


def _verify(sidecar: Path) -> int:
    try:
        ok = verify_sidecar(sidecar)
    except ChecksumError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    if ok:
        print(f"{sidecar.name}: OK")
        return 0
    print(f"{sidecar.name}: FAILED (checksum mismatch, DO NOT USE)", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
