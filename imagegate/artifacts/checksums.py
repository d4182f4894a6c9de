"""SHA sidecar files in `shasum` format: "<hexdigest>  <basename>\\n"."""
from __future__ import annotations

import hashlib
import hmac
from pathlib import Path

ALGORITHMS = ("sha256", "sha512")

_CHUNK_SIZE = 1024 * 1024


class ChecksumError(Exception):
    """Raised when a sidecar is malformed or its artifact is missing."""


def file_digest(path: Path, algorithm: str) -> str:
    if algorithm not in ALGORITHMS:
        raise ValueError(f"unsupported algorithm: {algorithm}")
    h = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def sidecar_path(path: Path, algorithm: str) -> Path:
    return path.with_name(f"{path.name}.{algorithm}")


def write_sidecar(path: Path, algorithm: str) -> str:
    """Hash path and write its sidecar next to it. Returns the digest."""
    digest = file_digest(path, algorithm)
    sidecar_path(path, algorithm).write_text(f"{digest}  {path.name}\n", encoding="utf-8")
    return digest


def verify_sidecar(sidecar: Path) -> bool:
    """Recompute the digest named by a sidecar file and compare."""
    algorithm = sidecar.suffix.lstrip(".")
    if algorithm not in ALGORITHMS:
        raise ChecksumError(f"{sidecar}: unknown checksum extension '{sidecar.suffix}'")

    try:
        text = sidecar.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ChecksumError(f"cannot read {sidecar}: {e}") from e

    parts = text.split(None, 1)
    if len(parts) != 2:
        raise ChecksumError(f"{sidecar}: expected '<digest>  <filename>'")
    expected, name = parts[0].lower(), parts[1].lstrip("*")

    target = sidecar.parent / name
    if not target.is_file():
        raise ChecksumError(f"{sidecar}: artifact not found: {target}")

    return hmac.compare_digest(file_digest(target, algorithm), expected)
