"""Verify version consistency between __init__.py and pyproject.toml."""
from pathlib import Path

import imagegate


def test_version_matches_pyproject():
    pyproject = Path(__file__).parent.parent / "pyproject.toml"
    for line in pyproject.read_text().splitlines():
        if line.strip().startswith("version"):
            # Extract version string from: version = "0.2.0"
            pyproject_version = line.split("=", 1)[1].strip().strip('"')
            break
    else:
        raise AssertionError("No version found in pyproject.toml")

    assert imagegate.__version__ == pyproject_version, (
        f"Version mismatch: imagegate/__init__.py has {imagegate.__version__!r}, "
        f"pyproject.toml has {pyproject_version!r}"
    )


def test_bundled_policy_exists():
    """The default policy YAML must be present in the installed package."""
    policy = Path(imagegate.__file__).resolve().parent / "policies" / "default.yaml"
    assert policy.is_file(), f"bundled policy missing: {policy}"
