"""Resolve the SpainTax version for the health and metadata endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

PACKAGE_NAME: Final = "spaintax"
PYPROJECT_PATH: Final = Path(__file__).resolve().parents[3] / "pyproject.toml"


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed distribution version or the one in ``pyproject.toml``."""

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return _read_version_from_pyproject(PYPROJECT_PATH)


def _project_table_entries(text: str) -> Iterator[tuple[str, str]]:
    """Yield ``key = value`` pairs declared in the ``[project]`` table."""

    in_project = False
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("["):
            in_project = line == "[project]"
            continue
        if in_project and "=" in line:
            key, _, value = line.partition("=")
            yield key.strip(), value.strip()


def _read_version_from_pyproject(path: Path) -> str:
    """Parse ``path`` for the project version.

    Used when the package runs from a checkout without installed metadata.
    """

    if not path.exists():  # pragma: no cover - repository invariant
        raise RuntimeError(f"Unable to locate project metadata at {path}")

    for key, value in _project_table_entries(path.read_text(encoding="utf-8")):
        if key == "version":
            version = value.strip('"').strip("'")
            if version:
                return version
            break

    raise RuntimeError("Unable to determine project version from pyproject.toml")


__all__ = ["PACKAGE_NAME", "get_project_version"]
