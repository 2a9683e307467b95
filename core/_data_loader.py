"""
core/_data_loader.py — Load the bundled YAML configuration tables.

Uses importlib.resources (stdlib) to read YAML files bundled in the
core/data/ package. Results are cached in a module-level dict so each YAML
file is parsed only once per process.

Private module — import only from core/tonal/profiles.py,
core/tonal/scales.py and core/loudness/platforms.py.
"""

from __future__ import annotations

import importlib.resources
from typing import Any

import yaml  # PyYAML

# ---------------------------------------------------------------------------
# Table name → YAML filename mapping
# ---------------------------------------------------------------------------

_TABLE_FILE_MAP: dict[str, str] = {
    "key_profiles": "key_profiles.yaml",
    "scales": "scales.yaml",
    "platforms": "platforms.yaml",
}

_CACHE: dict[str, dict[str, Any]] = {}


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_table(name: str) -> dict[str, Any]:
    """Return the parsed YAML dict for a bundled table.

    Args:
        name: One of 'key_profiles', 'scales', 'platforms'.

    Returns:
        Parsed YAML mapping. Callers must not mutate it.

    Raises:
        ValueError: If the table name is unknown or the file is not a mapping.
    """
    if name in _CACHE:
        return _CACHE[name]

    filename = _TABLE_FILE_MAP.get(name)
    if filename is None:
        raise ValueError(f"Unknown data table {name!r}. Available: {sorted(_TABLE_FILE_MAP)}")

    pkg = importlib.resources.files("core.data")
    text = (pkg / filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Data table {filename} must be a mapping")
    _CACHE[name] = data
    return data


def available_tables() -> list[str]:
    """Return sorted list of bundled table names."""
    return sorted(_TABLE_FILE_MAP.keys())
