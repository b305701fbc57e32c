"""Unit standardization to the BOQ unit vocabulary.

Canonical codes: M2, M3, M, NO, KG, TON, SET, LOT, ITEM, PS, PC.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CANONICAL_UNITS = frozenset(
    {"M2", "M3", "M", "NO", "KG", "TON", "SET", "LOT", "ITEM", "PS", "PC"}
)

DEFAULT_UNIT_GROUPS: dict[str, list[str]] = {
    "M2": ["m2", "m²", "sqm", "sq.m", "sq m", "m.sq", "square meter", "square metre"],
    "M3": ["m3", "m³", "cum", "cu.m", "cubic meter", "cubic metre"],
    "M": ["m", "lm", "lin.m", "linear meter", "metre", "meter"],
    "NO": ["nr", "no", "no.", "nos", "ea", "each", "pcs", "pc", "unit", "units"],
    "KG": ["kg", "kgs", "kilogram"],
    "TON": ["t", "ton", "tonne", "tons"],
    "SET": ["set", "sets"],
    "LOT": ["lot", "lots"],
    "ITEM": ["item", "items"],
    "PS": ["ps", "p.s.", "prov sum", "provisional sum"],
    "PC": ["pc sum", "prime cost"],
}


class UnitStandardizer:
    """Map free-text unit tokens onto canonical unit codes."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize with the default table plus optional YAML extensions.

        The YAML file holds a ``units`` list of groups; the first entry of
        each group is the canonical code, e.g. ``[M, rm, running metre]``.

        Args:
            config_path: Path to an extra unit synonyms file
        """
        self.synonyms: dict[str, str] = {}
        for code, variants in DEFAULT_UNIT_GROUPS.items():
            for variant in variants:
                self.synonyms[variant] = code

        if config_path and config_path.exists():
            self._load_config(config_path)

    def _load_config(self, config_path: Path) -> None:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        for group in config.get("units", []):
            if not group:
                continue
            canonical = str(group[0]).upper()
            for variant in group:
                self.synonyms[str(variant).strip().lower()] = canonical
        logger.debug(f"Loaded unit synonyms from {config_path}")

    def standardize(self, unit: str | None) -> str | None:
        """Return the canonical code, the upper-cased token if unknown, or None."""
        if unit is None:
            return None
        token = str(unit).strip()
        if not token:
            return None
        return self.synonyms.get(token.lower(), token.upper())

    def is_unit(self, token: str) -> bool:
        """Check whether a token belongs to the unit vocabulary."""
        normalized = token.strip().lower()
        return normalized in self.synonyms or normalized.upper() in CANONICAL_UNITS


_standardizer: UnitStandardizer | None = None


def get_unit_standardizer() -> UnitStandardizer:
    """Get singleton standardizer, honouring BOQ_UNIT_SYNONYMS_PATH if configured."""
    global _standardizer
    if _standardizer is None:
        from boqmatch.config import get_config

        try:
            path = get_config().ingestion.unit_synonyms_path
        except KeyError:
            path = None
        _standardizer = UnitStandardizer(path)
    return _standardizer


def standardize_unit(unit: str | None) -> str | None:
    """Standardize a unit token using the shared standardizer."""
    return get_unit_standardizer().standardize(unit)
