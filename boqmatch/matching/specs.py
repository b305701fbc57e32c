"""Specification extraction for cables, light fittings and distribution boards."""

from __future__ import annotations

import re

from boqmatch.matching.models import CableSpec, DBSpec, ExtractedSpecs, ItemDomain, LightSpec

CABLE_KEYWORDS = ("cable", "xlpe", "pvc", "swa", "pilc", "core", "conductor")
LIGHT_KEYWORDS = ("led", "light", "luminaire", "fitting", "downlight", "panel", "bulkhead")
DB_KEYWORDS = ("db", "distribution", "board", "mcb", "way", "tpn", "spn")

_CORES = re.compile(r"(\d+)\s*(?:c|core|cre)")
_SIZE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:mm²?|sqmm)")
_DIMENSIONS = re.compile(r"(\d+)\s*[x×]\s*(\d+)")
_WAYS = re.compile(r"(\d+)\s*way")


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def _first_of(text: str, ordered: tuple[tuple[str, str], ...]) -> str | None:
    for needle, label in ordered:
        if needle in text:
            return label
    return None


def _cable_spec(text: str) -> CableSpec:
    cores = _CORES.search(text)
    size = _SIZE.search(text)
    return CableSpec(
        cores=int(cores.group(1)) if cores else None,
        size_mm2=float(size.group(1)) if size else None,
        insulation=_first_of(text, (("xlpe", "XLPE"), ("pvc", "PVC"), ("swa", "SWA"))),
    )


def _light_spec(text: str) -> LightSpec:
    dims = _DIMENSIONS.search(text)
    return LightSpec(
        dimensions=f"{dims.group(1)}x{dims.group(2)}" if dims else None,
        fitting_type=_first_of(
            text, (("panel", "Panel"), ("downlight", "Downlight"), ("bulkhead", "Bulkhead"))
        ),
    )


def _db_spec(text: str) -> DBSpec:
    ways = _WAYS.search(text)
    if "tpn" in text or "three phase" in text:
        phase = "TPN"
    elif "spn" in text or "single phase" in text:
        phase = "SPN"
    else:
        phase = None
    return DBSpec(ways=int(ways.group(1)) if ways else None, phase=phase)


def extract_specifications(description: str) -> ExtractedSpecs:
    """Classify a description and extract its structured attributes.

    Domains are checked cable, light, then distribution board; the first hit
    wins. Unclassified descriptions keep only their keyword tokens.

    Args:
        description: Item description (any case)

    Returns:
        ExtractedSpecs with at most one populated domain spec
    """
    text = description.lower()
    keywords = [word for word in text.split() if len(word) > 2]

    is_cable = _contains_any(text, CABLE_KEYWORDS) or (
        _CORES.search(text) is not None and _SIZE.search(text) is not None
    )
    if is_cable:
        return ExtractedSpecs(domain=ItemDomain.CABLE, cable=_cable_spec(text), keywords=keywords)

    if _contains_any(text, LIGHT_KEYWORDS):
        return ExtractedSpecs(domain=ItemDomain.LIGHT, light=_light_spec(text), keywords=keywords)

    if _contains_any(text, DB_KEYWORDS):
        return ExtractedSpecs(domain=ItemDomain.DB, db=_db_spec(text), keywords=keywords)

    return ExtractedSpecs(keywords=keywords)
