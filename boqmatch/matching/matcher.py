"""Material matcher: best master-catalog candidate for a BOQ description.

Scores every active master material, keeps the single best candidate and,
when the best score is below the match threshold, suggests a category from
keyword groups instead.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from boqmatch.matching.confidence import ConfidenceCalculator, MatchMethod
from boqmatch.matching.models import ExtractedSpecs, MatchOutcome
from boqmatch.matching.specs import extract_specifications
from boqmatch.models import MATCH_THRESHOLD, MasterMaterial, MaterialCategory

logger = logging.getLogger(__name__)

# Matched against category names (name must contain the group key)
CATEGORY_NAME_KEYWORDS: dict[str, tuple[str, ...]] = {
    "cable": ("cable", "conductor", "xlpe", "pvc", "core"),
    "light": ("light", "led", "luminaire", "fitting", "panel"),
    "db": ("db", "distribution", "board", "mcb"),
    "switch": ("switch", "isolator", "socket"),
    "conduit": ("conduit", "trunking", "containment", "tray"),
}

# Fallback: matched against standard category codes
CATEGORY_CODE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "HV": ("hv", "high voltage", "11kv", "22kv", "33kv", "medium voltage", "mv"),
    "LV": ("lv", "low voltage", "400v", "230v"),
    "CB-PW": ("power cable", "xlpe", "swa", "pvc/swa", "armoured"),
    "CB-CT": ("control cable", "instrumentation", "signal cable"),
    "CT": ("containment", "trunking", "tray", "ladder", "conduit"),
    "EA": ("earthing", "earth", "lightning", "bonding"),
    "LT": ("light", "luminaire", "led", "lamp", "downlight", "floodlight"),
    "AC": ("accessory", "accessories", "socket", "plug"),
    "SW": ("switchgear", "switch", "isolator", "breaker"),
    "GN": ("generator", "genset", "standby"),
    "FC": ("fire", "detection", "alarm", "smoke"),
    "SC": ("security", "cctv", "access control", "intercom"),
    "DB": ("distribution board", "db", "panel board", "mcb"),
    "AP": ("appliance", "geyser", "heater", "motor"),
}


def _mentions(text: str, tokens: set[str], keyword: str) -> bool:
    # Short codes ("hv", "db") must be whole words
    if len(keyword) <= 3:
        return keyword in tokens
    return keyword in text


@dataclass
class _PreparedMaterial:
    material: MasterMaterial
    name: str
    specs: ExtractedSpecs


class MaterialMatcher:
    """Match BOQ descriptions against a fixed master-material catalog.

    The catalog is prepared once (names lower-cased, specs extracted) so that
    matching many rows against the same reference list stays cheap.
    """

    def __init__(
        self,
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory] = (),
        match_threshold: float = MATCH_THRESHOLD,
        calculator: ConfidenceCalculator | None = None,
    ) -> None:
        """Initialize matcher.

        Args:
            materials: Active master materials
            categories: Active material categories (for fallback suggestions)
            match_threshold: Minimum confidence to report a material id
            calculator: Confidence calculator (default settings if omitted)
        """
        self.categories = list(categories)
        self.match_threshold = max(match_threshold, MATCH_THRESHOLD)
        self.calculator = calculator or ConfidenceCalculator()
        self._prepared = [
            _PreparedMaterial(
                material=m,
                name=m.name.lower().strip(),
                specs=extract_specifications(m.name),
            )
            for m in materials
        ]

    @property
    def materials(self) -> list[MasterMaterial]:
        return [p.material for p in self._prepared]

    def match(self, description: str | None) -> MatchOutcome:
        """Find the best master material for a description.

        Args:
            description: Raw BOQ item description

        Returns:
            MatchOutcome with material id (if >= threshold) or a suggested category
        """
        text = (description or "").lower().strip()
        if len(text) < 3:
            return MatchOutcome(material_id=None, confidence=0.0, method=MatchMethod.NONE.value)

        desc_specs = extract_specifications(text)

        best: _PreparedMaterial | None = None
        best_score = 0.0
        best_method = MatchMethod.NONE

        for candidate in self._prepared:
            result = self.calculator.calculate(text, desc_specs, candidate.name, candidate.specs)
            if result.method == MatchMethod.EXACT_NAME:
                return MatchOutcome(
                    material_id=candidate.material.id,
                    confidence=result.score,
                    method=result.method.value,
                    material_code=candidate.material.code,
                )
            if result.score > best_score:
                best = candidate
                best_score = result.score
                best_method = result.method

        if best is not None and best_score >= self.match_threshold:
            return MatchOutcome(
                material_id=best.material.id,
                confidence=best_score,
                method=best_method.value,
                material_code=best.material.code,
            )

        category = self.suggest_category(text)
        return MatchOutcome(
            material_id=None,
            confidence=best_score,
            method=best_method.value,
            category_id=category.id if category else None,
            category_name=category.name if category else None,
        )

    def suggest_category(self, description: str) -> MaterialCategory | None:
        """Suggest a category for an unmatched description.

        First pass: keyword groups against category names. Second pass:
        standard category-code keyword table against category codes.
        """
        text = description.lower()
        if not self.categories:
            return None

        for group, keywords in CATEGORY_NAME_KEYWORDS.items():
            if any(keyword in text for keyword in keywords):
                for category in self.categories:
                    if group in category.name.lower():
                        return category

        by_code = {c.code.upper(): c for c in self.categories if c.code}
        tokens = set(re.findall(r"[a-z0-9]+", text))
        for code, keywords in CATEGORY_CODE_KEYWORDS.items():
            if code in by_code and any(_mentions(text, tokens, k) for k in keywords):
                return by_code[code]

        return None

    def match_many(self, descriptions: Iterable[str]) -> list[MatchOutcome]:
        """Match several descriptions (order preserved)."""
        return [self.match(d) for d in descriptions]
