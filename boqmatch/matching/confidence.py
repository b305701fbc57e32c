"""Confidence scoring for BOQ description vs master material pairs."""

from __future__ import annotations

from enum import Enum

from boqmatch.matching.models import CableSpec, DBSpec, ExtractedSpecs, LightSpec


class MatchMethod(Enum):
    """Classification of match methods by reliability."""

    EXACT_NAME = "exact_name"  # Case-insensitive name equality → 0.98
    CABLE = "cable"  # Cores/size/insulation → up to 0.95
    LIGHT = "light"  # Dimensions/type → up to 0.95
    DB = "db"  # Ways/phase → up to 0.90
    GENERIC = "generic"  # Word overlap → up to 0.75
    NONE = "none"


class ConfidenceResult:
    """Result of scoring one description/material pair."""

    def __init__(
        self,
        score: float,
        method: MatchMethod,
        details: dict[str, float] | None = None,
    ) -> None:
        """Initialize confidence result.

        Args:
            score: Confidence score (0.0-1.0)
            method: Match method used
            details: Scoring breakdown
        """
        self.score = max(0.0, min(1.0, score))  # Clamp to 0-1
        self.method = method
        self.details = details or {}

    def __repr__(self) -> str:
        return f"ConfidenceResult(score={self.score:.3f}, method={self.method.value})"


class ConfidenceCalculator:
    """Score a description against a master material name."""

    def __init__(
        self,
        exact_match_confidence: float = 0.98,
        cable_size_tolerance: float = 5.0,
    ) -> None:
        """Initialize confidence calculator.

        Args:
            exact_match_confidence: Score for case-insensitive name equality
            cable_size_tolerance: Max mm² difference still earning partial credit
        """
        self.exact_match_confidence = exact_match_confidence
        self.cable_size_tolerance = cable_size_tolerance

    def calculate(
        self,
        description: str,
        desc_specs: ExtractedSpecs,
        material_name: str,
        material_specs: ExtractedSpecs,
    ) -> ConfidenceResult:
        """Calculate confidence using priority-based matching.

        Priority order:
        1. Exact case-insensitive name → 0.98
        2. Same structured domain (cable, light, DB) → domain scorer
        3. Anything else → generic word overlap

        Args:
            description: Lower-cased, trimmed BOQ description
            desc_specs: Specs extracted from the description
            material_name: Lower-cased, trimmed master material name
            material_specs: Specs extracted from the material name

        Returns:
            ConfidenceResult with score and method
        """
        if description == material_name:
            return ConfidenceResult(self.exact_match_confidence, MatchMethod.EXACT_NAME)

        if desc_specs.is_cable and material_specs.is_cable:
            return self._score_cable(desc_specs.cable, material_specs.cable)
        if desc_specs.is_light and material_specs.is_light:
            return self._score_light(desc_specs.light, material_specs.light)
        if desc_specs.is_db and material_specs.is_db:
            return self._score_db(desc_specs.db, material_specs.db)

        return self._score_generic(description, material_name)

    def _score_cable(self, desc: CableSpec, master: CableSpec) -> ConfidenceResult:
        score = 0.5
        details: dict[str, float] = {"base": 0.5}

        if desc.cores and master.cores:
            if desc.cores == master.cores:
                score += 0.2
                details["cores"] = 0.2
            else:
                return ConfidenceResult(score * 0.5, MatchMethod.CABLE, {"cores_mismatch": 1.0})

        if desc.size_mm2 and master.size_mm2:
            difference = abs(desc.size_mm2 - master.size_mm2)
            if difference == 0:
                score += 0.25
                details["size"] = 0.25
            elif difference <= self.cable_size_tolerance:
                score += 0.1
                details["size"] = 0.1
            else:
                return ConfidenceResult(score * 0.5, MatchMethod.CABLE, {"size_mismatch": difference})

        if desc.insulation and desc.insulation == master.insulation:
            score += 0.1
            details["insulation"] = 0.1

        return ConfidenceResult(min(score, 0.95), MatchMethod.CABLE, details)

    def _score_light(self, desc: LightSpec, master: LightSpec) -> ConfidenceResult:
        score = 0.5

        if desc.dimensions and master.dimensions:
            if desc.dimensions == master.dimensions:
                score += 0.3
            else:
                return ConfidenceResult(score * 0.6, MatchMethod.LIGHT, {"dimensions_mismatch": 1.0})

        if desc.fitting_type and desc.fitting_type == master.fitting_type:
            score += 0.15

        return ConfidenceResult(min(score, 0.95), MatchMethod.LIGHT)

    def _score_db(self, desc: DBSpec, master: DBSpec) -> ConfidenceResult:
        score = 0.5

        if desc.ways and master.ways:
            if desc.ways == master.ways:
                score += 0.25
            else:
                return ConfidenceResult(score * 0.5, MatchMethod.DB, {"ways_mismatch": 1.0})

        if desc.phase and master.phase:
            if desc.phase == master.phase:
                score += 0.15
            else:
                return ConfidenceResult(score * 0.6, MatchMethod.DB, {"phase_mismatch": 1.0})

        return ConfidenceResult(min(score, 0.90), MatchMethod.DB)

    def _score_generic(self, description: str, material_name: str) -> ConfidenceResult:
        """Word-overlap score, capped at 0.75."""
        desc_words = [w for w in description.split() if len(w) > 2]
        master_words = [w for w in material_name.split() if len(w) > 2]
        if not desc_words or not master_words:
            return ConfidenceResult(0.0, MatchMethod.GENERIC)

        matches = sum(
            1
            for word in desc_words
            if any(mw == word or word in mw or mw in word for mw in master_words)
        )
        ratio = matches / max(len(desc_words), len(master_words))
        return ConfidenceResult(
            min(ratio * 0.9, 0.75), MatchMethod.GENERIC, {"overlap": float(matches)}
        )
