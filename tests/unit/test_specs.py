"""Unit tests for specification extraction."""

from __future__ import annotations

from boqmatch.matching.models import ItemDomain
from boqmatch.matching.specs import extract_specifications


class TestCableSpecs:
    def test_cores_size_insulation(self):
        specs = extract_specifications("4 Core 95mm XLPE SWA Cable")
        assert specs.is_cable
        assert specs.cable.cores == 4
        assert specs.cable.size_mm2 == 95.0
        assert specs.cable.insulation == "XLPE"

    def test_short_core_notation(self):
        specs = extract_specifications("4c 16mm² pvc cable")
        assert specs.cable.cores == 4
        assert specs.cable.size_mm2 == 16.0
        assert specs.cable.insulation == "PVC"

    def test_cores_and_size_without_keyword(self):
        specs = extract_specifications("4c x 95mm² armoured")
        assert specs.domain == ItemDomain.CABLE

    def test_plural_and_conductor_core_notation(self):
        assert extract_specifications("4 cores 95mm xlpe cable").cable.cores == 4
        assert extract_specifications("4 conductor 16mm pvc cable").cable.cores == 4

    def test_decimal_size(self):
        specs = extract_specifications("3 core 2.5mm cable")
        assert specs.cable.size_mm2 == 2.5


class TestLightSpecs:
    def test_dimensions_and_type(self):
        specs = extract_specifications("600 x 600 LED Panel 40W")
        assert specs.is_light
        assert specs.light.dimensions == "600x600"
        assert specs.light.fitting_type == "Panel"

    def test_downlight(self):
        specs = extract_specifications("LED downlight 9W")
        assert specs.light.dimensions is None
        assert specs.light.fitting_type == "Downlight"


class TestDBSpecs:
    def test_ways_and_phase(self):
        specs = extract_specifications("12 Way TPN Distribution Board")
        assert specs.is_db
        assert specs.db.ways == 12
        assert specs.db.phase == "TPN"

    def test_single_phase_words(self):
        specs = extract_specifications("8way single phase board")
        assert specs.db.ways == 8
        assert specs.db.phase == "SPN"


class TestDomainPriority:
    def test_cable_checked_first(self):
        assert extract_specifications("LED cable strip").is_cable

    def test_unclassified_keeps_keywords(self):
        specs = extract_specifications("Copper earth bar")
        assert specs.domain is None
        assert specs.keywords == ["copper", "earth", "bar"]
