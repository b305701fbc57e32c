"""Unit tests for mapped and heuristic row parsing."""

from __future__ import annotations

import pytest

from boqmatch.canonical.units import UnitStandardizer
from boqmatch.ingestion.row_parser import (
    RowFields,
    RowParser,
    derive_rate_components,
    is_plausible_item_code,
)
from boqmatch.ingestion.sheets import Sheet
from boqmatch.models import ColumnMapping


def make_sheet(*lines: str, name: str = "Bill No. 1 - Cabling", index: int = 1) -> Sheet:
    return Sheet(name=name, index=index, lines=list(lines))


@pytest.fixture
def parser() -> RowParser:
    return RowParser(units=UnitStandardizer())


class TestDeriveRateComponents:
    def test_total_from_parts(self):
        assert derive_rate_components(100, 50, 0) == (100, 50, 150)

    def test_total_from_amount(self):
        supply, install, total = derive_rate_components(0, 0, 0, amount=1500, quantity=10)
        assert total == 150
        assert (supply, install) == (105, 45)

    def test_total_only_apportioned(self):
        assert derive_rate_components(0, 0, 200, supply_share=0.6) == (120, 80, 200)

    def test_nothing_known(self):
        assert derive_rate_components(0, 0, 0) == (0, 0, 0)

    def test_install_is_total_less_supply(self):
        assert derive_rate_components(80, 0, 200) == (80, 120, 200)

    def test_supply_is_total_less_install(self):
        assert derive_rate_components(0, 45.5, 150) == (104.5, 45.5, 150)

    def test_inconsistent_parts_kept(self):
        assert derive_rate_components(250, 0, 200) == (250, 0, 200)


class TestItemCodes:
    @pytest.mark.parametrize("code", ["A1", "B2.3", "1.2.1", "12a", "E10-2"])
    def test_plausible(self, code):
        assert is_plausible_item_code(code)

    @pytest.mark.parametrize("code", [None, "", "Cable", "ABCD1", "1.2 m"])
    def test_implausible(self, code):
        assert not is_plausible_item_code(code)


class TestMappedParsing:
    mapping = ColumnMapping.model_validate(
        {
            "itemCode": 0,
            "description": 1,
            "unit": 2,
            "quantity": 3,
            "supplyRate": -1,
            "installRate": -1,
            "totalRate": 4,
            "amount": 5,
        }
    )

    def test_parses_rows_with_sections(self, parser):
        sheet = make_sheet(
            "Item\tDescription\tUnit\tQty\tRate\tAmount",
            "A\tPOWER CABLES",
            "A1\t4C 95mm XLPE SWA cable\tm\t100\tR600.00\tR60,000.00",
            "A2\t4C 16mm XLPE cable\tm\t50\t120\t6000",
            "Total\t\t\t\t\t66000",
        )
        items = parser.parse_mapped(sheet, self.mapping, start_row=7)

        assert [i.row_number for i in items] == [7, 8]
        first = items[0]
        assert first.item_code == "A1"
        assert first.unit == "M"
        assert first.quantity == 100
        assert first.total_rate == 600
        assert first.amount == 60000
        assert first.calculated_total == 60000
        assert (first.supply_rate, first.install_rate) == (420, 180)
        assert (first.section_code, first.section_name) == ("A", "POWER CABLES")
        assert (first.bill_number, first.bill_name) == (1, "Bill No. 1 - Cabling")

    def test_rate_only_row(self, parser):
        sheet = make_sheet(
            "Item\tDescription\tUnit\tQty\tRate\tAmount",
            "B2\tEmergency exit sign\tNo\tRate only\t350\t",
        )
        item = parser.parse_mapped(sheet, self.mapping)[0]
        assert item.is_rate_only
        assert item.quantity is None
        assert item.total_rate == 350
        assert item.extraction_notes == "Rate only - no quantity"

    def test_header_with_single_header_word_is_skipped(self, parser):
        sheet = make_sheet("A1\tRef\tDescription\tQ\tR", "A2\t4C 16mm cable\t10\t90")
        mapping = ColumnMapping(item_code=0, description=1, quantity=2, total_rate=3)

        items = parser.parse_mapped(sheet, mapping)

        assert [i.item_code for i in items] == ["A2"]
        assert items[0].row_number == 1

    def test_first_row_without_header_words_is_data(self, parser):
        sheet = make_sheet("A1\tEarth electrode\t2\t450", "A2\tEarth bar\t1\t300")
        mapping = ColumnMapping(item_code=0, description=1, quantity=2, total_rate=3)

        assert [i.item_code for i in parser.parse_mapped(sheet, mapping)] == ["A1", "A2"]

    def test_unmapped_description_skips_sheet(self, parser):
        mapping = ColumnMapping(quantity=2)
        assert parser.parse_mapped(make_sheet("A1\tCable\t10"), mapping) == []

    def test_out_of_range_columns_are_absent(self, parser):
        sheet = make_sheet("A1\tEarth electrode")
        items = parser.parse_mapped(sheet, self.mapping)
        # Kept on the strength of its item code alone
        assert len(items) == 1
        assert items[0].quantity is None


class TestHeuristicHeader:
    def test_header_inferred_after_title_lines(self, parser):
        sheet = make_sheet(
            "ELECTRICAL INSTALLATION",
            "Ref\tParticulars\tQuantity\tUnit\tSupply Rate\tInstall Rate\tTotal",
            "C1\tSurface mounted 12 way TPN DB\t2\tNo\t6000\t1500\t15000",
        )
        items = parser.parse_heuristic(sheet)
        assert len(items) == 1
        item = items[0]
        assert item.item_code == "C1"
        assert item.unit == "NO"
        assert item.quantity == 2
        assert (item.supply_rate, item.install_rate, item.total_rate) == (6000, 1500, 7500)
        assert item.amount == 15000

    def test_repeated_header_and_noise_skipped(self, parser):
        sheet = make_sheet(
            "Item\tDescription\tUnit\tQty\tRate\tAmount",
            "Notes to tenderers: rates include delivery",
            "A1\tCable tray 300mm\tm\t20\t250\t5000",
            "Item\tDescription\tUnit\tQty\tRate\tAmount",
            "1\t2\t3",
            "Sub-total\t\t\t\t\t5000",
            "A2\tCable tray bend 300mm\tNo\t4\t180\t720",
        )
        items = parser.parse_heuristic(sheet, start_row=1)
        assert [i.item_code for i in items] == ["A1", "A2"]
        assert [i.row_number for i in items] == [1, 2]

    def test_infer_header_requires_description(self, parser):
        assert parser.infer_header(["Qty\tRate\tAmount"]) == (None, {})

    def test_header_scan_window(self):
        parser = RowParser(units=UnitStandardizer(), header_scan_lines=1)
        lines = ["Title", "Item\tDescription\tQty"]
        assert parser.infer_header(lines) == (None, {})


class TestHeuristicPositional:
    def test_total_and_amount(self, parser):
        sheet = make_sheet("A1\t4C 95mm XLPE cable\tm\t100\t600\t60000")
        item = parser.parse_heuristic(sheet)[0]
        assert item.item_code == "A1"
        assert item.item_description == "4C 95mm XLPE cable"
        assert item.unit == "M"
        assert item.quantity == 100
        assert item.total_rate == 600
        assert item.amount == 60000

    def test_supply_install_amount(self, parser):
        sheet = make_sheet("Cable tray 300mm\tm\t10\t100\t50\t1500")
        item = parser.parse_heuristic(sheet)[0]
        assert (item.supply_rate, item.install_rate, item.total_rate) == (100, 50, 150)
        assert item.amount == 1500

    def test_four_numbers(self, parser):
        sheet = make_sheet("Cable tray 300mm\tm\t10\t100\t50\t150\t1500")
        item = parser.parse_heuristic(sheet)[0]
        assert item.total_rate == 150
        assert item.amount == 1500

    def test_large_leading_number_is_a_rate(self, parser):
        sheet = make_sheet("Mini substation 500kVA\t450000")
        item = parser.parse_heuristic(sheet)[0]
        assert item.quantity is None
        assert item.total_rate == 450000
        assert item.is_rate_only

    def test_single_cell_item_line(self, parser):
        item = parser.parse_heuristic(make_sheet("B2.1 Earth electrode complete"))[0]
        assert item.item_code == "B2.1"
        assert item.item_description == "Earth electrode complete"

    def test_section_heading_line(self, parser):
        sheet = make_sheet("B. LIGHTING", "B1\tLED downlight 9W\tNo\t40\t320\t12800")
        item = parser.parse_heuristic(sheet)[0]
        assert (item.section_code, item.section_name) == ("B", "LIGHTING")

    def test_prose_without_numbers_dropped(self, parser):
        sheet = make_sheet("The contractor shall allow for all fixings")
        assert parser.parse_heuristic(sheet) == []


class TestBuildItem:
    def test_short_description_dropped(self, parser):
        fields = RowFields(description="ab", quantity="1", total_rate="10")
        assert parser.build_item(fields, sheet=make_sheet(), row_number=1) is None

    def test_totals_description_dropped(self, parser):
        fields = RowFields(description="Total carried to summary", amount="1000")
        assert parser.build_item(fields, sheet=make_sheet(), row_number=1) is None

    def test_whitespace_collapsed(self, parser):
        fields = RowFields(description="  LED   panel\n light ", quantity="2", total_rate="900")
        item = parser.build_item(fields, sheet=make_sheet(), row_number=3)
        assert item.item_description == "LED panel light"
        assert item.row_number == 3

    def test_rate_only_marker_in_quantity(self, parser):
        fields = RowFields(description="Exit sign", quantity="Rate Only", total_rate="350")
        item = parser.build_item(fields, sheet=make_sheet(), row_number=1)
        assert item.is_rate_only
        assert "Rate only" in item.extraction_notes

    def test_raw_cells_kept(self, parser):
        fields = RowFields(description="Exit sign", quantity="2", total_rate="350", cells=["x"])
        item = parser.build_item(fields, sheet=make_sheet(), row_number=1)
        assert item.raw_data == {"cells": ["x"], "sheet": "Bill No. 1 - Cabling"}
