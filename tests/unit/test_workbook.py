"""Unit tests for workbook to sheet-marker text conversion."""

from __future__ import annotations

import pandas as pd
import pytest

from boqmatch.ingestion.sheets import segment_sheets
from boqmatch.ingestion.workbook import frame_to_lines, workbook_to_text


class TestFrameToLines:
    def test_blank_rows_and_trailing_cells_dropped(self):
        df = pd.DataFrame(
            [
                ["Item", "Description", "Qty", None],
                [None, None, None, None],
                ["A1", "Cable tray", 10.0, None],
            ],
            dtype=object,
        )
        assert frame_to_lines(df) == ["Item\tDescription\tQty", "A1\tCable tray\t10"]

    def test_embedded_tabs_and_newlines_flattened(self):
        df = pd.DataFrame([["A1", "Cable\ttray\nheavy duty", 2.5]], dtype=object)
        assert frame_to_lines(df) == ["A1\tCable tray heavy duty\t2.5"]


class TestWorkbookToText:
    def test_csv(self, tmp_path):
        path = tmp_path / "cabling.csv"
        path.write_text("Item,Description,Qty\nA1,Cable tray,10\n,,\n")
        assert workbook_to_text(path) == (
            "=== SHEET: cabling ===\nItem\tDescription\tQty\nA1\tCable tray\t10"
        )

    def test_xlsx_sheets_become_markers(self, tmp_path):
        path = tmp_path / "boq.xlsx"
        with pd.ExcelWriter(path) as writer:
            pd.DataFrame([["A1", "Cable tray", 10]]).to_excel(
                writer, sheet_name="Bill 1", header=False, index=False
            )
            pd.DataFrame([["B1", "LED downlight", 40]]).to_excel(
                writer, sheet_name="Bill 2", header=False, index=False
            )

        sheets = segment_sheets(workbook_to_text(path))
        assert [s.name for s in sheets] == ["Bill 1", "Bill 2"]
        assert sheets[1].data_lines() == ["B1\tLED downlight\t40"]

    def test_text_passthrough(self, tmp_path):
        path = tmp_path / "boq.txt"
        path.write_text("=== SHEET: X ===\nA1\tCable\t10")
        assert workbook_to_text(path).startswith("=== SHEET: X ===")

    def test_unsupported(self, tmp_path):
        path = tmp_path / "boq.pdf"
        path.write_bytes(b"%PDF")
        with pytest.raises(ValueError, match="Unsupported"):
            workbook_to_text(path)

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            workbook_to_text(tmp_path / "absent.xlsx")
