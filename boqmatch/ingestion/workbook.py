"""Convert BOQ workbooks (XLSX/XLS/CSV) into combined sheet-marker text."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


def _cell_text(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace("\t", " ").replace("\n", " ").strip()


def frame_to_lines(df: pd.DataFrame) -> list[str]:
    """Render a header-less frame as tab-delimited lines, skipping empty rows."""
    lines = []
    for row in df.itertuples(index=False):
        cells = [_cell_text(v) for v in row]
        while cells and not cells[-1]:
            cells.pop()
        if any(cells):
            lines.append("\t".join(cells))
    return lines


def workbook_to_text(file_path: Path) -> str:
    """Read every sheet of a workbook into ``=== SHEET: name ===`` format.

    Args:
        file_path: Path to a .xlsx, .xls or .csv file

    Returns:
        Combined text ready for segment_sheets()

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file format is unsupported
    """
    if not file_path.exists():
        raise FileNotFoundError(f"BOQ file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        frames = {file_path.stem: pd.read_csv(file_path, header=None, dtype=object)}
    elif suffix in (".xlsx", ".xls"):
        frames = pd.read_excel(file_path, sheet_name=None, header=None, dtype=object)
    elif suffix == ".txt":
        return file_path.read_text(encoding="utf-8")
    else:
        raise ValueError(f"Unsupported file format: {file_path.suffix}")

    blocks = []
    for name, df in frames.items():
        lines = frame_to_lines(df)
        logger.debug(f"Sheet '{name}': {len(lines)} non-empty rows")
        blocks.append("\n".join([f"=== SHEET: {name} ===", *lines]))
    return "\n".join(blocks)
