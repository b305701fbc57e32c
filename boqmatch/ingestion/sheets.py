"""Sheet segmentation for combined multi-sheet BOQ text.

Input format: one ``=== SHEET: <name> ===`` marker line per sheet, followed
by that sheet's tab-delimited lines.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SHEET_MARKER = re.compile(r"^\s*===\s*SHEET:\s*(.*?)\s*===\s*$", re.IGNORECASE)
EXCLUDED_SHEET_KEYWORDS = ("notes", "qualifications", "summary")
DEFAULT_SHEET_NAME = "Main"

_BILL_NUMBER_PATTERNS = (
    re.compile(r"BILL\s*(?:NO\.?\s*)?(\d+)", re.IGNORECASE),
    re.compile(r"^(\d+)\."),
)


@dataclass
class Sheet:
    """One named sheet block in document order."""

    name: str
    index: int  # 1-based position among kept sheets
    lines: list[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "\n".join(self.lines)

    @property
    def bill_number(self) -> int:
        return extract_bill_number(self.name, default=self.index)

    def data_lines(self) -> list[str]:
        """Non-blank lines with trailing whitespace removed."""
        return [line.rstrip("\r\n") for line in self.lines if line.strip()]


def extract_bill_number(sheet_name: str, default: int = 1) -> int:
    """Read a bill number from a sheet name ("Bill No. 3", "3. Lighting").

    Args:
        sheet_name: Sheet title
        default: Fallback when the name carries no number

    Returns:
        Bill number
    """
    for pattern in _BILL_NUMBER_PATTERNS:
        match = pattern.search(sheet_name.strip())
        if match:
            return int(match.group(1))
    return default


def is_excluded_sheet(name: str) -> bool:
    """Sheets holding notes, qualifications or summaries carry no line items."""
    lowered = name.lower()
    return any(keyword in lowered for keyword in EXCLUDED_SHEET_KEYWORDS)


def segment_sheets(content: str) -> list[Sheet]:
    """Split combined text into named sheets, dropping non-material sheets.

    Text before the first marker becomes a sheet named "Main" when it holds
    anything other than whitespace.

    Args:
        content: Combined raw text

    Returns:
        Kept sheets in document order
    """
    blocks: list[tuple[str, list[str]]] = []
    current_name = DEFAULT_SHEET_NAME
    current_lines: list[str] = []
    seen_marker = False

    for line in content.splitlines():
        marker = SHEET_MARKER.match(line)
        if marker:
            if seen_marker or any(l.strip() for l in current_lines):
                blocks.append((current_name, current_lines))
            current_name = marker.group(1) or DEFAULT_SHEET_NAME
            current_lines = []
            seen_marker = True
        else:
            current_lines.append(line)

    if seen_marker or any(l.strip() for l in current_lines):
        blocks.append((current_name, current_lines))

    sheets: list[Sheet] = []
    for name, lines in blocks:
        if is_excluded_sheet(name):
            logger.info(f"Skipping non-material sheet: {name}")
            continue
        sheets.append(Sheet(name=name, index=len(sheets) + 1, lines=lines))

    return sheets
