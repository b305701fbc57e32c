"""Row parsing for BOQ sheets.

Two modes share one item builder:

- Mapped mode: column indices come from a user/wizard ColumnMapping.
- Heuristic mode: a header row is inferred from the first lines of the
  sheet; without one, fields are assigned by position.

Both modes drop descriptions shorter than 3 characters, totals lines and
rows carrying neither a rate, a quantity, a rate-only marker nor a plausible
item code.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from boqmatch.canonical.rates import parse_rate
from boqmatch.canonical.units import UnitStandardizer, get_unit_standardizer
from boqmatch.ingestion.sheets import Sheet
from boqmatch.models import ColumnMapping, ExtractedItem

logger = logging.getLogger(__name__)

HEADER_WORDS = ("description", "item", "unit", "qty", "rate", "amount", "total", "code")
TOTALS_PATTERN = re.compile(
    r"^(total|subtotal|sub-total|carried|summary|brought|section\s*total)", re.IGNORECASE
)
RATE_ONLY_PATTERN = re.compile(r"rate\s*only", re.IGNORECASE)
ITEM_CODE_PATTERN = re.compile(r"^[A-Z]{0,3}\d+(?:[.\-/]\d+)*[A-Z]?$", re.IGNORECASE)
ITEM_LINE_PATTERN = re.compile(r"^([A-N]\d+(?:\.\d+)*)\s+(.+)$", re.IGNORECASE)
SECTION_LINE_PATTERN = re.compile(r"^([A-N])[.\s]+(.+)$")
SECTION_CODE_PATTERN = re.compile(r"^[A-Z]\.?$")
NUMERIC_CELL_PATTERN = re.compile(r"^[R$€£]?\s*-?[\d\s.,]*\d[\d\s.,]*$", re.IGNORECASE)

NOISE_PATTERNS = (
    re.compile(r"notes?\s+to\s+tenderers?"),
    re.compile(r"failure\s+to\s+comply"),
    re.compile(r"^notes?\b"),
    re.compile(r"^n\.?b\.?\s*[:.\-]"),
    re.compile(r"\btenderers?\s+(?:shall|must|are\s+to|is\s+to)\b"),
    re.compile(r"^[\d\s.,]+$"),
    re.compile(r"^[a-z]\.?$"),
    re.compile(
        r"^(note|bill|section|item|item\s+no\.?|no\.?|description|qty|quantity|unit|rate|amount|total)$"
    ),
)

# Above this a leading number is assumed to be a rate, not a quantity
MAX_POSITIONAL_QUANTITY = 10000


@dataclass
class RowFields:
    """Raw cell values for one candidate line item."""

    item_code: str | None = None
    description: str | None = None
    unit: str | None = None
    quantity: Any = None
    supply_rate: Any = None
    install_rate: Any = None
    total_rate: Any = None
    amount: Any = None
    rate_only: bool = False
    cells: list[str] = field(default_factory=list)

    def has_numbers(self) -> bool:
        return any(
            parse_rate(v) > 0
            for v in (self.quantity, self.supply_rate, self.install_rate, self.total_rate, self.amount)
        )


def is_plausible_item_code(code: str | None) -> bool:
    """Item references look like "A1", "B2.3", "1.2.1" or "12a"."""
    if not code:
        return False
    return bool(ITEM_CODE_PATTERN.match(code.strip()))


def derive_rate_components(
    supply: float,
    install: float,
    total: float,
    amount: float = 0.0,
    quantity: float = 0.0,
    supply_share: float = 0.7,
) -> tuple[float, float, float]:
    """Fill missing supply/install/total rates.

    - total = supply + install when only the parts are known
    - total = amount / quantity when no rate is known at all
    - a missing supply or install rate is the total less the other part
    - a total-only rate is apportioned supply_share / (1 - supply_share)

    Returns:
        (supply, install, total)
    """
    if total == 0 and (supply > 0 or install > 0):
        total = supply + install

    if total == 0 and amount > 0 and quantity > 0:
        total = round(amount / quantity, 2)

    if total > supply > 0 and install == 0:
        install = round(total - supply, 2)
    elif total > install > 0 and supply == 0:
        supply = round(total - install, 2)

    if total > 0 and supply == 0 and install == 0:
        supply = round(total * supply_share, 2)
        install = round(total * (1 - supply_share), 2)

    return supply, install, total


def _cell(cells: list[str], index: int | None) -> str | None:
    if index is None or index >= len(cells):
        return None
    value = cells[index].strip()
    return value or None


def _is_numeric_cell(value: str) -> bool:
    return bool(NUMERIC_CELL_PATTERN.match(value.strip()))


def _classify_header_cell(cell: str) -> str | None:
    """Map a header cell onto a RowFields attribute by substring."""
    h = cell.strip().lower()
    if not h or len(h) > 40 or _is_numeric_cell(h):
        return None
    if "desc" in h or "particular" in h:
        return "description"
    if "qty" in h or "quantity" in h:
        return "quantity"
    if "supply" in h or "material" in h:
        return "supply_rate"
    if "install" in h or "labour" in h or "labor" in h:
        return "install_rate"
    if "rate" in h:
        return "total_rate"
    if "amount" in h or "total" in h:
        return "amount"
    if h in ("u", "uom", "units") or h.startswith("unit"):
        return "unit"
    if "item" in h or "ref" in h or h in ("no", "no.", "nr", "#", "code"):
        return "item_code"
    return None


class RowParser:
    """Convert sheet lines into ExtractedItem candidates."""

    def __init__(
        self,
        units: UnitStandardizer | None = None,
        supply_share: float = 0.7,
        header_scan_lines: int = 15,
    ) -> None:
        """Initialize row parser.

        Args:
            units: Unit standardizer (shared singleton if omitted)
            supply_share: Supply portion when apportioning a total-only rate
            header_scan_lines: Lines scanned for a header row in heuristic mode
        """
        self.units = units or get_unit_standardizer()
        self.supply_share = supply_share
        self.header_scan_lines = header_scan_lines

    # ------------------------------------------------------------------
    # Mapped mode
    # ------------------------------------------------------------------

    def parse_mapped(
        self, sheet: Sheet, mapping: ColumnMapping, start_row: int = 1
    ) -> list[ExtractedItem]:
        """Parse a sheet using explicit column indices.

        Args:
            sheet: Sheet to parse
            mapping: Column indices for this sheet
            start_row: Row number assigned to the first emitted item

        Returns:
            Items numbered consecutively from start_row
        """
        if not mapping.is_parsable:
            logger.warning(f"Sheet '{sheet.name}' has no description column mapped; skipping")
            return []

        items: list[ExtractedItem] = []
        section: tuple[str | None, str | None] = (None, None)
        header_checked = False

        for line in sheet.data_lines():
            cells = line.split("\t")

            if not header_checked and len(cells) > 1:
                header_checked = True
                if self._is_header_row(cells):
                    continue

            fields = RowFields(
                item_code=_cell(cells, mapping.item_code),
                description=_cell(cells, mapping.description),
                unit=_cell(cells, mapping.unit),
                quantity=_cell(cells, mapping.quantity),
                supply_rate=_cell(cells, mapping.supply_rate),
                install_rate=_cell(cells, mapping.install_rate),
                total_rate=_cell(cells, mapping.total_rate),
                amount=_cell(cells, mapping.amount),
                rate_only=bool(RATE_ONLY_PATTERN.search(line)),
                cells=cells,
            )

            new_section = self._section_from(fields)
            if new_section:
                section = new_section
                continue

            item = self.build_item(
                fields, sheet=sheet, row_number=start_row + len(items), section=section
            )
            if item:
                items.append(item)

        logger.info(f"Mapped parse of '{sheet.name}': {len(items)} items")
        return items

    @staticmethod
    def _is_header_row(cells: list[str]) -> bool:
        return any(word in cell.lower() for cell in cells for word in HEADER_WORDS)

    # ------------------------------------------------------------------
    # Heuristic mode
    # ------------------------------------------------------------------

    def parse_heuristic(self, sheet: Sheet, start_row: int = 1) -> list[ExtractedItem]:
        """Parse a sheet by inferring its header, or by position if none is found.

        Args:
            sheet: Sheet to parse
            start_row: Row number assigned to the first emitted item

        Returns:
            Items numbered consecutively from start_row
        """
        lines = sheet.data_lines()
        header_index, columns = self.infer_header(lines)

        items: list[ExtractedItem] = []
        section: tuple[str | None, str | None] = (None, None)

        for i, line in enumerate(lines):
            if header_index is not None and i <= header_index:
                continue
            if self._is_noise(line):
                continue

            cells = [c.strip() for c in line.split("\t")]
            if columns:
                if self._count_header_cells(cells) >= 2:
                    continue  # Repeated header on a continuation page
                fields = self._fields_from_columns(cells, columns, line)
            else:
                fields = self._fields_from_positions(cells, line)

            new_section = self._section_from(fields)
            if new_section:
                section = new_section
                continue

            item = self.build_item(
                fields, sheet=sheet, row_number=start_row + len(items), section=section
            )
            if item:
                items.append(item)

        mode = "header" if columns else "positional"
        logger.info(f"Heuristic ({mode}) parse of '{sheet.name}': {len(items)} items")
        return items

    def infer_header(self, lines: list[str]) -> tuple[int | None, dict[str, int]]:
        """Find a header row among the first lines of a sheet.

        A header row maps a description column plus at least one other field.

        Returns:
            (line index, field -> column index), or (None, {}) if not found
        """
        for i, line in enumerate(lines[: self.header_scan_lines]):
            if "\t" not in line:
                continue
            columns: dict[str, int] = {}
            for index, cell in enumerate(line.split("\t")):
                name = _classify_header_cell(cell)
                if name and name not in columns:
                    columns[name] = index
            if "description" in columns and len(columns) >= 2:
                logger.debug(f"Header inferred at line {i}: {columns}")
                return i, columns
        return None, {}

    @staticmethod
    def _count_header_cells(cells: list[str]) -> int:
        echo = NOISE_PATTERNS[-1]
        return sum(1 for cell in cells if cell and echo.match(cell.strip().lower()))

    @staticmethod
    def _is_noise(line: str) -> bool:
        text = re.sub(r"\s+", " ", line.replace("\t", " ")).strip().lower()
        if not text:
            return True
        first_cell = line.split("\t")[0].strip()
        if TOTALS_PATTERN.match(first_cell):
            return True
        return any(pattern.search(text) for pattern in NOISE_PATTERNS)

    @staticmethod
    def _fields_from_columns(cells: list[str], columns: dict[str, int], line: str) -> RowFields:
        return RowFields(
            item_code=_cell(cells, columns.get("item_code")),
            description=_cell(cells, columns.get("description")),
            unit=_cell(cells, columns.get("unit")),
            quantity=_cell(cells, columns.get("quantity")),
            supply_rate=_cell(cells, columns.get("supply_rate")),
            install_rate=_cell(cells, columns.get("install_rate")),
            total_rate=_cell(cells, columns.get("total_rate")),
            amount=_cell(cells, columns.get("amount")),
            rate_only=bool(RATE_ONLY_PATTERN.search(line)),
            cells=cells,
        )

    def _fields_from_positions(self, cells: list[str], line: str) -> RowFields:
        """Assign fields by position when no header row exists.

        Numbers after the quantity are read as: 1 → total rate;
        2 → total rate, amount; 3 → supply, install, amount;
        4+ → supply, install, total rate, amount.
        """
        fields = RowFields(cells=cells, rate_only=bool(RATE_ONLY_PATTERN.search(line)))
        values = [c for c in cells if c]
        if not values:
            return fields

        if len(values) == 1:
            item_line = ITEM_LINE_PATTERN.match(values[0])
            if item_line:
                fields.item_code, fields.description = item_line.group(1), item_line.group(2).strip()
            else:
                fields.description = values[0]
            return fields

        start = 0
        if is_plausible_item_code(values[0]) and not _is_numeric_cell(values[1]):
            fields.item_code = values[0]
            start = 1

        text_cells: list[str] = []
        numbers: list[float] = []
        for value in values[start:]:
            if _is_numeric_cell(value):
                numbers.append(parse_rate(value))
            elif fields.unit is None and self.units.is_unit(value):
                fields.unit = value
            elif not RATE_ONLY_PATTERN.search(value):
                text_cells.append(value)

        candidates = [t for t in text_cells if len(t) > 3]
        if candidates:
            fields.description = max(candidates, key=len)
        elif text_cells:
            fields.description = max(text_cells, key=len)

        rates = numbers
        if not fields.rate_only and numbers and numbers[0] < MAX_POSITIONAL_QUANTITY:
            fields.quantity = numbers[0]
            rates = numbers[1:]

        if len(rates) == 1:
            fields.total_rate = rates[0]
        elif len(rates) == 2:
            fields.total_rate, fields.amount = rates
        elif len(rates) == 3:
            fields.supply_rate, fields.install_rate, fields.amount = rates
        elif len(rates) >= 4:
            fields.supply_rate, fields.install_rate, fields.total_rate, fields.amount = rates[:4]

        return fields

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    @staticmethod
    def _section_from(fields: RowFields) -> tuple[str, str] | None:
        """Detect a section heading row ("A  CABLE CONTAINMENT")."""
        if fields.has_numbers() or fields.rate_only:
            return None
        description = (fields.description or "").strip()
        code = (fields.item_code or "").strip()
        if code and SECTION_CODE_PATTERN.match(code) and len(description) >= 3:
            return code.rstrip(".").upper(), description
        if not code:
            heading = SECTION_LINE_PATTERN.match(description)
            if heading:
                return heading.group(1), heading.group(2).strip()
        return None

    def build_item(
        self,
        fields: RowFields,
        *,
        sheet: Sheet,
        row_number: int,
        section: tuple[str | None, str | None] = (None, None),
    ) -> ExtractedItem | None:
        """Turn raw row fields into an ExtractedItem, or None if the row is dropped.

        Args:
            fields: Raw cell values
            sheet: Source sheet (bill provenance)
            row_number: Global 1-based row number
            section: Current (section code, section name)

        Returns:
            ExtractedItem, or None for filtered rows
        """
        description = re.sub(r"\s+", " ", fields.description or "").strip()
        if len(description) < 3:
            return None
        if TOTALS_PATTERN.match(description):
            return None

        quantity = parse_rate(fields.quantity)
        amount = parse_rate(fields.amount)
        supply, install, total = derive_rate_components(
            parse_rate(fields.supply_rate),
            parse_rate(fields.install_rate),
            parse_rate(fields.total_rate),
            amount=amount,
            quantity=quantity,
            supply_share=self.supply_share,
        )
        rate_only = fields.rate_only or bool(
            fields.quantity and RATE_ONLY_PATTERN.search(str(fields.quantity))
        )

        if not quantity and not total and not rate_only and not is_plausible_item_code(fields.item_code):
            logger.debug(f"Dropping row without rate or quantity: {description[:60]}")
            return None

        item = ExtractedItem(
            row_number=row_number,
            bill_number=sheet.bill_number,
            bill_name=sheet.name,
            section_code=section[0],
            section_name=section[1],
            item_code=fields.item_code,
            item_description=description,
            unit=self.units.standardize(fields.unit),
            quantity=quantity or None,
            supply_rate=supply or None,
            install_rate=install or None,
            total_rate=total or None,
            amount=amount or None,
            calculated_total=round(quantity * total, 2) if quantity and total else 0.0,
            is_rate_only=rate_only or bool(total and not quantity),
            raw_data={"cells": fields.cells, "sheet": sheet.name},
        )
        if item.is_rate_only:
            item.add_note("Rate only - no quantity")
        return item
