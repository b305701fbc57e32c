"""LLM-based BOQ extraction, used when a sheet has no column mapping.

The model is treated as a best-effort source: every failure (no API key,
timeout, API error, unusable JSON) surfaces as ExtractionSourceError so the
orchestrator can fall back to the heuristic parser.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import openai

from boqmatch.config import LLMConfig
from boqmatch.core.exceptions import ExtractionSourceError
from boqmatch.ingestion.json_repair import parse_json_array
from boqmatch.ingestion.row_parser import RATE_ONLY_PATTERN, RowFields
from boqmatch.ingestion.sheets import Sheet
from boqmatch.models import MasterMaterial, MaterialCategory

logger = logging.getLogger(__name__)


class AlternateExtractor(Protocol):
    """Collaborator that turns one sheet into raw item records."""

    async def extract(
        self,
        sheet: Sheet,
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory],
    ) -> list[dict[str, Any]]: ...


class LLMExtractor:
    """Extract BOQ line items from sheet text with a chat-completion model."""

    SYSTEM_PROMPT = """You are an expert quantity surveyor extracting line items from Bills of Quantities.

Return ONLY a JSON array. Each element must have this structure:
{
  "item_code": "A1.1 or null",
  "item_description": "Full description",
  "unit": "m|m2|nr|each|set|lot|item",
  "quantity": 10,
  "supply_rate": 0,
  "install_rate": 0,
  "total_rate": 150.00,
  "amount": 1500.00,
  "section_code": "A or null",
  "section_name": "Section title or null",
  "is_rate_only": false
}

Rules:
- Skip headers, notes, instructions to tenderers, totals and carried-forward lines
- Use null for missing values; numbers must be plain (no currency symbols)
- "Rate only" items have no quantity and is_rate_only = true"""

    def __init__(self, config: LLMConfig, client: openai.AsyncOpenAI | None = None) -> None:
        """Initialize extractor.

        Args:
            config: LLM settings (model, key, limits, timeout)
            client: Pre-built client (tests inject a fake)
        """
        self.config = config
        self.client = client
        if self.client is None and config.api_key:
            self.client = openai.AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_seconds,
                max_retries=1,
            )

    @property
    def available(self) -> bool:
        return self.client is not None

    def build_prompt(
        self,
        sheet: Sheet,
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory],
    ) -> str:
        catalog_lines = [
            f"{m.code}: {m.name} [{m.unit or '-'}] - Supply: R{m.standard_supply_cost or 0:g}, "
            f"Install: R{m.standard_install_cost or 0:g}"
            for m in materials[: self.config.max_catalog_materials]
        ]
        category_lines = [f"{c.code}: {c.name}" for c in categories]
        content = sheet.content[: self.config.max_content_chars]

        sections = [
            f"Sheet: {sheet.name}",
            "MASTER MATERIALS:\n" + "\n".join(catalog_lines),
            "CATEGORIES:\n" + "\n".join(category_lines),
            f"BOQ CONTENT (tab-delimited):\n{content}",
        ]
        return "\n\n".join(sections)

    async def _complete(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.config.llm_model,
            messages=[
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def extract(
        self,
        sheet: Sheet,
        materials: Sequence[MasterMaterial],
        categories: Sequence[MaterialCategory],
    ) -> list[dict[str, Any]]:
        """Extract raw item records from one sheet.

        Raises:
            ExtractionSourceError: If the model is unavailable, times out,
                errors, or returns no usable items
        """
        if not self.available:
            raise ExtractionSourceError("LLM extractor is not configured")

        prompt = self.build_prompt(sheet, materials, categories)
        try:
            text = await asyncio.wait_for(
                self._complete(prompt), timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise ExtractionSourceError(
                f"LLM extraction timed out after {self.config.timeout_seconds}s"
            ) from e
        except openai.OpenAIError as e:
            raise ExtractionSourceError(f"LLM request failed: {e}") from e

        records = parse_json_array(text, required_key="item_description")
        if not records:
            raise ExtractionSourceError(f"LLM returned no usable items for sheet '{sheet.name}'")

        logger.info(f"LLM extracted {len(records)} records from '{sheet.name}'")
        return records


def record_to_fields(record: dict[str, Any]) -> RowFields:
    """Convert an LLM record into raw row fields for the shared item builder."""

    def text(key: str) -> str | None:
        value = record.get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    quantity = record.get("quantity")
    rate_only = bool(record.get("is_rate_only")) or bool(
        isinstance(quantity, str) and RATE_ONLY_PATTERN.search(quantity)
    )
    return RowFields(
        item_code=text("item_code"),
        description=text("item_description"),
        unit=text("unit"),
        quantity=quantity,
        supply_rate=record.get("supply_rate"),
        install_rate=record.get("install_rate"),
        total_rate=record.get("total_rate"),
        amount=record.get("amount"),
        rate_only=rate_only,
    )


def record_section(record: dict[str, Any]) -> tuple[str | None, str | None]:
    code = record.get("section_code")
    name = record.get("section_name")
    return (str(code).strip() or None) if code else None, (str(name).strip() or None) if name else None
