"""Unit tests for the LLM extraction path (fake chat-completions client)."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import openai
import pytest

from boqmatch.config import LLMConfig
from boqmatch.core.exceptions import ExtractionSourceError
from boqmatch.ingestion.llm_extractor import LLMExtractor, record_section, record_to_fields
from boqmatch.ingestion.sheets import Sheet


class FakeCompletions:
    def __init__(self, content: str = "", error: Exception | None = None, delay: float = 0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions: FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def sheet() -> Sheet:
    return Sheet(
        name="Bill No. 1 - Cabling",
        index=1,
        lines=["A1\t4C 95mm XLPE SWA cable\tm\t100\t600\t60000"],
    )


RECORDS = [
    {
        "item_code": "A1",
        "item_description": "4C 95mm XLPE SWA cable",
        "unit": "m",
        "quantity": 100,
        "total_rate": 600,
        "amount": 60000,
        "section_code": "A",
        "section_name": "POWER CABLES",
    }
]


class TestExtract:
    @pytest.mark.asyncio
    async def test_returns_records(self, sheet, materials, categories):
        completions = FakeCompletions(content="```json\n" + json.dumps(RECORDS) + "\n```")
        extractor = LLMExtractor(LLMConfig(api_key="sk-test"), client=fake_client(completions))

        records = await extractor.extract(sheet, materials, categories)

        assert records == RECORDS
        call = completions.calls[0]
        assert call["model"] == "gpt-4o-mini"
        assert call["messages"][0]["role"] == "system"
        assert "4C 95mm XLPE SWA cable" in call["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_not_configured(self, sheet, materials, categories):
        extractor = LLMExtractor(LLMConfig())
        assert not extractor.available
        with pytest.raises(ExtractionSourceError, match="not configured"):
            await extractor.extract(sheet, materials, categories)

    @pytest.mark.asyncio
    async def test_timeout(self, sheet, materials, categories):
        config = LLMConfig(api_key="sk-test", timeout_seconds=0.01)
        extractor = LLMExtractor(config, client=fake_client(FakeCompletions(delay=1.0)))
        with pytest.raises(ExtractionSourceError, match="timed out"):
            await extractor.extract(sheet, materials, categories)

    @pytest.mark.asyncio
    async def test_api_error(self, sheet, materials, categories):
        completions = FakeCompletions(error=openai.OpenAIError("rate limited"))
        extractor = LLMExtractor(LLMConfig(api_key="sk-test"), client=fake_client(completions))
        with pytest.raises(ExtractionSourceError, match="rate limited"):
            await extractor.extract(sheet, materials, categories)

    @pytest.mark.asyncio
    async def test_unusable_response(self, sheet, materials, categories):
        completions = FakeCompletions(content="Sorry, I cannot help with that.")
        extractor = LLMExtractor(LLMConfig(api_key="sk-test"), client=fake_client(completions))
        with pytest.raises(ExtractionSourceError, match="no usable items"):
            await extractor.extract(sheet, materials, categories)


class TestPrompt:
    def test_catalog_and_content_limits(self, sheet, materials, categories):
        config = LLMConfig(api_key="sk-test", max_catalog_materials=1, max_content_chars=10)
        extractor = LLMExtractor(config, client=fake_client(FakeCompletions()))
        prompt = extractor.build_prompt(sheet, materials, categories)

        assert "CB-4C95: 4 Core 95mm XLPE Cable [M] - Supply: R450, Install: R120" in prompt
        assert "CB-4C16" not in prompt
        assert "LT: Lighting" in prompt
        assert "A1\t4C 95mm" in prompt
        assert "60000" not in prompt


class TestRecordConversion:
    def test_record_to_fields(self):
        fields = record_to_fields(RECORDS[0])
        assert fields.item_code == "A1"
        assert fields.description == "4C 95mm XLPE SWA cable"
        assert fields.quantity == 100
        assert fields.total_rate == 600
        assert not fields.rate_only

    def test_rate_only_from_quantity_text(self):
        fields = record_to_fields({"item_description": "Exit sign", "quantity": "Rate only"})
        assert fields.rate_only

    def test_rate_only_flag(self):
        assert record_to_fields({"item_description": "Exit sign", "is_rate_only": True}).rate_only

    def test_blank_strings_are_none(self):
        fields = record_to_fields({"item_description": "Exit sign", "item_code": "  ", "unit": None})
        assert fields.item_code is None
        assert fields.unit is None

    def test_record_section(self):
        assert record_section(RECORDS[0]) == ("A", "POWER CABLES")
        assert record_section({"section_code": None}) == (None, None)
