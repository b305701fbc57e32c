"""Unit tests for the Google Sheets client (httpx MockTransport)."""

from __future__ import annotations

import httpx
import pytest

from boqmatch.config import SheetsConfig
from boqmatch.ingestion.google_sheets import GoogleSheetsClient, is_skipped_tab

TABS = {"sheets": [{"properties": {"title": t}} for t in ("Cover", "Bill 1", "Summary")]}
VALUES = {
    "values": [
        ["Item", "Description", "Qty"],
        ["A1", "Cable\ttray", "10"],
        ["", ""],
    ]
}


def make_client(config: SheetsConfig, requests: list[httpx.Request], status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if status != 200:
            return httpx.Response(status, json={"error": {"message": "denied"}})
        if "/values/" in request.url.path:
            assert request.url.path.endswith("/values/'Bill 1'")
            return httpx.Response(200, json=VALUES)
        return httpx.Response(200, json=TABS)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleSheetsClient(config, client=http)


class TestFetchAsText:
    @pytest.mark.asyncio
    async def test_combined_text_skips_cover_and_summary(self):
        requests: list[httpx.Request] = []
        async with make_client(SheetsConfig(api_key="key-123"), requests) as client:
            text = await client.fetch_as_text("sheet-abc")

        assert text == "=== SHEET: Bill 1 ===\nItem\tDescription\tQty\nA1\tCable tray\t10"
        assert len(requests) == 2
        assert requests[0].url.params["key"] == "key-123"
        assert requests[0].url.params["fields"] == "sheets.properties.title"
        assert requests[0].url.path == "/v4/spreadsheets/sheet-abc"

    @pytest.mark.asyncio
    async def test_bearer_token_preferred(self):
        requests: list[httpx.Request] = []
        config = SheetsConfig(api_key="key-123", access_token="tok")
        async with make_client(config, requests) as client:
            await client.list_tabs("sheet-abc")

        assert requests[0].headers["Authorization"] == "Bearer tok"
        assert "key" not in requests[0].url.params

    @pytest.mark.asyncio
    async def test_http_error_raised(self):
        async with make_client(SheetsConfig(), [], status=403) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.fetch_as_text("sheet-abc")


def test_is_skipped_tab():
    assert is_skipped_tab("Cover Page")
    assert is_skipped_tab("Table of Contents")
    assert not is_skipped_tab("Bill 3 - Lighting")
