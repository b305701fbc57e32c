"""Fetch BOQ spreadsheets from the Google Sheets v4 REST API.

Tabs are converted into the same ``=== SHEET: name ===`` / tab-delimited
format as uploaded workbooks.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from boqmatch.config import SheetsConfig

logger = logging.getLogger(__name__)

SKIPPED_TAB_KEYWORDS = ("cover", "summary", "contents", "index", "template")


def is_skipped_tab(title: str) -> bool:
    lowered = title.lower()
    return any(keyword in lowered for keyword in SKIPPED_TAB_KEYWORDS)


class GoogleSheetsClient:
    """Read-only Sheets API client (API key or OAuth bearer token)."""

    def __init__(self, config: SheetsConfig, client: httpx.AsyncClient | None = None) -> None:
        """Initialize client.

        Args:
            config: Sheets API credentials and base URL
            client: Pre-built httpx client (tests inject a MockTransport)
        """
        self.config = config
        headers = {}
        if config.access_token:
            headers["Authorization"] = f"Bearer {config.access_token}"
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._headers = headers

    async def __aenter__(self) -> GoogleSheetsClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _params(self, **extra) -> dict:
        params = dict(extra)
        if self.config.api_key and not self.config.access_token:
            params["key"] = self.config.api_key
        return params

    async def _get(self, url: str, **params) -> dict:
        response = await self._client.get(url, params=self._params(**params), headers=self._headers)
        response.raise_for_status()
        return response.json()

    async def list_tabs(self, spreadsheet_id: str) -> list[str]:
        data = await self._get(
            f"{self.config.base_url}/{spreadsheet_id}", fields="sheets.properties.title"
        )
        return [s["properties"]["title"] for s in data.get("sheets", [])]

    async def fetch_values(self, spreadsheet_id: str, title: str) -> list[list[str]]:
        range_name = quote(f"'{title}'", safe="")
        data = await self._get(f"{self.config.base_url}/{spreadsheet_id}/values/{range_name}")
        return data.get("values", [])

    async def fetch_as_text(self, spreadsheet_id: str) -> str:
        """Fetch all material tabs as combined sheet-marker text.

        Raises:
            httpx.HTTPError: If the API rejects the request
        """
        blocks = []
        for title in await self.list_tabs(spreadsheet_id):
            if is_skipped_tab(title):
                logger.info(f"Skipping tab: {title}")
                continue
            rows = await self.fetch_values(spreadsheet_id, title)
            lines = [
                "\t".join(str(cell).replace("\t", " ") for cell in row)
                for row in rows
                if any(str(cell).strip() for cell in row)
            ]
            blocks.append("\n".join([f"=== SHEET: {title} ===", *lines]))
        logger.info(f"Fetched {len(blocks)} tabs from spreadsheet {spreadsheet_id}")
        return "\n".join(blocks)
