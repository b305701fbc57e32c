"""Data ingestion module for BOQMatch.

Handles BOQ workbooks, Google spreadsheets, LLM extraction and master
catalog price books.
"""

from boqmatch.ingestion.catalog import ingest_catalog
from boqmatch.ingestion.sheets import segment_sheets
from boqmatch.ingestion.workbook import workbook_to_text

__all__ = ["ingest_catalog", "segment_sheets", "workbook_to_text"]
