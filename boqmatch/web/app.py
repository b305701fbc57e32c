"""FastAPI surface for submitting BOQ uploads and polling their status.

Routes:
- POST /uploads                 - Register an upload
- POST /uploads/{id}/process    - Start processing in-process or via the arq queue
- GET  /uploads/{id}            - Upload status and counters
- GET  /uploads/{id}/items      - Extracted items in row order
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import httpx
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel

from boqmatch.config import get_config
from boqmatch.core.exceptions import UploadNotFoundError
from boqmatch.core.logging import configure_logging
from boqmatch.core.queue import enqueue_processing
from boqmatch.db.connection import close_db
from boqmatch.ingestion.google_sheets import GoogleSheetsClient
from boqmatch.models import ColumnMapping, UploadRecord, UploadStatus
from boqmatch.pipeline.orchestrator import BOQProcessor, build_processor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield
    await close_db()


app = FastAPI(title="BOQMatch API", lifespan=lifespan)


# ============================================================================
# Request / Response Models
# ============================================================================


class CreateUploadRequest(BaseModel):
    file_name: str


class ProcessUploadRequest(BaseModel):
    """Either inline sheet-marker content or a Google spreadsheet id."""

    content: str | None = None
    google_sheet_id: str | None = None
    column_mappings: dict[str, ColumnMapping] | None = None
    use_queue: bool = False  # Hand off to the arq worker instead of this process


class ProcessUploadResponse(BaseModel):
    upload_id: UUID
    status: UploadStatus
    job_id: str | None = None


class ExtractedItemResponse(BaseModel):
    row_number: int
    bill_number: int
    bill_name: str | None
    section_code: str | None
    item_code: str | None
    item_description: str
    unit: str | None
    quantity: float | None
    total_rate: float | None
    matched_material_id: UUID | None
    match_confidence: float
    suggested_category_name: str | None
    is_outlier: bool
    outlier_reason: str | None
    math_validated: bool
    review_status: str


# ============================================================================
# Dependencies
# ============================================================================


def get_processor() -> BOQProcessor:
    return build_processor()


# ============================================================================
# Routes
# ============================================================================


@app.post("/uploads", response_model=UploadRecord, status_code=201)
async def create_upload(
    request: CreateUploadRequest, processor: BOQProcessor = Depends(get_processor)
):
    return await processor.repository.create_upload(request.file_name)


@app.post("/uploads/{upload_id}/process", response_model=ProcessUploadResponse, status_code=202)
async def process_upload(
    upload_id: UUID,
    request: ProcessUploadRequest,
    background_tasks: BackgroundTasks,
    processor: BOQProcessor = Depends(get_processor),
):
    """Mark the upload processing and run extraction after the response is sent."""
    if request.content:
        content = request.content
    elif request.google_sheet_id:
        try:
            async with GoogleSheetsClient(get_config().sheets) as sheets:
                content = await sheets.fetch_as_text(request.google_sheet_id)
        except httpx.HTTPError as e:
            logger.warning(f"Google Sheets fetch failed for {request.google_sheet_id}: {e}")
            raise HTTPException(status_code=502, detail="Could not fetch spreadsheet") from e
    else:
        raise HTTPException(status_code=422, detail="Provide content or google_sheet_id")

    try:
        await processor.repository.mark_processing(upload_id)
    except UploadNotFoundError:
        raise HTTPException(status_code=404, detail="Upload not found") from None

    if request.use_queue:
        mappings = (
            {name: m.model_dump() for name, m in request.column_mappings.items()}
            if request.column_mappings
            else None
        )
        try:
            job_id = await enqueue_processing(str(upload_id), content, mappings)
        except Exception as e:
            logger.error(f"Could not queue upload {upload_id}: {e}")
            await processor.repository.mark_failed(upload_id, f"Could not queue processing: {e}")
            raise HTTPException(status_code=503, detail="Processing queue unavailable") from e
        logger.info(f"Queued upload {upload_id} as job {job_id}")
        return ProcessUploadResponse(
            upload_id=upload_id, status=UploadStatus.PROCESSING, job_id=job_id
        )

    background_tasks.add_task(
        processor.run, upload_id, content, request.column_mappings, mark_processing=False
    )
    return ProcessUploadResponse(upload_id=upload_id, status=UploadStatus.PROCESSING)


@app.get("/uploads/{upload_id}", response_model=UploadRecord)
async def get_upload(upload_id: UUID, processor: BOQProcessor = Depends(get_processor)):
    upload = await processor.repository.get_upload(upload_id)
    if upload is None:
        raise HTTPException(status_code=404, detail="Upload not found")
    return upload


@app.get("/uploads/{upload_id}/items", response_model=list[ExtractedItemResponse])
async def list_upload_items(
    upload_id: UUID, processor: BOQProcessor = Depends(get_processor)
) -> Any:
    if await processor.repository.get_upload(upload_id) is None:
        raise HTTPException(status_code=404, detail="Upload not found")
    rows = await processor.repository.list_items(upload_id)
    return [ExtractedItemResponse.model_validate(row, from_attributes=True) for row in rows]
