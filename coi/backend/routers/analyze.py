"""
Router for certificate analysis.

Handles:
- Upload of one PDF or up to five page images plus a model selection
- Extraction through the selected backend
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..config import Settings, get_settings
from ..models import AnalyzeResponse
from ..services.exceptions import ValidationError
from ..services.extraction_service import (
    ExtractionService,
    UploadedFile,
    get_extraction_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["analyze"])


async def _read_uploads(files: list[UploadFile]) -> list[UploadedFile]:
    uploads = []
    for file in files:
        data = await file.read()
        uploads.append(
            UploadedFile(
                filename=file.filename or "upload",
                content_type=(file.content_type or "").lower(),
                data=data,
            )
        )
    return uploads


@router.post("/analyze", response_model=AnalyzeResponse)
@router.post("/api/analyze-coi", response_model=AnalyzeResponse, include_in_schema=False)
async def analyze_certificate(
    files: Annotated[
        list[UploadFile] | None,
        File(description="One PDF or up to 5 images (PNG/JPEG) of an ACORD 25"),
    ] = None,
    model: Annotated[
        str | None,
        Form(description="inline-pdf, files-api-pdf or multi-image"),
    ] = None,
    settings: Settings = Depends(get_settings),
    service: ExtractionService = Depends(get_extraction_service),
) -> AnalyzeResponse:
    """
    Extract an ACORD 25 certificate from the uploaded files.

    Returns data=null when the document is not an ACORD 25 certificate.
    Failures are turned into the error envelope by the app's exception handlers.
    """
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > settings.max_files:
        raise ValidationError(f"Maximum {settings.max_files} files allowed")

    try:
        uploads = await _read_uploads(files)
    finally:
        for file in files:
            await file.close()

    logger.info(
        "Analyzing %d file(s): %s",
        len(uploads),
        ", ".join(f"{u.filename} ({len(u.data)} bytes)" for u in uploads),
    )

    outcome = await service.extract(uploads, model)

    return AnalyzeResponse(
        message="Analysis completed successfully!",
        data=outcome.data,
        processing_time=outcome.processing_time_ms,
        model=outcome.model.value,
    )
