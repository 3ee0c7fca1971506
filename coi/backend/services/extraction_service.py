"""
Extraction orchestration for uploaded certificates.

Per request: Validating -> Truncating -> Dispatching -> Parsing -> Cleanup -> Done,
with Failed reachable from any non-terminal state. Cleanup always runs and
removes every artifact the request wrote, whatever happened before it.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..config import Settings, get_settings
from ..models import BackendName, ExtractionResult
from .ai.backends import ExtractionBackend, build_backends
from .ai.clients import GeminiClient, GroqClient
from .ai.parsing import parse_certificate
from .exceptions import ExtractionError, ExtractionTimeoutError, ValidationError
from .file_store import ArtifactScope, FileStore, LocalFileStore
from .pdf_service import PDFService

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
IMAGE_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg"}
ALLOWED_CONTENT_TYPES = {PDF_CONTENT_TYPE, *IMAGE_EXTENSIONS}


class ExtractionState(str, Enum):
    VALIDATING = "validating"
    TRUNCATING = "truncating"
    DISPATCHING = "dispatching"
    PARSING = "parsing"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadedFile:
    """One file of an inbound request, still in memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def is_pdf(self) -> bool:
        return self.content_type == PDF_CONTENT_TYPE

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


@dataclass(frozen=True)
class SourceDocument:
    """Validated request input: exactly one PDF, or 1..N images."""

    pdf: UploadedFile | None = None
    images: tuple[UploadedFile, ...] = ()


@dataclass(frozen=True)
class ExtractionOutcome:
    data: ExtractionResult | None
    model: BackendName
    processing_time_ms: int


class ExtractionService:
    """
    Top-level coordinator for certificate extraction.

    Selects a backend, enforces the input shape, drives truncation and
    rasterization, dispatches to the backend, parses the answer and cleans up.
    """

    def __init__(
        self,
        store: FileStore,
        pdf_service: PDFService,
        backends: Mapping[BackendName, ExtractionBackend],
        max_images: int = 5,
        max_file_size_bytes: int = 10 * 1024 * 1024,
        request_timeout: float | None = 300.0,
    ):
        self.store = store
        self.pdf_service = pdf_service
        self.backends = dict(backends)
        self.max_images = max_images
        self.max_file_size_bytes = max_file_size_bytes
        self.request_timeout = request_timeout

    # -------------------------------------------------------------------------
    # Validating
    # -------------------------------------------------------------------------

    @staticmethod
    def resolve_backend(model: str | None) -> BackendName:
        if not model or not model.strip():
            raise ValidationError("Model selection is required")
        try:
            return BackendName(model)
        except ValueError:
            valid = ", ".join(b.value for b in BackendName)
            raise ValidationError(
                f"Invalid model: {model}. Valid models are: {valid}"
            ) from None

    def validate(
        self, files: Sequence[UploadedFile], model: str | None
    ) -> tuple[BackendName, SourceDocument]:
        """
        Check the request shape before anything touches storage.

        Raises:
            ValidationError: With the precise, user-facing reason.
        """
        if not files:
            raise ValidationError("No files uploaded")

        for file in files:
            if file.content_type not in ALLOWED_CONTENT_TYPES:
                raise ValidationError(
                    f"Only PDF and image files are allowed! Got {file.content_type!r} "
                    f"for {file.filename!r}"
                )
            if not file.data:
                raise ValidationError(f"Empty file provided: {file.filename}")
            if len(file.data) > self.max_file_size_bytes:
                raise ValidationError(
                    f"File {file.filename} exceeds maximum allowed size of "
                    f"{self.max_file_size_bytes // (1024 * 1024)}MB"
                )

        pdfs = [f for f in files if f.is_pdf]
        images = [f for f in files if f.is_image]

        if len(pdfs) > 1:
            raise ValidationError("Only 1 PDF file allowed")
        if len(images) > self.max_images:
            raise ValidationError(f"Maximum {self.max_images} images allowed")
        if pdfs and images:
            raise ValidationError(
                "Cannot mix PDF and images: upload 1 PDF or up to "
                f"{self.max_images} images"
            )

        backend = self.resolve_backend(model)
        if images and not backend.accepts_images:
            raise ValidationError(
                f"Images can only be processed with the {BackendName.MULTI_IMAGE.value} "
                "model. Please select it for image processing."
            )
        if backend not in self.backends:
            raise ValidationError(f"Model {backend.value} is not available")

        if pdfs:
            return backend, SourceDocument(pdf=pdfs[0])
        return backend, SourceDocument(images=tuple(images))

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def extract(
        self, files: Sequence[UploadedFile], model: str | None
    ) -> ExtractionOutcome:
        """
        Run one extraction request end to end.

        Args:
            files: Uploaded files (1 PDF or up to 5 images).
            model: Backend selection (canonical name or alias).

        Returns:
            ExtractionOutcome whose data is None when the document was
            rejected as not being an ACORD 25 certificate.

        Raises:
            ExtractionError: Any pipeline failure, wrapped with its cause.
        """
        request_id = uuid.uuid4().hex[:8]
        start = time.perf_counter()
        state = ExtractionState.VALIDATING
        logger.info("[%s] %s: %d file(s), model=%s", request_id, state.value, len(files), model)

        backend_name, source = self.validate(files, model)
        scope = ArtifactScope(self.store)

        try:
            result = await asyncio.wait_for(
                self._run(request_id, backend_name, source, scope),
                timeout=self.request_timeout,
            )
            state = ExtractionState.DONE
        except asyncio.TimeoutError as e:
            state = ExtractionState.FAILED
            raise ExtractionTimeoutError(
                f"Analysis did not finish within {self.request_timeout:.0f}s"
            ) from e
        except ExtractionError:
            state = ExtractionState.FAILED
            raise
        except Exception as e:
            state = ExtractionState.FAILED
            logger.exception("[%s] Unexpected extraction failure", request_id)
            raise ExtractionError(f"Analysis failed: {e}") from e
        finally:
            logger.info(
                "[%s] %s: removing %d artifact(s)",
                request_id,
                ExtractionState.CLEANUP.value,
                len(scope.paths),
            )
            scope.release()
            logger.info("[%s] %s", request_id, state.value)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        if result is None:
            logger.info("[%s] Document rejected as not an ACORD 25 certificate", request_id)
        return ExtractionOutcome(data=result, model=backend_name, processing_time_ms=elapsed_ms)

    def _save_tracked(self, scope: ArtifactScope, upload: UploadedFile, suffix: str) -> Path:
        # Runs in a worker thread; tracking here keeps a write that outlives
        # a cancelled request owned by the scope
        return scope.track(self.store.save(upload.data, suffix))

    async def _store(self, scope: ArtifactScope, upload: UploadedFile, suffix: str) -> Path:
        return await asyncio.to_thread(self._save_tracked, scope, upload, suffix)

    async def _run(
        self,
        request_id: str,
        backend_name: BackendName,
        source: SourceDocument,
        scope: ArtifactScope,
    ) -> ExtractionResult | None:
        backend = self.backends[backend_name]

        if source.pdf is not None:
            logger.info("[%s] %s", request_id, ExtractionState.TRUNCATING.value)
            original = await self._store(scope, source.pdf, ".pdf")
            truncated = await asyncio.to_thread(
                self.pdf_service.truncate, original, None, scope
            )
            if backend_name.accepts_images:
                inputs = await asyncio.to_thread(
                    self.pdf_service.rasterize, truncated.path, None, scope
                )
            else:
                inputs = [truncated.path]
        else:
            inputs = [
                await self._store(scope, image, IMAGE_EXTENSIONS[image.content_type])
                for image in source.images
            ]

        logger.info(
            "[%s] %s: %s with %d input(s)",
            request_id,
            ExtractionState.DISPATCHING.value,
            backend_name.value,
            len(inputs),
        )
        raw_text = await backend.extract(inputs)

        logger.info("[%s] %s", request_id, ExtractionState.PARSING.value)
        return parse_certificate(raw_text)


# Singleton instance for convenience
_extraction_service: ExtractionService | None = None


def create_extraction_service(settings: Settings) -> ExtractionService:
    """Wire the service graph from settings."""
    store = LocalFileStore(settings.upload_dir)
    pdf_service = PDFService(
        store,
        max_pages=settings.max_pages,
        dpi=settings.raster_dpi,
        size=(settings.raster_width, settings.raster_height),
        max_file_size_bytes=settings.max_file_size_bytes,
    )
    gemini = GeminiClient(api_key=settings.gemini_api_key)
    groq = GroqClient(
        api_key=settings.groq_api_key,
        base_url=settings.groq_base_url,
        timeout=settings.groq_timeout_seconds,
        max_tokens=settings.groq_max_tokens,
    )
    return ExtractionService(
        store,
        pdf_service,
        build_backends(settings, gemini, groq),
        max_images=settings.max_files,
        max_file_size_bytes=settings.max_file_size_bytes,
        request_timeout=settings.request_timeout_seconds,
    )


def get_extraction_service() -> ExtractionService:
    """Get or create the extraction service singleton."""
    global _extraction_service
    if _extraction_service is None:
        _extraction_service = create_extraction_service(get_settings())
    return _extraction_service
