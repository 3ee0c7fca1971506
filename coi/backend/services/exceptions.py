"""
Shared exceptions for the extraction services.

Every error that may cross the HTTP boundary derives from ExtractionError,
which carries a stable machine-readable code plus optional details.
"""

from typing import Any


class ExtractionError(Exception):
    """Base class for all extraction pipeline failures."""

    code = "EXTRACTION_ERROR"
    public_message = "Analysis failed"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ExtractionError):
    """Raised when the request shape, size or model selection is invalid."""

    code = "BAD_REQUEST"

    @property
    def public_message(self) -> str:  # type: ignore[override]
        # Validation reasons are user-fixable, so they are shown verbatim
        return self.message


class ExtractionTimeoutError(ExtractionError):
    """Raised when a request exceeds its overall deadline."""

    code = "TIMEOUT"


class PDFConversionError(ExtractionError):
    """Raised when PDF processing fails."""

    code = "PDF_PROCESSING_ERROR"


class DocumentCorruptError(PDFConversionError):
    """Raised when a source document cannot be parsed as a PDF."""


class RasterizationError(PDFConversionError):
    """Raised when not even the first page of a PDF can be rendered."""


class AIServiceError(ExtractionError):
    """Raised when AI service operations fail."""

    code = "AI_SERVICE_ERROR"


class BackendError(AIServiceError):
    """Raised when a provider call fails after the fallback hop is exhausted."""


class MalformedResponseError(AIServiceError):
    """Raised when a provider returns text that is neither JSON nor the null sentinel."""

    code = "AI_RESPONSE_ERROR"

    def __init__(self, message: str, raw_text: str | None = None):
        super().__init__(message, details={"raw_text": (raw_text or "")[:500]})
        self.raw_text = raw_text
