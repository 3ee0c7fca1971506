"""
Services package for certificate extraction.

Contains:
- file_store: durable storage and request-scoped artifact cleanup
- pdf_service: PDF truncation and page rasterization
- encoding: file to provider payload encoding
- extraction_service: the per-request extraction pipeline
"""

from .file_store import ArtifactScope, LocalFileStore
from .pdf_service import PDFService

__all__ = ["ArtifactScope", "LocalFileStore", "PDFService"]
