"""
PDF processing service using pypdf and pdf2image (poppler).

Handles the page budget for uploaded PDFs:
- truncation to the first N pages (page objects are copied, not re-rendered)
- rasterization of the surviving pages to PNG images for vision backends
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path

from pdf2image import convert_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFSyntaxError,
)
from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.errors import DependencyError, PdfReadError

from .exceptions import DocumentCorruptError, RasterizationError, ValidationError
from .file_store import ArtifactScope, FileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TruncatedDocument:
    """A PDF artifact holding at most the page budget."""

    path: Path
    page_count: int
    truncated: bool


class PDFService:
    """
    Service for PDF processing operations.

    Uses pypdf to inspect and truncate documents and pdf2image (backed by
    poppler) to convert PDF pages to images.
    """

    def __init__(
        self,
        store: FileStore,
        max_pages: int = 5,
        dpi: int = 150,
        size: tuple[int, int] | None = (2480, 3508),
        image_format: str = "PNG",
        max_file_size_bytes: int = 10 * 1024 * 1024,
    ):
        """
        Initialize the PDF service.

        Args:
            store: Storage where truncated PDFs and rendered pages are written.
            max_pages: Page budget applied by truncate() and rasterize().
            dpi: Resolution for PDF to image conversion.
            size: Target pixel size of rendered pages (A4 at 150 DPI by default).
            image_format: Output image format (PNG recommended for OCR quality).
            max_file_size_bytes: Largest PDF accepted for truncation.
        """
        self.store = store
        self.max_pages = max_pages
        self.dpi = dpi
        self.size = size
        self.image_format = image_format
        self.max_file_size_bytes = max_file_size_bytes

    def _open(self, pdf_bytes: bytes) -> PdfReader:
        """Parse PDF bytes, tolerating encryption markers."""
        if not pdf_bytes:
            raise DocumentCorruptError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise DocumentCorruptError(
                "Invalid PDF file: does not start with PDF header"
            )

        try:
            reader = PdfReader(io.BytesIO(pdf_bytes), strict=False)
            if reader.is_encrypted:
                try:
                    reader.decrypt("")
                except (PdfReadError, DependencyError, NotImplementedError) as e:
                    logger.warning("Encrypted PDF could not be decrypted: %s", e)
            # Touch the page tree so structural damage surfaces here
            len(reader.pages)
            return reader
        except PdfReadError as e:
            logger.error("PDF syntax error: %s", e)
            raise DocumentCorruptError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error while parsing PDF")
            raise DocumentCorruptError(f"PDF parsing failed: {e}") from e

    def get_page_count(self, pdf_bytes: bytes) -> int:
        """
        Get the total number of pages in a PDF.

        Raises:
            DocumentCorruptError: If the document cannot be parsed.
        """
        return len(self._open(pdf_bytes).pages)

    def truncate(
        self,
        pdf_path: Path,
        max_pages: int | None = None,
        scope: ArtifactScope | None = None,
    ) -> TruncatedDocument:
        """
        Reduce a stored PDF to at most ``max_pages`` pages.

        Documents already within budget are returned as-is (same path, no
        copy). Longer documents are rewritten with their first ``max_pages``
        pages into a new artifact and the original artifact is deleted.

        Args:
            pdf_path: Stored PDF to inspect.
            max_pages: Page budget. Defaults to the service budget.
            scope: Artifact scope that must own the replacement file.

        Returns:
            TruncatedDocument pointing at whichever artifact survives.

        Raises:
            ValidationError: If the file exceeds the size limit.
            DocumentCorruptError: If the PDF cannot be parsed or copied.
        """
        max_pages = max_pages or self.max_pages
        pdf_bytes = self.store.read(pdf_path)

        if len(pdf_bytes) > self.max_file_size_bytes:
            size_mb = len(pdf_bytes) / 1024 / 1024
            raise ValidationError(
                f"File size {size_mb:.2f}MB exceeds maximum allowed size of "
                f"{self.max_file_size_bytes // (1024 * 1024)}MB"
            )

        reader = self._open(pdf_bytes)
        page_count = len(reader.pages)

        if page_count <= max_pages:
            logger.info("PDF has %d page(s), within budget of %d", page_count, max_pages)
            return TruncatedDocument(path=pdf_path, page_count=page_count, truncated=False)

        logger.info("Truncating PDF from %d to %d pages", page_count, max_pages)
        try:
            writer = PdfWriter()
            for index in range(max_pages):
                writer.add_page(reader.pages[index])
            buffer = io.BytesIO()
            writer.write(buffer)
        except Exception as e:
            logger.exception("Failed to copy PDF pages")
            raise DocumentCorruptError(f"PDF processing failed: {e}") from e

        new_path = self.store.save(
            buffer.getvalue(), name=f"{pdf_path.stem}-{max_pages}pages.pdf"
        )
        if scope is not None:
            scope.track(new_path)

        # Reclaim disk: the original is superseded by the truncated copy
        self.store.delete(pdf_path)
        if scope is not None:
            scope.replace(pdf_path, new_path)

        return TruncatedDocument(path=new_path, page_count=max_pages, truncated=True)

    def rasterize(
        self,
        pdf_path: Path,
        max_pages: int | None = None,
        scope: ArtifactScope | None = None,
    ) -> list[Path]:
        """
        Render the first pages of a PDF to stored images, one call per page.

        Stops at the first page index that does not exist, so shorter
        documents yield fewer images. The source PDF is left untouched.

        Args:
            pdf_path: PDF to render.
            max_pages: Page budget. Defaults to the service budget.
            scope: Artifact scope that must own every rendered image.

        Returns:
            Paths of rendered images in page order.

        Raises:
            RasterizationError: If page 1 cannot be produced at all.
        """
        max_pages = max_pages or self.max_pages
        image_paths: list[Path] = []
        stem = Path(pdf_path).stem

        for page_number in range(1, max_pages + 1):
            if scope is not None and scope.closed:
                logger.info("Request finished, stopping rasterization at page %d", page_number)
                break
            try:
                images = convert_from_path(
                    str(pdf_path),
                    dpi=self.dpi,
                    fmt=self.image_format.lower(),
                    first_page=page_number,
                    last_page=page_number,
                    size=self.size,
                )
            except PDFInfoNotInstalledError as e:
                logger.error("Poppler not installed: %s", e)
                raise RasterizationError(
                    "Poppler not installed. Install poppler-utils: "
                    "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
                ) from e
            except (PDFPageCountError, PDFSyntaxError) as e:
                if page_number == 1:
                    logger.error("Could not render first page: %s", e)
                    raise RasterizationError(f"Could not render PDF: {e}") from e
                logger.warning("Stopping rasterization at page %d: %s", page_number, e)
                break

            if not images:
                if page_number == 1:
                    raise RasterizationError("No pages found in PDF")
                break

            path = self.store.save(
                self.image_to_bytes(images[0], format=self.image_format),
                name=f"{stem}-page-{page_number}.{self.image_format.lower()}",
            )
            if scope is not None:
                scope.track(path)
            image_paths.append(path)

        logger.info("Rasterized %d page(s) from %s", len(image_paths), pdf_path)
        return image_paths

    def image_to_bytes(
        self, image: Image.Image, format: str = "PNG", quality: int = 95
    ) -> bytes:
        """
        Convert a PIL Image to bytes.

        Args:
            image: PIL Image to convert.
            format: Output format (PNG, JPEG, etc.).
            quality: Quality for lossy formats (1-100).

        Returns:
            Image as bytes.
        """
        buffer = io.BytesIO()
        save_kwargs = {"format": format}
        if format.upper() in ("JPEG", "JPG", "WEBP"):
            save_kwargs["quality"] = quality
        image.save(buffer, **save_kwargs)
        buffer.seek(0)
        return buffer.getvalue()
