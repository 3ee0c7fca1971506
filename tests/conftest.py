"""Pytest configuration and fixtures."""

import io
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import AsyncMock

import pytest

# Credentials are required settings; provide dummies before the app is imported
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("GROQ_API_KEY", "test-groq-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="coi-uploads-"))

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from pypdf import PdfWriter  # noqa: E402

from coi.backend.main import app  # noqa: E402
from coi.backend.models import BackendName  # noqa: E402
from coi.backend.services.ai.backends import (  # noqa: E402
    FilesApiPdfBackend,
    InlinePdfBackend,
    MultiImageBackend,
)
from coi.backend.services.ai.clients import FileState, RemoteFile  # noqa: E402
from coi.backend.services.extraction_service import (  # noqa: E402
    ExtractionService,
    get_extraction_service,
)
from coi.backend.services.file_store import LocalFileStore  # noqa: E402
from coi.backend.services.pdf_service import PDFService  # noqa: E402


def build_pdf(page_count: int) -> bytes:
    """Build an in-memory PDF with the given number of blank Letter pages."""
    writer = PdfWriter()
    for _ in range(page_count):
        writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def build_png(color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (40, 60), color=color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeGenerativeClient:
    """Provider client double; each generate() call consumes one scripted response."""

    def __init__(self, *responses: Any):
        self.generate = AsyncMock(side_effect=list(responses))


class FakeFileClient:
    """Files API double that reports PROCESSING for ``pending_polls`` polls."""

    def __init__(self, pending_polls: int = 1, final_state: str = FileState.ACTIVE):
        self.remote = RemoteFile(
            name="files/acord25",
            uri="https://files.example/acord25",
            mime_type="application/pdf",
            state=FileState.PROCESSING,
        )
        states = [FileState.PROCESSING] * pending_polls + [final_state]
        self.upload = AsyncMock(return_value=self.remote)
        self.poll = AsyncMock(
            side_effect=[
                RemoteFile(self.remote.name, self.remote.uri, self.remote.mime_type, s)
                for s in states
            ]
        )
        self.delete = AsyncMock(return_value=None)


@pytest.fixture
def make_pdf() -> Callable[[int], bytes]:
    return build_pdf


@pytest.fixture
def png_bytes() -> bytes:
    return build_png()


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def store(upload_dir: Path) -> LocalFileStore:
    return LocalFileStore(upload_dir)


@pytest.fixture
def pdf_service(store: LocalFileStore) -> PDFService:
    return PDFService(store)


@pytest.fixture
def certificate_payload() -> dict[str, Any]:
    """A realistic extraction answer as a model would return it."""
    return {
        "certificate_information": {
            "certificate_holder": "City of Springfield",
            "certificate_number": "25-0001",
            "revision_number": "",
            "issue_date": "01/15/2024",
        },
        "insurers": [
            {"insurer_letter": "A", "insurer_name": "Acme Casualty Co", "naic_code": "12345"},
            {"insurer_letter": "B", "insurer_name": "Beta Mutual", "naic_code": "67890"},
        ],
        "policies": [
            {
                "policy_information": {
                    "policy_type": "COMMERCIAL GENERAL LIABILITY",
                    "policy_number": "GL-1001",
                    "effective_date": "01/01/2024",
                    "expiry_date": "01/01/2025",
                },
                "insurer_letter": "B",
                "coverages": [
                    {"limit_type": "EACH OCCURRENCE", "limit_value": "$1,000,000"},
                    {"limit_type": "DAMAGE TO RENTED PREMISES", "limit_value": 100000},
                    {"limit_type": "MED EXP", "limit_value": "$"},
                    {"limit_type": "PERSONAL & ADV INJURY", "limit_value": 0},
                ],
            }
        ],
        "producer_information": {
            "primary_details": {
                "full_name": "Jane Broker",
                "email_address": "jane@broker.example",
                "doing_business_as": None,
            },
            "contact_information": {
                "phone_number": "(800) 668-7020",
                "fax_number": "",
                "license_number": "0A12345",
            },
            "address_details": {
                "address_line_1": "1 Main St",
                "address_line_2": None,
                "address_line_3": None,
                "city": "Springfield",
                "state": "IL",
                "zip_code": "62701",
                "country": "USA",
            },
        },
    }


@pytest.fixture
def certificate_json(certificate_payload: dict[str, Any]) -> str:
    return json.dumps(certificate_payload)


@pytest.fixture
def make_service(store: LocalFileStore, pdf_service: PDFService):
    """
    Build an ExtractionService whose backends talk to scripted clients.

    Returns a factory taking the Gemini and Groq doubles plus optional
    service overrides.
    """

    def _make(
        gemini: FakeGenerativeClient | None = None,
        groq: FakeGenerativeClient | None = None,
        file_client: FakeFileClient | None = None,
        exhausted_policy: str = "raise",
        request_timeout: float | None = 300.0,
    ) -> ExtractionService:
        gemini = gemini or FakeGenerativeClient()
        groq = groq or FakeGenerativeClient()
        backends = {
            BackendName.INLINE_PDF: InlinePdfBackend(
                gemini, "primary-model", "fallback-model", exhausted_policy=exhausted_policy
            ),
            BackendName.FILES_API_PDF: FilesApiPdfBackend(
                gemini,
                "primary-model",
                "fallback-model",
                exhausted_policy=exhausted_policy,
                file_client=file_client or FakeFileClient(),
                poll_interval=0,
            ),
            BackendName.MULTI_IMAGE: MultiImageBackend(
                groq, "primary-vision", "fallback-vision", exhausted_policy=exhausted_policy
            ),
        }
        return ExtractionService(
            store, pdf_service, backends, request_timeout=request_timeout
        )

    return _make


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def override_service():
    """Route the analyze endpoint to a given ExtractionService."""

    def _override(service: ExtractionService) -> None:
        app.dependency_overrides[get_extraction_service] = lambda: service

    yield _override
    app.dependency_overrides.clear()
