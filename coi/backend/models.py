"""
Pydantic models for the certificate extraction pipeline.

Defines the strict ACORD 25 result schema and the HTTP response envelopes.
Leaf values are either a typed value or an explicit null; blank strings are
never kept, and coverages without a usable limit are dropped entirely.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .services.ai.validation import blank_to_none, normalize_phone, parse_limit_value


class BackendName(str, Enum):
    """Extraction backends selectable per request."""

    INLINE_PDF = "inline-pdf"
    FILES_API_PDF = "files-api-pdf"
    MULTI_IMAGE = "multi-image"

    @classmethod
    def _missing_(cls, value: object) -> "BackendName | None":
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        alias = BACKEND_ALIASES.get(key)
        return cls(alias) if alias else None

    @property
    def accepts_images(self) -> bool:
        return self is BackendName.MULTI_IMAGE


# Short names accepted from older clients and the web UI
BACKEND_ALIASES: dict[str, str] = {
    "gemini-inline": "inline-pdf",
    "gemini-files-api": "files-api-pdf",
    "groq-images": "multi-image",
    "gemini": "inline-pdf",
    "gemini2": "files-api-pdf",
    "groq": "multi-image",
}


# =============================================================================
# ACORD 25 Result Schema
# =============================================================================


class _CertificateModel(BaseModel):
    """Base for schema sections: trims strings and turns blanks into null."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_strings_to_null(cls, v: Any) -> Any:
        return blank_to_none(v)


class CertificateInformation(_CertificateModel):
    """Header block of the certificate."""

    certificate_holder: str | None = Field(
        default=None,
        description="First line of the CERTIFICATE HOLDER section",
    )
    certificate_number: str | None = None
    revision_number: str | None = None
    issue_date: str | None = Field(default=None, examples=["01/15/2024"])


class Insurer(_CertificateModel):
    """One row of INSURER(S) AFFORDING COVERAGE."""

    insurer_letter: str | None = Field(default=None, examples=["A"])
    insurer_name: str | None = None
    naic_code: str | None = None


class PolicyInformation(_CertificateModel):
    policy_type: str | None = None
    policy_number: str | None = None
    effective_date: str | None = None
    expiry_date: str | None = None


class Coverage(_CertificateModel):
    """A single limit line item of a policy."""

    limit_type: str | None = Field(default=None, examples=["EACH OCCURRENCE"])
    limit_value: int | None = Field(default=None, examples=[1000000])

    @field_validator("limit_value", mode="before")
    @classmethod
    def parse_limit(cls, v: Any) -> int | None:
        """Normalize currency strings such as "$1,000,000" to integers."""
        return parse_limit_value(v)


class Policy(_CertificateModel):
    """One row of the COVERAGES table."""

    policy_information: PolicyInformation = Field(default_factory=PolicyInformation)
    insurer_letter: str | None = Field(
        default=None,
        description="Letter read from the INSR LTR column of this row",
    )
    coverages: list[Coverage] = Field(default_factory=list)

    @field_validator("policy_information", mode="before")
    @classmethod
    def default_policy_information(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("coverages", mode="before")
    @classmethod
    def default_coverages(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("coverages")
    @classmethod
    def drop_empty_limits(cls, v: list[Coverage]) -> list[Coverage]:
        """Omit coverages whose limit is zero, blank or unparsable."""
        return [c for c in v if c.limit_value is not None]


class PrimaryDetails(_CertificateModel):
    full_name: str | None = None
    email_address: str | None = None
    doing_business_as: str | None = None


class ContactInformation(_CertificateModel):
    phone_number: str | None = None
    fax_number: str | None = None
    license_number: str | None = None

    @field_validator("phone_number", "fax_number")
    @classmethod
    def digits_only(cls, v: str | None) -> str | None:
        """Strip parentheses, dashes, spaces and other formatting."""
        return normalize_phone(v)


class AddressDetails(_CertificateModel):
    address_line_1: str | None = None
    address_line_2: str | None = None
    address_line_3: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class ProducerInformation(_CertificateModel):
    primary_details: PrimaryDetails = Field(default_factory=PrimaryDetails)
    contact_information: ContactInformation = Field(default_factory=ContactInformation)
    address_details: AddressDetails = Field(default_factory=AddressDetails)

    @field_validator(
        "primary_details", "contact_information", "address_details", mode="before"
    )
    @classmethod
    def default_section(cls, v: Any) -> Any:
        return {} if v is None else v


CERTIFICATE_SECTIONS = frozenset(
    {"certificate_information", "insurers", "policies", "producer_information"}
)


class ExtractionResult(_CertificateModel):
    """
    Complete structured content of one ACORD 25 certificate.

    This model matches the required JSON structure exactly:
    {
        "certificate_information": {...},
        "insurers": [...],
        "policies": [{"policy_information": {...}, "insurer_letter": str, "coverages": [...]}],
        "producer_information": {...}
    }
    """

    certificate_information: CertificateInformation = Field(
        default_factory=CertificateInformation
    )
    insurers: list[Insurer] = Field(default_factory=list)
    policies: list[Policy] = Field(default_factory=list)
    producer_information: ProducerInformation = Field(
        default_factory=ProducerInformation
    )

    @model_validator(mode="before")
    @classmethod
    def require_certificate_sections(cls, data: Any) -> Any:
        """Reject objects that carry none of the certificate's top-level sections."""
        if isinstance(data, dict) and not CERTIFICATE_SECTIONS.intersection(data):
            found = ", ".join(sorted(map(str, data))) or "none"
            raise ValueError(
                f"Not a certificate record: expected any of "
                f"{', '.join(sorted(CERTIFICATE_SECTIONS))}; found keys: {found}"
            )
        return data

    @field_validator("certificate_information", "producer_information", mode="before")
    @classmethod
    def default_section(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("insurers", "policies", mode="before")
    @classmethod
    def default_rows(cls, v: Any) -> Any:
        return [] if v is None else v


# =============================================================================
# HTTP Envelopes
# =============================================================================


class AnalyzeResponse(BaseModel):
    """Response model for the analyze endpoint."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    message: str = Field(..., description="Status message")
    data: ExtractionResult | None = Field(
        default=None,
        description="Extracted certificate, or null when the document is not an ACORD 25",
    )
    processing_time: int = Field(
        ...,
        ge=0,
        alias="processingTime",
        description="Processing time in milliseconds",
    )
    model: str = Field(..., description="Backend that handled the request")


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time: int | None = Field(default=None, alias="processingTime")


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    success: bool = False
    error: ErrorDetail
    metadata: ErrorMetadata = Field(default_factory=ErrorMetadata)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str | None = None
    version: str = Field(default="1.0.0")
