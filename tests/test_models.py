"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from coi.backend.models import (
    AnalyzeResponse,
    BackendName,
    ContactInformation,
    Coverage,
    ErrorDetail,
    ErrorResponse,
    ExtractionResult,
    Policy,
)
from coi.backend.services.ai.validation import normalize_phone, parse_limit_value


class TestBackendName:
    """Tests for backend selection."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("inline-pdf", BackendName.INLINE_PDF),
            ("files-api-pdf", BackendName.FILES_API_PDF),
            ("multi-image", BackendName.MULTI_IMAGE),
            ("  Inline-PDF ", BackendName.INLINE_PDF),
            ("gemini-inline", BackendName.INLINE_PDF),
            ("gemini-files-api", BackendName.FILES_API_PDF),
            ("groq-images", BackendName.MULTI_IMAGE),
            ("gemini", BackendName.INLINE_PDF),
            ("gemini2", BackendName.FILES_API_PDF),
            ("groq", BackendName.MULTI_IMAGE),
        ],
    )
    def test_names_and_aliases(self, value, expected):
        assert BackendName(value) is expected

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            BackendName("gpt-4")

    def test_only_multi_image_accepts_images(self):
        assert BackendName.MULTI_IMAGE.accepts_images
        assert not BackendName.INLINE_PDF.accepts_images
        assert not BackendName.FILES_API_PDF.accepts_images


class TestLimitValues:
    """Tests for coverage limit normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("$1,000,000", 1000000),
            ("1,000,000", 1000000),
            ("$ 2,000,000", 2000000),
            (1000000, 1000000),
            (5000.0, 5000),
            ("$", None),
            ("", None),
            (None, None),
            (0, None),
            ("0", None),
            ("$0", None),
            ("N/A", None),
            (True, None),
            (float("nan"), None),
        ],
    )
    def test_parse_limit_value(self, value, expected):
        assert parse_limit_value(value) == expected

    def test_coverage_converts_currency(self):
        assert Coverage(limit_type="AGGREGATE", limit_value="$2,000,000").limit_value == 2000000

    def test_policy_drops_empty_limits(self):
        """Test that coverages with 0, null or symbol-only limits are omitted."""
        policy = Policy(
            coverages=[
                {"limit_type": "EACH OCCURRENCE", "limit_value": "$1,000,000"},
                {"limit_type": "MED EXP", "limit_value": 0},
                {"limit_type": "DAMAGE", "limit_value": None},
                {"limit_type": "PERSONAL", "limit_value": "$"},
            ]
        )
        assert [c.limit_type for c in policy.coverages] == ["EACH OCCURRENCE"]

    def test_policy_null_coverages(self):
        assert Policy(coverages=None).coverages == []


class TestContactInformation:
    """Tests for phone and fax normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("(800) 668-7020", "8006687020"),
            ("800.668.7020", "8006687020"),
            ("+1 800 668 7020", "18006687020"),
            ("", None),
            ("N/A", None),
            (None, None),
        ],
    )
    def test_normalize_phone(self, value, expected):
        assert normalize_phone(value) == expected

    def test_model_normalizes_phone_and_fax(self):
        contact = ContactInformation(phone_number="(800) 668-7020", fax_number="800-555-0100")
        assert contact.phone_number == "8006687020"
        assert contact.fax_number == "8005550100"

    def test_numeric_phone_is_coerced(self):
        assert ContactInformation(phone_number=8006687020).phone_number == "8006687020"


class TestExtractionResult:
    """Tests for the certificate schema."""

    def test_blank_strings_become_null(self, certificate_payload):
        result = ExtractionResult.model_validate(certificate_payload)
        assert result.certificate_information.revision_number is None
        assert result.producer_information.contact_information.fax_number is None

    def test_full_payload(self, certificate_payload):
        result = ExtractionResult.model_validate(certificate_payload)
        coverages = result.policies[0].coverages
        assert [c.limit_value for c in coverages] == [1000000, 100000]
        assert result.producer_information.contact_information.phone_number == "8006687020"
        assert result.producer_information.address_details.state == "IL"

    def test_missing_sections_default(self):
        """Test that absent or null sections become empty objects and lists."""
        result = ExtractionResult.model_validate(
            {"certificate_information": None, "insurers": None}
        )
        assert result.certificate_information.certificate_holder is None
        assert result.insurers == []
        assert result.policies == []
        assert result.producer_information.primary_details.full_name is None

    def test_strings_are_trimmed(self):
        result = ExtractionResult.model_validate(
            {"certificate_information": {"certificate_holder": "  Acme LLC  "}}
        )
        assert result.certificate_information.certificate_holder == "Acme LLC"

    @pytest.mark.parametrize("payload", [{}, {"error": "rate limited"}])
    def test_requires_a_certificate_section(self, payload):
        with pytest.raises(PydanticValidationError) as exc_info:
            ExtractionResult.model_validate(payload)
        assert "Not a certificate record" in str(exc_info.value)


class TestEnvelopes:
    """Tests for HTTP response models."""

    def test_analyze_response_alias(self):
        response = AnalyzeResponse(
            message="ok", data=None, processing_time=12, model="inline-pdf"
        )
        dumped = response.model_dump(by_alias=True)
        assert dumped["processingTime"] == 12
        assert dumped["data"] is None

    def test_error_response_defaults(self):
        response = ErrorResponse(error=ErrorDetail(code="BAD_REQUEST", message="nope"))
        dumped = response.model_dump(mode="json", by_alias=True)
        assert dumped["success"] is False
        assert dumped["error"]["details"] == {}
        assert "timestamp" in dumped["metadata"]
        assert dumped["metadata"]["processingTime"] is None
