"""
Base64 encoding of stored files into backend-ready inline payloads.
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

MIME_TYPES: dict[str, str] = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
}


@dataclass(frozen=True)
class EncodedPayload:
    """Base64 representation of one file, tagged with its mime type."""

    mime_type: str
    data: str

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def mime_type_for(path: Path | str) -> str:
    """
    Resolve a mime type from a file extension.

    Raises:
        ValidationError: If the extension is not in the supported table.
    """
    suffix = Path(path).suffix.lower()
    try:
        return MIME_TYPES[suffix]
    except KeyError:
        raise ValidationError(
            f"Unsupported file extension '{suffix or '(none)'}'. "
            f"Supported: {', '.join(sorted(MIME_TYPES))}"
        ) from None


def encode_file(path: Path | str) -> EncodedPayload:
    """Read a file and return its base64 payload."""
    mime_type = mime_type_for(path)
    data = base64.b64encode(Path(path).read_bytes()).decode("utf-8")
    logger.debug("Encoded %s as %s (%d base64 chars)", path, mime_type, len(data))
    return EncodedPayload(mime_type=mime_type, data=data)
