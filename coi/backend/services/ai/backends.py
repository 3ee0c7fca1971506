"""
Extraction backends: one provider/model pair each, with a single fallback hop.

Every backend runs the same bounded loop over (primary, fallback). The tier
is a local value of one extract() call, so nothing leaks between requests.
A tier fails when the provider errors, when its text cannot be parsed into
a certificate, or (for backends that ask for a second opinion) when the
primary model rejects the document with the null sentinel.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import Literal

from ...config import Settings
from ...models import BackendName
from ..encoding import encode_file, mime_type_for
from ..exceptions import BackendError, MalformedResponseError, ValidationError
from .clients import Attachment, FileClient, FileState, GenerativeClient, RemoteFile
from .parsing import NULL_SENTINEL, parse_certificate, strip_code_fences
from .prompts import EXTRACTION_PROMPT, build_batch_instruction

logger = logging.getLogger(__name__)

ExhaustedPolicy = Literal["raise", "null"]


class ModelTier(str, Enum):
    """Model tier of a single backend call; escalates at most once."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class ExtractionBackend(ABC):
    """
    Base class for extraction backends.

    Subclasses prepare provider attachments from stored files and issue one
    generation request per tier.
    """

    name: BackendName
    # Treat a primary-tier "null" as a failure and ask the fallback model too
    escalate_on_rejection: bool = False
    deterministic: bool = False

    def __init__(
        self,
        client: GenerativeClient,
        primary_model: str,
        fallback_model: str,
        exhausted_policy: ExhaustedPolicy = "raise",
        prompt: str = EXTRACTION_PROMPT,
    ):
        self.client = client
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.exhausted_policy = exhausted_policy
        self.prompt = prompt

    def model_for(self, tier: ModelTier) -> str:
        return self.primary_model if tier is ModelTier.PRIMARY else self.fallback_model

    @asynccontextmanager
    async def _prepared(self, paths: list[Path]) -> AsyncIterator[list[Attachment]]:
        """Turn stored files into attachments; inline payloads by default."""
        payloads = [await asyncio.to_thread(encode_file, path) for path in paths]
        yield payloads

    def _instruction(self, attachments: list[Attachment]) -> str | None:
        return None

    def _clean(self, text: str) -> str:
        return text

    async def _generate(self, model: str, attachments: list[Attachment]) -> str:
        text = await self.client.generate(
            model,
            self.prompt,
            attachments,
            instruction=self._instruction(attachments),
            deterministic=self.deterministic,
        )
        return self._clean(text)

    async def _attempt(self, tier: ModelTier, attachments: list[Attachment]) -> str:
        """
        One generation on one tier.

        Any failure of the call comes out as BackendError or
        MalformedResponseError; cancellation is left alone.
        """
        model = self.model_for(tier)
        logger.info("%s: calling %s model %s", self.name.value, tier.value, model)
        try:
            text = await self._generate(model, attachments)
        except (BackendError, MalformedResponseError):
            raise
        except Exception as e:
            raise BackendError(
                f"{model} failed with {type(e).__name__}: {e}"
            ) from e

        result = parse_certificate(text)
        if result is None and tier is ModelTier.PRIMARY and self.escalate_on_rejection:
            raise BackendError("Primary model returned null or empty result")
        return text

    async def _run_tiers(self, attachments: list[Attachment]) -> str:
        for tier in ModelTier:
            try:
                return await self._attempt(tier, attachments)
            except (BackendError, MalformedResponseError) as e:
                if tier is ModelTier.FALLBACK:
                    logger.error(
                        "%s: fallback model %s failed: %s",
                        self.name.value,
                        self.fallback_model,
                        e,
                    )
                    raise
                logger.warning(
                    "%s: error with %s (%s), switching to fallback model %s",
                    self.name.value,
                    self.primary_model,
                    e,
                    self.fallback_model,
                )
        raise BackendError(f"{self.name.value}: no model tier produced a result")

    @abstractmethod
    def check_inputs(self, paths: list[Path]) -> None:
        """Reject input shapes this backend cannot handle."""

    async def extract(self, paths: list[Path]) -> str:
        """
        Run the extraction against this backend.

        Args:
            paths: Stored input files (one PDF, or page images).

        Returns:
            Raw model text: JSON (possibly fenced or wrapped in prose) or "null".

        Raises:
            BackendError: If both tiers failed and the policy is "raise".
            MalformedResponseError: If the fallback answer was unparsable and
                the policy is "raise".
        """
        self.check_inputs(paths)
        try:
            async with self._prepared(paths) as attachments:
                return await self._run_tiers(attachments)
        except (BackendError, MalformedResponseError) as e:
            if self.exhausted_policy == "null":
                logger.warning(
                    "%s: extraction failed after fallback, returning null: %s",
                    self.name.value,
                    e,
                )
                return NULL_SENTINEL
            if isinstance(e, MalformedResponseError):
                raise
            raise BackendError(
                f"{self.name.value} analysis failed: {e.message}",
                details={"backend": self.name.value, "originalError": e.message},
            ) from e


class InlinePdfBackend(ExtractionBackend):
    """Sends the whole (truncated) PDF inline with the extraction prompt."""

    name = BackendName.INLINE_PDF
    escalate_on_rejection = True

    def check_inputs(self, paths: list[Path]) -> None:
        if len(paths) != 1 or mime_type_for(paths[0]) != "application/pdf":
            raise ValidationError("Inline PDF backend requires exactly one PDF")


class FilesApiPdfBackend(ExtractionBackend):
    """
    Upload-then-poll backend.

    The PDF is uploaded to the provider's file store, polled until it leaves
    PROCESSING, then referenced by handle in the generation request. The
    remote file is deleted after the call whatever the outcome.
    """

    name = BackendName.FILES_API_PDF
    escalate_on_rejection = True
    deterministic = True

    def __init__(
        self,
        client: GenerativeClient,
        primary_model: str,
        fallback_model: str,
        exhausted_policy: ExhaustedPolicy = "raise",
        file_client: FileClient | None = None,
        poll_interval: float = 2.0,
        poll_timeout: float = 120.0,
        delete_timeout: float = 10.0,
        prompt: str = EXTRACTION_PROMPT,
    ):
        super().__init__(client, primary_model, fallback_model, exhausted_policy, prompt)
        self.file_client: FileClient = file_client or client  # type: ignore[assignment]
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.delete_timeout = delete_timeout

    def check_inputs(self, paths: list[Path]) -> None:
        if len(paths) != 1 or mime_type_for(paths[0]) != "application/pdf":
            raise ValidationError("Files API backend requires exactly one PDF")

    async def _wait_until_processed(self, remote: RemoteFile) -> RemoteFile:
        """Poll until the remote file leaves PROCESSING, bounded by poll_timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.poll_timeout

        current = await self.file_client.poll(remote)
        while current.state == FileState.PROCESSING:
            if loop.time() >= deadline:
                raise BackendError(
                    f"File processing timed out after {self.poll_timeout:.0f}s"
                )
            await asyncio.sleep(self.poll_interval)
            current = await self.file_client.poll(remote)
            logger.info("File processing status: %s", current.state)

        if current.state == FileState.FAILED:
            raise BackendError("File processing failed on Google servers")
        return current

    async def _delete_remote(self, remote: RemoteFile) -> None:
        try:
            await asyncio.wait_for(
                self.file_client.delete(remote), timeout=self.delete_timeout
            )
            logger.debug("Deleted remote file %s", remote.name)
        except Exception as e:
            logger.warning("Failed to cleanup remote file %s: %s", remote.name, e)

    @asynccontextmanager
    async def _prepared(self, paths: list[Path]) -> AsyncIterator[list[Attachment]]:
        path = paths[0]
        remote = await self.file_client.upload(
            path,
            mime_type_for(path),
            f"ACORD25_{int(time.time() * 1000)}.pdf",
        )
        try:
            ready = await self._wait_until_processed(remote)
            yield [ready]
        finally:
            await self._delete_remote(remote)


class MultiImageBackend(ExtractionBackend):
    """Sends up to max_images page images in one batched vision request."""

    name = BackendName.MULTI_IMAGE

    def __init__(
        self,
        client: GenerativeClient,
        primary_model: str,
        fallback_model: str,
        exhausted_policy: ExhaustedPolicy = "raise",
        max_images: int = 5,
        prompt: str = EXTRACTION_PROMPT,
    ):
        super().__init__(client, primary_model, fallback_model, exhausted_policy, prompt)
        self.max_images = max_images

    def check_inputs(self, paths: list[Path]) -> None:
        if not paths:
            raise ValidationError("No images could be converted to base64")
        if len(paths) > self.max_images:
            raise ValidationError(f"Maximum {self.max_images} images allowed")
        for path in paths:
            if not mime_type_for(path).startswith("image/"):
                raise ValidationError("Multi-image backend accepts only images")

    def _instruction(self, attachments: list[Attachment]) -> str | None:
        return build_batch_instruction(len(attachments))

    def _clean(self, text: str) -> str:
        return strip_code_fences(text)


def build_backends(
    settings: Settings,
    gemini_client: GenerativeClient,
    groq_client: GenerativeClient,
) -> dict[BackendName, ExtractionBackend]:
    """Create one instance of every backend from application settings."""
    policy = settings.fallback_exhausted_policy
    return {
        BackendName.INLINE_PDF: InlinePdfBackend(
            gemini_client,
            settings.inline_primary_model,
            settings.inline_fallback_model,
            exhausted_policy=policy,
        ),
        BackendName.FILES_API_PDF: FilesApiPdfBackend(
            gemini_client,
            settings.files_api_primary_model,
            settings.files_api_fallback_model,
            exhausted_policy=policy,
            poll_interval=settings.poll_interval_seconds,
            poll_timeout=settings.poll_timeout_seconds,
        ),
        BackendName.MULTI_IMAGE: MultiImageBackend(
            groq_client,
            settings.groq_primary_model,
            settings.groq_fallback_model,
            exhausted_policy=policy,
            max_images=settings.max_pages,
        ),
    }
