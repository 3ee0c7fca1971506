"""
Provider clients behind narrow interfaces.

Backends only see upload / poll / delete / generate. The concrete SDKs
(google-genai for Gemini, the OpenAI SDK against Groq's OpenAI-compatible
endpoint) are created lazily and never referenced outside this module.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Union

from ..encoding import EncodedPayload
from ..exceptions import BackendError

logger = logging.getLogger(__name__)


class FileState:
    """Remote processing states reported by the Files API."""

    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"
    UNSPECIFIED = "STATE_UNSPECIFIED"


@dataclass(frozen=True)
class RemoteFile:
    """Handle to a file uploaded to a provider's file store."""

    name: str
    uri: str | None = None
    mime_type: str | None = None
    state: str = FileState.PROCESSING


Attachment = Union[EncodedPayload, RemoteFile]


class GenerativeClient(Protocol):
    async def generate(
        self,
        model: str,
        prompt: str,
        attachments: list[Attachment],
        *,
        instruction: str | None = None,
        deterministic: bool = False,
    ) -> str: ...


class FileClient(Protocol):
    async def upload(self, path: Path, mime_type: str, display_name: str) -> RemoteFile: ...

    async def poll(self, remote: RemoteFile) -> RemoteFile: ...

    async def delete(self, remote: RemoteFile) -> None: ...


# =============================================================================
# Gemini
# =============================================================================


def _state_name(state: Any) -> str:
    if state is None:
        return FileState.UNSPECIFIED
    return str(getattr(state, "name", None) or getattr(state, "value", state))


class GeminiClient:
    """Gemini access through google-genai's async surface."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client = None

    @property
    def client(self):
        """Lazy-load the google-genai client."""
        if self._client is None:
            if not self.api_key:
                raise BackendError(
                    "Gemini API key not provided. Set GEMINI_API_KEY environment variable."
                )
            try:
                from google import genai

                self._client = genai.Client(api_key=self.api_key)
            except ImportError as e:
                raise BackendError(
                    "google-genai library not installed. Run: pip install google-genai"
                ) from e
        return self._client

    @staticmethod
    def _to_remote(file: Any) -> RemoteFile:
        return RemoteFile(
            name=file.name,
            uri=getattr(file, "uri", None),
            mime_type=getattr(file, "mime_type", None),
            state=_state_name(getattr(file, "state", None)),
        )

    async def upload(self, path: Path, mime_type: str, display_name: str) -> RemoteFile:
        from google.genai import types

        try:
            file = await self.client.aio.files.upload(
                file=str(path),
                config=types.UploadFileConfig(
                    display_name=display_name,
                    mime_type=mime_type,
                ),
            )
        except Exception as e:
            logger.exception("Gemini file upload failed")
            raise BackendError(f"Gemini file upload failed: {e}") from e
        return self._to_remote(file)

    async def poll(self, remote: RemoteFile) -> RemoteFile:
        try:
            file = await self.client.aio.files.get(name=remote.name)
        except Exception as e:
            raise BackendError(f"Gemini file status check failed: {e}") from e
        return self._to_remote(file)

    async def delete(self, remote: RemoteFile) -> None:
        await self.client.aio.files.delete(name=remote.name)

    async def generate(
        self,
        model: str,
        prompt: str,
        attachments: list[Attachment],
        *,
        instruction: str | None = None,
        deterministic: bool = False,
    ) -> str:
        from google.genai import types

        contents: list[Any] = [prompt]
        if instruction:
            contents.append(instruction)
        for attachment in attachments:
            if isinstance(attachment, RemoteFile):
                contents.append(
                    types.Part.from_uri(
                        file_uri=attachment.uri,
                        mime_type=attachment.mime_type or "application/pdf",
                    )
                )
            else:
                contents.append(
                    types.Part.from_bytes(
                        data=attachment.to_bytes(),
                        mime_type=attachment.mime_type,
                    )
                )

        config = None
        if deterministic:
            # Literal extraction: no sampling, JSON output, no thinking budget
            config = types.GenerateContentConfig(
                temperature=0,
                response_mime_type="application/json",
                thinking_config=types.ThinkingConfig(thinking_budget=0),
            )

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            logger.error("Gemini generation failed (%s): %s", model, e)
            raise BackendError(f"Gemini generation failed: {e}") from e

        if not response.text:
            raise BackendError(f"Empty response from Gemini ({model})")
        return response.text


# =============================================================================
# Groq
# =============================================================================


class GroqClient:
    """Groq vision models via the OpenAI SDK and Groq's OpenAI-compatible API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.groq.com/openai/v1",
        timeout: float = 15.0,
        max_tokens: int = 5000,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = None

    @property
    def client(self):
        """Lazy-load the async OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise BackendError(
                    "Groq API key not provided. Set GROQ_API_KEY environment variable."
                )
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(
                    api_key=self.api_key,
                    base_url=self.base_url,
                    timeout=self.timeout,
                )
            except ImportError as e:
                raise BackendError(
                    "openai library not installed. Run: pip install openai"
                ) from e
        return self._client

    async def generate(
        self,
        model: str,
        prompt: str,
        attachments: list[Attachment],
        *,
        instruction: str | None = None,
        deterministic: bool = False,
    ) -> str:
        content: list[dict[str, Any]] = [
            {"type": "text", "text": instruction or "Extract the data from these pages."},
        ]
        for attachment in attachments:
            if isinstance(attachment, RemoteFile):
                raise BackendError("Groq does not accept uploaded file references")
            content.append({
                "type": "image_url",
                "image_url": {"url": attachment.data_uri},
            })

        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": prompt},
                    {"role": "user", "content": content},
                ],
                temperature=0 if deterministic else 1,
                max_tokens=self.max_tokens,
                top_p=1,
                stream=False,
            )
        except Exception as e:
            logger.error("Groq completion failed (%s): %s", model, e)
            raise BackendError(f"Groq completion failed: {e}") from e

        if not completion.choices:
            raise BackendError("No choices received from Groq API")
        text = completion.choices[0].message.content
        if not text:
            raise BackendError("No content received from Groq API")
        return text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
