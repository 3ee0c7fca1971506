"""Tests for the provider clients with the SDK objects mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from coi.backend.services.ai.clients import FileState, GeminiClient, GroqClient, RemoteFile
from coi.backend.services.encoding import EncodedPayload
from coi.backend.services.exceptions import BackendError

PNG_PAYLOAD = EncodedPayload(mime_type="image/png", data="iVBORw0KGgo=")


@pytest.fixture
def gemini() -> GeminiClient:
    client = GeminiClient(api_key="test")
    client._client = MagicMock()
    client._client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text='{"ok": true}')
    )
    return client


@pytest.fixture
def groq() -> GroqClient:
    client = GroqClient(api_key="test")
    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content='{"ok": true}'))]
    )
    client._client = MagicMock()
    client._client.chat.completions.create = AsyncMock(return_value=completion)
    return client


class TestGeminiClient:
    """Tests for GeminiClient."""

    @pytest.mark.asyncio
    async def test_inline_generation(self, gemini):
        text = await gemini.generate("gemini-2.5-flash", "PROMPT", [PNG_PAYLOAD])

        assert text == '{"ok": true}'
        kwargs = gemini._client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"][0] == "PROMPT"
        assert len(kwargs["contents"]) == 2
        assert kwargs["config"] is None

    @pytest.mark.asyncio
    async def test_deterministic_config(self, gemini):
        """Test temperature 0, JSON output mode and zero thinking budget."""
        remote = RemoteFile("files/x", "https://files.example/x", "application/pdf", FileState.ACTIVE)

        await gemini.generate("gemini-2.5-flash-lite", "PROMPT", [remote], deterministic=True)

        config = gemini._client.aio.models.generate_content.call_args.kwargs["config"]
        assert config.temperature == 0
        assert config.response_mime_type == "application/json"
        assert config.thinking_config.thinking_budget == 0

    @pytest.mark.asyncio
    async def test_provider_error_is_backend_error(self, gemini):
        gemini._client.aio.models.generate_content.side_effect = RuntimeError("429")
        with pytest.raises(BackendError) as exc_info:
            await gemini.generate("m", "PROMPT", [PNG_PAYLOAD])
        assert "429" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_text_is_backend_error(self, gemini):
        gemini._client.aio.models.generate_content.return_value = SimpleNamespace(text="")
        with pytest.raises(BackendError):
            await gemini.generate("m", "PROMPT", [PNG_PAYLOAD])

    @pytest.mark.asyncio
    async def test_poll_maps_state(self, gemini):
        gemini._client.aio.files.get = AsyncMock(
            return_value=SimpleNamespace(
                name="files/x",
                uri="https://files.example/x",
                mime_type="application/pdf",
                state=SimpleNamespace(name="ACTIVE"),
            )
        )
        remote = await gemini.poll(RemoteFile("files/x"))
        assert remote.state == FileState.ACTIVE
        assert remote.uri == "https://files.example/x"

    @pytest.mark.asyncio
    async def test_delete(self, gemini):
        gemini._client.aio.files.delete = AsyncMock()
        await gemini.delete(RemoteFile("files/x"))
        gemini._client.aio.files.delete.assert_awaited_once_with(name="files/x")

    def test_missing_key(self):
        with pytest.raises(BackendError):
            GeminiClient(api_key="").client


class TestGroqClient:
    """Tests for GroqClient."""

    @pytest.mark.asyncio
    async def test_request_shape(self, groq):
        text = await groq.generate(
            "scout", "SYSTEM", [PNG_PAYLOAD, PNG_PAYLOAD], instruction="batch of 2 pages"
        )

        assert text == '{"ok": true}'
        kwargs = groq._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "scout"
        assert kwargs["temperature"] == 1
        assert kwargs["top_p"] == 1
        assert kwargs["max_tokens"] == 5000
        assert kwargs["stream"] is False
        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": "SYSTEM"}
        assert user["content"][0] == {"type": "text", "text": "batch of 2 pages"}
        assert user["content"][1]["image_url"]["url"].startswith("data:image/png;base64,")
        assert len(user["content"]) == 3

    @pytest.mark.asyncio
    async def test_remote_files_not_supported(self, groq):
        with pytest.raises(BackendError):
            await groq.generate("scout", "SYSTEM", [RemoteFile("files/x")])

    @pytest.mark.asyncio
    async def test_empty_content(self, groq):
        groq._client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        )
        with pytest.raises(BackendError) as exc_info:
            await groq.generate("scout", "SYSTEM", [PNG_PAYLOAD])
        assert "No content" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_no_choices(self, groq):
        groq._client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(BackendError) as exc_info:
            await groq.generate("scout", "SYSTEM", [PNG_PAYLOAD])
        assert "No choices" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_aclose(self, groq):
        groq._client.close = AsyncMock()
        await groq.aclose()
        groq._client.close.assert_awaited_once()

    def test_missing_key(self):
        with pytest.raises(BackendError):
            GroqClient(api_key="").client


def test_remote_file_defaults():
    remote = RemoteFile(name="files/x")
    assert remote.state == FileState.PROCESSING
