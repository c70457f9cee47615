"""
Unit tests for the Gemini embedding and translation clients
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import Mock

import aiohttp
import pytest

from providers.translator import GeminiTranslator
from providers.vector_embedder import VectorEmbedder
from rag.errors import EmbeddingError, TranslationError


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload or {}
        self._text = text

    async def json(self):
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Records POST calls and replays a canned response or raises"""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, json=None):
        self.calls.append((url, json))
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


def embedding_payload(size):
    return {"embedding": {"values": [0.01] * size}}


def make_embedder(session, **kwargs):
    return VectorEmbedder(api_key="test-key", expected_dimensions=768, session=session, **kwargs)


class TestVectorEmbedder:

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(ValueError):
            VectorEmbedder()

    @pytest.mark.asyncio
    async def test_embed_returns_vector(self):
        session = FakeSession(FakeResponse(payload=embedding_payload(768)))
        embedder = make_embedder(session)

        vector = await embedder.embed("employee   handbook\nsection")

        assert len(vector) == 768
        url, payload = session.calls[0]
        assert url.endswith("models/text-embedding-004:embedContent")
        assert payload["content"]["parts"][0]["text"] == "employee handbook section"

    @pytest.mark.asyncio
    async def test_single_request_per_call(self):
        session = FakeSession(FakeResponse(payload=embedding_payload(768)))
        embedder = make_embedder(session)

        await embedder.embed("same text")
        await embedder.embed("same text")

        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_long_text_truncated(self):
        session = FakeSession(FakeResponse(payload=embedding_payload(768)))
        embedder = make_embedder(session, max_chars=100)

        result = await embedder.generate_embedding("a" * 500)

        assert result.truncated is True
        assert len(session.calls[0][1]["content"]["parts"][0]["text"]) == 100

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self):
        session = FakeSession(FakeResponse(payload=embedding_payload(768)))
        embedder = make_embedder(session)

        with pytest.raises(EmbeddingError):
            await embedder.embed("   ")
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        session = FakeSession(FakeResponse(status=429, text="quota exceeded"))
        embedder = make_embedder(session)

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed("leave policy")

        assert "429" in exc_info.value.error_message
        assert exc_info.value.code == "EMBEDDING_ERROR"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()])
    async def test_network_error_raises(self, error):
        embedder = make_embedder(FakeSession(error=error))

        with pytest.raises(EmbeddingError):
            await embedder.embed("leave policy")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"embedding": {}}, {"embedding": {"values": []}}])
    async def test_missing_values_raise(self, payload):
        embedder = make_embedder(FakeSession(FakeResponse(payload=payload)))

        with pytest.raises(EmbeddingError):
            await embedder.embed("leave policy")

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self):
        embedder = make_embedder(FakeSession(FakeResponse(payload=embedding_payload(1536))))

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed("leave policy")

        assert "1536" in exc_info.value.error_message

    @pytest.mark.asyncio
    async def test_owned_session_closed_by_close(self, monkeypatch):
        created = []

        def client_session(**kwargs):
            session = FakeSession(FakeResponse(payload=embedding_payload(768)))
            created.append(session)
            return session

        monkeypatch.setattr(aiohttp, "ClientSession", client_session)
        embedder = VectorEmbedder(api_key="test-key", expected_dimensions=768)

        await embedder.embed("leave policy")
        await embedder.close()

        assert len(created) == 1
        assert created[0].closed is True

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, monkeypatch):
        created = []

        def client_session(**kwargs):
            session = FakeSession(FakeResponse(payload=embedding_payload(768)))
            created.append(session)
            return session

        monkeypatch.setattr(aiohttp, "ClientSession", client_session)

        async with VectorEmbedder(api_key="test-key", expected_dimensions=768) as embedder:
            await embedder.embed("leave policy")

        assert created[0].closed is True

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self):
        session = FakeSession(FakeResponse(payload=embedding_payload(768)))
        embedder = make_embedder(session)

        await embedder.close()

        assert session.closed is False


def gemini_response(*texts):
    parts = [SimpleNamespace(text=t) for t in texts]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


class TestGeminiTranslator:

    @pytest.mark.asyncio
    async def test_translate(self):
        model = Mock()
        model.generate_content.return_value = gemini_response('"vacation policy"\n')
        translator = GeminiTranslator(api_key="test-key", model_client=model)

        translated = await translator.translate("política de vacaciones", "English")

        assert translated == "vacation policy"
        prompt = model.generate_content.call_args.args[0]
        assert "English" in prompt
        assert "política de vacaciones" in prompt

    @pytest.mark.asyncio
    async def test_empty_reply_raises(self):
        model = Mock()
        model.generate_content.return_value = SimpleNamespace(candidates=[])
        translator = GeminiTranslator(api_key="test-key", model_client=model)

        with pytest.raises(TranslationError) as exc_info:
            await translator.translate("hola", "English")

        assert exc_info.value.target_language == "English"

    @pytest.mark.asyncio
    async def test_provider_error_raises(self):
        model = Mock()
        model.generate_content.side_effect = RuntimeError("429 quota exceeded")
        translator = GeminiTranslator(api_key="test-key", model_client=model)

        with pytest.raises(TranslationError) as exc_info:
            await translator.translate("hola", "English")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
