"""Unit tests for OpenAIEmbedder and provider selection."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from incremental_rag.embeddings import HuggingFaceEmbedder, OpenAIEmbedder, create_embedding_provider
from incremental_rag.models import ConfigurationError, EmbeddingModelError
from pydantic import SecretStr

_REQUEST = httpx.Request("POST", "https://api.openai.example/v1/embeddings")


def _response(*vectors, indexes=None):
    indexes = indexes or range(len(vectors))
    return SimpleNamespace(
        data=[SimpleNamespace(index=i, embedding=v) for i, v in zip(indexes, vectors, strict=True)],
        usage=SimpleNamespace(total_tokens=7),
    )


class TestOpenAIEmbedder:
    """Test cases for OpenAIEmbedder."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=_response([0.1, 0.2]))
        client.close = AsyncMock()
        return client

    @pytest.fixture
    def embedder(self, config, client):
        return OpenAIEmbedder(config, client=client)

    def test_known_model_dimension(self, embedder):
        assert embedder.model_name == "text-embedding-3-small"
        assert embedder.embedding_dimension == 1536

    @pytest.mark.asyncio
    async def test_generate_embedding(self, embedder, client):
        result = await embedder.generate_embedding("hello")

        assert result == [0.1, 0.2]
        client.embeddings.create.assert_awaited_once_with(input=["hello"], model="text-embedding-3-small")

    @pytest.mark.asyncio
    async def test_blank_text_is_not_sent(self, embedder, client):
        result = await embedder.generate_embedding("  ")

        assert len(result) == 1536
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_batch_results_follow_input_order(self, embedder, client):
        client.embeddings.create.return_value = _response([2.0], [1.0], indexes=[1, 0])

        result = await embedder.generate_batch_embeddings(["first", "second"])

        assert result == [[1.0], [2.0]]

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self, embedder, client):
        client.embeddings.create.side_effect = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=_REQUEST), body=None
        )

        with pytest.raises(EmbeddingModelError) as exc_info:
            await embedder.generate_embedding("hello")

        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, embedder, client):
        client.embeddings.create.side_effect = openai.APIConnectionError(request=_REQUEST)

        with pytest.raises(EmbeddingModelError) as exc_info:
            await embedder.generate_embedding("hello")

        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_authentication_error_is_permanent(self, embedder, client):
        client.embeddings.create.side_effect = openai.AuthenticationError(
            "bad key", response=httpx.Response(401, request=_REQUEST), body=None
        )

        with pytest.raises(EmbeddingModelError) as exc_info:
            await embedder.generate_embedding("hello")

        assert not exc_info.value.transient
        assert exc_info.value.context["operation"] == "embeddings.create"

    @pytest.mark.asyncio
    async def test_close(self, embedder, client):
        await embedder.close()

        client.close.assert_awaited_once()


class TestCreateEmbeddingProvider:
    """Test cases for create_embedding_provider."""

    def test_huggingface_is_default(self, config):
        assert isinstance(create_embedding_provider(config), HuggingFaceEmbedder)

    def test_openai_backend(self, config):
        config.embedding_backend = "openai"
        config.openai_api_key = SecretStr("sk-test")

        assert isinstance(create_embedding_provider(config), OpenAIEmbedder)

    def test_openai_backend_needs_credentials(self, config):
        config.embedding_backend = "openai"
        config.openai_api_key = None
        config.openai_base_url = None

        with pytest.raises(ConfigurationError):
            create_embedding_provider(config)

    def test_unknown_backend(self, config):
        config.embedding_backend = "word2vec"

        with pytest.raises(ConfigurationError):
            create_embedding_provider(config)
