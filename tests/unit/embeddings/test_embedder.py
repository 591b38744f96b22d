"""Unit tests for HuggingFaceEmbedder with a mocked sentence-transformers model."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from incremental_rag.embeddings.embedder import HuggingFaceEmbedder
from incremental_rag.models.exceptions import EmbeddingModelError


@pytest.fixture
def model():
    model = MagicMock()
    model.get_sentence_embedding_dimension.return_value = 384
    model.encode.side_effect = lambda texts, **kwargs: np.array([[float(len(text)), 1.0] for text in texts])
    return model


@pytest.fixture
def embedder(config):
    config.embedding_dimension = 384
    return HuggingFaceEmbedder(config)


class TestModelLoading:
    """Test cases for lazy model loading."""

    def test_not_loaded_until_used(self, embedder, config):
        assert embedder._model is None
        assert embedder._device == "cpu"
        assert embedder.model_name == config.embedding_model
        assert embedder.embedding_dimension == 384

    @patch('sentence_transformers.SentenceTransformer')
    def test_loaded_on_first_access(self, sentence_transformer, embedder, model, config):
        sentence_transformer.return_value = model

        assert embedder.model is model
        assert embedder.model is model

        sentence_transformer.assert_called_once_with(config.embedding_model, device="cpu", cache_folder=None)

    @patch('sentence_transformers.SentenceTransformer')
    def test_cache_directory(self, sentence_transformer, config, model):
        config.embedding_cache_dir = Path("/tmp/models")
        sentence_transformer.return_value = model

        _ = HuggingFaceEmbedder(config).model

        assert sentence_transformer.call_args.kwargs["cache_folder"] == "/tmp/models"

    @patch('sentence_transformers.SentenceTransformer')
    def test_model_dimension_wins(self, sentence_transformer, embedder, model):
        model.get_sentence_embedding_dimension.return_value = 768
        sentence_transformer.return_value = model

        _ = embedder.model

        assert embedder.embedding_dimension == 768

    @patch('sentence_transformers.SentenceTransformer')
    def test_load_failure(self, sentence_transformer, embedder):
        sentence_transformer.side_effect = OSError("model not found")

        with pytest.raises(EmbeddingModelError) as exc_info:
            _ = embedder.model

        assert exc_info.value.context["operation"] == "load_model"
        assert not exc_info.value.transient
        assert embedder._model is None

    @pytest.mark.asyncio
    @patch('sentence_transformers.SentenceTransformer')
    async def test_initialize_loads_model(self, sentence_transformer, embedder, model):
        sentence_transformer.return_value = model

        await embedder.initialize()

        assert embedder._model is model


class TestEmbedding:
    """Test cases for embedding generation."""

    @pytest.fixture(autouse=True)
    def loaded(self, embedder, model):
        embedder._model = model

    @pytest.mark.asyncio
    async def test_single_text(self, embedder, model):
        assert await embedder.generate_embedding("  hello  ") == [5.0, 1.0]

        assert model.encode.call_args.args[0] == ["hello"]
        assert model.encode.call_args.kwargs["normalize_embeddings"] is True

    @pytest.mark.asyncio
    async def test_blank_text_skips_model(self, embedder, model):
        result = await embedder.generate_embedding("   \n\t")

        assert result == [0.0] * 384
        model.encode.assert_not_called()

    @pytest.mark.asyncio
    async def test_batch_keeps_positions(self, embedder, model):
        result = await embedder.generate_batch_embeddings(["abc", "", "hello", "   "])

        assert result[0] == [3.0, 1.0]
        assert result[1] == [0.0] * 384
        assert result[2] == [5.0, 1.0]
        assert result[3] == [0.0] * 384
        model.encode.assert_called_once()
        assert model.encode.call_args.args[0] == ["abc", "hello"]
        assert model.encode.call_args.kwargs["batch_size"] == embedder.config.embedding_batch_size

    @pytest.mark.asyncio
    async def test_empty_batch(self, embedder, model):
        assert await embedder.generate_batch_embeddings([]) == []
        model.encode.assert_not_called()

    @pytest.mark.asyncio
    async def test_out_of_memory_is_transient(self, embedder, model):
        model.encode.side_effect = RuntimeError("CUDA out of memory. Tried to allocate 2.00 GiB")

        with pytest.raises(EmbeddingModelError) as exc_info:
            await embedder.generate_batch_embeddings(["a", "b"])

        assert exc_info.value.transient
        assert exc_info.value.context["operation"] == "generate_batch_embeddings"

    @pytest.mark.asyncio
    async def test_other_failures_are_permanent(self, embedder, model):
        model.encode.side_effect = ValueError("bad input")

        with pytest.raises(EmbeddingModelError) as exc_info:
            await embedder.generate_embedding("a")

        assert not exc_info.value.transient
        assert exc_info.value.context["operation"] == "generate_embedding"
