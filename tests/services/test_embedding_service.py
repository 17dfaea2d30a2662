"""Unit tests for the embedding providers."""

import math
from unittest.mock import Mock

import pytest

from nutrition_assistant.config import Settings
from nutrition_assistant.services.embedding_service import (
    AzureOpenAIEmbeddingService,
    LocalEmbeddingService,
    create_embedding_service,
)
from nutrition_assistant.services.vector_store import cosine_similarity


class TestAzureOpenAIEmbeddingService:
    """Test suite for AzureOpenAIEmbeddingService."""

    @pytest.fixture
    def mock_openai_client(self):
        """Create a mock OpenAI client."""
        mock_client = Mock()
        mock_response = Mock()
        mock_response.data = [Mock(embedding=[0.1] * 384)]
        mock_client.embeddings.create.return_value = mock_response
        return mock_client

    @pytest.fixture
    def service(self, mock_openai_client):
        service = AzureOpenAIEmbeddingService(
            api_key="test_key", endpoint="https://test.openai.azure.com/"
        )
        service.client = mock_openai_client
        return service

    def test_initialization(self):
        """Test service initialization."""
        service = AzureOpenAIEmbeddingService(
            api_key="test_key", endpoint="https://test.openai.azure.com/"
        )
        assert service.deployment_name == "text-embedding-3-small"
        assert service.dimension == 384

    def test_missing_endpoint(self):
        """Test that an endpoint is required."""
        with pytest.raises(ValueError):
            AzureOpenAIEmbeddingService(api_key="test_key", endpoint="")

    def test_embed_text(self, service, mock_openai_client):
        """Test embedding a single text requests the configured dimensions."""
        result = service.embed_text("test text")

        assert len(result) == 384
        assert all(isinstance(x, float) for x in result)
        mock_openai_client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", dimensions=384, input="test text"
        )

    def test_embed_batch_with_batching(self, service, mock_openai_client):
        """Test that large batches are split into smaller batches."""
        mock_response = Mock()
        mock_response.data = [Mock(embedding=[0.1] * 384) for _ in range(50)]
        mock_openai_client.embeddings.create.return_value = mock_response

        result = service.embed_batch([f"text {i}" for i in range(150)], batch_size=50)

        assert len(result) == 150
        assert mock_openai_client.embeddings.create.call_count == 3


class TestLocalEmbeddingService:
    """Test suite for LocalEmbeddingService."""

    @pytest.fixture
    def service(self):
        return LocalEmbeddingService()

    def test_dimension_and_norm(self, service):
        """Test vector size and unit norm."""
        vector = service.embed_text("How much protein do I need to build muscle?")

        assert len(vector) == 384
        assert math.sqrt(sum(v * v for v in vector)) == pytest.approx(1.0)

    def test_deterministic(self, service):
        """Test that embeddings are deterministic."""
        assert service.embed_text("Fiber and vitamins") == service.embed_text("Fiber and vitamins")
        assert LocalEmbeddingService().embed_text("oats") == service.embed_text("oats")

    def test_plural_terms_share_a_direction(self, service):
        """Test that plural and singular terms share a direction."""
        assert cosine_similarity(service.embed_text("proteins"), service.embed_text("protein")) == (
            pytest.approx(1.0)
        )

    def test_related_texts_score_higher(self, service):
        """Test that related texts score higher than unrelated ones."""
        query = service.embed_text("What foods are high in protein?")
        related = service.embed_text("Protein rich foods include eggs, fish and lentils.")
        unrelated = service.embed_text("Sodium intake affects blood pressure.")

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    def test_empty_text_is_zero_vector(self, service):
        """Test that empty text embeds to a zero vector."""
        assert service.embed_text("") == [0.0] * 384
        assert service.embed_text("is it the") == [0.0] * 384

    def test_embed_batch_preserves_order(self, service):
        """Test that batch output keeps input order."""
        texts = ["fiber", "sugar", "protein"]
        assert service.embed_batch(texts) == [service.embed_text(t) for t in texts]

    def test_rejects_tiny_dimension(self):
        """Test that tiny dimensions are rejected."""
        with pytest.raises(ValueError):
            LocalEmbeddingService(dimension=8)


class TestCreateEmbeddingService:
    """Test suite for create_embedding_service."""

    def test_local_by_default(self):
        """Test that the local provider is the default."""
        settings = Settings(_env_file=None, embedding_dimensions=128)
        service = create_embedding_service(settings)
        assert isinstance(service, LocalEmbeddingService)
        assert service.dimension == 128

    def test_azure_requires_credentials(self):
        """Test that the azure provider needs credentials."""
        settings = Settings(_env_file=None, embedding_provider="azure")
        with pytest.raises(ValueError, match="ENDPOINT"):
            create_embedding_service(settings)

    def test_azure(self):
        """Test building the azure provider."""
        settings = Settings(
            _env_file=None,
            embedding_provider="azure",
            azure_openai_embedding_api_key="test_key",
            azure_openai_embedding_endpoint="https://test.openai.azure.com/",
        )
        service = create_embedding_service(settings)
        assert isinstance(service, AzureOpenAIEmbeddingService)
        assert service.dimension == 384
