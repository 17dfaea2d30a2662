"""Unit tests for the JSON-backed vector store."""

import json
import random
from unittest.mock import patch

import pytest

from nutrition_assistant.application.exceptions import EmbeddingDimensionError
from nutrition_assistant.domain.models import Document, DocumentMetadata
from nutrition_assistant.services.vector_store import VectorStore, cosine_similarity


def _doc(doc_id: str, text: str = "", **metadata) -> Document:
    return Document(id=doc_id, text=text or f"Document {doc_id}", metadata=DocumentMetadata(**metadata))


class TestCosineSimilarity:
    """Test suite for cosine_similarity."""

    def test_identical_vectors(self):
        """Test that a vector is exactly similar to itself."""
        rng = random.Random(7)
        for _ in range(200):
            u = [rng.uniform(-1.0, 1.0) for _ in range(8)]
            assert cosine_similarity(u, u) == 1.0
        assert cosine_similarity([0.1, 0.2, 0.3], [1.0, 2.0, 3.0]) == 1.0

    def test_orthogonal_vectors(self):
        """Test orthogonal vectors."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        """Test opposite vectors."""
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == -1.0
        assert cosine_similarity([0.3, -0.7, 0.2], [-0.3, 0.7, -0.2]) == -1.0

    def test_zero_norm_is_zero(self):
        """Test that a zero vector scores 0.0."""
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch_raises(self):
        """Test vectors of different length."""
        with pytest.raises(EmbeddingDimensionError):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])

    def test_symmetric(self):
        """Test that similarity is symmetric."""
        rng = random.Random(11)
        for _ in range(50):
            u = [rng.uniform(-1.0, 1.0) for _ in range(8)]
            v = [rng.uniform(-1.0, 1.0) for _ in range(8)]
            assert cosine_similarity(u, v) == cosine_similarity(v, u)
            assert -1.0 <= cosine_similarity(u, v) <= 1.0


class TestSearch:
    """Test suite for VectorStore.search."""

    async def test_ranks_by_similarity(self, vector_store):
        """Test that results are ranked by similarity."""
        await vector_store.add_batch(
            [_doc("a"), _doc("b"), _doc("c")],
            [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.7, 0.7, 0.0]],
        )

        result = await vector_store.search([1.0, 0.0, 0.0], max_results=5, min_similarity=0.5)

        assert [d.id for d in result.documents] == ["a", "c"]
        assert result.scores[0] == pytest.approx(1.0)
        assert result.scores[1] == pytest.approx(0.7071, abs=1e-3)
        assert result.total_candidates == 2

    async def test_total_candidates_counts_beyond_max_results(self, vector_store):
        """Test that total_candidates counts every qualifying document."""
        await vector_store.add_batch(
            [_doc("a"), _doc("b"), _doc("c")],
            [[1.0, 0.0], [0.9, 0.1], [0.8, 0.2]],
        )

        result = await vector_store.search([1.0, 0.0], max_results=1, min_similarity=0.5)

        assert [d.id for d in result.documents] == ["a"]
        assert result.total_candidates == 3

    async def test_cutoff_excludes_everything(self, vector_store):
        """Test a cutoff no document reaches."""
        await vector_store.add(_doc("a"), [0.0, 1.0])

        result = await vector_store.search([1.0, 0.0], min_similarity=0.5)

        assert result.documents == []
        assert result.total_candidates == 0

    async def test_empty_store(self, vector_store):
        """Test searching an empty store."""
        result = await vector_store.search([1.0, 0.0, 0.0])

        assert result.documents == []
        assert result.scores == []
        assert result.total_candidates == 0

    async def test_query_dimension_mismatch(self, vector_store):
        """Test a query of the wrong dimension."""
        await vector_store.add(_doc("a"), [1.0, 0.0, 0.0])

        with pytest.raises(EmbeddingDimensionError):
            await vector_store.search([1.0, 0.0])

    async def test_zero_query_vector_matches_nothing(self, vector_store):
        """Test that a zero query matches nothing."""
        await vector_store.add(_doc("a"), [1.0, 0.0])

        result = await vector_store.search([0.0, 0.0], min_similarity=0.1)

        assert result.total_candidates == 0

    async def test_metadata_filters(self, vector_store):
        """Test category and goal filters."""
        await vector_store.add_batch(
            [
                _doc("protein", category="nutrition_info", goals=["muscle_gain"]),
                _doc("deficit", category="weight_management", goals=["weight_loss"]),
            ],
            [[1.0, 0.0], [0.9, 0.1]],
        )

        by_category = await vector_store.search([1.0, 0.0], category="weight_management")
        by_goal = await vector_store.search([1.0, 0.0], goals=["muscle_gain"])

        assert [d.id for d in by_category.documents] == ["deficit"]
        assert [d.id for d in by_goal.documents] == ["protein"]

    async def test_stored_vector_matches_itself_at_full_cutoff(self, vector_store):
        """Test that a stored vector is found with a cutoff of 1.0."""
        rng = random.Random(3)
        vectors = [[rng.uniform(-1.0, 1.0) for _ in range(8)] for _ in range(40)]
        await vector_store.add_batch([_doc(str(i)) for i in range(len(vectors))], vectors)

        for i, vector in enumerate(vectors):
            result = await vector_store.search(vector, max_results=1, min_similarity=1.0)
            assert [d.id for d in result.documents] == [str(i)]
            assert result.scores == [1.0]


class TestWrites:
    """Test suite for store writes."""

    async def test_add_batch_length_mismatch(self, vector_store):
        """Test mismatched documents and embeddings."""
        with pytest.raises(ValueError):
            await vector_store.add_batch([_doc("a"), _doc("b")], [[1.0, 0.0]])
        assert len(vector_store) == 0

    async def test_dimension_mismatch_stores_nothing(self, vector_store):
        """Test that a bad batch stores nothing."""
        await vector_store.add(_doc("a"), [1.0, 0.0])

        with pytest.raises(EmbeddingDimensionError):
            await vector_store.add_batch([_doc("b"), _doc("c")], [[1.0, 0.0], [1.0, 0.0, 0.0]])

        assert len(vector_store) == 1
        assert vector_store.get("b") is None

    async def test_duplicate_id_overwrites(self, vector_store):
        """Test that a duplicate id overwrites the entry."""
        await vector_store.add(_doc("a", "old text"), [1.0, 0.0])
        await vector_store.add(_doc("a", "new text"), [0.0, 1.0])

        assert len(vector_store) == 1
        assert vector_store.get("a").text == "new text"
        records = json.loads(vector_store.path.read_text())
        assert len(records) == 1
        assert records[0]["text"] == "new text"

    async def test_clear(self, vector_store):
        """Test clearing the store."""
        await vector_store.add(_doc("a"), [1.0, 0.0])

        await vector_store.clear()
        result = await vector_store.search([1.0, 0.0])

        assert len(vector_store) == 0
        assert result.documents == []
        assert result.total_candidates == 0
        assert not vector_store.path.exists()

    async def test_add_batch_persists_once(self, vector_store):
        """Test that a batch writes the snapshot once."""
        with patch.object(
            VectorStore, "_write_snapshot", wraps=VectorStore._write_snapshot
        ) as write_snapshot:
            await vector_store.add_batch(
                [_doc("a"), _doc("b"), _doc("c")],
                [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]],
            )

        write_snapshot.assert_called_once()
        assert len(json.loads(vector_store.path.read_text())) == 3


class TestPersistence:
    """Test suite for the JSON snapshot file."""

    async def test_reload_from_file(self, tmp_path):
        """Test reloading documents from the snapshot."""
        path = tmp_path / "store.json"
        store = VectorStore(path)
        await store.add_batch(
            [_doc("a", "Oats are rich in fiber", category="nutrition_info", title="Oats")],
            [[0.6, 0.8]],
        )

        reloaded = VectorStore(path)
        loaded = await reloaded.load()

        assert loaded == 1
        document = reloaded.get("a")
        assert document.text == "Oats are rich in fiber"
        assert document.metadata.title == "Oats"
        result = await reloaded.search([0.6, 0.8])
        assert result.scores[0] == pytest.approx(1.0)

    async def test_snapshot_record_shape(self, vector_store):
        """Test the shape of snapshot records."""
        await vector_store.add(_doc("a", category="recipe_request"), [0.5, 0.5])

        records = json.loads(vector_store.path.read_text())

        assert set(records[0]) == {"id", "text", "metadata", "embedding"}
        assert records[0]["metadata"]["category"] == "recipe_request"
        assert records[0]["embedding"] == [0.5, 0.5]

    async def test_missing_file_loads_empty(self, tmp_path):
        """Test loading when no snapshot exists."""
        store = VectorStore(tmp_path / "absent.json")
        assert await store.load() == 0
        assert store.stats().is_ready is False

    async def test_corrupt_file_loads_empty(self, tmp_path):
        """Test loading a corrupt snapshot."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        store = VectorStore(path)

        assert await store.load() == 0
        assert len(store) == 0

    async def test_in_memory_store_without_path(self):
        """Test a store without a snapshot path."""
        store = VectorStore()
        await store.add(_doc("a"), [1.0, 0.0])
        assert store.stats().path is None
        assert store.stats().count == 1

    async def test_write_failure_keeps_memory_state(self, tmp_path):
        """Test that a failed snapshot write keeps documents in memory."""
        path = tmp_path / "store.json"
        path.mkdir()
        store = VectorStore(path)

        await store.add_batch([_doc("a"), _doc("b")], [[1.0, 0.0], [0.0, 1.0]])
        result = await store.search([1.0, 0.0])

        assert len(store) == 2
        assert [d.id for d in result.documents] == ["a"]
        assert path.is_dir()


class TestStats:
    """Test suite for store statistics."""

    async def test_stats(self, vector_store):
        """Test document count and dimension."""
        assert vector_store.stats().count == 0
        assert vector_store.stats().dimension is None

        await vector_store.add_batch([_doc("a"), _doc("b")], [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        stats = vector_store.stats()

        assert stats.count == 2
        assert stats.is_ready is True
        assert stats.dimension == 3
        assert stats.path == str(vector_store.path)
