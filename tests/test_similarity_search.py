"""Tests for cosine ranking and the context boost."""

import math

import pytest

from services.vault_rag.SimilaritySearch import apply_boost, cosine_similarity, search
from shared.exceptions import EmptyCorpusError
from shared.models.index import ChunkMetadata, DocumentChunk, FileVersion


def make_chunk(chunk_id: str, embedding: list[float] | None, path: str | None = None) -> DocumentChunk:
    path = path or chunk_id.split(":")[0]
    return DocumentChunk(
        id=chunk_id,
        file_version=FileVersion(path=path, mtime=0.0, size=0, hash="0"),
        content=f"content of {chunk_id}",
        metadata=ChunkMetadata(file=path.split("/")[-1], path=path, chunk_index=0, total_chunks=1),
        embedding=embedding,
        embedding_model="embed-a" if embedding else None,
    )


class TestCosineSimilarity:
    """Test the similarity measure."""

    def test_self_similarity_is_one(self):
        v = [0.3, -1.2, 4.0]
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_bounds(self):
        pairs = [
            ([1.0, 0.0], [0.0, 1.0]),
            ([1.0, 2.0], [-1.0, -2.0]),
            ([0.5, 0.5, 0.1], [0.2, -0.9, 3.0]),
        ]
        for a, b in pairs:
            assert -1.0 - 1e-9 <= cosine_similarity(a, b) <= 1.0 + 1e-9

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_zero_magnitude_is_nan(self):
        assert math.isnan(cosine_similarity([0.0, 0.0], [1.0, 1.0]))

    def test_dimension_mismatch_raises(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])


class TestBoost:
    """Test the context boost."""

    def test_positive_scores_are_multiplied(self):
        assert apply_boost(0.5, 1.2) == pytest.approx(0.6)

    def test_negative_scores_move_toward_zero(self):
        assert apply_boost(-0.5, 1.2) == pytest.approx(-0.4)

    def test_boost_is_monotonic(self):
        scores = [-1.0, -0.4, 0.0, 0.2, 0.9]
        boosted = [apply_boost(s, 1.2) for s in scores]
        assert boosted == sorted(boosted)
        assert all(b >= s for s, b in zip(scores, boosted))

    def test_context_chunk_never_ranks_lower(self):
        chunks = [make_chunk("a.md:0", [1.0, 0.2]), make_chunk("b.md:0", [1.0, 0.25])]
        plain = search([1.0, 0.0], chunks, threshold=0.0)
        boosted = search([1.0, 0.0], chunks, context_path="b.md", threshold=0.0)

        assert [r.chunk.id for r in plain] == ["a.md:0", "b.md:0"]
        assert [r.chunk.id for r in boosted] == ["b.md:0", "a.md:0"]

    def test_boost_applies_before_threshold(self):
        chunks = [make_chunk("note.md:0", [0.65, 0.76])]

        assert search([1.0, 0.0], chunks, threshold=0.7) == []
        results = search([1.0, 0.0], chunks, context_path="note.md", threshold=0.7)
        assert len(results) == 1
        assert results[0].similarity > 0.7


class TestSearch:
    """Test ranking, filtering and edge cases."""

    def test_threshold_and_top_k(self):
        chunks = [
            make_chunk("a.md:0", [1.0, 0.0]),
            make_chunk("b.md:0", [0.9, 0.1]),
            make_chunk("c.md:0", [0.0, 1.0]),
        ]

        results = search([1.0, 0.0], chunks, threshold=0.7, top_k=5)

        assert [r.chunk.id for r in results] == ["a.md:0", "b.md:0"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].similarity >= results[1].similarity

    def test_top_k_limits_results(self):
        chunks = [make_chunk(f"n{i}.md:0", [1.0, i / 100]) for i in range(10)]

        assert len(search([1.0, 0.0], chunks, threshold=0.0, top_k=3)) == 3

    def test_ties_keep_input_order(self):
        chunks = [make_chunk(f"n{i}.md:0", [2.0, 2.0]) for i in range(4)]

        results = search([1.0, 1.0], chunks, threshold=0.0)

        assert [r.chunk.id for r in results] == [c.id for c in chunks]

    def test_mismatched_dimensions_are_skipped(self):
        chunks = [make_chunk("old.md:0", [1.0, 0.0, 0.0]), make_chunk("new.md:0", [1.0, 0.0])]

        results = search([1.0, 0.0], chunks, threshold=0.0)

        assert [r.chunk.id for r in results] == ["new.md:0"]

    def test_zero_vector_chunk_never_matches(self):
        chunks = [make_chunk("zero.md:0", [0.0, 0.0]), make_chunk("a.md:0", [1.0, 0.0])]

        results = search([1.0, 0.0], chunks, threshold=-1.0)

        assert [r.chunk.id for r in results] == ["a.md:0"]

    def test_no_embedded_chunks_raises(self):
        with pytest.raises(EmptyCorpusError):
            search([1.0], [make_chunk("a.md:0", None)])
        with pytest.raises(EmptyCorpusError):
            search([1.0], [])

    def test_nothing_above_threshold_is_empty_not_error(self):
        chunks = [make_chunk("a.md:0", [0.0, 1.0])]

        assert search([1.0, 0.0], chunks, threshold=0.5) == []
