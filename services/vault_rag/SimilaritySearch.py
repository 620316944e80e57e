"""Brute-force cosine ranking over the embedded chunks of the index."""

import math

from shared.exceptions import EmptyCorpusError
from shared.models.index import DocumentChunk
from shared.models.search import SearchResult

CONTEXT_BOOST = 1.2


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between two vectors of equal length.

    Returns NaN if either vector has zero magnitude, so the pair never passes
    a similarity threshold.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}.")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return math.nan
    return dot / (norm_a * norm_b)


def apply_boost(similarity: float, boost: float) -> float:
    """Raise a score by the given factor without flipping the ranking of negatives.

    Positive scores are multiplied by boost; negative scores move toward zero by
    the same relative amount.
    """
    return similarity + abs(similarity) * (boost - 1.0)


def is_in_context(chunk: DocumentChunk, context_path: str | None) -> bool:
    return bool(context_path) and chunk.metadata.path == context_path


def search(
    query_vector: list[float],
    chunks: list[DocumentChunk],
    context_path: str | None = None,
    threshold: float = 0.7,
    top_k: int = 5,
    boost: float = CONTEXT_BOOST,
) -> list[SearchResult]:
    """Rank chunks by cosine similarity to the query vector.

    Chunks of the note at context_path get their score boosted before the
    threshold is applied. Ties keep the order of the input chunks.

    Args:
        query_vector (list[float]): Embedding of the query.
        chunks (list[DocumentChunk]): Candidate chunks. Chunks without an embedding
            or with a vector of a different dimension are skipped.
        context_path (str | None): Path of the note the user is looking at.
        threshold (float): Minimum (boosted) similarity to keep a chunk.
        top_k (int): Maximum number of results.
        boost (float): Multiplier for chunks of the context note.

    Returns:
        list[SearchResult]: At most top_k results, best first.

    Raises:
        EmptyCorpusError: If none of the chunks carries an embedding.
    """
    embedded = [chunk for chunk in chunks if chunk.embedding]
    if not embedded:
        raise EmptyCorpusError()

    scored: list[SearchResult] = []
    for chunk in embedded:
        if len(chunk.embedding) != len(query_vector):
            continue
        similarity = cosine_similarity(query_vector, chunk.embedding)
        if math.isnan(similarity):
            continue
        if is_in_context(chunk, context_path):
            similarity = apply_boost(similarity, boost)
        if similarity >= threshold:
            scored.append(SearchResult(chunk=chunk, similarity=similarity))

    # sorted() is stable, equal scores keep input order
    ranked = sorted(scored, key=lambda result: result.similarity, reverse=True)
    return ranked[:top_k]
