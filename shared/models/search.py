"""Pydantic models for retrieval results and answers."""

from pydantic import BaseModel

from shared.models.index import DocumentChunk


class SearchResult(BaseModel):
    """A chunk ranked against a query, with its (possibly boosted) similarity."""

    chunk: DocumentChunk
    similarity: float


class SourceItem(BaseModel):
    """A retrieved passage as returned to callers, without the raw vector."""

    chunk_id: str
    path: str
    file: str
    similarity: float
    content: str
    tags: list[str] = []


class QueryAnswer(BaseModel):
    """The chat model's answer plus the passages it was grounded on."""

    question: str
    answer: str
    sources: list[SourceItem]
