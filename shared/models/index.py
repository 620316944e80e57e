"""Pydantic models for the persisted vault index.

Hierarchy:
  DocumentRef      : a document as enumerated by the content source.
  FileVersion      : fingerprint of one document's content state.
  FrontMatterValue : tagged front-matter value (string | number | list | unknown).
  ChunkDraft       : chunker output, not yet bound to a file version.
  DocumentChunk    : one indexed unit, optionally carrying its embedding.
  VaultIndex       : the aggregate root written to disk.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

INDEX_FORMAT_VERSION = "1.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentRef(BaseModel):
    """A document known to the content source.

    Attributes:
        path: Vault-relative POSIX path, the document's unique key.
        name: File name including extension.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    name: str


class DocumentStat(BaseModel):
    """Size and modification time reported by the content source."""

    mtime: float
    size: int


class FileVersion(BaseModel):
    """Fingerprint of a document. Equal fields mean equal content state."""

    path: str
    mtime: float
    size: int
    hash: str


################ FRONT-MATTER ##################
class FrontMatterString(BaseModel):
    kind: Literal["string"] = "string"
    value: str


class FrontMatterNumber(BaseModel):
    kind: Literal["number"] = "number"
    value: float


class FrontMatterList(BaseModel):
    kind: Literal["list"] = "list"
    value: list[str]


class FrontMatterUnknown(BaseModel):
    kind: Literal["unknown"] = "unknown"
    raw: str


FrontMatterValue = Annotated[
    Union[FrontMatterString, FrontMatterNumber, FrontMatterList, FrontMatterUnknown],
    Field(discriminator="kind"),
]


################ CHUNKS ##################
class ChunkMetadata(BaseModel):
    """Positional and structural metadata of a chunk.

    Attributes:
        file:          File name of the source document.
        path:          Vault-relative path of the source document.
        tags:          Tags found in the document, shared by all its chunks.
        frontmatter:   Parsed front-matter, shared by all chunks of the document.
        chunk_index:   Zero-based ordinal of this chunk within the document.
        total_chunks:  Number of chunks produced for the document.
        start_offset:  Character offset of the chunk's first paragraph in the raw content.
        end_offset:    Character offset just past the chunk's last paragraph.
    """

    file: str
    path: str
    tags: list[str] = []
    frontmatter: dict[str, FrontMatterValue] = {}
    chunk_index: int
    total_chunks: int
    start_offset: int | None = None
    end_offset: int | None = None


class ChunkDraft(BaseModel):
    """A chunk as produced by the chunker, before it is stored."""

    id: str
    content: str
    metadata: ChunkMetadata


class DocumentChunk(BaseModel):
    """One indexed unit of a document.

    The file_version is a copy taken at indexing time, not a live reference.
    A non-null embedding always comes with the name of the model that produced it.
    """

    id: str
    file_version: FileVersion
    content: str
    metadata: ChunkMetadata
    embedding: list[float] | None = None
    embedding_model: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def has_embedding_for(self, model: str) -> bool:
        return bool(self.embedding) and self.embedding_model == model


################ INDEX ##################
class IndexSettings(BaseModel):
    """Settings the index was built with."""

    model_config = ConfigDict(frozen=True)

    embedding_model: str
    chunk_size: int = 1000
    chunk_overlap: int = 200


class IndexStats(BaseModel):
    """Derived counters, recomputed after every mutation."""

    total_files: int = 0
    total_chunks: int = 0
    total_embeddings: int = 0
    last_full_index: datetime | None = None


class VaultIndex(BaseModel):
    """The aggregate root persisted to disk. Unknown fields are ignored on load."""

    model_config = ConfigDict(extra="ignore")

    # required on load, a file without it is rebuilt
    version: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    settings: IndexSettings
    files: dict[str, FileVersion] = {}
    chunks: dict[str, DocumentChunk] = {}
    stats: IndexStats = Field(default_factory=IndexStats)


class IndexStatsReport(IndexStats):
    """Stats as reported to callers, with size figures computed on demand."""

    embedding_model: str
    index_size: int = 0
    avg_chunk_size: float = 0.0
    incomplete_documents: int = 0
