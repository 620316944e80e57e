"""Pydantic models for content change notifications and indexing progress."""

from enum import Enum

from pydantic import BaseModel


class ChangeKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class ChangeEvent(BaseModel):
    """A change reported by the content source.

    Attributes:
        kind:      What happened to the document.
        path:      Vault-relative path of the document (the new path for renames).
        old_path:  Previous path, only set for renames.
    """

    kind: ChangeKind
    path: str
    old_path: str | None = None


class ProgressPhase(str, Enum):
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COMPLETE = "complete"


class ProgressEvent(BaseModel):
    """Progress of a reconciliation batch."""

    phase: ProgressPhase
    current: int
    total: int
    current_document: str | None = None


class SyncReport(BaseModel):
    """Outcome of one reconciliation batch.

    Attributes:
        total:         Documents considered in the batch.
        synced:        Documents chunked and fully embedded.
        failed:        Documents that raised an error (left for a later retry).
        removed:       Paths dropped because they vanished from the content source.
        failed_paths:  Paths of the failed documents.
    """

    total: int = 0
    synced: int = 0
    failed: int = 0
    removed: int = 0
    failed_paths: list[str] = []
