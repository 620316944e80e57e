"""Persistent chunk index.

Holds the VaultIndex in memory and mirrors every mutation to a JSON file.
Mutations happen on the event loop between suspension points, so readers on
the loop always see a consistent index. File I/O runs in worker threads.
"""

import asyncio
import os
import tempfile
import zlib

from pydantic import ValidationError

from shared.clients.content.ContentSourceInterface import ContentSourceInterface
from shared.exceptions import IndexCorruptionError
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import (
    INDEX_FORMAT_VERSION,
    ChunkDraft,
    DocumentChunk,
    DocumentRef,
    FileVersion,
    IndexSettings,
    IndexStats,
    IndexStatsReport,
    VaultIndex,
    utc_now,
)


def content_hash(content: str) -> str:
    """Cheap change detector for document content (adler32, hex)."""
    return format(zlib.adler32(content.encode("utf-8")) & 0xFFFFFFFF, "08x")


class IndexStore:
    """Owns the vault index and its on-disk representation."""

    def __init__(
        self,
        helper_config: HelperConfig,
        content_source: ContentSourceInterface,
        settings: IndexSettings,
        index_path: str,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._content_source = content_source
        self._settings = settings
        self._index_path = index_path
        self._index = self._new_index()
        self._save_lock = asyncio.Lock()

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def load(self) -> None:
        """Load the persisted index, falling back to an empty one.

        A missing file yields a fresh index that is written immediately. A file
        that cannot be read or parsed, carries an unknown format version, or was
        embedded with a different model than the configured one is replaced by
        an empty index stamped as fully rebuilt. This method never raises for
        problems with the stored data.
        """
        try:
            index = await asyncio.to_thread(self._read_index)
        except FileNotFoundError:
            self.logging.info("No index found at '%s'. Creating a new one.", self._index_path)
            self._index = self._new_index()
            await self.save()
            return
        except IndexCorruptionError as exc:
            self.logging.warning("Index at '%s' is unreadable, rebuilding: %s", self._index_path, exc)
            self._index = self._new_index(full_rebuild=True)
            await self.save()
            return

        if index.version != INDEX_FORMAT_VERSION:
            self.logging.warning(
                "Index format version '%s' is not supported (expected '%s'). Rebuilding.",
                index.version, INDEX_FORMAT_VERSION,
            )
            self._index = self._new_index(full_rebuild=True)
            await self.save()
            return

        self._index = index
        self._apply_settings(self._settings)
        self._prune()
        self._recompute_stats()
        self.logging.info(
            "Loaded index: %d files, %d chunks, %d embeddings.",
            self._index.stats.total_files, self._index.stats.total_chunks, self._index.stats.total_embeddings,
        )
        await self.save()

    async def save(self) -> None:
        """Persist the index atomically (temp file, fsync, rename)."""
        async with self._save_lock:
            self._index.updated_at = utc_now()
            payload = self._index.model_dump_json(indent=2)
            await asyncio.to_thread(self._write_atomic, payload)

    async def rebuild(self) -> None:
        """Discard all indexed content and start over."""
        self.logging.info("Rebuilding index from scratch.")
        self._index = self._new_index(full_rebuild=True)
        await self.save()

    async def reconfigure(self, settings: IndexSettings) -> None:
        """Adopt new index settings, rebuilding if the embedding model changed."""
        self._settings = settings
        self._apply_settings(settings)
        await self.save()

    ##########################################
    ############## FINGERPRINTS ##############
    ##########################################

    async def get_file_version(self, doc: DocumentRef, content: str | None = None) -> FileVersion:
        """Fingerprint a document as it currently is in the content source.

        Args:
            doc (DocumentRef): The document.
            content (str | None): Content already read by the caller. Hashed instead
                of reading the document again.

        Raises:
            OSError: If the document cannot be read or stat'ed.
        """
        stat = await self._content_source.stat(doc)
        if content is None:
            content = await self._content_source.read(doc)
        return FileVersion(path=doc.path, mtime=stat.mtime, size=stat.size, hash=content_hash(content))

    async def is_up_to_date(self, doc: DocumentRef) -> bool:
        stored = self._index.files.get(doc.path)
        if stored is None:
            return False
        stat = await self._content_source.stat(doc)
        if stat.mtime != stored.mtime or stat.size != stored.size:
            return False
        return await self.get_file_version(doc) == stored

    async def get_outdated_documents(self) -> list[DocumentRef]:
        """Return documents whose indexed fingerprint is missing or stale.

        Indexed paths the content source no longer lists are removed from the
        index as a side effect.

        Returns:
            list[DocumentRef]: Outdated documents in enumeration order.
        """
        documents = await self._content_source.list_documents()
        present = {doc.path for doc in documents}
        vanished = [path for path in self._index.files if path not in present]
        if vanished:
            for path in vanished:
                self._drop_path(path)
            self._recompute_stats()
            self.logging.info("Removed %d vanished document(s) from the index.", len(vanished))
            await self.save()

        outdated: list[DocumentRef] = []
        for doc in documents:
            try:
                if not await self.is_up_to_date(doc):
                    outdated.append(doc)
            except OSError as exc:
                self.logging.warning("Could not fingerprint '%s', skipping: %s", doc.path, exc)
        return outdated

    ##########################################
    ############### MUTATIONS ################
    ##########################################

    async def add_document(self, doc: DocumentRef, drafts: list[ChunkDraft], content: str | None = None) -> None:
        """Replace all chunks of a document with the given drafts (without embeddings).

        Raises:
            OSError: If the document vanished before it could be fingerprinted.
        """
        version = await self.get_file_version(doc, content)
        self._drop_path(doc.path)
        self._index.files[doc.path] = version
        now = utc_now()
        for draft in drafts:
            self._index.chunks[draft.id] = DocumentChunk(
                id=draft.id,
                file_version=version.model_copy(),
                content=draft.content,
                metadata=draft.metadata,
                created_at=now,
                updated_at=now,
            )
        self._recompute_stats()
        self.logging.debug("Indexed '%s' with %d chunk(s).", doc.path, len(drafts))
        await self.save()

    async def remove_document(self, path: str) -> None:
        """Drop a document and all its chunks. Unknown paths are a no-op."""
        if self._drop_path(path):
            self.logging.info("Removed '%s' from the index.", path)
        self._recompute_stats()
        await self.save()

    async def update_chunk_embedding(self, chunk_id: str, embedding: list[float], model: str) -> None:
        """Store the vector ``model`` produced for a chunk.

        Vectors from a model other than the configured one are dropped, e.g. when
        the model was switched while the embedding request was in flight.
        """
        chunk = self._index.chunks.get(chunk_id)
        if chunk is None:
            self.logging.debug("Chunk '%s' is not in the index anymore. Dropping its embedding.", chunk_id)
            return
        if model != self._settings.embedding_model:
            self.logging.debug(
                "Dropping embedding of '%s': made by '%s', index uses '%s'.",
                chunk_id, model, self._settings.embedding_model,
            )
            return
        chunk.embedding = embedding
        chunk.embedding_model = model
        chunk.updated_at = utc_now()
        self._recompute_stats()
        await self.save()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_settings(self) -> IndexSettings:
        return self._settings

    def get_index_path(self) -> str:
        return self._index_path

    def get_indexed_paths(self) -> set[str]:
        return set(self._index.files)

    def get_file_versions(self) -> dict[str, FileVersion]:
        return dict(self._index.files)

    def get_chunks(self, path: str | None = None) -> list[DocumentChunk]:
        chunks = list(self._index.chunks.values())
        if path is None:
            return chunks
        return sorted(
            (chunk for chunk in chunks if chunk.metadata.path == path),
            key=lambda chunk: chunk.metadata.chunk_index,
        )

    def get_searchable_chunks(self) -> list[DocumentChunk]:
        """Chunks carrying an embedding produced by the configured model."""
        model = self._settings.embedding_model
        return [chunk for chunk in self._index.chunks.values() if chunk.has_embedding_for(model)]

    def get_incomplete_paths(self) -> list[str]:
        """Indexed documents with at least one chunk lacking a valid embedding."""
        model = self._settings.embedding_model
        incomplete = {
            chunk.metadata.path
            for chunk in self._index.chunks.values()
            if not chunk.has_embedding_for(model)
        }
        return [path for path in self._index.files if path in incomplete]

    def get_stats(self) -> IndexStatsReport:
        stats = self._index.stats
        chunks = self._index.chunks.values()
        return IndexStatsReport(
            **stats.model_dump(),
            embedding_model=self._settings.embedding_model,
            index_size=len(self._index.model_dump_json()),
            avg_chunk_size=(sum(len(chunk.content) for chunk in chunks) / len(chunks)) if chunks else 0.0,
            incomplete_documents=len(self.get_incomplete_paths()),
        )

    ##########################################
    ################ INTERNAL ################
    ##########################################

    def _new_index(self, full_rebuild: bool = False) -> VaultIndex:
        stats = IndexStats(last_full_index=utc_now() if full_rebuild else None)
        return VaultIndex(version=INDEX_FORMAT_VERSION, settings=self._settings, stats=stats)

    def _read_index(self) -> VaultIndex:
        if not os.path.exists(self._index_path):
            raise FileNotFoundError(self._index_path)
        try:
            with open(self._index_path, "r", encoding="utf-8") as f:
                raw = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise IndexCorruptionError(f"cannot read index file: {exc}") from exc
        try:
            return VaultIndex.model_validate_json(raw)
        except ValidationError as exc:
            raise IndexCorruptionError(f"invalid index data ({exc.error_count()} error(s))") from exc

    def _write_atomic(self, payload: str) -> None:
        directory = os.path.dirname(os.path.abspath(self._index_path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".vault-index-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._index_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _apply_settings(self, settings: IndexSettings) -> None:
        stored_model = self._index.settings.embedding_model
        has_embeddings = any(chunk.embedding for chunk in self._index.chunks.values())
        if stored_model != settings.embedding_model and has_embeddings:
            self.logging.warning(
                "Embedding model changed from '%s' to '%s'. Rebuilding index.",
                stored_model, settings.embedding_model,
            )
            self._index = self._new_index(full_rebuild=True)
            return
        self._index.settings = settings

    def _drop_path(self, path: str) -> bool:
        known = self._index.files.pop(path, None) is not None
        stale = [chunk_id for chunk_id, chunk in self._index.chunks.items() if chunk.metadata.path == path]
        for chunk_id in stale:
            del self._index.chunks[chunk_id]
        return known or bool(stale)

    def _prune(self) -> None:
        orphans = [
            chunk_id for chunk_id, chunk in self._index.chunks.items()
            if chunk.metadata.path not in self._index.files
        ]
        for chunk_id in orphans:
            del self._index.chunks[chunk_id]
        if orphans:
            self.logging.warning("Pruned %d orphaned chunk(s) from the index.", len(orphans))

        by_path: dict[str, list[DocumentChunk]] = {}
        for chunk in self._index.chunks.values():
            by_path.setdefault(chunk.metadata.path, []).append(chunk)
        for path, chunks in by_path.items():
            ordinals = sorted(chunk.metadata.chunk_index for chunk in chunks)
            totals = {chunk.metadata.total_chunks for chunk in chunks}
            if ordinals != list(range(len(chunks))) or totals != {len(chunks)}:
                self.logging.warning("Chunks of '%s' are inconsistent. Dropping it for re-indexing.", path)
                self._drop_path(path)

    def _recompute_stats(self) -> None:
        chunks = self._index.chunks.values()
        self._index.stats = IndexStats(
            total_files=len(self._index.files),
            total_chunks=len(self._index.chunks),
            total_embeddings=sum(1 for chunk in chunks if chunk.embedding),
            last_full_index=self._index.stats.last_full_index,
        )
