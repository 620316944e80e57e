"""Synchronisation service.

Reconciles the index with the content source: every document whose
fingerprint changed is read, split into chunks, stored, and embedded chunk by
chunk through the LLM client. Documents are processed one at a time.
"""

import asyncio

from services.vault_rag.Chunker import Chunker
from services.vault_rag.IndexStore import IndexStore
from services.vault_rag.ProgressChannel import ProgressChannel
from shared.clients.content.ContentSourceInterface import ContentSourceInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.events import SyncReport
from shared.models.index import DocumentRef


class SyncService:
    """Orchestrates reconciliation batches from the content source into the index."""

    def __init__(
        self,
        helper_config: HelperConfig,
        content_source: ContentSourceInterface,
        index_store: IndexStore,
        llm_client: LLMClientInterface,
        chunker: Chunker,
        progress: ProgressChannel | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._content_source = content_source
        self._index_store = index_store
        self._llm_client = llm_client
        self._chunker = chunker
        self._progress = progress or ProgressChannel()
        # at most one batch at a time, system-wide
        self._batch_lock = asyncio.Lock()

    def set_chunker(self, chunker: Chunker) -> None:
        self._chunker = chunker

    def is_running(self) -> bool:
        return self._batch_lock.locked()

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def do_full_sync(self, retry_incomplete: bool = False) -> SyncReport:
        """Bring the whole index up to date with the content source.

        Args:
            retry_incomplete (bool): Also re-process documents whose chunks are
                missing embeddings from an earlier failed run.

        Returns:
            SyncReport: Counts of synced, failed and removed documents.
        """
        async with self._batch_lock:
            self.logging.info("Starting full sync of '%s'...", self._content_source.get_root())
            known_paths = self._index_store.get_indexed_paths()
            outdated = await self._index_store.get_outdated_documents()
            removed = len(known_paths - self._index_store.get_indexed_paths())

            if retry_incomplete:
                queued = {doc.path for doc in outdated}
                incomplete = [path for path in self._index_store.get_incomplete_paths() if path not in queued]
                for path in incomplete:
                    doc = self._content_source.get_document(path)
                    if doc is not None:
                        outdated.append(doc)
                if incomplete:
                    self.logging.info("Retrying %d document(s) with missing embeddings.", len(incomplete))

            report = await self._sync_documents(outdated)
            report.removed = removed
            return report

    async def do_sync_paths(self, paths: list[str]) -> SyncReport:
        """Re-index the given paths, if they still exist and are still outdated.

        Args:
            paths (list[str]): Vault-relative paths reported as changed.

        Returns:
            SyncReport: Counts of synced and failed documents.
        """
        async with self._batch_lock:
            wanted = set(paths)
            documents = [doc for doc in await self._content_source.list_documents() if doc.path in wanted]
            outdated: list[DocumentRef] = []
            for doc in documents:
                try:
                    if not await self._index_store.is_up_to_date(doc):
                        outdated.append(doc)
                except OSError as exc:
                    self.logging.warning("Could not fingerprint '%s', skipping: %s", doc.path, exc)
            if len(outdated) < len(paths):
                self.logging.debug("%d of %d changed path(s) need re-indexing.", len(outdated), len(paths))
            return await self._sync_documents(outdated)

    async def _sync_documents(self, documents: list[DocumentRef]) -> SyncReport:
        total = len(documents)
        report = SyncReport(total=total)
        self._progress.chunking(total)

        for position, doc in enumerate(documents, start=1):
            try:
                await self._sync_document(doc)
                report.synced += 1
            except ConfigurationError:
                raise
            except Exception as exc:
                self.logging.error("Failed to index '%s': %s", doc.path, exc)
                report.failed += 1
                report.failed_paths.append(doc.path)
            self._progress.embedding(position, total, doc.path)

        self._progress.complete(total)
        self.logging.info(
            "Sync complete: %d synced, %d failed of %d document(s).",
            report.synced, report.failed, total,
        )
        return report

    ##########################################
    ############ DOCUMENT SYNC ###############
    ##########################################

    async def _sync_document(self, doc: DocumentRef) -> None:
        """Chunk, store and embed a single document.

        The chunks are stored before embedding starts, so a failure part-way
        leaves the document indexed with partial embeddings.

        Raises:
            Exception: Any read, provider or persistence error for this document.
        """
        content = await self._content_source.read(doc)
        drafts = self._chunker.chunk(content, doc)
        await self._index_store.add_document(doc, drafts, content=content)

        model = self._index_store.get_settings().embedding_model
        for draft in drafts:
            vectors = await self._llm_client.do_embed(draft.content, model=model)
            await self._index_store.update_chunk_embedding(draft.id, vectors[0], model)

        self.logging.info("Indexed '%s': %d chunk(s) embedded.", doc.path, len(drafts))
