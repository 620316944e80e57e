import asyncio

from services.vault_rag.ChangeScheduler import ChangeScheduler
from services.vault_rag.Chunker import Chunker
from services.vault_rag.IndexStore import IndexStore
from services.vault_rag.ProgressChannel import ProgressChannel
from services.vault_rag.SimilaritySearch import search
from services.vault_rag.SyncService import SyncService
from shared.clients.content.ContentSourceInterface import ContentSourceInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import EmptyCorpusError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGConfig
from shared.models.events import SyncReport
from shared.models.index import IndexSettings, IndexStatsReport
from shared.models.search import QueryAnswer, SearchResult, SourceItem

NO_RESULTS_ANSWER = (
    "I couldn't find anything in your vault that answers this question. "
    "Try rephrasing it, or make sure the vault has been indexed."
)

SYSTEM_PROMPT = """You are a helpful assistant answering questions about the user's personal notes.

Below are excerpts from notes that match the question. Base your answer on them, and mention which note a piece of information comes from when that helps the user.

If the excerpts do not contain enough information to answer fully, say so and suggest what else might help.

Excerpts {scope}:
{context}"""


def _index_settings(config: RAGConfig) -> IndexSettings:
    return IndexSettings(
        embedding_model=config.embedding_model,
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
    )


class RAGEngine:
    """Owns the index, its background maintenance and the query pipeline.

    Typical lifecycle: start() once, then search()/query() any number of times
    while file changes are picked up in the background, then stop().
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        config: RAGConfig,
        content_source: ContentSourceInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._config = config
        self._content_source = content_source
        self._llm_client = llm_client

        self._progress = ProgressChannel(buffer_size=config.progress_buffer)
        self._index_store = IndexStore(
            helper_config=helper_config,
            content_source=content_source,
            settings=_index_settings(config),
            index_path=config.index_path,
        )
        self._sync_service = SyncService(
            helper_config=helper_config,
            content_source=content_source,
            index_store=self._index_store,
            llm_client=llm_client,
            chunker=Chunker(chunk_size=config.chunk_size),
            progress=self._progress,
        )
        self._scheduler = ChangeScheduler(
            helper_config=helper_config,
            index_store=self._index_store,
            sync_service=self._sync_service,
            window=config.quiescence_seconds,
        )
        self._watch_task: asyncio.Task | None = None
        self._startup_task: asyncio.Task | None = None

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def start(self, background: bool = False) -> None:
        """Load the index, run the startup sync and start watching for changes.

        Args:
            background (bool): Run the startup sync as a task instead of waiting for it.
        """
        await self._index_store.load()
        if self._config.auto_index_on_startup:
            if background:
                self._startup_task = asyncio.create_task(self._startup_sync())
            else:
                await self._sync_service.do_full_sync()
        if self._config.auto_index_on_change:
            self._start_watching()

    async def stop(self) -> None:
        self._scheduler.close()
        for task in (self._watch_task, self._startup_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._watch_task = None
        self._startup_task = None
        self.logging.info("RAG engine stopped.")

    async def _startup_sync(self) -> None:
        try:
            await self._sync_service.do_full_sync()
        except Exception as exc:
            self.logging.error("Startup indexing failed: %s", exc)

    def _start_watching(self) -> None:
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.create_task(self._watch())

    async def _stop_watching(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

    async def _watch(self) -> None:
        async for event in self._content_source.watch():
            try:
                await self._scheduler.handle_event(event)
            except Exception as exc:
                self.logging.error("Could not process change of '%s': %s", event.path, exc)

    ##########################################
    ################ INDEXING ################
    ##########################################

    async def index_vault(self) -> SyncReport:
        """Index now, including documents left incomplete by earlier failures."""
        return await self._sync_service.do_full_sync(retry_incomplete=True)

    async def rebuild_index(self) -> SyncReport:
        await self._index_store.rebuild()
        return await self._sync_service.do_full_sync()

    ##########################################
    ################ QUERIES #################
    ##########################################

    async def search(self, query: str, context_path: str | None = None) -> list[SearchResult]:
        """Find the chunks most similar to the query.

        Raises:
            EmptyCorpusError: If nothing has been embedded yet.
            ProviderError: If the query cannot be embedded.
        """
        chunks = self._index_store.get_searchable_chunks()
        if not chunks:
            raise EmptyCorpusError()
        vectors = await self._llm_client.do_embed(query, model=self._config.embedding_model)
        query_vector = vectors[0]
        if not any(query_vector):
            raise ProviderError("The embedding provider returned a zero vector for the query.")
        results = search(
            query_vector,
            chunks,
            context_path=context_path,
            threshold=self._config.similarity_threshold,
            top_k=self._config.max_results,
            boost=self._config.context_boost,
        )
        self.logging.debug("Search for '%s' returned %d result(s).", query, len(results))
        return results

    async def query(self, question: str, context_path: str | None = None) -> QueryAnswer:
        """Answer a question from the vault's content.

        Returns:
            QueryAnswer: The answer and the excerpts it is based on. If no excerpt
                passes the similarity threshold, a fixed hint is returned and the
                chat model is not called.
        """
        results = await self.search(question, context_path)
        if not results:
            return QueryAnswer(question=question, answer=NO_RESULTS_ANSWER, sources=[])

        messages = [
            {"role": "system", "content": self.build_system_prompt(results, context_path)},
            {"role": "user", "content": question},
        ]
        answer = await self._llm_client.do_chat(messages, model=self._config.chat_model)
        return QueryAnswer(
            question=question,
            answer=answer,
            sources=[self.to_source(result) for result in results],
        )

    def build_context(self, results: list[SearchResult]) -> str:
        blocks = []
        for position, result in enumerate(results, start=1):
            label = result.chunk.metadata.path if self._config.include_file_paths else f"Document {position}"
            blocks.append(f"[{label}]\n{result.chunk.content}")
        return "\n\n---\n\n".join(blocks)

    def build_system_prompt(self, results: list[SearchResult], context_path: str | None = None) -> str:
        if context_path:
            scope = f'with a focus on the note "{context_path}"'
        else:
            scope = "from across the whole vault"
        return SYSTEM_PROMPT.format(scope=scope, context=self.build_context(results))

    @staticmethod
    def to_source(result: SearchResult) -> SourceItem:
        chunk = result.chunk
        return SourceItem(
            chunk_id=chunk.id,
            path=chunk.metadata.path,
            file=chunk.metadata.file,
            similarity=result.similarity,
            content=chunk.content,
            tags=chunk.metadata.tags,
        )

    ##########################################
    ############# CONFIGURATION ##############
    ##########################################

    async def reconfigure(self, config: RAGConfig) -> None:
        """Switch to a new configuration value.

        A changed embedding model empties an index that holds embeddings; run
        index_vault() afterwards to re-embed. The index location cannot be
        changed while running.
        """
        previous = self._config
        if config.index_path != previous.index_path:
            self.logging.warning("Changing the index path requires a restart. Keeping '%s'.", previous.index_path)
            config = config.model_copy(update={"index_path": previous.index_path})
        self._config = config

        if config.chunk_size != previous.chunk_size:
            self._sync_service.set_chunker(Chunker(chunk_size=config.chunk_size))
        await self._index_store.reconfigure(_index_settings(config))
        self._scheduler.set_window(config.quiescence_seconds)
        self._progress.resize(config.progress_buffer)

        if config.auto_index_on_change and not previous.auto_index_on_change:
            self._start_watching()
        elif not config.auto_index_on_change and previous.auto_index_on_change:
            await self._stop_watching()
        self.logging.info("RAG engine reconfigured.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_config(self) -> RAGConfig:
        return self._config

    def get_stats(self) -> IndexStatsReport:
        return self._index_store.get_stats()

    def get_progress(self) -> ProgressChannel:
        return self._progress

    def get_index_store(self) -> IndexStore:
        return self._index_store

    def get_scheduler(self) -> ChangeScheduler:
        return self._scheduler

    def is_indexing(self) -> bool:
        return self._sync_service.is_running()
