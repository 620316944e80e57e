"""Tests for reconciling the vault into the index."""

import asyncio

import pytest

from conftest import FakeLLMClient, write_note
from services.vault_rag.Chunker import Chunker
from services.vault_rag.IndexStore import IndexStore
from services.vault_rag.ProgressChannel import ProgressChannel
from services.vault_rag.SyncService import SyncService
from shared.exceptions import ConfigurationError
from shared.models.events import ProgressPhase
from shared.models.index import IndexSettings


@pytest.fixture
def store(helper_config, content_source, index_settings, index_path) -> IndexStore:
    return IndexStore(helper_config, content_source, index_settings, index_path)


@pytest.fixture
def progress() -> ProgressChannel:
    return ProgressChannel(buffer_size=100)


@pytest.fixture
def sync(helper_config, content_source, store, fake_llm, progress) -> SyncService:
    return SyncService(
        helper_config=helper_config,
        content_source=content_source,
        index_store=store,
        llm_client=fake_llm,
        chunker=Chunker(chunk_size=1000),
        progress=progress,
    )


def drain(queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


class GatedLLMClient(FakeLLMClient):
    """Holds every embed call until released."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def do_embed(self, texts, model=None):
        self.entered.set()
        await self.release.wait()
        return await super().do_embed(texts, model=model)


class TestFullSync:
    """Test full reconciliation batches."""

    @pytest.mark.asyncio
    async def test_indexes_and_embeds_every_note(self, sync, store, vault, fake_llm):
        write_note(vault, "a.md", "alpha text")
        write_note(vault, "sub/b.md", "beta text\n\nmore beta")
        await store.load()

        report = await sync.do_full_sync()

        assert (report.total, report.synced, report.failed) == (2, 2, 0)
        stats = store.get_stats()
        assert stats.total_files == 2
        assert stats.total_embeddings == stats.total_chunks
        assert all(model == "embed-a" for _, model in fake_llm.embed_calls)

    @pytest.mark.asyncio
    async def test_second_sync_is_a_noop(self, sync, store, vault, fake_llm):
        write_note(vault, "a.md", "alpha text")
        await store.load()
        await sync.do_full_sync()
        calls = len(fake_llm.embed_calls)

        report = await sync.do_full_sync()

        assert report.total == 0
        assert len(fake_llm.embed_calls) == calls

    @pytest.mark.asyncio
    async def test_provider_failure_is_isolated_per_document(self, sync, store, vault, fake_llm):
        write_note(vault, "a.md", "fine note")
        write_note(vault, "b.md", "broken FAIL note")
        write_note(vault, "c.md", "another fine note")
        fake_llm.fail_on = {"FAIL"}
        await store.load()

        report = await sync.do_full_sync()

        assert report.synced == 2
        assert report.failed == 1
        assert report.failed_paths == ["b.md"]
        # the failed note stays indexed without embeddings
        assert store.get_incomplete_paths() == ["b.md"]

    @pytest.mark.asyncio
    async def test_incomplete_notes_retried_only_when_forced(self, sync, store, vault, fake_llm):
        write_note(vault, "b.md", "broken FAIL note")
        fake_llm.fail_on = {"FAIL"}
        await store.load()
        await sync.do_full_sync()
        fake_llm.fail_on = set()

        assert (await sync.do_full_sync()).total == 0

        report = await sync.do_full_sync(retry_incomplete=True)
        assert report.synced == 1
        assert store.get_incomplete_paths() == []

    @pytest.mark.asyncio
    async def test_deleted_notes_are_removed(self, sync, store, vault):
        path = write_note(vault, "a.md", "alpha")
        write_note(vault, "b.md", "beta")
        await store.load()
        await sync.do_full_sync()

        path.unlink()
        report = await sync.do_full_sync()

        assert report.removed == 1
        assert store.get_indexed_paths() == {"b.md"}

    @pytest.mark.asyncio
    async def test_configuration_errors_propagate(self, sync, store, vault, fake_llm):
        write_note(vault, "a.md", "alpha")
        await store.load()

        async def misconfigured(texts, model=None):
            raise ConfigurationError("no model")

        fake_llm.do_embed = misconfigured

        with pytest.raises(ConfigurationError):
            await sync.do_full_sync()

    @pytest.mark.asyncio
    async def test_progress_events(self, sync, store, vault, progress):
        write_note(vault, "a.md", "alpha")
        write_note(vault, "b.md", "beta")
        await store.load()

        with progress.subscribe() as queue:
            await sync.do_full_sync()
            events = drain(queue)

        assert [e.phase for e in events] == [
            ProgressPhase.CHUNKING,
            ProgressPhase.EMBEDDING,
            ProgressPhase.EMBEDDING,
            ProgressPhase.COMPLETE,
        ]
        assert [e.current for e in events] == [0, 1, 2, 2]
        assert events[1].current_document == "a.md"

    @pytest.mark.asyncio
    async def test_empty_batch_still_completes(self, sync, store, progress):
        await store.load()

        with progress.subscribe() as queue:
            await sync.do_full_sync()
            events = drain(queue)

        assert [e.phase for e in events] == [ProgressPhase.CHUNKING, ProgressPhase.COMPLETE]
        assert events[-1].total == 0

    @pytest.mark.asyncio
    async def test_model_switch_mid_embedding_drops_old_vector(self, helper_config, content_source, store, vault):
        write_note(vault, "a.md", "alpha text")
        await store.load()
        llm = GatedLLMClient()
        sync = SyncService(
            helper_config=helper_config,
            content_source=content_source,
            index_store=store,
            llm_client=llm,
            chunker=Chunker(chunk_size=1000),
        )

        task = asyncio.create_task(sync.do_full_sync())
        await asyncio.wait_for(llm.entered.wait(), timeout=2.0)
        await store.reconfigure(IndexSettings(embedding_model="embed-b"))
        llm.release.set()
        await task

        assert llm.embed_calls[0][1] == "embed-a"
        assert store.get_settings().embedding_model == "embed-b"
        assert [c.embedding for c in store.get_chunks()] == [None]
        assert store.get_searchable_chunks() == []
        assert store.get_incomplete_paths() == ["a.md"]


class TestSyncPaths:
    """Test scheduler-driven batches."""

    @pytest.mark.asyncio
    async def test_only_listed_and_outdated_paths(self, sync, store, vault, fake_llm):
        write_note(vault, "a.md", "alpha")
        write_note(vault, "b.md", "beta")
        await store.load()
        await sync.do_full_sync()
        write_note(vault, "a.md", "alpha changed")
        write_note(vault, "c.md", "gamma")

        report = await sync.do_sync_paths(["a.md", "b.md", "gone.md"])

        assert report.total == 1
        assert report.synced == 1
        assert store.get_indexed_paths() == {"a.md", "b.md"}

    @pytest.mark.asyncio
    async def test_path_deleted_before_batch_is_skipped(self, sync, store, vault):
        path = write_note(vault, "a.md", "alpha")
        await store.load()
        path.unlink()

        report = await sync.do_sync_paths(["a.md"])

        assert report.total == 0
        assert store.get_indexed_paths() == set()


class TestProgressChannel:
    """Test the bounded fan-out."""

    def test_slow_subscriber_drops_oldest(self):
        channel = ProgressChannel(buffer_size=2)
        with channel.subscribe() as queue:
            for i in range(1, 4):
                channel.embedding(i, 3, f"{i}.md")
            events = drain(queue)

        assert [e.current for e in events] == [2, 3]
        assert channel.get_subscriber_count() == 0

    def test_each_subscriber_gets_every_event(self):
        channel = ProgressChannel()
        with channel.subscribe() as first, channel.subscribe() as second:
            channel.complete(0)

            assert first.qsize() == 1
            assert second.qsize() == 1

    def test_publish_without_subscribers(self):
        ProgressChannel().chunking(3)


@pytest.mark.asyncio
async def test_fake_llm_vectors_are_deterministic():
    client = FakeLLMClient()
    first = await client.do_embed("same words here")
    second = await client.do_embed(["same words here"])

    assert first == second
