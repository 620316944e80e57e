"""Tests for the engine facade: lifecycle, search and question answering."""

import asyncio
import json

import pytest

from conftest import write_note
from services.vault_rag.RAGEngine import NO_RESULTS_ANSWER, RAGEngine
from shared.exceptions import EmptyCorpusError, ProviderError


@pytest.fixture
def engine(helper_config, rag_config, content_source, fake_llm) -> RAGEngine:
    return RAGEngine(
        helper_config=helper_config,
        config=rag_config,
        content_source=content_source,
        llm_client=fake_llm,
    )


@pytest.fixture
def notes(vault):
    write_note(vault, "garden.md", "---\ntags: [plants]\n---\nTomatoes need sun and water every day.")
    write_note(vault, "work/meeting.md", "Quarterly budget meeting notes and action items.")
    write_note(vault, "travel.md", "Packing list for the mountain hiking trip.")
    return vault


class TestLifecycle:
    """Test start, stop and indexing entry points."""

    @pytest.mark.asyncio
    async def test_start_without_auto_index_loads_only(self, engine, notes, index_path):
        await engine.start()

        assert engine.get_stats().total_files == 0
        await engine.stop()

    @pytest.mark.asyncio
    async def test_start_with_auto_index(self, engine, notes, rag_config):
        await engine.reconfigure(rag_config.model_copy(update={"auto_index_on_startup": True}))
        await engine.start()

        assert engine.get_stats().total_files == 3
        await engine.stop()

    @pytest.mark.asyncio
    async def test_index_vault_and_rebuild(self, engine, notes):
        await engine.start()

        report = await engine.index_vault()
        assert report.synced == 3

        report = await engine.rebuild_index()
        assert report.synced == 3
        stats = engine.get_stats()
        assert stats.total_embeddings == stats.total_chunks
        assert stats.last_full_index is not None
        await engine.stop()

    @pytest.mark.asyncio
    async def test_watcher_picks_up_new_note(self, engine, notes, rag_config, vault):
        config = rag_config.model_copy(update={"auto_index_on_change": True, "quiescence_seconds": 0.05})
        await engine.reconfigure(config)
        await engine.start()
        await engine.index_vault()
        await asyncio.sleep(0.3)

        write_note(vault, "fresh.md", "A brand new note about sourdough bread.")

        for _ in range(50):
            if "fresh.md" in engine.get_index_store().get_indexed_paths():
                break
            await asyncio.sleep(0.1)
        assert "fresh.md" in engine.get_index_store().get_indexed_paths()
        await engine.stop()


class TestSearch:
    """Test retrieval through the engine."""

    @pytest.mark.asyncio
    async def test_search_before_indexing(self, engine, notes):
        await engine.start()

        with pytest.raises(EmptyCorpusError):
            await engine.search("tomatoes")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_only_stale_embeddings_count_as_empty(self, helper_config, rag_config, content_source, fake_llm, vault, index_path):
        write_note(vault, "solo.md", "A single short note.")
        first = RAGEngine(helper_config=helper_config, config=rag_config, content_source=content_source, llm_client=fake_llm)
        await first.start()
        await first.index_vault()
        await first.stop()
        with open(index_path, encoding="utf-8") as f:
            data = json.load(f)
        data["chunks"]["solo.md:0"]["embedding_model"] = "old"
        with open(index_path, "w", encoding="utf-8") as f:
            json.dump(data, f)

        engine = RAGEngine(helper_config=helper_config, config=rag_config, content_source=content_source, llm_client=fake_llm)
        await engine.start()

        assert engine.get_stats().total_embeddings == 1
        with pytest.raises(EmptyCorpusError):
            await engine.search("A single short note.")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_exact_text_ranks_first(self, engine, notes):
        await engine.start()
        await engine.index_vault()

        results = await engine.search("Tomatoes need sun and water every day.")

        assert results[0].chunk.metadata.path == "garden.md"
        assert results[0].similarity == pytest.approx(1.0)
        await engine.stop()

    @pytest.mark.asyncio
    async def test_zero_query_vector(self, engine, notes, fake_llm):
        await engine.start()
        await engine.index_vault()
        fake_llm.zero_vector = True

        with pytest.raises(ProviderError):
            await engine.search("anything")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, engine, notes, fake_llm):
        await engine.start()
        await engine.index_vault()
        fake_llm.fail_on = {"boom"}

        with pytest.raises(ProviderError):
            await engine.search("boom")
        await engine.stop()


class TestQuery:
    """Test question answering."""

    @pytest.mark.asyncio
    async def test_answer_with_sources(self, engine, notes, fake_llm):
        await engine.start()
        await engine.index_vault()

        answer = await engine.query("Quarterly budget meeting notes and action items.")

        assert answer.answer == "Fake answer."
        assert answer.sources[0].path == "work/meeting.md"
        messages, model = fake_llm.chat_calls[-1]
        assert model == "chat-a"
        assert [m["role"] for m in messages] == ["system", "user"]
        assert "[work/meeting.md]" in messages[0]["content"]
        assert messages[1]["content"] == "Quarterly budget meeting notes and action items."
        await engine.stop()

    @pytest.mark.asyncio
    async def test_no_results_skips_chat(self, engine, notes, fake_llm):
        await engine.start()
        await engine.index_vault()

        answer = await engine.query("zebra quantum xylophone")

        assert answer.answer == NO_RESULTS_ANSWER
        assert answer.sources == []
        assert fake_llm.chat_calls == []
        await engine.stop()

    @pytest.mark.asyncio
    async def test_document_labels_without_paths(self, engine, notes, rag_config, fake_llm):
        await engine.reconfigure(rag_config.model_copy(update={"include_file_paths": False}))
        await engine.start()
        await engine.index_vault()

        await engine.query("Packing list for the mountain hiking trip.")

        system_prompt = fake_llm.chat_calls[-1][0][0]["content"]
        assert "[Document 1]" in system_prompt
        assert "travel.md" not in system_prompt
        await engine.stop()

    @pytest.mark.asyncio
    async def test_context_note_mentioned_in_prompt(self, engine, notes, fake_llm):
        await engine.start()
        await engine.index_vault()

        await engine.query("Tomatoes need sun and water every day.", context_path="garden.md")

        assert 'the note "garden.md"' in fake_llm.chat_calls[-1][0][0]["content"]
        await engine.stop()


class TestReconfigure:
    """Test switching configuration values."""

    @pytest.mark.asyncio
    async def test_model_change_empties_index(self, engine, notes, rag_config):
        await engine.start()
        await engine.index_vault()

        await engine.reconfigure(rag_config.model_copy(update={"embedding_model": "embed-b"}))

        assert engine.get_stats().total_chunks == 0
        assert engine.get_stats().embedding_model == "embed-b"
        report = await engine.index_vault()
        assert report.synced == 3
        await engine.stop()

    @pytest.mark.asyncio
    async def test_search_parameters_apply_immediately(self, engine, notes, rag_config):
        await engine.start()
        await engine.index_vault()

        await engine.reconfigure(rag_config.model_copy(update={"max_results": 1, "similarity_threshold": -1.0}))

        assert len(await engine.search("notes")) == 1
        assert engine.get_scheduler().get_window() == rag_config.quiescence_seconds
        await engine.stop()
