"""Shared test fixtures for vault_rag testing."""

import logging
import re
import zlib
from pathlib import Path

import pytest

from shared.clients.content.filesystem.ContentSourceFilesystem import ContentSourceFilesystem
from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGConfig
from shared.models.index import IndexSettings

EMBED_DIMENSIONS = 64


def embed_text(text: str) -> list[float]:
    """Deterministic bag-of-words vector: identical texts map to identical vectors."""
    vector = [0.0] * EMBED_DIMENSIONS
    for word in re.findall(r"\w+", text.lower()):
        vector[zlib.crc32(word.encode("utf-8")) % EMBED_DIMENSIONS] += 1.0
    return vector


class FakeLLMClient:
    """In-memory stand-in for an LLMClientInterface implementation."""

    def __init__(self, answer: str = "Fake answer."):
        self.answer = answer
        self.embed_calls: list[tuple[list[str], str | None]] = []
        self.chat_calls: list[tuple[list[dict], str | None]] = []
        self.fail_on: set[str] = set()
        self.zero_vector = False

    async def do_embed(self, texts: list[str] | str, model: str | None = None) -> list[list[float]]:
        texts = [texts] if isinstance(texts, str) else texts
        self.embed_calls.append((texts, model))
        for text in texts:
            if any(marker in text for marker in self.fail_on):
                raise ProviderError("embedding backend unavailable", status_code=503)
        if self.zero_vector:
            return [[0.0] * EMBED_DIMENSIONS for _ in texts]
        return [embed_text(text) for text in texts]

    async def do_chat(self, messages: list[dict], model: str | None = None) -> str:
        self.chat_calls.append((messages, model))
        return self.answer


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("vault_rag.tests")


@pytest.fixture
def helper_config(logger: logging.Logger) -> HelperConfig:
    return HelperConfig(logger=logger)


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """An empty vault directory."""
    vault_dir = tmp_path / "vault"
    vault_dir.mkdir()
    return vault_dir


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch, vault: Path) -> Path:
    """Minimal environment for an ollama-backed filesystem vault."""
    monkeypatch.setenv("LLM_ENGINE", "ollama")
    monkeypatch.setenv("LLM_MODEL", "embed-a")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("CONTENT_FILESYSTEM_ROOT", str(vault))
    monkeypatch.setenv("API_SERVER_API_KEY", "secret")
    for key in ("LLM_CHAT_MODEL", "CONTENT_FILESYSTEM_EXTENSIONS", "INDEX_PATH", "LLM_OPENAI_API_KEY", "LLM_OPENAI_BASE_URL"):
        monkeypatch.delenv(key, raising=False)
    return vault


@pytest.fixture
def content_source(env: Path, helper_config: HelperConfig) -> ContentSourceFilesystem:
    return ContentSourceFilesystem(helper_config=helper_config)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def index_path(vault: Path) -> str:
    return str(vault / ".vault_rag" / "vault-index.json")


@pytest.fixture
def index_settings() -> IndexSettings:
    return IndexSettings(embedding_model="embed-a", chunk_size=1000, chunk_overlap=200)


@pytest.fixture
def rag_config(index_path: str) -> RAGConfig:
    return RAGConfig(
        embedding_model="embed-a",
        chat_model="chat-a",
        index_path=index_path,
        auto_index_on_startup=False,
        auto_index_on_change=False,
        similarity_threshold=0.5,
    )


def write_note(vault: Path, relative: str, content: str) -> Path:
    path = vault / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
