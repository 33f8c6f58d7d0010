"""Pytest configuration, fakes and fixtures."""

import os

# Required settings must exist before anything imports tycoon.config.settings
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("LANCEDB_TABLE_NAME", "test_aircraft")
os.environ.setdefault("ENV", "dev")

import pytest
from langchain_core.messages import AIMessage

from tycoon.config.settings import Settings
from tycoon.src.core.rag_engine import RAGEngine
from tycoon.src.core.records import RetrievedRecord


class FakeEmbedder:
    """Deterministic embedder that counts its calls."""

    def __init__(self):
        self.query_calls: list[str] = []
        self.document_calls: list[list[str]] = []

    @staticmethod
    def _vector(text: str) -> list[float]:
        lowered = text.lower()
        return [1.0 + lowered.count(ch) for ch in "aeiou"] + [float(len(lowered) % 11) + 1.0]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self._vector(text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]


class FakeVectorStore:
    """In-memory stand-in for GameVectorStore."""

    def __init__(self, matches=None, documents=None, fetch_error: Exception | None = None):
        self.matches = list(matches or [])
        self.documents = dict(documents or {})
        self.fetch_error = fetch_error
        self.query_calls: list[tuple[list[float], int]] = []
        self.fetch_calls: list[list[str]] = []

    def query(self, vector, top_k=5):
        self.query_calls.append((vector, top_k))
        return [m.model_copy() for m in self.matches[:top_k]]

    def fetch(self, ids):
        self.fetch_calls.append(list(ids))
        if self.fetch_error is not None:
            raise self.fetch_error
        return {i: RetrievedRecord(id=i, metadata=self.documents[i], fetched=True) for i in ids if i in self.documents}


class FakeLLM:
    """Chat model double exposing ``ainvoke``."""

    def __init__(self, reply: str = "Mocked answer.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[list] = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


def make_record(record_id: str, score: float | None = 0.5, **metadata) -> RetrievedRecord:
    return RetrievedRecord(id=record_id, score=score, metadata=metadata)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(_env_file=None, GOOGLE_API_KEY="test-google-key", LANCEDB_TABLE_NAME="test_aircraft", LANCEDB_URI=str(tmp_path / "lancedb"), DATA_PROCESSED_DIR=tmp_path / "processed", ENV="dev")


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_store_cls():
    return FakeVectorStore


@pytest.fixture
def fake_llm_cls():
    return FakeLLM


@pytest.fixture
def make_engine(test_settings, embedder):
    """Build a RAGEngine over fakes; returns (engine, store, llm)."""

    def _make(matches=None, documents=None, reply="Mocked answer.", llm_error=None, fetch_error=None, settings=None):
        store = FakeVectorStore(matches, documents, fetch_error)
        llm = FakeLLM(reply, llm_error)
        engine = RAGEngine(store, embedder, llm=llm, settings=settings or test_settings)
        return engine, store, llm

    return _make
