"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

from typing import Callable, Dict, List, Optional

import pytest

from resilient_embed.config import PipelineConfig
from resilient_embed.db.connection import DatabaseConnection
from resilient_embed.providers.base_embedding import BaseEmbeddingProvider, EmbeddingResult
from resilient_embed.services.records import EmbeddableRecord


class ScriptedProvider(BaseEmbeddingProvider):
    """
    In-memory provider driven by a callback.

    ``respond(texts)`` returns one vector per text or raises. Every call is
    recorded in ``calls`` (the list of texts sent).
    """

    def __init__(self, respond: Callable[[List[str]], List[List[float]]], name: str = "scripted"):
        self.respond = respond
        self.name = name
        self.model = "fake-embedding-model"
        self.calls: List[List[str]] = []
        self.closed = False

    async def create_embeddings(
        self,
        texts: List[str],
        model: str,
        dimensions: Optional[int] = None,
    ) -> List[EmbeddingResult]:
        self.calls.append(list(texts))
        vectors = self.respond(list(texts))
        return [EmbeddingResult(vector=v, index=i) for i, v in enumerate(vectors)]

    def get_provider_name(self) -> str:
        return self.name

    async def close(self) -> None:
        self.closed = True


def one_hot(texts: List[str], dim: int = 4) -> List[List[float]]:
    """Deterministic non-normalized vectors: 2.0 at position hash(text) % dim."""
    vectors = []
    for text in texts:
        vec = [0.0] * dim
        vec[sum(map(ord, text)) % dim] = 2.0
        vectors.append(vec)
    return vectors


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances: ``scripted_provider(respond)``."""
    return ScriptedProvider


@pytest.fixture
def healthy_provider():
    """Provider that always succeeds with 4-dim one-hot vectors."""
    return ScriptedProvider(one_hot, name="healthy")


@pytest.fixture
def failing_provider():
    """
    Fixture factory for a provider that fails a given number of times.

    Usage:
        provider = failing_provider(fail_count=2, message="rate limited")
    """
    def _make(fail_count: int = 2, message: str = "rate limited", exc_type=Exception):
        state = {"attempts": 0}

        def respond(texts):
            state["attempts"] += 1
            if state["attempts"] <= fail_count:
                raise exc_type(f"{message} (attempt {state['attempts']})")
            return one_hot(texts)

        provider = ScriptedProvider(respond, name="failing")
        provider.state = state
        return provider

    return _make


@pytest.fixture
def size_limited_provider():
    """
    Fixture factory for a provider that rejects batches larger than *limit*
    with a payload-size error and succeeds otherwise.
    """
    def _make(limit: int):
        def respond(texts):
            if len(texts) > limit:
                raise Exception("Request payload size exceeds the limit: 30000 bytes")
            return one_hot(texts)

        return ScriptedProvider(respond, name="size_limited")

    return _make


@pytest.fixture
def recording_sleep():
    """Async sleep replacement that records requested delays without waiting."""
    delays: List[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def make_records():
    """Build ``EmbeddableRecord`` lists: ``make_records(["a", "b"])`` or ``make_records(5)``."""
    def _make(contents) -> List[EmbeddableRecord]:
        if isinstance(contents, int):
            contents = [f"record number {i}" for i in range(contents)]
        return [EmbeddableRecord(content=c, id=str(i)) for i, c in enumerate(contents)]

    return _make


@pytest.fixture
def fast_config():
    """PipelineConfig with tiny delays for tests."""
    return PipelineConfig(max_retries=3, initial_delay_ms=10, max_delay_ms=1000)


@pytest.fixture
def db_connection():
    """Fixture for an initialized in-memory SQLite database connection."""
    db = DatabaseConnection("sqlite:///:memory:")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def vectors_by_text() -> Callable[[Dict[str, List[float]]], Callable]:
    """Build a ``respond`` callback from a ``{text: vector}`` mapping."""
    def _make(mapping: Dict[str, List[float]]):
        return lambda texts: [mapping[t] for t in texts]

    return _make
