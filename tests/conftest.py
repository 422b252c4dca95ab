"""
Shared pytest fixtures for keepsake tests.

Provides mock embedding providers to avoid loading models or calling
remote APIs during testing.
"""

import hashlib
import threading

import pytest

from keepsake.api import Keepsake
from keepsake.config import Limits, ProviderConfig, StoreConfig
from keepsake.kv_store import KeyValueStore
from keepsake.mirror_store import MirrorStore
from keepsake.providers.guarded import GuardedEmbeddingProvider


DIMENSION = 8


class MockEmbeddingProvider:
    """
    Deterministic mock embedding provider for testing.

    Generates consistent embeddings based on text hash - no ML model loading.
    """

    dimension = DIMENSION
    model_name = "mock-model"

    def __init__(self):
        self.embed_calls = 0
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.embed_calls += 1
        h = hashlib.md5(text.encode()).hexdigest()
        return [int(h[i:i + 2], 16) / 255.0 + 0.01 for i in range(0, 2 * self.dimension, 2)]


class StubEmbeddingProvider(MockEmbeddingProvider):
    """
    Maps known texts to fixed vectors; anything else falls back to the hash.

    Lets a test decide exactly which notes a query should match.
    """

    def __init__(self, vectors: dict[str, list[float]]):
        super().__init__()
        self.vectors = vectors

    def embed(self, text: str) -> list[float]:
        if text in self.vectors:
            with self._lock:
                self.embed_calls += 1
            return list(self.vectors[text])
        return super().embed(text)


class FailingEmbeddingProvider:
    """Raises the given exception on every call."""

    dimension = DIMENSION

    def __init__(self, exc: Exception):
        self.exc = exc
        self.embed_calls = 0

    def embed(self, text: str) -> list[float]:
        self.embed_calls += 1
        raise self.exc


class SlowEmbeddingProvider:
    """Blocks until released, so a test can miss the deadline on purpose."""

    dimension = DIMENSION

    def __init__(self):
        self.release = threading.Event()

    def embed(self, text: str) -> list[float]:
        self.release.wait(5)
        return [1.0] * self.dimension


def axis(i: int, scale: float = 1.0) -> list[float]:
    """Unit vector along axis ``i`` (scaled)."""
    v = [0.0] * DIMENSION
    v[i] = scale
    return v


@pytest.fixture
def mock_embedding_provider():
    """Create a fresh MockEmbeddingProvider instance."""
    return MockEmbeddingProvider()


@pytest.fixture
def store_config(tmp_path):
    """Config for a store in tmp_path with a short deadline and no real provider."""
    return StoreConfig(
        path=tmp_path,
        embedding=ProviderConfig("mock", {"dimension": DIMENSION}),
        limits=Limits(timeout=5.0),
        auth_tokens={"token-alice": "alice"},
    )


@pytest.fixture
def ks(store_config, mock_embedding_provider):
    """Keepsake over local SQLite stores in tmp_path, with the mock embedder."""
    ks = Keepsake(config=store_config, embedding_provider=mock_embedding_provider)
    yield ks
    ks.close()


@pytest.fixture
def kv_store(tmp_path):
    store = KeyValueStore(tmp_path / "kv_store.db")
    yield store
    store.close()


@pytest.fixture
def mirror_store(tmp_path):
    store = MirrorStore(tmp_path / "mirror.db")
    yield store
    store.close()


@pytest.fixture
def embedder(mock_embedding_provider):
    return GuardedEmbeddingProvider(mock_embedding_provider, timeout=5.0)
