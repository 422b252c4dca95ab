"""Tests for the embedding contract wrapper."""

import pytest

from keepsake.errors import EmbeddingUnavailable, Timeout
from keepsake.providers.guarded import GuardedEmbeddingProvider

from conftest import (
    DIMENSION, FailingEmbeddingProvider, MockEmbeddingProvider, SlowEmbeddingProvider,
)


class FixedEmbeddingProvider:
    dimension = DIMENSION

    def __init__(self, vector):
        self.vector = vector

    def embed(self, text: str):
        return self.vector


class TestEmptyText:

    @pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
    def test_blank_text_is_zero_vector(self, text):
        provider = MockEmbeddingProvider()
        guarded = GuardedEmbeddingProvider(provider)
        assert guarded.embed(text) == [0.0] * DIMENSION
        assert provider.embed_calls == 0

    def test_blank_text_never_builds_provider(self):
        def factory():
            raise AssertionError("provider should not be created")

        guarded = GuardedEmbeddingProvider(factory, dimension=DIMENSION)
        assert guarded.embed("  ") == [0.0] * DIMENSION

    def test_blank_text_even_when_provider_is_broken(self):
        provider = FailingEmbeddingProvider(RuntimeError("down"))
        guarded = GuardedEmbeddingProvider(provider)
        assert guarded.embed("") == guarded.zero_vector()
        assert provider.embed_calls == 0


class TestProviderCalls:

    def test_passes_vector_through(self):
        provider = MockEmbeddingProvider()
        guarded = GuardedEmbeddingProvider(provider)
        assert guarded.embed("hello") == provider.embed("hello")

    def test_factory_called_once(self):
        calls = []

        def factory():
            calls.append(1)
            return MockEmbeddingProvider()

        guarded = GuardedEmbeddingProvider(factory, dimension=DIMENSION)
        guarded.embed("a")
        guarded.embed("b")
        assert len(calls) == 1

    def test_failure_is_embedding_unavailable(self):
        guarded = GuardedEmbeddingProvider(FailingEmbeddingProvider(RuntimeError("quota")))
        with pytest.raises(EmbeddingUnavailable, match="quota"):
            guarded.embed("hello")

    def test_factory_failure_is_embedding_unavailable(self):
        def factory():
            raise ValueError("GEMINI_API_KEY not found")

        guarded = GuardedEmbeddingProvider(factory, dimension=DIMENSION)
        with pytest.raises(EmbeddingUnavailable, match="GEMINI_API_KEY"):
            guarded.embed("hello")

    def test_deadline_raises_timeout(self):
        provider = SlowEmbeddingProvider()
        guarded = GuardedEmbeddingProvider(provider, timeout=0.05)
        try:
            with pytest.raises(Timeout):
                guarded.embed("hello")
        finally:
            provider.release.set()

    def test_per_call_deadline_overrides_default(self):
        provider = SlowEmbeddingProvider()
        guarded = GuardedEmbeddingProvider(provider, timeout=None)
        try:
            with pytest.raises(Timeout):
                guarded.embed("hello", timeout=0.05)
        finally:
            provider.release.set()

    def test_timeout_is_a_timeout_error(self):
        assert issubclass(Timeout, TimeoutError)


class TestValidation:

    def test_wrong_dimension(self):
        guarded = GuardedEmbeddingProvider(FixedEmbeddingProvider([1.0, 2.0]))
        with pytest.raises(EmbeddingUnavailable, match="expected 8"):
            guarded.embed("hello")

    def test_non_finite_values(self):
        vector = [1.0] * (DIMENSION - 1) + [float("nan")]
        guarded = GuardedEmbeddingProvider(FixedEmbeddingProvider(vector))
        with pytest.raises(EmbeddingUnavailable, match="non-finite"):
            guarded.embed("hello")

    def test_non_numeric_values(self):
        vector = ["x"] * DIMENSION
        guarded = GuardedEmbeddingProvider(FixedEmbeddingProvider(vector))
        with pytest.raises(EmbeddingUnavailable, match="non-numeric"):
            guarded.embed("hello")

    def test_numpy_like_values_become_floats(self):
        vector = [1] * DIMENSION
        guarded = GuardedEmbeddingProvider(FixedEmbeddingProvider(vector))
        result = guarded.embed("hello")
        assert result == [1.0] * DIMENSION
        assert all(isinstance(v, float) for v in result)

    def test_dimension_required_for_factory(self):
        with pytest.raises(ValueError):
            GuardedEmbeddingProvider(lambda: MockEmbeddingProvider())
