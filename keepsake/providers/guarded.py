"""
Contract wrapper around an embedding provider.

Every embedding keepsake stores or queries with goes through
GuardedEmbeddingProvider, which:

- returns the zero vector for empty or whitespace-only text without
  calling the provider
- bounds each provider call by a deadline (Timeout)
- turns provider failures into EmbeddingUnavailable
- rejects vectors whose length differs from the configured dimension
"""

import logging
import math
import threading
from typing import Callable, Optional, Union

from ..concurrency import call_with_timeout
from ..errors import EmbeddingUnavailable, Timeout
from .base import EmbeddingProvider

logger = logging.getLogger(__name__)

ProviderSource = Union[EmbeddingProvider, Callable[[], EmbeddingProvider]]


class GuardedEmbeddingProvider:
    """
    Embedding provider with keepsake's empty-text, failure and deadline rules.

    Args:
        provider: A provider instance, or a zero-argument factory that
            creates one on first non-empty text (so blank text never
            needs credentials or a model load).
        dimension: Fixed vector length. Defaults to ``provider.dimension``
            when an instance is given.
        timeout: Seconds allowed per provider call; None for no deadline.
    """

    def __init__(
        self,
        provider: ProviderSource,
        *,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        if hasattr(provider, "embed"):
            self._provider: Optional[EmbeddingProvider] = provider  # type: ignore[assignment]
            self._factory = None
            if dimension is None:
                dimension = provider.dimension  # type: ignore[union-attr]
        else:
            self._provider = None
            self._factory = provider
        if not dimension or dimension <= 0:
            raise ValueError("Embedding dimension must be a positive integer")
        self._dimension = int(dimension)
        self._timeout = timeout
        self._init_lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def provider(self) -> EmbeddingProvider:
        """The wrapped provider, created on first access."""
        if self._provider is None:
            with self._init_lock:
                if self._provider is None:
                    try:
                        self._provider = self._factory()
                    except Exception as e:
                        raise EmbeddingUnavailable(f"Embedding provider unavailable: {e}") from e
        return self._provider

    def zero_vector(self) -> list[float]:
        return [0.0] * self._dimension

    def embed(self, text: Optional[str], *, timeout: Optional[float] = None) -> list[float]:
        """
        Embed ``text``.

        Raises:
            Timeout: The provider did not answer within the deadline
            EmbeddingUnavailable: The provider failed or returned a bad vector
        """
        if text is None or not str(text).strip():
            return self.zero_vector()

        deadline = timeout if timeout is not None else self._timeout
        provider = self.provider
        try:
            vector = call_with_timeout(provider.embed, str(text), timeout=deadline, what="embedding")
        except Timeout:
            raise
        except Exception as e:
            logger.warning("Embedding failed (%s): %s", type(e).__name__, e)
            raise EmbeddingUnavailable(f"Embedding failed: {e}") from e

        return self._validate(vector)

    def _validate(self, vector) -> list[float]:
        try:
            values = [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingUnavailable(f"Provider returned a non-numeric embedding: {e}") from e
        if len(values) != self._dimension:
            raise EmbeddingUnavailable(
                f"Provider returned {len(values)}-d embedding, expected {self._dimension}"
            )
        if not all(math.isfinite(v) for v in values):
            raise EmbeddingUnavailable("Provider returned a non-finite embedding value")
        return values
