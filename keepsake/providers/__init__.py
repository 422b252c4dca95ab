"""
Provider interfaces for keepsake.

Concrete embedding providers register themselves with the global
registry when ``keepsake.providers.embeddings`` is imported.
"""

from .base import EmbeddingProvider, ProviderRegistry, get_registry
from .guarded import GuardedEmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "GuardedEmbeddingProvider",
    "ProviderRegistry",
    "get_registry",
]
