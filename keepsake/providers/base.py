"""
Embedding provider interface and the name-based provider registry.

keepsake stores one vector per note and compares it against one vector per
query, so every provider must produce vectors of a single fixed length.
"""

from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Turns a piece of note or query text into a vector.

    Notes and queries must go through the same provider: vectors from
    different models are not comparable, and vectors of a different length
    score zero against everything.

    Minimal implementation:
        class ConstantEmbedding:
            dimension = 3

            def embed(self, text: str) -> list[float]:
                return [1.0, 0.0, 0.0]
    """

    @property
    def dimension(self) -> int:
        """Length of every vector returned by ``embed``."""
        ...

    def embed(self, text: str) -> list[float]:
        """Return the embedding of ``text``. May raise on provider failure."""
        ...


ProviderFactory = Callable[..., EmbeddingProvider]


class ProviderRegistry:
    """
    Maps the provider names used in ``keepsake.toml`` to provider classes.

    The ``[embedding]`` table of the store config names a provider and its
    keyword arguments; ``create_embedding`` turns that into an instance:

        registry.create_embedding("ollama", {"model": "nomic-embed-text"})

    The built-in providers are registered the first time the registry is
    queried, so importing keepsake never imports a provider SDK.
    """

    def __init__(self):
        self._factories: dict[str, ProviderFactory] = {}
        self._builtins_loaded = False

    def _load_builtins(self) -> None:
        if self._builtins_loaded:
            return
        self._builtins_loaded = True
        # Importing the module registers gemini, ollama and sentence-transformers
        from . import embeddings  # noqa: F401

    def register_embedding(self, name: str, factory: ProviderFactory) -> None:
        self._factories[name] = factory

    def create_embedding(self, name: str, params: dict | None = None) -> EmbeddingProvider:
        """
        Instantiate the provider registered as ``name``.

        Raises:
            ValueError: no provider has that name
            RuntimeError: the provider could not be constructed (missing
                SDK, missing credentials, bad parameters)
        """
        self._load_builtins()
        factory = self._factories.get(name)
        if factory is None:
            known = ", ".join(sorted(self._factories)) or "none"
            raise ValueError(
                f"Unknown embedding provider: '{name}' (known: {known}). "
                f"Check the [embedding] name in keepsake.toml."
            )
        try:
            return factory(**(params or {}))
        except ImportError as e:
            raise RuntimeError(
                f"Embedding provider '{name}' needs a package that is not installed: {e}"
            ) from e
        except (TypeError, ValueError) as e:
            raise RuntimeError(f"Cannot create embedding provider '{name}': {e}") from e

    def list_embedding_providers(self) -> list[str]:
        self._load_builtins()
        return list(self._factories)


_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """The process-wide registry that built-in providers register with."""
    return _registry
