"""
Embedding providers.

- gemini: Google text-embedding models over the google-genai SDK (reference, 768-d)
- ollama: local Ollama server over HTTP
- sentence-transformers: local model, no network
"""

import logging
import os
from pathlib import Path

from .base import get_registry

logger = logging.getLogger(__name__)


def _get_google_api_key() -> str:
    """Get API key from environment or secrets file."""
    key = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
    if key:
        return key
    secrets_path = Path.home() / ".secrets" / "GEMINI_API_KEY"
    if secrets_path.exists():
        return secrets_path.read_text().strip()
    raise ValueError(
        "GEMINI_API_KEY not found. Set environment variable or create ~/.secrets/GEMINI_API_KEY"
    )


class GeminiEmbedding:
    """
    Embedding provider using Google's Gemini embedding API.

    Default model is text-embedding-004, which produces 768-dimensional
    vectors.
    """

    def __init__(
        self,
        model: str = "text-embedding-004",
        dimension: int = 768,
        api_key: str | None = None,
        timeout: float = 30.0,
    ):
        from google import genai
        from google.genai import types

        self.model_name = model
        self._dimension = dimension
        self._types = types
        self._client = genai.Client(
            api_key=api_key or _get_google_api_key(),
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        response = self._client.models.embed_content(
            model=self.model_name,
            contents=text,
            config=self._types.EmbedContentConfig(
                output_dimensionality=self._dimension,
            ),
        )
        if not response.embeddings:
            raise RuntimeError(f"Gemini returned no embedding for model {self.model_name}")
        return list(response.embeddings[0].values or [])


class OllamaEmbedding:
    """
    Embedding provider using a local Ollama server.

    The model is pulled on first use if it isn't installed.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        dimension: int = 768,
        base_url: str | None = None,
        timeout: float = 30.0,
        auto_pull: bool = True,
    ):
        self.model_name = model
        self._dimension = dimension
        self._base_url = (
            base_url or os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
        ).rstrip("/")
        self._timeout = timeout
        self._checked = not auto_pull

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        import requests

        if not self._checked:
            from .ollama_utils import ollama_ensure_model
            ollama_ensure_model(self._base_url, self.model_name)
            self._checked = True

        resp = requests.post(
            f"{self._base_url}/api/embeddings",
            json={"model": self.model_name, "prompt": text},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        embedding = resp.json().get("embedding")
        if not embedding:
            raise RuntimeError(f"Ollama returned no embedding for model {self.model_name}")
        return embedding


class SentenceTransformerEmbedding:
    """
    Embedding provider using a local sentence-transformers model.

    The model loads on first use. ``dimension`` is taken from the model
    once loaded; the configured value is reported until then.
    """

    def __init__(
        self,
        model: str = "all-mpnet-base-v2",
        dimension: int = 768,
        timeout: float = 30.0,
    ):
        self.model_name = model
        self._dimension = dimension
        self._model = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            logger.info("Loading sentence-transformers model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
            actual = self._model.get_sentence_embedding_dimension()
            if actual and actual != self._dimension:
                logger.warning(
                    "Model %s produces %d-d vectors, config says %d",
                    self.model_name, actual, self._dimension,
                )
                self._dimension = actual
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        return self.model.encode(text).tolist()


_registry = get_registry()
_registry.register_embedding("gemini", GeminiEmbedding)
_registry.register_embedding("ollama", OllamaEmbedding)
_registry.register_embedding("sentence-transformers", SentenceTransformerEmbedding)
