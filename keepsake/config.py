"""
Store configuration, kept as ``keepsake.toml`` in the store directory.

    [store]
    version = 1
    backend = "local"

    [embedding]
    name = "gemini"
    model = "text-embedding-004"
    dimension = 768

    [limits]
    max_profiles = 5
    search_limit = 10
    timeout = 30.0
    max_workers = 8

    [search]
    url_template = "https://www.amazon.com/s?k={query}"

    [auth.tokens]
    "some-token" = "user-id"

Everything except ``[embedding] name`` has a default. A new store gets an
embedding provider picked from the environment.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import tomli_w


CONFIG_FILENAME = "keepsake.toml"
CONFIG_VERSION = 1

DEFAULT_EMBEDDING_DIMENSION = 768
DEFAULT_MAX_PROFILES = 5
DEFAULT_SEARCH_LIMIT = 10
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 8
DEFAULT_SEARCH_URL_TEMPLATE = "https://www.amazon.com/s?k={query}"


@dataclass
class ProviderConfig:
    """A provider name from the registry and its constructor keywords."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Limits:
    max_profiles: int = DEFAULT_MAX_PROFILES
    search_limit: int = DEFAULT_SEARCH_LIMIT
    timeout: float = DEFAULT_TIMEOUT  # seconds, per embedding/store call
    max_workers: int = DEFAULT_MAX_WORKERS


@dataclass
class StoreConfig:
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    backend: str = "local"

    embedding: ProviderConfig = field(default_factory=lambda: ProviderConfig(
        "gemini", {"model": "text-embedding-004", "dimension": DEFAULT_EMBEDDING_DIMENSION},
    ))
    limits: Limits = field(default_factory=Limits)
    search_url_template: str = DEFAULT_SEARCH_URL_TEMPLATE
    auth_tokens: dict[str, str] = field(default_factory=dict)

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILENAME

    @property
    def embedding_dimension(self) -> int:
        """Vector length every stored note embedding is expected to have."""
        return int(self.embedding.params.get("dimension", DEFAULT_EMBEDDING_DIMENSION))

    def to_toml(self) -> dict[str, Any]:
        return {
            "store": {
                "version": self.version,
                "created": self.created,
                "backend": self.backend,
            },
            "embedding": {"name": self.embedding.name, **self.embedding.params},
            "limits": {
                "max_profiles": self.limits.max_profiles,
                "search_limit": self.limits.search_limit,
                "timeout": self.limits.timeout,
                "max_workers": self.limits.max_workers,
            },
            "search": {"url_template": self.search_url_template},
            "auth": {"tokens": dict(self.auth_tokens)},
        }


def get_default_store_path() -> Path:
    """Store directory from KEEPSAKE_STORE_PATH, else ~/.keepsake."""
    env = os.environ.get("KEEPSAKE_STORE_PATH")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / ".keepsake"


def detect_default_embedding() -> ProviderConfig:
    """
    Pick an embedding provider for a new store.

    A Gemini key selects Gemini (the 768-d reference model). Otherwise
    OLLAMA_BASE_URL selects Ollama. With neither, notes are embedded
    locally with sentence-transformers.
    """
    if os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY"):
        name, model = "gemini", "text-embedding-004"
    elif os.environ.get("OLLAMA_BASE_URL"):
        name, model = "ollama", "nomic-embed-text"
    else:
        name, model = "sentence-transformers", "all-mpnet-base-v2"
    return ProviderConfig(name, {"model": model, "dimension": DEFAULT_EMBEDDING_DIMENSION})


def _parse_limits(raw: dict[str, Any], source: Path) -> Limits:
    try:
        return Limits(
            max_profiles=int(raw.get("max_profiles", DEFAULT_MAX_PROFILES)),
            search_limit=int(raw.get("search_limit", DEFAULT_SEARCH_LIMIT)),
            timeout=float(raw.get("timeout", DEFAULT_TIMEOUT)),
            max_workers=int(raw.get("max_workers", DEFAULT_MAX_WORKERS)),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config {source}: [limits] {e}") from e


def _parse_tokens(raw: Any, source: Path) -> dict[str, str]:
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config {source}: [auth] tokens must be a table")
    return {str(token): str(user_id) for token, user_id in raw.items()}


def load_config(store_path: Path) -> StoreConfig:
    """
    Read ``keepsake.toml`` from ``store_path``.

    Raises:
        FileNotFoundError: the store has no config yet
        ValueError: the file was written by a newer keepsake, or a section
            has the wrong shape
    """
    source = store_path / CONFIG_FILENAME
    if not source.exists():
        raise FileNotFoundError(f"No keepsake config at {source}")
    data = tomllib.loads(source.read_text())

    store = data.get("store", {})
    version = store.get("version", CONFIG_VERSION)
    if version > CONFIG_VERSION:
        raise ValueError(
            f"{source} has config version {version}, which is newer than "
            f"this keepsake supports ({CONFIG_VERSION})"
        )

    embedding = dict(data.get("embedding", {"name": "gemini"}))
    name = embedding.pop("name", None)
    if not name:
        raise ValueError(f"Invalid config {source}: [embedding] name is required")

    return StoreConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        backend=store.get("backend", "local"),
        embedding=ProviderConfig(name, embedding),
        limits=_parse_limits(data.get("limits", {}), source),
        search_url_template=data.get("search", {}).get("url_template", DEFAULT_SEARCH_URL_TEMPLATE),
        auth_tokens=_parse_tokens(data.get("auth", {}).get("tokens", {}), source),
    )


def save_config(config: StoreConfig) -> None:
    config.path.mkdir(parents=True, exist_ok=True)
    config.config_path.write_text(tomli_w.dumps(config.to_toml()))


def load_or_create_config(store_path: Path) -> StoreConfig:
    """Open the store's config, writing one with detected defaults on first use."""
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path, embedding=detect_default_embedding())
    save_config(config)
    return config
