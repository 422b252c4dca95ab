"""
Core API for profile notes and semantic retrieval.

Every operation takes the caller's user id and touches only that user's
records:
- create_profile() / delete_profile() / list_profiles()
- submit(): embed notes → write key-value store → upsert mirror
- search(): resolve scope → embed query → rank by cosine similarity
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Optional

from .auth import StaticTokenVerifier, TokenVerifier, check_user_id, require_user
from .concurrency import call_with_timeout
from .config import StoreConfig, get_default_store_path, load_or_create_config
from .errors import InvalidInput, KeepsakeError, ProfileLimitReached
from .ingest import IngestionPipeline
from .protocol import KeyValueStoreProtocol, MirrorStoreProtocol
from .providers import EmbeddingProvider, GuardedEmbeddingProvider, get_registry
from .resolver import ProfileResolver
from .search import SimilaritySearchEngine, make_search_url
from .types import (
    KIND_CATEGORY, KIND_NOTE, Category, DeleteResult, MemoryRow, Note, Profile,
    SearchResults, SubmitAck, category_prefix, check_record_id, note_key, note_prefix,
    profile_key, record_kind, utc_now,
)

logger = logging.getLogger(__name__)


def _required_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field_name} is required")
    return value.strip()


class Keepsake:
    """
    Profile notes with semantic search.

    Example:
        ks = Keepsake()
        mom = ks.create_profile("user-1", "Mom", "My mother")
        ks.submit("user-1", mom.id, notes=[{"entry": "loves gardening"}])
        results = ks.search("user-1", "gardening", profile_name="mom")
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        kv_store: Optional[KeyValueStoreProtocol] = None,
        mirror: Optional[MirrorStoreProtocol] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        verifier: Optional[TokenVerifier] = None,
    ) -> None:
        """
        Open (or create) a keepsake store.

        Args:
            store_path: Store directory. Defaults to KEEPSAKE_STORE_PATH or ~/.keepsake.
            config: Ready-made StoreConfig; keepsake.toml is not read.
            kv_store: Injected key-value store (skips default backend creation).
            mirror: Injected mirror store (skips default backend creation).
            embedding_provider: Injected embedding provider (skips the registry).
            verifier: Token verifier for authenticate(). Defaults to the
                config's static token table.
        """
        if config is not None:
            self._config: StoreConfig = config
            self._store_path = config.path
        else:
            if store_path is not None:
                self._store_path = Path(store_path).expanduser().resolve()
            else:
                self._store_path = get_default_store_path()
            self._config = load_or_create_config(self._store_path)

        limits = self._config.limits
        self._timeout = limits.timeout

        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._store_path)

        # Injected stores win; a missing one comes from the configured backend
        if kv_store is not None and mirror is not None:
            self._kv = kv_store
            self._mirror = mirror
        else:
            from .backend import create_stores
            stores = create_stores(self._config)
            self._kv = kv_store or stores.kv_store
            self._mirror = mirror or stores.mirror

        # Embedding provider is created on first non-empty text, so
        # listing and deleting work without credentials or a model load
        if embedding_provider is not None:
            source = embedding_provider
            dimension = embedding_provider.dimension
        else:
            def source():
                return get_registry().create_embedding(
                    self._config.embedding.name,
                    self._config.embedding.params,
                )
            dimension = self._config.embedding_dimension
        self._embedder = GuardedEmbeddingProvider(
            source,
            dimension=dimension,
            timeout=self._timeout,
        )

        self._verifier: TokenVerifier = verifier or StaticTokenVerifier(self._config.auth_tokens)
        self._resolver = ProfileResolver(self._kv)
        self._ingest = IngestionPipeline(
            self._kv, self._mirror, self._embedder,
            timeout=self._timeout,
            max_workers=limits.max_workers,
        )
        self._search = SimilaritySearchEngine(
            self._kv, self._mirror, self._embedder, self._resolver,
            limit=limits.search_limit,
            timeout=self._timeout,
            search_url=make_search_url(self._config.search_url_template),
        )

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def embedder(self) -> GuardedEmbeddingProvider:
        return self._embedder

    def authenticate(self, token: Optional[str]) -> str:
        """Return the user id for ``token``, or raise Unauthorized."""
        return require_user(self._verifier, token)

    def _call(self, fn, *args, what: str):
        return call_with_timeout(fn, *args, timeout=self._timeout, what=what)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def create_profile(
        self,
        user_id: str,
        name: str,
        description: str,
        *,
        avatar: Optional[str] = None,
    ) -> Profile:
        """
        Create a profile for ``user_id``.

        Raises:
            Unauthorized: No user id
            InvalidInput: Missing name or description
            ProfileLimitReached: The user already has the maximum number of profiles
        """
        check_user_id(user_id)
        name = _required_text(name, "Name")
        description = _required_text(description, "Description")
        if avatar is not None and not isinstance(avatar, str):
            raise InvalidInput("Avatar must be a string")

        existing = self._call(self._resolver.list_profiles, user_id, what="profile listing")
        max_profiles = self._config.limits.max_profiles
        if len(existing) >= max_profiles:
            raise ProfileLimitReached(f"Maximum of {max_profiles} profiles allowed")

        profile = Profile(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            description=description,
            avatar=avatar or "",
            created_at=utc_now(),
        )
        self._call(self._kv.set, profile_key(user_id, profile.id), profile.to_record(),
                   what="profile write")
        try:
            self._call(self._mirror.upsert_profile, profile, what="mirror profile write")
        except KeepsakeError as e:
            logger.warning("Mirror profile write failed for %s: %s", profile.id, e)

        logger.info("Created profile %s (%s) for user %s", profile.id, profile.name, user_id)
        return profile

    def delete_profile(self, user_id: str, profile_id: str) -> DeleteResult:
        """
        Delete a profile and all of its categories and notes.

        The key-value store is cleared first. The mirror follows best-effort;
        a mirror failure is logged and reported as ``mirror_synced=False``.
        """
        check_user_id(user_id)
        profile_id = check_record_id(profile_id, "Profile id")

        def _primary_keys() -> list[str]:
            keys = [k for k, _ in self._kv.items_by_prefix(category_prefix(user_id, profile_id))]
            keys += [k for k, _ in self._kv.items_by_prefix(note_prefix(user_id, profile_id))]
            keys.append(profile_key(user_id, profile_id))
            return keys

        keys = self._call(_primary_keys, what="profile listing")
        deleted = self._call(self._kv.delete_many, keys, what="profile delete")

        mirror_synced = True
        try:
            self._call(self._mirror.delete_profile, user_id, profile_id, what="mirror profile delete")
        except KeepsakeError as e:
            mirror_synced = False
            logger.warning("Mirror delete failed for profile %s: %s", profile_id, e)

        logger.info("Deleted profile %s (%d records) for user %s", profile_id, deleted, user_id)
        return DeleteResult(deleted=deleted, mirror_synced=mirror_synced)

    def list_profiles(self, user_id: str) -> list[Profile]:
        check_user_id(user_id)
        return self._call(self._resolver.list_profiles, user_id, what="profile listing")

    # -------------------------------------------------------------------------
    # Categories and notes
    # -------------------------------------------------------------------------

    def list_categories(self, user_id: str, profile_id: str) -> list[Category]:
        check_user_id(user_id)
        profile_id = check_record_id(profile_id, "Profile id")
        values = self._call(self._kv.list_by_prefix, category_prefix(user_id, profile_id),
                            what="category listing")
        return [Category.from_record(v) for v in values if record_kind(v) == KIND_CATEGORY]

    def list_notes(self, user_id: str, profile_id: str) -> list[Note]:
        check_user_id(user_id)
        profile_id = check_record_id(profile_id, "Profile id")
        values = self._call(self._kv.list_by_prefix, note_prefix(user_id, profile_id),
                            what="note listing")
        return [Note.from_record(v) for v in values if record_kind(v) == KIND_NOTE]

    def submit(
        self,
        user_id: str,
        profile_id: str,
        categories: Optional[list[dict[str, Any]]] = None,
        notes: Optional[list[dict[str, Any]]] = None,
    ) -> SubmitAck:
        """
        Write a batch of categories and notes for one profile.

        See IngestionPipeline.submit for payload shapes. Raises SubmitFailed
        if any write fails; completed writes are not rolled back.
        """
        check_user_id(user_id)
        return self._ingest.submit(user_id, profile_id, categories, notes)

    def delete_note(self, user_id: str, profile_id: str, note_id: str) -> DeleteResult:
        """Delete one note; the mirror row follows best-effort."""
        check_user_id(user_id)
        profile_id = check_record_id(profile_id, "Profile id")
        note_id = check_record_id(note_id, "Note id")

        existed = self._call(self._kv.delete, note_key(user_id, profile_id, note_id),
                             what="note delete")
        mirror_synced = True
        try:
            self._call(self._mirror.delete_memory, user_id, profile_id, note_id,
                       what="mirror note delete")
        except KeepsakeError as e:
            mirror_synced = False
            logger.warning("Mirror delete failed for note %s: %s", note_id, e)

        logger.info("Deleted note %s from profile %s", note_id, profile_id)
        return DeleteResult(deleted=int(existed), mirror_synced=mirror_synced)

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    def search(
        self,
        user_id: str,
        query: str,
        *,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
        source: str = "primary",
        limit: Optional[int] = None,
    ) -> SearchResults:
        """
        Find the user's notes most similar to ``query``.

        Args:
            profile_id: Limit to one profile
            profile_name: Limit to the profile with this display name
                (case-insensitive, surrounding whitespace ignored)
            source: ``"primary"`` ranks key-value store notes, ``"mirror"``
                ranks mirror rows
            limit: Maximum hits (default from config, normally 10)
        """
        check_user_id(user_id)
        return self._search.search(
            user_id, query,
            profile_id=profile_id,
            profile_name=profile_name,
            source=source,
            limit=limit,
        )

    def list_memories(
        self,
        user_id: str,
        *,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
    ) -> list[MemoryRow]:
        """Mirror rows for the user, optionally narrowed by profile id or name."""
        check_user_id(user_id)
        return self._call(
            lambda: self._mirror.list_memories(
                user_id, profile_id=profile_id, profile_name=profile_name),
            what="mirror listing",
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def health(self) -> dict[str, Any]:
        """Reachability of each store, plus the configured embedding provider."""
        status: dict[str, Any] = {
            "store_path": str(self._store_path),
            "embedding": self._config.embedding.name,
            "dimension": self._embedder.dimension,
        }
        for label, store in (("kv_store", self._kv), ("mirror", self._mirror)):
            try:
                self._call(store.count, what=f"{label} health check")
                status[label] = "ok"
            except KeepsakeError as e:
                status[label] = f"error: {e}"
        status["ok"] = status["kv_store"] == "ok" and status["mirror"] == "ok"
        return status

    def close(self) -> None:
        """Close stores and detach the operations log."""
        for store in (self._kv, self._mirror):
            try:
                store.close()
            except KeepsakeError as e:
                logger.warning("Error closing %s: %s", type(store).__name__, e)

        if self._ops_log_handler is not None:
            from .logging_config import remove_ops_log
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
