"""
Protocol definitions for Keepsake and its storage backends.

Defines interface contracts at two levels:
- KeepsakeProtocol: the public API (CLI, embedding applications)
- KeyValueStoreProtocol / MirrorStoreProtocol: internal storage backends
  (SQLite locally, hosted databases via the ``keepsake.backends`` entry point)
"""

from typing import Any, Optional, Protocol, runtime_checkable

from .types import (
    Category, DeleteResult, MemoryRow, Note, Profile, SearchResults, SubmitAck,
)


@runtime_checkable
class KeepsakeProtocol(Protocol):
    """The public interface for profile notes and semantic search."""

    # -- Profiles --

    def create_profile(
        self,
        user_id: str,
        name: str,
        description: str,
        *,
        avatar: Optional[str] = None,
    ) -> Profile: ...

    def delete_profile(self, user_id: str, profile_id: str) -> DeleteResult: ...

    def list_profiles(self, user_id: str) -> list[Profile]: ...

    # -- Categories and notes --

    def list_categories(self, user_id: str, profile_id: str) -> list[Category]: ...

    def list_notes(self, user_id: str, profile_id: str) -> list[Note]: ...

    def submit(
        self,
        user_id: str,
        profile_id: str,
        categories: Optional[list[dict[str, Any]]] = None,
        notes: Optional[list[dict[str, Any]]] = None,
    ) -> SubmitAck: ...

    def delete_note(self, user_id: str, profile_id: str, note_id: str) -> DeleteResult: ...

    # -- Query --

    def search(
        self,
        user_id: str,
        query: str,
        *,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
        source: str = "primary",
    ) -> SearchResults: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Storage backend protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """
    Namespaced record store. System of record.

    ``list_by_prefix`` order is backend-defined; callers must not depend
    on it beyond treating it as the candidate order for stable ranking.
    """

    def set(self, key: str, value: dict[str, Any]) -> None: ...

    def get(self, key: str) -> Optional[dict[str, Any]]: ...

    def delete(self, key: str) -> bool: ...

    def delete_many(self, keys: list[str]) -> int: ...

    def list_by_prefix(self, prefix: str) -> list[dict[str, Any]]: ...

    def items_by_prefix(self, prefix: str) -> list[tuple[str, dict[str, Any]]]: ...

    def count(self) -> int: ...

    def close(self) -> None: ...


@runtime_checkable
class MirrorStoreProtocol(Protocol):
    """Denormalized projection of profiles and notes for retrieval."""

    def upsert_profile(self, profile: Profile) -> None: ...

    def get_profile_name(self, user_id: str, profile_id: str) -> Optional[str]: ...

    def delete_profile(self, user_id: str, profile_id: str) -> int: ...

    def upsert_memory(self, row: MemoryRow) -> None: ...

    def delete_memory(self, user_id: str, profile_id: str, note_id: str) -> bool: ...

    def list_memories(
        self,
        user_id: str,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
    ) -> list[MemoryRow]: ...

    def count(self, user_id: Optional[str] = None) -> int: ...

    def close(self) -> None: ...
