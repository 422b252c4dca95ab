"""
Data types for profile notes and semantic retrieval.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import InvalidInput


# Discriminant stored on every primary-store record
KIND_PROFILE = "profile"
KIND_CATEGORY = "category"
KIND_NOTE = "note"

# Reported as `used_profile` when a search covers every profile
ALL_PROFILES = "all-profiles"


def utc_now() -> str:
    """Current UTC timestamp in ISO 8601 format with millisecond precision.

    All timestamps in keepsake are UTC. This is the single source of
    truth for timestamp formatting.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Key layout
# ---------------------------------------------------------------------------

KEY_SEPARATOR = ":"


def is_key_segment(value: Any) -> bool:
    """True for a non-blank string that can sit between key separators.

    Listing is a plain prefix match, so a user or record id containing the
    separator could produce keys inside another user's or profile's range.
    """
    return isinstance(value, str) and bool(value.strip()) and KEY_SEPARATOR not in value


def profile_name_key(name: str) -> str:
    """Comparison form of a profile display name: trimmed, lowercased."""
    return name.strip().lower()


def check_record_id(value: Any, field_name: str) -> str:
    """Return a trimmed profile, category or note id, or raise InvalidInput."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field_name} is required")
    if KEY_SEPARATOR in value:
        raise InvalidInput(f"{field_name} may not contain '{KEY_SEPARATOR}'")
    return value.strip()


def user_prefix(user_id: str) -> str:
    """Prefix covering all of a user's profiles, categories and notes."""
    return f"user:{user_id}:profile:"


def profile_key(user_id: str, profile_id: str) -> str:
    return f"user:{user_id}:profile:{profile_id}"


def category_prefix(user_id: str, profile_id: str) -> str:
    return f"{profile_key(user_id, profile_id)}:category:"


def category_key(user_id: str, profile_id: str, category_id: str) -> str:
    return f"{category_prefix(user_id, profile_id)}{category_id}"


def note_prefix(user_id: str, profile_id: str) -> str:
    return f"{profile_key(user_id, profile_id)}:note:"


def note_key(user_id: str, profile_id: str, note_id: str) -> str:
    return f"{note_prefix(user_id, profile_id)}{note_id}"


def record_kind(value: dict[str, Any]) -> Optional[str]:
    """
    Classify a stored record as profile, category or note.

    Records written by keepsake carry an explicit ``kind``. Older records
    don't, and are classified by which fields are present: notes carry
    ``entry``, categories carry a ``profileId`` but no ``description``,
    profiles carry ``name`` and ``description``.
    """
    kind = value.get("kind")
    if kind in (KIND_PROFILE, KIND_CATEGORY, KIND_NOTE):
        return kind
    if "entry" in value:
        return KIND_NOTE
    if value.get("name") and value.get("description") and not value.get("categoryName"):
        return KIND_PROFILE
    if value.get("name") and value.get("profileId"):
        return KIND_CATEGORY
    return None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Profile:
    """A named person that notes are attached to."""
    id: str
    user_id: str
    name: str
    description: str
    avatar: str = ""
    created_at: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "kind": KIND_PROFILE,
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "description": self.description,
            "userId": self.user_id,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> "Profile":
        return cls(
            id=rec["id"],
            user_id=rec.get("userId", ""),
            name=rec.get("name", ""),
            description=rec.get("description", ""),
            avatar=rec.get("avatar") or "",
            created_at=rec.get("createdAt", ""),
        )


@dataclass(frozen=True)
class Category:
    """A grouping of notes in the editing UI. Carries no search semantics."""
    id: str
    profile_id: str
    user_id: str
    name: str
    created_at: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "kind": KIND_CATEGORY,
            "id": self.id,
            "name": self.name,
            "profileId": self.profile_id,
            "userId": self.user_id,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> "Category":
        return cls(
            id=rec["id"],
            profile_id=rec.get("profileId", ""),
            user_id=rec.get("userId", ""),
            name=rec.get("name", ""),
            created_at=rec.get("createdAt", ""),
        )


@dataclass(frozen=True)
class Note:
    """
    A free-text note attached to a profile.

    A note without an embedding is not search-eligible.
    """
    id: str
    profile_id: str
    user_id: str
    entry: Optional[str]
    category_id: Optional[str] = None
    embedding: Optional[list[float]] = None
    created_at: str = ""
    updated_at: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "kind": KIND_NOTE,
            "id": self.id,
            "entry": self.entry,
            "categoryId": self.category_id,
            "profileId": self.profile_id,
            "userId": self.user_id,
            "embedding": self.embedding,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> "Note":
        return cls(
            id=rec["id"],
            profile_id=rec.get("profileId", ""),
            user_id=rec.get("userId", ""),
            entry=rec.get("entry"),
            category_id=rec.get("categoryId"),
            embedding=rec.get("embedding"),
            created_at=rec.get("createdAt", ""),
            updated_at=rec.get("updatedAt", ""),
        )


@dataclass(frozen=True)
class MemoryRow:
    """
    Mirror projection of a Note.

    ``profile_name`` is captured when the row is written and is not
    refreshed if the profile is renamed later.
    """
    id: str
    user_id: str
    profile_id: str
    profile_name: Optional[str]
    entry: Optional[str]
    embedding: Optional[list[float]]
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_note(cls, note: Note, profile_name: Optional[str]) -> "MemoryRow":
        return cls(
            id=note.id,
            user_id=note.user_id,
            profile_id=note.profile_id,
            profile_name=profile_name,
            entry=note.entry,
            embedding=note.embedding,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchHit:
    """A single ranked note."""
    note_id: str
    entry: Optional[str]
    profile_id: str
    similarity: float
    search_url: Optional[str] = None

    @property
    def relevance(self) -> str:
        """Similarity as a percentage string, e.g. ``"87.50%"``."""
        return f"{self.similarity * 100:.2f}%"

    def to_dict(self) -> dict[str, Any]:
        d = {
            "noteId": self.note_id,
            "entry": self.entry,
            "profileId": self.profile_id,
            "relevanceScore": self.relevance,
        }
        if self.search_url is not None:
            d["searchUrl"] = self.search_url
        return d


@dataclass(frozen=True)
class SearchResults:
    """
    Ranked search output.

    ``no_notes`` is True when there was nothing to search, which is
    reported as an empty result rather than an error.
    """
    query: str
    used_profile: str
    total_searched: int
    hits: list[SearchHit] = field(default_factory=list)
    message: str = ""

    @property
    def no_notes(self) -> bool:
        return self.total_searched == 0

    def __len__(self) -> int:
        return len(self.hits)

    def __iter__(self):
        return iter(self.hits)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "usedProfile": self.used_profile,
            "totalNotesSearched": self.total_searched,
            "relevantNotes": [h.to_dict() for h in self.hits],
            "message": self.message,
        }


@dataclass(frozen=True)
class DeleteResult:
    """
    Outcome of a delete.

    The primary store is authoritative: ``deleted`` reflects it.
    ``mirror_synced`` is False when the mirror could not be updated;
    the stale rows stay until the next delete or overwrite.
    """
    deleted: int
    mirror_synced: bool = True


@dataclass(frozen=True)
class SubmitAck:
    """Identifiers written by a successful submit, in payload order."""
    profile_id: str
    category_ids: list[str] = field(default_factory=list)
    note_ids: list[str] = field(default_factory=list)
