"""
Semantic search over a user's notes.

Embeds the query, scores every candidate note by cosine similarity and
returns the best matches. Candidates come from the key-value store by
default, so a note deleted there never appears even if its mirror row
was left behind. ``source="mirror"`` ranks mirror rows instead, which is
what external readers of the mirror see.
"""

import logging
from typing import Callable, Optional
from urllib.parse import quote

from .concurrency import call_with_timeout
from .errors import InvalidInput
from .protocol import KeyValueStoreProtocol, MirrorStoreProtocol
from .providers.guarded import GuardedEmbeddingProvider
from .resolver import ProfileResolver
from .similarity import rank
from .types import (
    ALL_PROFILES, KIND_NOTE, Note, SearchHit, SearchResults,
    note_prefix, record_kind, user_prefix,
)

logger = logging.getLogger(__name__)

SOURCES = ("primary", "mirror")

NO_NOTES_MESSAGE = "No notes found. Please add notes to profiles first."
RESULTS_MESSAGE = "Use the matched notes to suggest relevant gift products to the user."


def make_search_url(template: str) -> Callable[[Optional[str]], str]:
    """
    Build a decorator that turns entry text into an external search URL.

    ``template`` contains ``{query}``, replaced by the URL-encoded entry.
    """
    def _url(entry: Optional[str]) -> str:
        return template.format(query=quote(entry or "", safe="-_.!~*'()"))
    return _url


class SimilaritySearchEngine:
    """Ranks a user's notes against a free-text query."""

    def __init__(
        self,
        kv_store: KeyValueStoreProtocol,
        mirror: MirrorStoreProtocol,
        embedder: GuardedEmbeddingProvider,
        resolver: ProfileResolver,
        *,
        limit: int = 10,
        timeout: Optional[float] = None,
        search_url: Optional[Callable[[Optional[str]], str]] = None,
    ):
        self._kv = kv_store
        self._mirror = mirror
        self._embedder = embedder
        self._resolver = resolver
        self._limit = limit
        self._timeout = timeout
        self._search_url = search_url

    def search(
        self,
        user_id: str,
        query: str,
        *,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
        source: str = "primary",
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SearchResults:
        """
        Rank notes by similarity to ``query``.

        Scope is one profile (by id, or by display name) or, when neither
        is given, every note the user owns. An empty query embeds to the
        zero vector and scores 0 against everything.

        Raises:
            InvalidInput: query is not a string, or unknown source
            ProfileNotFound: profile_name matches no profile
        """
        if not isinstance(query, str):
            raise InvalidInput("Query string is required")
        if source not in SOURCES:
            raise InvalidInput(f"Unknown search source {source!r}; expected one of {SOURCES}")

        deadline = timeout if timeout is not None else self._timeout
        limit = self._limit if limit is None else limit

        resolved: Optional[str] = None
        if profile_id or profile_name is not None:
            resolved = call_with_timeout(
                lambda: self._resolver.resolve(
                    user_id, profile_id=profile_id, profile_name=profile_name),
                timeout=deadline, what="profile resolution",
            )
        used_profile = resolved or ALL_PROFILES

        if source == "mirror":
            candidates = call_with_timeout(
                self._mirror.list_memories, user_id, resolved,
                timeout=deadline, what="mirror listing",
            )
        else:
            candidates = call_with_timeout(
                self._primary_candidates, user_id, resolved,
                timeout=deadline, what="note listing",
            )
        candidates = [c for c in candidates if c.embedding is not None]

        if not candidates:
            return SearchResults(
                query=query,
                used_profile=used_profile,
                total_searched=0,
                hits=[],
                message=NO_NOTES_MESSAGE,
            )

        query_embedding = self._embedder.embed(query, timeout=deadline)
        ranked = rank(query_embedding, candidates, lambda c: c.embedding, limit)

        hits = [
            SearchHit(
                note_id=c.id,
                entry=c.entry,
                profile_id=c.profile_id,
                similarity=score,
                search_url=self._search_url(c.entry) if self._search_url else None,
            )
            for c, score in ranked
        ]
        logger.debug(
            "Search %r over %d notes (%s, %s): top=%s",
            query, len(candidates), used_profile, source,
            hits[0].relevance if hits else "-",
        )
        return SearchResults(
            query=query,
            used_profile=used_profile,
            total_searched=len(candidates),
            hits=hits,
            message=RESULTS_MESSAGE,
        )

    def _primary_candidates(self, user_id: str, profile_id: Optional[str]) -> list[Note]:
        prefix = note_prefix(user_id, profile_id) if profile_id else user_prefix(user_id)
        return [
            Note.from_record(value)
            for value in self._kv.list_by_prefix(prefix)
            if record_kind(value) == KIND_NOTE
        ]
