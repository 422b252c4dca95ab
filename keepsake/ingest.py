"""
Batch ingestion of categories and notes for one profile.

A submit writes every category to the key-value store, and for every
note: embeds its text, writes the note (with its embedding) to the
key-value store, then upserts the matching mirror row. All writes run
concurrently and the submit succeeds only if every one of them does.

There is no rollback and no distributed transaction. If a submit fails
part-way, writes that completed stay applied, and a note can exist in
the key-value store without its mirror row until it is resubmitted or
deleted. Resubmitting with the same identifiers overwrites rather than
duplicates, so retrying a failed submit is safe.
"""

import logging
import uuid
from typing import Any, Optional

from .concurrency import call_with_timeout, fan_out
from .errors import InvalidInput, KeepsakeError, SubmitFailed
from .protocol import KeyValueStoreProtocol, MirrorStoreProtocol
from .providers.guarded import GuardedEmbeddingProvider
from .types import (
    Category, MemoryRow, Note, Profile, SubmitAck,
    category_key, check_record_id, note_key, profile_key, utc_now,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def _optional_str(payload: dict[str, Any], field_name: str, what: str) -> Optional[str]:
    value = payload.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"{what} {field_name} must be a string")
    return value


def _validate_batch(items: Any, what: str) -> list[dict[str, Any]]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise InvalidInput(f"{what}s must be a list")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidInput(f"{what} #{i} must be an object")
        if item.get("id") is not None:
            check_record_id(item["id"], f"{what} #{i} id")
    return items


class IngestionPipeline:
    """Writes submitted categories and notes to both stores."""

    def __init__(
        self,
        kv_store: KeyValueStoreProtocol,
        mirror: MirrorStoreProtocol,
        embedder: GuardedEmbeddingProvider,
        *,
        timeout: Optional[float] = None,
        max_workers: int = 8,
    ):
        self._kv = kv_store
        self._mirror = mirror
        self._embedder = embedder
        self._timeout = timeout
        self._max_workers = max_workers

    def submit(
        self,
        user_id: str,
        profile_id: str,
        categories: Optional[list[dict[str, Any]]] = None,
        notes: Optional[list[dict[str, Any]]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> SubmitAck:
        """
        Persist a batch of categories and notes for one profile.

        Category payloads: ``{"id"?, "name", "createdAt"?}``.
        Note payloads: ``{"id"?, "entry", "categoryId"?, "createdAt"?}``.
        Missing ids are assigned. Embeddings are always recomputed.

        Raises:
            InvalidInput: Malformed payload (nothing was written)
            SubmitFailed: One or more writes failed or missed the deadline
        """
        profile_id = check_record_id(profile_id, "profile_id")
        categories = _validate_batch(categories, "category")
        notes = _validate_batch(notes, "note")
        for i, payload in enumerate(notes):
            _optional_str(payload, "entry", f"note #{i}")
            _optional_str(payload, "categoryId", f"note #{i}")
            _optional_str(payload, "createdAt", f"note #{i}")
        for i, payload in enumerate(categories):
            _optional_str(payload, "name", f"category #{i}")
            _optional_str(payload, "createdAt", f"category #{i}")

        deadline = timeout if timeout is not None else self._timeout
        profile_name = self._profile_name(user_id, profile_id, deadline)

        category_ids = [c.get("id") or _new_id() for c in categories]
        note_ids = [n.get("id") or _new_id() for n in notes]

        calls = [
            (lambda c=payload, cid=cid: self._write_category(user_id, profile_id, cid, c))
            for payload, cid in zip(categories, category_ids)
        ] + [
            (lambda n=payload, nid=nid: self._write_note(
                user_id, profile_id, nid, n, profile_name, deadline))
            for payload, nid in zip(notes, note_ids)
        ]

        errors = fan_out(calls, timeout=deadline, max_workers=self._max_workers)
        if errors:
            logger.warning(
                "Submit for profile %s incomplete: %d of %d writes failed",
                profile_id, len(errors), len(calls),
            )
            raise SubmitFailed(errors, len(calls))

        logger.info(
            "Submitted %d categories, %d notes for profile %s",
            len(category_ids), len(note_ids), profile_id,
        )
        return SubmitAck(profile_id=profile_id, category_ids=category_ids, note_ids=note_ids)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _profile_name(self, user_id: str, profile_id: str, deadline: Optional[float]) -> Optional[str]:
        """
        Current display name, read once per submit.

        Prefers the mirror's profile row, falls back to the primary record.
        """
        try:
            name = call_with_timeout(
                self._mirror.get_profile_name, user_id, profile_id,
                timeout=deadline, what="mirror profile lookup",
            )
        except KeepsakeError as e:
            logger.warning("Mirror profile lookup failed for %s: %s", profile_id, e)
            name = None
        if name is not None:
            return name

        record = call_with_timeout(
            self._kv.get, profile_key(user_id, profile_id),
            timeout=deadline, what="profile lookup",
        )
        return Profile.from_record(record).name if record else None

    def _write_category(self, user_id: str, profile_id: str, category_id: str,
                        payload: dict[str, Any]) -> None:
        category = Category(
            id=category_id,
            profile_id=profile_id,
            user_id=user_id,
            name=payload.get("name") or "",
            created_at=payload.get("createdAt") or utc_now(),
        )
        self._kv.set(category_key(user_id, profile_id, category_id), category.to_record())

    def _write_note(self, user_id: str, profile_id: str, note_id: str,
                    payload: dict[str, Any], profile_name: Optional[str],
                    deadline: Optional[float]) -> None:
        entry = payload.get("entry")
        embedding = self._embedder.embed(entry or "", timeout=deadline)

        note = Note(
            id=note_id,
            profile_id=profile_id,
            user_id=user_id,
            entry=entry,
            category_id=payload.get("categoryId"),
            embedding=embedding,
            created_at=payload.get("createdAt") or utc_now(),
            updated_at=utc_now(),
        )
        self._kv.set(note_key(user_id, profile_id, note_id), note.to_record())
        self._mirror.upsert_memory(MemoryRow.from_note(note, profile_name))
