"""
Profile name resolution.
"""

import logging
from typing import Optional

from .errors import InvalidInput, ProfileNotFound
from .protocol import KeyValueStoreProtocol
from .types import (
    KIND_PROFILE, Profile, check_record_id, profile_name_key, record_kind, user_prefix,
)

logger = logging.getLogger(__name__)


class ProfileResolver:
    """
    Resolves a profile reference to a profile id, scoped to one user.

    An id passes through unchanged without an existence check. A name is
    matched case-insensitively, ignoring surrounding whitespace, against
    the user's profiles. Names are not unique: when several profiles
    share a name the first in listing order wins, and that order is only
    as stable as the store's listing order.
    """

    def __init__(self, kv_store: KeyValueStoreProtocol):
        self._kv = kv_store

    def list_profiles(self, user_id: str) -> list[Profile]:
        """All profiles owned by ``user_id``, in listing order."""
        return [
            Profile.from_record(value)
            for value in self._kv.list_by_prefix(user_prefix(user_id))
            if record_kind(value) == KIND_PROFILE
        ]

    def resolve(
        self,
        user_id: str,
        *,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
    ) -> str:
        """
        Return the profile id for an id or a display name.

        Raises:
            InvalidInput: Neither profile_id nor profile_name given
            ProfileNotFound: No profile has that name
        """
        if profile_id:
            return check_record_id(profile_id, "Profile id")
        if profile_name is None or not isinstance(profile_name, str):
            raise InvalidInput("profile_id or profile_name is required")

        wanted = profile_name_key(profile_name)
        matches = [
            p for p in self.list_profiles(user_id)
            if p.name and profile_name_key(p.name) == wanted
        ]
        if not matches:
            raise ProfileNotFound(profile_name)
        if len(matches) > 1:
            logger.debug(
                "Profile name %r matches %d profiles, using %s",
                profile_name, len(matches), matches[0].id,
            )
        return matches[0].id
