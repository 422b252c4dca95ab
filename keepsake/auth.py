"""
Authentication collaborator interface.

keepsake does not issue or validate credentials itself. Callers supply a
TokenVerifier that maps a bearer token to a user id; every operation then
runs as that user. StaticTokenVerifier covers local use and tests, with
tokens taken from the ``[auth] tokens`` table of keepsake.toml.
"""

from typing import Optional, Protocol, runtime_checkable

from .errors import Unauthorized
from .types import KEY_SEPARATOR, is_key_segment


@runtime_checkable
class TokenVerifier(Protocol):
    """Maps a token to ``(user_id, None)`` or ``(None, error_message)``."""

    def verify(self, token: Optional[str]) -> tuple[Optional[str], Optional[str]]: ...


class StaticTokenVerifier:
    """Verifies tokens against a fixed token -> user id table."""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = dict(tokens)

    def verify(self, token: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        if not token:
            return None, "missing token"
        user_id = self._tokens.get(token)
        if user_id is None:
            return None, "invalid token"
        return user_id, None


def bearer_token(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` value."""
    if not header:
        return None
    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def require_user(verifier: TokenVerifier, token: Optional[str]) -> str:
    """
    Return the user id for ``token``.

    Raises:
        Unauthorized: The verifier rejected the token or returned no user
    """
    user_id, error = verifier.verify(token)
    if error or not user_id:
        raise Unauthorized(f"Unauthorized: {error or 'no user'}")
    return user_id


def check_user_id(user_id: Optional[str]) -> str:
    """Reject a missing, blank or malformed user id before any store is touched."""
    if not isinstance(user_id, str) or not user_id.strip():
        raise Unauthorized("Unauthorized: no user")
    if not is_key_segment(user_id):
        raise Unauthorized(f"Unauthorized: user id may not contain '{KEY_SEPARATOR}'")
    return user_id
