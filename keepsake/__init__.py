"""
Keepsake

Notes about the people in your life, with semantic search across them.

Quick Start:
    from keepsake import Keepsake

    ks = Keepsake()  # uses ~/.keepsake/
    mom = ks.create_profile("user-1", "Mom", "My mother")
    ks.submit("user-1", mom.id, notes=[{"entry": "loves gardening"}])
    results = ks.search("user-1", "gift for a gardener", profile_name="mom")

CLI Usage:
    keepsake -u user-1 profiles
    keepsake -u user-1 search "gardening" --profile Mom

Default Store:
    ~/.keepsake/ (created automatically).
    Override with KEEPSAKE_STORE_PATH or explicit path argument.

Environment Variables:
    KEEPSAKE_STORE_PATH   - Override default store location
    KEEPSAKE_VERBOSE      - Set to 1 for debug logging
    GEMINI_API_KEY        - API key for the Gemini embedding provider
    OLLAMA_BASE_URL       - Use a local Ollama server for embeddings

keepsake.toml in the store directory picks the embedding provider and the
limits; it is written with detected defaults the first time a store opens.
"""

# Sets the quiet Hugging Face environment before any provider SDK loads
from . import logging_config  # noqa: F401

from .api import Keepsake
from .errors import (
    EmbeddingUnavailable, InvalidInput, KeepsakeError, ProfileLimitReached,
    ProfileNotFound, StoreUnavailable, SubmitFailed, Timeout, Unauthorized,
)
from .types import (
    Category, DeleteResult, MemoryRow, Note, Profile, SearchHit, SearchResults,
    SubmitAck,
)

__version__ = "0.1.0"
__all__ = [
    "Keepsake",
    "Profile",
    "Category",
    "Note",
    "MemoryRow",
    "SearchHit",
    "SearchResults",
    "SubmitAck",
    "DeleteResult",
    "KeepsakeError",
    "Unauthorized",
    "InvalidInput",
    "ProfileLimitReached",
    "ProfileNotFound",
    "EmbeddingUnavailable",
    "StoreUnavailable",
    "Timeout",
    "SubmitFailed",
]
