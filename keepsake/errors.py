"""
Error taxonomy for keepsake, plus the CLI error log.

The CLI prints one line per failure and appends the traceback to
keepsake-errors.log in the store directory.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class KeepsakeError(Exception):
    """Base class for all keepsake errors."""


class Unauthorized(KeepsakeError):
    """Missing or invalid credential. No store was touched."""


class InvalidInput(KeepsakeError, ValueError):
    """Missing required field or malformed payload. No store was touched."""


class ProfileLimitReached(KeepsakeError):
    """The user already owns the maximum number of profiles."""


class ProfileNotFound(KeepsakeError, LookupError):
    """A profile name did not match any of the user's profiles."""

    def __init__(self, name: str):
        super().__init__(f"No profile found with name '{name}'")
        self.name = name


class EmbeddingUnavailable(KeepsakeError):
    """The embedding provider failed for non-empty text."""


class StoreUnavailable(KeepsakeError):
    """A persistence layer could not be reached or rejected the operation."""


class Timeout(KeepsakeError, TimeoutError):
    """An embedding or store call did not finish within its deadline."""


class SubmitFailed(KeepsakeError):
    """
    One or more writes of a submit did not complete.

    Writes that did complete are not rolled back. Resubmitting with the
    same identifiers overwrites them.
    """

    def __init__(self, errors: list[BaseException], total: int):
        self.errors = errors
        self.total = total
        first = errors[0] if errors else None
        detail = f": {first}" if first is not None else ""
        super().__init__(
            f"Submit incomplete: {len(errors)} of {total} writes failed{detail}"
        )


ERROR_LOG_NAME = "keepsake-errors.log"


def _error_log_path(store_path: Optional[Path] = None) -> Path:
    store = store_path or os.environ.get("KEEPSAKE_STORE_PATH")
    base = Path(store) if store else Path.home() / ".keepsake"
    return base / ERROR_LOG_NAME


def log_exception(exc: Exception, context: str = "", store_path: Optional[Path] = None) -> Path:
    """
    Append ``exc`` and its traceback to the error log and return the log's
    path. ``context`` is usually the CLI command that failed. The log lives
    in ``store_path`` when given, else in the default store directory.

    The log can contain note text, so it is created owner-only.
    """
    log_path = _error_log_path(store_path)
    header = f"[{datetime.now(timezone.utc).isoformat()}] {context}".rstrip()
    entry = "\n".join(["", "=" * 60, header, "".join(traceback.format_exception(exc))])
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(entry)
    except OSError:
        pass  # a broken error log must not hide the original error
    return log_path
