"""
Logging setup for keepsake.

Library output (model downloads, HTTP client chatter, warnings) is hidden
unless KEEPSAKE_VERBOSE is set. Each open store also keeps its own rotating
operations log so profile and note changes can be traced after the fact.
"""

import logging
import os
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

OPS_LOG_NAME = "keepsake-ops.log"
OPS_LOG_MAX_BYTES = 1_000_000
OPS_LOG_BACKUPS = 3

# Environment read by the Hugging Face stack at import time
_QUIET_ENV = {
    "HF_HUB_DISABLE_PROGRESS_BARS": "1",
    "TRANSFORMERS_VERBOSITY": "error",
    "TOKENIZERS_PARALLELISM": "false",
}

_NOISY_LOGGERS = (
    "sentence_transformers",
    "transformers",
    "httpx",
    "httpcore",
    "urllib3",
    "google_genai",
)

if not os.environ.get("KEEPSAKE_VERBOSE"):
    os.environ.update(_QUIET_ENV)
    os.environ["HF_HUB_DISABLE_TELEMETRY"] = "1"


def configure_quiet_mode(quiet: bool = True):
    """Hide warnings and drop third-party loggers to ERROR."""
    if not quiet:
        return
    os.environ.update(_QUIET_ENV)
    warnings.filterwarnings("ignore")
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def enable_debug_mode():
    """Send DEBUG records from keepsake and its providers to stderr."""
    warnings.filterwarnings("default")
    for var in ("HF_HUB_DISABLE_PROGRESS_BARS", "TRANSFORMERS_VERBOSITY"):
        os.environ.pop(var, None)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    has_stderr = any(
        isinstance(h, logging.StreamHandler) and h.stream is sys.stderr
        for h in root.handlers
    )
    if not has_stderr:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        # Submit fans out over worker threads
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))
        root.addHandler(handler)

    for name in ("keepsake",) + _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG)


def configure_ops_log(store_path) -> RotatingFileHandler:
    """
    Attach a rotating INFO log at ``{store_path}/keepsake-ops.log``.

    Active whether or not --verbose is given. The caller keeps the returned
    handler and passes it to ``remove_ops_log`` when the store is closed.
    """
    path = Path(store_path)
    path.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(path / OPS_LOG_NAME),
        maxBytes=OPS_LOG_MAX_BYTES,
        backupCount=OPS_LOG_BACKUPS,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    logger = logging.getLogger("keepsake")
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return handler


def remove_ops_log(handler) -> None:
    if handler is None:
        return
    logging.getLogger("keepsake").removeHandler(handler)
    handler.close()
