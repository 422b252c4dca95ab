"""
Model provisioning for the Ollama embedding provider.

OllamaEmbedding calls ``ollama_ensure_model`` once, before its first
embedding request. A server that lacks the embedding model downloads it
then, so a fresh install can start embedding notes without a manual
``ollama pull``.
"""

import json
import logging
from collections.abc import Iterator

import requests

logger = logging.getLogger(__name__)

TAGS_TIMEOUT = 5
PULL_TIMEOUT = 600
PROGRESS_STEP = 25  # percent between logged progress lines


def _model_names(model: str) -> set[str]:
    """Names under which the server may list ``model``."""
    base = model.split(":", 1)[0]
    return {model, base, f"{base}:latest"}


def _pull_events(base_url: str, model: str) -> Iterator[dict]:
    """Stream the JSON status objects of an ``/api/pull`` request."""
    try:
        resp = requests.post(
            f"{base_url}/api/pull",
            json={"name": model, "stream": True},
            stream=True,
            timeout=PULL_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(f"Failed to pull embedding model '{model}': {e}") from e

    for line in resp.iter_lines():
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping unparseable pull status line %r", line)


def ollama_ensure_model(base_url: str, model: str) -> None:
    """
    Make sure ``model`` is installed on the Ollama server at ``base_url``.

    Progress is logged under ``keepsake.providers.ollama_utils`` at INFO.

    Raises:
        RuntimeError: the server is unreachable or the download fails
    """
    try:
        resp = requests.get(f"{base_url}/api/tags", timeout=TAGS_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(
            f"Cannot reach Ollama at {base_url}; notes cannot be embedded "
            "until the server is running (ollama serve)"
        ) from e

    installed = {m["name"] for m in resp.json().get("models", [])}
    if installed & _model_names(model):
        return

    logger.info("Embedding model %s missing on %s, downloading", model, base_url)
    next_report = 0
    for event in _pull_events(base_url, model):
        if event.get("error"):
            raise RuntimeError(f"Ollama could not pull '{model}': {event['error']}")
        total, done = event.get("total") or 0, event.get("completed") or 0
        if total and done * 100 >= next_report * total:
            logger.info("%s: %s %d%%", model, event.get("status", ""), done * 100 // total)
            next_report = done * 100 // total + PROGRESS_STEP
    logger.info("Embedding model %s ready", model)
