"""Retry policy shared by the LLM and OCR collaborators."""

from __future__ import annotations

import logging

import httpx
from openai import APIConnectionError, APITimeoutError

logger = logging.getLogger(__name__)

# Only failures that may succeed on a second try; quota/auth errors fail fast.
TRANSIENT_ERRORS = (
    APIConnectionError,
    APITimeoutError,
    httpx.ReadTimeout,
    httpx.ConnectTimeout,
)


def stop_after_configured_attempts(retry_state) -> bool:
    # attempts are read per client instance (args[0] is `self`)
    attempts = getattr(retry_state.args[0], "max_attempts", 3) if retry_state.args else 3
    return retry_state.attempt_number >= max(1, int(attempts))


def log_retry(op: str, retry_state) -> None:
    client = retry_state.args[0] if retry_state.args else None
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying %s (model=%s), attempt=%s, exception=%s",
        op,
        getattr(client, "model", "unknown"),
        retry_state.attempt_number,
        exc,
    )
