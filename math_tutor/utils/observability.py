"""
Structured log events and timing spans.

Every event is one JSON object on one line with a stable "event" key, so logs can be
grepped (`"event":"response_parsed"`) or shipped as-is. Spans also feed the
`span_duration_seconds{span}` histogram.
"""

from __future__ import annotations

import functools
import inspect
import json
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from math_tutor.utils.metrics import observe_histogram

_PREVIEW_CHARS = 300


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return repr(value) if isinstance(value, bytes) else str(value)


def _preview(value: Any, limit: int = _PREVIEW_CHARS) -> str:
    try:
        s = json.dumps(_jsonable(value), ensure_ascii=False)
    except (TypeError, ValueError):
        s = repr(value)
    return s if len(s) <= limit else s[:limit] + "…"


def log_event(logger: logging.Logger, event: str, *, level: str = "info", **fields: Any) -> None:
    """Best-effort: a broken field or handler never propagates into the caller."""
    try:
        record: Dict[str, Any] = {"event": event}
        record.update({k: _jsonable(v) for k, v in fields.items() if v is not None})
        emit = getattr(logger, level, logger.info)
        emit(json.dumps(record, ensure_ascii=False, separators=(",", ":")))
    except Exception:
        return


class _Span:
    def __init__(self, logger: logging.Logger, name: str):
        self.logger = logger
        self.name = name
        self.started = time.monotonic()

    def _elapsed(self) -> float:
        return time.monotonic() - self.started

    def start(self, args_preview: Optional[Dict[str, str]]) -> None:
        log_event(self.logger, "trace_start", span=self.name, **(args_preview or {}))

    def ok(self, result_preview: Optional[str]) -> None:
        elapsed = self._elapsed()
        observe_histogram("span_duration_seconds", value=elapsed, labels={"span": self.name})
        log_event(
            self.logger,
            "trace_end",
            span=self.name,
            elapsed_ms=int(elapsed * 1000),
            result=result_preview,
        )

    def failed(self, exc: BaseException) -> None:
        log_event(
            self.logger,
            "trace_end",
            level="warning",
            span=self.name,
            elapsed_ms=int(self._elapsed() * 1000),
            error_type=exc.__class__.__name__,
            error=str(exc),
        )


def trace_span(
    name: str,
    *,
    include_args: bool = False,
    include_result: bool = False,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Wrap a function (sync or async) in trace_start/trace_end events.
    Exceptions (cancellation included) are logged and re-raised unchanged.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        logger = logging.getLogger(fn.__module__)

        def _args_preview(args: tuple, kwargs: dict) -> Optional[Dict[str, str]]:
            if not include_args:
                return None
            return {"args": _preview(args), "kwargs": _preview(kwargs)}

        def _result_preview(result: Any) -> Optional[str]:
            return _preview(result) if include_result else None

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                span = _Span(logger, name)
                span.start(_args_preview(args, kwargs))
                try:
                    result = await fn(*args, **kwargs)
                except BaseException as e:
                    span.failed(e)
                    raise
                span.ok(_result_preview(result))
                return result

            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            span = _Span(logger, name)
            span.start(_args_preview(args, kwargs))
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                span.failed(e)
                raise
            span.ok(_result_preview(result))
            return result

        return wrapper

    return decorator
