"""
Progressive hints for one problem.

    EMPTY --request--> AWAITING --ok--> HAS_HINTS --request--> AWAITING ...
                          |                 |
                          +--fail--> ERROR  +--max reached / isFinal--> EXHAUSTED

ERROR is recoverable: the next request retries the same step index.
EXHAUSTED is terminal: further requests return the last record without calling out.

Not safe for concurrent `request_next()` calls on the same session; a second call
while one is in flight is rejected rather than queued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

from math_tutor.models.schemas import HintPayload, HintRecord, HintState
from math_tutor.utils.errors import HintFetchError
from math_tutor.utils.metrics import inc_counter
from math_tutor.utils.observability import log_event
from math_tutor.utils.settings import get_settings

logger = logging.getLogger(__name__)

HintFetcher = Callable[[str, int], Awaitable[Union[HintPayload, Mapping[str, Any]]]]


def _coerce_payload(payload: Union[HintPayload, Mapping[str, Any]]) -> HintPayload:
    if isinstance(payload, HintPayload):
        hint = payload
    elif isinstance(payload, Mapping):
        hint = HintPayload.model_validate(dict(payload))
    else:
        raise HintFetchError(f"unexpected hint payload type: {type(payload).__name__}")
    content = (hint.content or "").strip()
    if not content:
        raise HintFetchError("hint collaborator returned empty content")
    return HintPayload(content=content, is_final=hint.is_final)


class HintSession:
    def __init__(
        self,
        problem_text: str,
        fetch_hint: HintFetcher,
        *,
        max_hints: Optional[int] = None,
    ):
        limit = int(max_hints if max_hints is not None else get_settings().max_hints)
        if limit < 1:
            raise ValueError("max_hints must be >= 1")
        self.problem_text = problem_text
        self.max_hints = limit
        self._fetch_hint = fetch_hint
        self._records: List[HintRecord] = []
        self._state = HintState.EMPTY
        self.last_error: Optional[BaseException] = None

    @property
    def state(self) -> HintState:
        return self._state

    @property
    def is_exhausted(self) -> bool:
        return self._state == HintState.EXHAUSTED

    def current_hints(self) -> Tuple[HintRecord, ...]:
        return tuple(self._records)

    def _reached_end(self) -> bool:
        if not self._records:
            return False
        # either condition is enough; whichever comes first ends the session
        return len(self._records) >= self.max_hints or self._records[-1].is_final

    async def request_next(self) -> HintRecord:
        if self._state == HintState.EXHAUSTED:
            return self._records[-1]
        if self._state == HintState.AWAITING:
            raise RuntimeError("a hint request is already in flight for this session")

        previous = HintState.HAS_HINTS if self._records else HintState.EMPTY
        step_index = len(self._records)
        self._state = HintState.AWAITING
        try:
            payload = _coerce_payload(await self._fetch_hint(self.problem_text, step_index))
        except asyncio.CancelledError:
            self._state = previous
            raise
        except Exception as e:
            self._state = HintState.ERROR
            self.last_error = e
            inc_counter("hint_requests_total", labels={"status": "error"})
            log_event(
                logger,
                "hint_request_failed",
                level="warning",
                step_index=step_index,
                error_type=e.__class__.__name__,
                error=str(e),
            )
            if isinstance(e, HintFetchError):
                raise
            raise HintFetchError(str(e) or "hint request failed") from e

        record = HintRecord(
            step_index=step_index, content=payload.content, is_final=payload.is_final
        )
        self._records.append(record)
        self.last_error = None
        self._state = HintState.EXHAUSTED if self._reached_end() else HintState.HAS_HINTS
        inc_counter("hint_requests_total", labels={"status": "ok"})
        log_event(
            logger,
            "hint_revealed",
            step_index=step_index,
            is_final=record.is_final,
            state=self._state.value,
        )
        return record
