"""Run aggregator: folds classified events into one RunResult.

The first terminal event (completed, error, or legacy final) settles
the result; later terminal events are counted and ignored so a late
duplicate cannot overwrite a good result. A stream that ends with no
terminal event yields a distinct "ended without completion" failure.
"""

from __future__ import annotations

import logging
from typing import Any

from rulesmith.models.result import RunResult, coerce_payload
from rulesmith.streaming import legacy
from rulesmith.streaming.events import (
    Completed,
    Error,
    LifecycleEvent,
    ParseFailure,
    Status,
    StreamEvent,
    TextDelta,
    Unrecognized,
)

logger = logging.getLogger(__name__)

STREAM_INCOMPLETE_ERROR = "Stream ended without completion"


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


class RunAggregator:
    """Accumulates run identity and the terminal result of one stream.

    Parse failures and event counts are tracked for diagnostics only;
    they never change success or failure.
    """

    def __init__(self) -> None:
        self._result: RunResult | None = None
        self.run_id: str | None = None
        self.thread_id: str | None = None
        self.assistant_id: str | None = None
        self.analysis_text = ""
        self.events_seen = 0
        self.parse_failures = 0
        self.ignored_terminals = 0

    @property
    def terminal_seen(self) -> bool:
        return self._result is not None

    def record_parse_failure(self, failure: ParseFailure) -> None:
        self.parse_failures += 1

    def observe(self, event: StreamEvent) -> None:
        """Fold one classified event into the run state."""
        self.events_seen += 1

        if isinstance(event, Completed):
            self._settle_success(event.data, event.thread_id, event.assistant_id)
        elif isinstance(event, Error):
            self._settle(RunResult.failure(event.text))
        elif isinstance(event, TextDelta):
            self.analysis_text = event.full_text
        elif isinstance(event, LifecycleEvent):
            self.run_id = event.run_id or self.run_id
            self.thread_id = event.thread_id or self.thread_id
        elif isinstance(event, (Status, Unrecognized)):
            pass
        else:
            raise TypeError(f"Unhandled stream event: {type(event).__name__}")

    def apply_frame(self, obj: dict[str, Any]) -> None:
        """Apply frame-level rules that bypass event classification."""
        if legacy.is_legacy_final(obj):
            fields = legacy.legacy_final_fields(obj)
            self._settle_success(
                fields["data"], fields["thread_id"], fields["assistant_id"], verbatim_ids=True
            )

    def result(self) -> RunResult:
        """Return the final result snapshot for the stream."""
        if self._result is None:
            return RunResult.failure(STREAM_INCOMPLETE_ERROR)
        return self._result

    def _settle_success(
        self,
        data: Any,
        thread_id: Any,
        assistant_id: Any,
        *,
        verbatim_ids: bool = False,
    ) -> None:
        if self.terminal_seen:
            self._settle(None)
            return
        try:
            payload = coerce_payload(data)
        except ValueError as exc:
            self._settle(RunResult.failure(str(exc)))
            return

        if verbatim_ids:
            # Legacy frames carry their own ids; nothing from earlier events
            self.thread_id = _optional_str(thread_id)
            self.assistant_id = _optional_str(assistant_id)
        else:
            self.thread_id = _optional_str(thread_id) or self.thread_id
            self.assistant_id = _optional_str(assistant_id) or self.assistant_id
        self._settle(
            RunResult(
                success=True,
                data=payload,
                thread_id=self.thread_id,
                assistant_id=self.assistant_id,
            )
        )

    def _settle(self, result: RunResult | None) -> None:
        if self._result is not None or result is None:
            self.ignored_terminals += 1
            logger.debug("Ignoring terminal event after run was settled")
            return
        self._result = result
