"""Canonical stream events and decoded frames.

Every classified frame becomes exactly one StreamEvent variant. The
variants are plain frozen dataclasses (not Pydantic) since they are
created per frame on the hot path and handed straight to observers.
``to_payload()`` renders the observer dictionary shape used by UIs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

# Lifecycle kinds covering step, run, and message creation/completion.
LIFECYCLE_KINDS: frozenset[str] = frozenset(
    {
        "step_created",
        "step_progress",
        "step_completed",
        "run_created",
        "message_created",
        "message_completed",
    }
)


@dataclass(frozen=True)
class RawFrame:
    """One prefix-matched line from the transport stream.

    ``is_sentinel`` marks the end-of-stream marker line; its payload is
    never parsed.
    """

    payload: str
    is_sentinel: bool = False


@dataclass(frozen=True)
class ParseFailure:
    """A frame whose payload was not a JSON object. Non-fatal."""

    payload: str
    reason: str


@dataclass(frozen=True)
class Status:
    """Progress update for a numbered analysis step."""

    step: int
    status: str
    text: str

    @property
    def kind(self) -> str:
        return "status"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "step": self.step, "status": self.status, "text": self.text}


@dataclass(frozen=True)
class TextDelta:
    """Incremental model output; ``full_text`` is the text so far."""

    full_text: str
    delta: str = ""

    @property
    def kind(self) -> str:
        return "text_delta"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.delta, "fullText": self.full_text}


@dataclass(frozen=True)
class LifecycleEvent:
    """Run, step, or message lifecycle notification."""

    kind: str
    text: str
    event_type: str | None = None
    run_id: str | None = None
    thread_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind, "text": self.text}
        if self.event_type is not None:
            payload["eventType"] = self.event_type
        if self.run_id is not None:
            payload["runId"] = self.run_id
        if self.thread_id is not None:
            payload["threadId"] = self.thread_id
        return payload


@dataclass(frozen=True)
class Completed:
    """Terminal success event; ``data`` is None when no results were sent."""

    data: Any
    text: str
    thread_id: str | None = None
    assistant_id: str | None = None

    @property
    def kind(self) -> str:
        return "completed"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind, "text": self.text, "data": self.data}
        if self.thread_id is not None:
            payload["threadId"] = self.thread_id
        if self.assistant_id is not None:
            payload["assistantId"] = self.assistant_id
        return payload


@dataclass(frozen=True)
class Error:
    """Terminal failure reported by the upstream service."""

    text: str

    @property
    def kind(self) -> str:
        return "error"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text, "message": self.text}


@dataclass(frozen=True)
class Unrecognized:
    """Any other typed frame; forward-compatible, display only."""

    kind: str
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text}


StreamEvent = Union[Status, TextDelta, LifecycleEvent, Completed, Error, Unrecognized]

TERMINAL_EVENTS: tuple[type, ...] = (Completed, Error)


def is_terminal(event: StreamEvent) -> bool:
    """Return True for events that finalize a run result."""
    return isinstance(event, TERMINAL_EVENTS)
