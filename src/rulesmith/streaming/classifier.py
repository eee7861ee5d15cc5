"""Event classifier -- maps frame payloads to canonical StreamEvents.

The upstream service has changed its frame shapes over time, so each
event kind reads its fields through a first-match-wins fallback chain.
Dispatch is a closed table keyed on the ``type`` field; a new upstream
kind is added by registering one builder in ``_BUILDERS``. Any other
non-empty type, including a non-string one, becomes Unrecognized.
Objects with a missing or empty type produce no event.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from rulesmith.streaming.events import (
    LIFECYCLE_KINDS,
    Completed,
    Error,
    LifecycleEvent,
    ParseFailure,
    Status,
    StreamEvent,
    TextDelta,
    Unrecognized,
)

COMPLETED_TEXT = "Analysis completed"
ERROR_TEXT = "Unknown error"


def _first(obj: dict[str, Any], *keys: str, default: Any = "") -> Any:
    """Return the first key whose value is present and non-empty."""
    for key in keys:
        value = obj.get(key)
        if value is not None and value != "":
            return value
    return default


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _as_step(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_frame(payload: str) -> dict[str, Any] | ParseFailure:
    """Parse a frame payload into a JSON object.

    Returns:
        The decoded object, or ParseFailure when the payload is not
        valid JSON or decodes to something other than an object.
    """
    try:
        obj = json.loads(payload)
    except ValueError as exc:
        return ParseFailure(payload=payload, reason=f"invalid JSON: {exc}")
    if not isinstance(obj, dict):
        return ParseFailure(
            payload=payload,
            reason=f"expected JSON object, got {type(obj).__name__}",
        )
    return obj


def _build_status(kind: str, obj: dict[str, Any]) -> StreamEvent:
    return Status(
        step=_as_step(obj.get("step")),
        status=_as_text(_first(obj, "status", "message")),
        text=_as_text(_first(obj, "text", "message")),
    )


def _build_text_delta(kind: str, obj: dict[str, Any]) -> StreamEvent:
    return TextDelta(
        full_text=_as_text(_first(obj, "fullText")),
        delta=_as_text(_first(obj, "text")),
    )


def _build_lifecycle(kind: str, obj: dict[str, Any]) -> StreamEvent:
    return LifecycleEvent(
        kind=kind,
        text=_as_text(_first(obj, "text", "message", default=json.dumps(obj))),
        event_type=_optional_str(obj.get("eventType")),
        run_id=_optional_str(obj.get("runId")),
        thread_id=_optional_str(obj.get("threadId")),
    )


def _completed_data(obj: dict[str, Any]) -> Any:
    """Pick the structured payload of a completed frame.

    ``data`` wins; otherwise an older shape with top-level
    ``success: true`` and ``rules`` is wrapped as {"rules": ...}.
    """
    if obj.get("data") is not None:
        return obj["data"]
    if obj.get("success") is True and "rules" in obj:
        return {"rules": obj["rules"]}
    return None


def _build_completed(kind: str, obj: dict[str, Any]) -> StreamEvent:
    debug_info = obj.get("debugInfo")
    if not isinstance(debug_info, dict):
        debug_info = {}
    return Completed(
        data=_completed_data(obj),
        text=_as_text(_first(obj, "text", "message", default=COMPLETED_TEXT)),
        thread_id=_optional_str(_first(obj, "threadId", default=debug_info.get("threadId"))),
        assistant_id=_optional_str(
            _first(obj, "assistantId", default=debug_info.get("assistantId"))
        ),
    )


def _build_error(kind: str, obj: dict[str, Any]) -> StreamEvent:
    return Error(text=_as_text(_first(obj, "message", "error", default=ERROR_TEXT)))


def _build_unrecognized(kind: str, obj: dict[str, Any]) -> StreamEvent:
    return Unrecognized(
        kind=kind,
        text=_as_text(_first(obj, "message", "status", default=json.dumps(obj))),
    )


_BUILDERS: dict[str, Callable[[str, dict[str, Any]], StreamEvent]] = {
    "status": _build_status,
    "text_delta": _build_text_delta,
    "completed": _build_completed,
    "error": _build_error,
    **{kind: _build_lifecycle for kind in LIFECYCLE_KINDS},
}


def classify_object(obj: dict[str, Any]) -> StreamEvent | None:
    """Map a decoded frame object to its canonical event.

    Returns:
        The StreamEvent, or None if the object carries no usable type.
    """
    kind = obj.get("type")
    if kind is None or kind == "":
        return None
    if not isinstance(kind, str):
        return _build_unrecognized(str(kind), obj)
    builder = _BUILDERS.get(kind, _build_unrecognized)
    return builder(kind, obj)


def classify(payload: str) -> StreamEvent | ParseFailure | None:
    """Parse and classify one frame payload.

    Returns:
        StreamEvent, ParseFailure for malformed payloads, or None for
        objects without a type field.
    """
    obj = parse_frame(payload)
    if isinstance(obj, ParseFailure):
        return obj
    return classify_object(obj)
