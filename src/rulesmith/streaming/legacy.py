"""Compatibility shim for the legacy ``final`` frame.

Older revisions of the analysis service ended a run with a
``{"type": "final", "data": ..., "threadId": ..., "assistantId": ...}``
frame instead of ``completed``. Such a frame is still classified as an
Unrecognized event for observers, and additionally settles the run
result through this module. Its threadId and assistantId are used as
sent, with no fallback to ids seen on earlier lifecycle events. Its
data passes the same rules-list shape check as a completed frame.

Delete this module (and its single call site in
RunAggregator.apply_frame) once no server sends ``final``.
"""

from __future__ import annotations

from typing import Any

LEGACY_FINAL_TYPE = "final"


def is_legacy_final(obj: dict[str, Any]) -> bool:
    """Return True for a legacy terminal frame."""
    return obj.get("type") == LEGACY_FINAL_TYPE


def legacy_final_fields(obj: dict[str, Any]) -> dict[str, Any]:
    """Extract the result fields of a legacy frame verbatim."""
    return {
        "data": obj.get("data"),
        "thread_id": obj.get("threadId"),
        "assistant_id": obj.get("assistantId"),
    }
