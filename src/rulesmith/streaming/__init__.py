"""Rulesmith streaming - frame decoding, event classification, and aggregation."""

from rulesmith.streaming.aggregator import STREAM_INCOMPLETE_ERROR, RunAggregator
from rulesmith.streaming.classifier import classify, classify_object, parse_frame
from rulesmith.streaming.decoder import FrameDecoder, TransportError
from rulesmith.streaming.events import (
    Completed,
    Error,
    LifecycleEvent,
    ParseFailure,
    RawFrame,
    Status,
    StreamEvent,
    TextDelta,
    Unrecognized,
    is_terminal,
)

__all__ = [
    "STREAM_INCOMPLETE_ERROR",
    "Completed",
    "Error",
    "FrameDecoder",
    "LifecycleEvent",
    "ParseFailure",
    "RawFrame",
    "RunAggregator",
    "Status",
    "StreamEvent",
    "TextDelta",
    "TransportError",
    "Unrecognized",
    "classify",
    "classify_object",
    "is_terminal",
    "parse_frame",
]
