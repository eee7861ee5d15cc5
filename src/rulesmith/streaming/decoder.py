"""Incremental frame decoder for line-oriented event streams.

Consumes successive byte chunks of one response body and emits complete
frames. Multi-byte characters split across chunk boundaries are held by
an incremental codec until the rest of the sequence arrives. A stream
that ends mid-line loses that partial line: only newline-terminated
lines can become frames.
"""

from __future__ import annotations

import codecs
import logging

from rulesmith.streaming.events import RawFrame

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "data: "
DEFAULT_SENTINEL = "[DONE]"


class TransportError(Exception):
    """Raised when the response body cannot be read or decoded."""


class FrameDecoder:
    """Reassembles prefixed text frames from an unbounded byte stream.

    Each instance owns its own buffer and codec state, so concurrent
    streams need separate decoders.

    Args:
        prefix: Literal prefix marking a frame line.
        sentinel: Payload value that marks end of stream.
        encoding: Text encoding of the body.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        sentinel: str = DEFAULT_SENTINEL,
        encoding: str = "utf-8",
    ) -> None:
        self.prefix = prefix
        self.sentinel = sentinel
        self._codec = codecs.getincrementaldecoder(encoding)(errors="strict")
        self._buffer = ""
        self.finished = False
        self.frames_emitted = 0
        self.lines_discarded = 0

    def feed(self, chunk: bytes) -> list[RawFrame]:
        """Decode one chunk and return every frame it completes.

        Args:
            chunk: Raw bytes read from the response body.

        Returns:
            Frames completed by this chunk, in stream order.

        Raises:
            TransportError: If the bytes are not valid in the stream encoding,
                or the decoder was already finished.
        """
        if self.finished:
            raise TransportError("Frame decoder already finished")
        try:
            text = self._codec.decode(chunk)
        except UnicodeDecodeError as exc:
            self.finished = True
            raise TransportError(f"Failed to decode stream chunk: {exc}") from exc

        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [frame for frame in map(self._to_frame, lines) if frame is not None]

    def finish(self) -> list[RawFrame]:
        """Signal end of stream.

        Any trailing partial line is discarded without becoming a frame.

        Returns:
            Always an empty list; present so callers can treat finish()
            like a final feed().

        Raises:
            TransportError: If the stream ended inside a multi-byte sequence.
        """
        if self.finished:
            return []
        self.finished = True
        try:
            tail = self._codec.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise TransportError(f"Stream ended mid-character: {exc}") from exc

        leftover = self._buffer + tail
        self._buffer = ""
        if leftover.strip():
            logger.debug("Discarding %d chars of unterminated final line", len(leftover))
            self.lines_discarded += 1
        return []

    def _to_frame(self, line: str) -> RawFrame | None:
        line = line.rstrip("\r")
        if not line.strip():
            return None
        if not line.startswith(self.prefix):
            self.lines_discarded += 1
            return None

        payload = line[len(self.prefix):]
        self.frames_emitted += 1
        if payload == self.sentinel:
            return RawFrame(payload=payload, is_sentinel=True)
        return RawFrame(payload=payload)
