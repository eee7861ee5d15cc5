"""Analysis client: single-call and streaming paths to the analysis service.

Both paths run the pre-flight estimator first and sample the dataset
when it exceeds the request budget. The streaming path drives
FrameDecoder -> classifier -> RunAggregator per frame, pushing each
classified event to an optional observer as it arrives.

Every outcome is returned as a result object. Only configuration
problems (raised at construction) and task cancellation propagate.
The response is closed on every exit path via ``async with``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

import httpx

from rulesmith.estimation.sampler import sample_text
from rulesmith.estimation.tokens import estimate_with_config
from rulesmith.models.config import ClientConfig, EstimatorConfig, resolve_client_config
from rulesmith.models.result import (
    QuickAnalysisResult,
    RunResult,
    TokenEstimate,
    coerce_payload,
)
from rulesmith.streaming.aggregator import RunAggregator
from rulesmith.streaming.classifier import classify_object, parse_frame
from rulesmith.streaming.decoder import FrameDecoder, TransportError
from rulesmith.streaming.events import ParseFailure, RawFrame, StreamEvent

logger = logging.getLogger(__name__)

# The service rejects request bodies with more than 10 MiB of dataset text.
MAX_DATASET_CHARS = 10 * 1024 * 1024

CANCELLED_ERROR = "Analysis cancelled"
NO_BODY_ERROR = "No response body"

Observer = Callable[[StreamEvent], None]


class CancelToken:
    """Cooperative cancellation handle for an in-flight stream.

    Calling cancel() aborts the pending read, closes the response, and
    makes analyze_stream() return a cancelled failure result.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class _StreamCancelled(Exception):
    """Internal signal that a CancelToken fired mid-stream."""


async def _read_one(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


async def _next_chunk(
    chunks: AsyncIterator[bytes],
    cancel: CancelToken | None,
) -> bytes | None:
    """Read the next body chunk, or None once the body is exhausted.

    Raises:
        _StreamCancelled: If the token fires before or during the read.
    """
    if cancel is None:
        return await _read_one(chunks)
    if cancel.cancelled:
        raise _StreamCancelled

    read = asyncio.ensure_future(_read_one(chunks))
    stop = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({read, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (read, stop):
            if not task.done():
                task.cancel()
        await asyncio.wait({read, stop})

    if cancel.cancelled:
        if not read.cancelled():
            read.exception()  # mark the abandoned read's outcome as retrieved
        raise _StreamCancelled
    return read.result()


def _mask(secret: str) -> str:
    return f"{secret[:10]}..."


def _http_error_message(status_code: int, body: str) -> str:
    """Prefer the server's own error text, fall back to status and body."""
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), str) and parsed["error"]:
        return parsed["error"]
    return f"HTTP error! status: {status_code}, body: {body}"


class AnalysisClient:
    """Submits transaction datasets to the remote analysis service.

    Each call owns its own decoder and aggregator state, so independent
    analyses may run concurrently on one client.

    Args:
        config: Connection settings; environment overrides are applied.
        estimator: Token budget settings (defaults when None).
        transport: Optional httpx transport (used by tests).
        rng: Optional random source for sampling.
        environ: Environment mapping for overrides (defaults to os.environ).

    Raises:
        ConfigurationError: If the endpoint or API key is missing.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        estimator: EstimatorConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = resolve_client_config(config, environ)
        self.estimator = estimator or EstimatorConfig()
        self._transport = transport
        self._rng = rng

    def prepare(self, dataset_text: str) -> tuple[str, TokenEstimate]:
        """Estimate the dataset and sample it down if it is over budget.

        Returns:
            Tuple of (text to send, estimate).
        """
        estimate = estimate_with_config(dataset_text, self.estimator)
        if not estimate.sampling_applied:
            return (dataset_text, estimate)

        logger.info(
            "Sampling dataset from %d to %d records",
            estimate.original_record_count,
            estimate.processed_record_count,
        )
        return (sample_text(dataset_text, estimate.processed_record_count, self._rng), estimate)

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.endpoint or "",
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        key = self.config.api_key or ""
        return {"Authorization": f"Bearer {key}", "apikey": key}

    def _body(
        self,
        dataset_text: str,
        user_instructions: str,
        file_name: str | None,
    ) -> dict[str, Any]:
        return {
            "datasetContent": dataset_text,
            "fileName": file_name or self.config.file_name,
            "userInstructions": user_instructions,
        }

    def _log_request(self, path: str, body: dict[str, Any]) -> None:
        logger.debug(
            "POST %s%s (apikey=%s, %d dataset chars)",
            self.config.endpoint,
            path,
            _mask(self.config.api_key or ""),
            len(body["datasetContent"]),
        )

    async def analyze(
        self,
        dataset_text: str,
        user_instructions: str = "",
        *,
        file_name: str | None = None,
    ) -> QuickAnalysisResult:
        """Run a single-call analysis and wait for the complete response.

        Args:
            dataset_text: Raw dataset text (header line first).
            user_instructions: Free-text guidance for the analysis.
            file_name: Name reported to the service.

        Returns:
            QuickAnalysisResult with rules, estimate and elapsed time on
            success, or an error message on failure.
        """
        start_time = time.perf_counter()
        processed, estimate = self.prepare(dataset_text)

        if len(processed) > MAX_DATASET_CHARS:
            return QuickAnalysisResult(
                success=False,
                estimate=estimate,
                error="Dataset content too large. Maximum size is 10MB.",
            )

        body = self._body(processed, user_instructions, file_name)
        self._log_request(self.config.quick_path, body)

        def failure(message: str) -> QuickAnalysisResult:
            logger.error("Quick analysis failed: %s", message)
            return QuickAnalysisResult(success=False, estimate=estimate, error=message)

        try:
            async with self._http_client() as http:
                response = await http.post(
                    self.config.quick_path, json=body, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            return failure(f"Request failed: {type(exc).__name__}: {exc}")

        logger.debug("Quick analysis response status=%d", response.status_code)
        if not response.is_success:
            return failure(_http_error_message(response.status_code, response.text))

        try:
            payload = response.json()
        except ValueError:
            return failure("Invalid JSON in analysis response")
        if not isinstance(payload, dict):
            return failure("Invalid analysis response: expected a JSON object")
        if not payload.get("success"):
            return failure(str(payload.get("error") or "Unknown error occurred"))

        try:
            data = coerce_payload(payload.get("data"))
        except ValueError as exc:
            return failure(str(exc))

        return QuickAnalysisResult(
            success=True,
            data=data,
            estimate=estimate,
            elapsed_seconds=time.perf_counter() - start_time,
        )

    async def analyze_stream(
        self,
        dataset_text: str,
        user_instructions: str = "",
        *,
        observer: Observer | None = None,
        cancel: CancelToken | None = None,
        file_name: str | None = None,
    ) -> RunResult:
        """Run a streaming analysis, reporting events live to ``observer``.

        Args:
            dataset_text: Raw dataset text (header line first).
            user_instructions: Free-text guidance for the analysis.
            observer: Called synchronously, in arrival order, for every
                classified event.
            cancel: Optional token to abort the stream.
            file_name: Name reported to the service.

        Returns:
            The aggregated RunResult (never raises for transport,
            protocol or upstream errors).
        """
        if cancel is not None and cancel.cancelled:
            return RunResult.failure(CANCELLED_ERROR)

        processed, _estimate = self.prepare(dataset_text)
        if len(processed) > MAX_DATASET_CHARS:
            return RunResult.failure("Dataset content too large. Maximum size is 10MB.")

        body = self._body(processed, user_instructions, file_name)
        self._log_request(self.config.stream_path, body)

        decoder = FrameDecoder()
        aggregator = RunAggregator()

        try:
            async with self._http_client() as http:
                async with http.stream(
                    "POST", self.config.stream_path, json=body, headers=self._headers()
                ) as response:
                    logger.debug("Stream response status=%d", response.status_code)
                    if not response.is_success:
                        await response.aread()
                        return self._stream_failure(
                            aggregator,
                            _http_error_message(response.status_code, response.text),
                        )
                    await self._consume(response, decoder, aggregator, observer, cancel)
        except _StreamCancelled:
            logger.info("Analysis stream cancelled")
            return self._stream_failure(aggregator, CANCELLED_ERROR)
        except TransportError as exc:
            return self._stream_failure(aggregator, str(exc))
        except httpx.HTTPError as exc:
            return self._stream_failure(aggregator, f"Request failed: {type(exc).__name__}: {exc}")

        logger.debug(
            "Stream finished: %d frames, %d events, %d parse failures, %d ignored terminals",
            decoder.frames_emitted,
            aggregator.events_seen,
            aggregator.parse_failures,
            aggregator.ignored_terminals,
        )
        return aggregator.result()

    async def _consume(
        self,
        response: httpx.Response,
        decoder: FrameDecoder,
        aggregator: RunAggregator,
        observer: Observer | None,
        cancel: CancelToken | None,
    ) -> None:
        chunks = response.aiter_bytes()
        received = 0
        while True:
            chunk = await _next_chunk(chunks, cancel)
            if chunk is None:
                break
            received += len(chunk)
            for frame in decoder.feed(chunk):
                self._dispatch(frame, aggregator, observer)

        decoder.finish()
        if received == 0:
            raise TransportError(NO_BODY_ERROR)

    def _dispatch(
        self,
        frame: RawFrame,
        aggregator: RunAggregator,
        observer: Observer | None,
    ) -> None:
        if frame.is_sentinel:
            return

        obj = parse_frame(frame.payload)
        if isinstance(obj, ParseFailure):
            aggregator.record_parse_failure(obj)
            logger.warning("Skipping malformed frame (%s): %.200s", obj.reason, obj.payload)
            return

        aggregator.apply_frame(obj)
        event = classify_object(obj)
        if event is None:
            return

        if observer is not None:
            try:
                observer(event)
            except Exception:
                logger.exception("Observer raised while handling %s event", event.kind)
        aggregator.observe(event)

    def _stream_failure(self, aggregator: RunAggregator, message: str) -> RunResult:
        """Return the settled result if a terminal event already arrived."""
        if aggregator.terminal_seen:
            return aggregator.result()
        logger.error("Streaming analysis failed: %s", message)
        return RunResult.failure(message)
