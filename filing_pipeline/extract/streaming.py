"""
Streaming JSON parser for incrementally delivered model replies.

The scanner is a pure transition function over StreamState:

    state = StreamState()
    for char in text:
        state = step(state, char)
    state.complete  # True once the first object's braces balance

StreamState carries only the brace depth and string/escape flags. The
object text itself is buffered by StreamingParser, which owns one
StreamState per in-flight reply and turns state changes into events
(chunk, partial, complete, error). It is not safe to share one parser
between concurrent replies.
"""

import json
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Optional

from pydantic import BaseModel, Field

from ..monitor.metrics import ParseMetrics, ParseMetricsCollector
from ..parse.models import FilingType
from ..recovery.errors import ParserError, ParserErrorCategory, RecoveryStrategy, create_parser_error
from .json_extractors import ExtractedJSON, ExtractionMethod, repair_json, scan_key_values
from .response_parser import ParseOptions, ParseResult, build_parse_result

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER_SIZE = 4 * 1024 * 1024   # Characters of one open object
TYPICAL_RESPONSE_SECONDS = 20.0   # Time-based progress reaches its cap here
TYPICAL_KEY_COUNT = 10
PROGRESS_CAP = 95.0

NO_JSON_ERROR = "No JSON structure found in the stream"
NO_RESULT_ERROR = "Failed to extract any JSON from the stream"


class StreamEventType:
    CHUNK = "chunk"
    PARTIAL = "partial"
    COMPLETE = "complete"
    ERROR = "error"

    ALL = (CHUNK, PARTIAL, COMPLETE, ERROR)


# =============================================================================
# State machine
# =============================================================================

@dataclass(frozen=True)
class StreamState:
    """
    Scanner state for one JSON object.

    Text before the first '{' leaves the state untouched; once started,
    depth is the number of unclosed braces.
    """
    json_started: bool = False
    depth: int = 0
    in_string: bool = False
    escaped: bool = False
    partial: Optional[dict] = field(default=None, compare=False)

    @property
    def complete(self) -> bool:
        return self.json_started and self.depth == 0


def step(state: StreamState, char: str) -> StreamState:
    """Advance the scanner by one character."""
    if not state.json_started:
        if char != "{":
            return state
        return replace(state, json_started=True, depth=1)

    in_string = state.in_string
    escaped = state.escaped
    if char == '"' and not escaped:
        in_string = not in_string
    elif char == "\\" and in_string:
        escaped = not escaped
    else:
        escaped = False

    depth = state.depth
    if not in_string:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1

    return replace(state, depth=depth, in_string=in_string, escaped=escaped)


# =============================================================================
# Events and options
# =============================================================================

@dataclass
class StreamEvent:
    """One emitted event. progress is a 0-100 UX estimate."""
    type: str
    data: Any
    timestamp: float
    progress: float


class StreamingOptions(BaseModel):
    """Options and optional callbacks (each receives the event payload)."""

    allow_partial: bool = False
    # An open object longer than this is dropped with a RESOURCE error, None = unbounded
    max_buffer_size: Optional[int] = Field(default=DEFAULT_MAX_BUFFER_SIZE, gt=0)
    on_chunk: Optional[Callable[[str], None]] = None
    on_partial: Optional[Callable[[dict], None]] = None
    on_complete: Optional[Callable[[ExtractedJSON], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None


# =============================================================================
# Parser
# =============================================================================

class StreamingParser:
    """
    Incremental parser emitting partial and complete results.

    Usage:
        parser = StreamingParser(StreamingOptions(allow_partial=True))
        parser.on("complete", lambda event: handle(event.data.parsed))
        for chunk in stream:
            parser.process_chunk(chunk)
        parser.finish()
    """

    def __init__(self, options: Optional[StreamingOptions] = None, clock: Callable[[], float] = time.monotonic):
        self.options = options or StreamingOptions()
        self._clock = clock
        self._listeners: dict[str, list[Callable[[StreamEvent], None]]] = {t: [] for t in StreamEventType.ALL}
        self.last_result: Optional[ExtractedJSON] = None
        self.reset()

        callbacks = {
            StreamEventType.CHUNK: self.options.on_chunk,
            StreamEventType.PARTIAL: self.options.on_partial,
            StreamEventType.COMPLETE: self.options.on_complete,
            StreamEventType.ERROR: self.options.on_error,
        }
        for event_type, callback in callbacks.items():
            if callback is not None:
                self.on(event_type, lambda event, cb=callback: cb(event.data))

    def on(self, event_type: str, listener: Callable[[StreamEvent], None]) -> "StreamingParser":
        if event_type not in self._listeners:
            raise ValueError(f"Unknown stream event type: {event_type}")
        self._listeners[event_type].append(listener)
        return self

    def reset(self) -> None:
        """Drop buffered state and restart the progress clock."""
        self.state = StreamState()
        self._parts: list[str] = []
        self._buffered_chars = 0
        self._started_at = self._clock()

    @property
    def buffer(self) -> str:
        """Text of the object currently being scanned."""
        return "".join(self._parts)

    def process_chunk(self, chunk: str) -> None:
        """
        Scan one chunk, emitting complete objects as their braces balance.

        Raises:
            ParserError: Category RESOURCE when an open object grows past
                max_buffer_size (the parser is reset first)
        """
        self._emit(StreamEventType.CHUNK, chunk)

        segment_start = 0 if self.state.json_started else None
        for i, char in enumerate(chunk):
            started = self.state.json_started
            self.state = step(self.state, char)
            if not started and self.state.json_started:
                segment_start = i
            if self.state.complete:
                self._append(chunk[segment_start:i + 1])
                segment_start = None
                self._handle_complete(self.buffer)

        if segment_start is not None:
            self._append(chunk[segment_start:])

        if self.options.allow_partial and self.state.json_started:
            self._update_partial()

    def finish(self) -> Optional[ExtractedJSON]:
        """
        Force resolution of whatever is buffered.

        Returns the last complete result, or None when the stream produced
        nothing usable (an error event is emitted in that case).
        """
        if not self.state.json_started:
            if self.last_result is None:
                self._emit_error(NO_JSON_ERROR)
            return self.last_result

        buffered = self.buffer
        try:
            parsed = json.loads(repair_json(buffered))
        except json.JSONDecodeError:
            partial = self.state.partial
            if partial:
                logger.debug(f"Stream ended mid-object; using {len(partial)} partial fields")
                self._complete(ExtractedJSON(
                    raw=json.dumps(partial),
                    parsed=partial,
                    extraction_method=ExtractionMethod.STREAMING_PARTIAL,
                    success=True,
                ))
            else:
                self._emit_error(NO_RESULT_ERROR)
                self.reset()
        else:
            self._complete(ExtractedJSON(
                raw=buffered,
                parsed=parsed,
                extraction_method=ExtractionMethod.STREAMING_REPAIRED,
                success=True,
            ))
        return self.last_result

    def estimate_progress(self) -> float:
        if not self.state.json_started:
            return 0.0

        elapsed = self._clock() - self._started_at
        time_based = min(elapsed / TYPICAL_RESPONSE_SECONDS * 100, PROGRESS_CAP)

        if self.state.depth == 0:
            structure_based = 100.0
        elif self.state.depth == 1:
            key_count = len(self.state.partial or {})
            structure_based = min(key_count * TYPICAL_KEY_COUNT, PROGRESS_CAP)
        else:
            structure_based = 0.0

        if self.state.partial:
            return structure_based * 0.7 + time_based * 0.3
        return time_based

    # -------------------------------------------------------------------------

    def _append(self, text: str) -> None:
        self._parts.append(text)
        self._buffered_chars += len(text)

        limit = self.options.max_buffer_size
        if limit is not None and self._buffered_chars > limit:
            error = create_parser_error(
                ParserErrorCategory.RESOURCE,
                f"Streamed JSON object exceeds {limit} characters",
                recovery=RecoveryStrategy.ABORT,
                context={"buffered_chars": self._buffered_chars, "max_buffer_size": limit},
            )
            self.reset()
            raise error

    def _handle_complete(self, text: str) -> None:
        try:
            parsed = json.loads(text)
            method = ExtractionMethod.STREAMING
        except json.JSONDecodeError as e:
            try:
                parsed = json.loads(repair_json(text))
                method = ExtractionMethod.STREAMING_REPAIRED
            except json.JSONDecodeError:
                self._emit_error(f"Invalid JSON object in stream: {e}", original_error=e)
                self.reset()
                return

        self._complete(ExtractedJSON(raw=text, parsed=parsed, extraction_method=method, success=True))

    def _complete(self, result: ExtractedJSON) -> None:
        self.last_result = result
        self._emit(StreamEventType.COMPLETE, result, progress=100.0)
        self.reset()

    def _update_partial(self) -> None:
        pairs = scan_key_values(self.buffer)
        if not pairs:
            return
        if json.dumps(pairs, default=str) == json.dumps(self.state.partial, default=str):
            return
        self.state = replace(self.state, partial=pairs)
        self._emit(StreamEventType.PARTIAL, pairs)

    def _emit_error(self, message: str, original_error: Optional[Exception] = None) -> None:
        error = create_parser_error(
            ParserErrorCategory.PARSING,
            message,
            original_error=original_error,
            context={"buffered_chars": self._buffered_chars},
        )
        self._emit(StreamEventType.ERROR, error)

    def _emit(self, event_type: str, data: Any, progress: Optional[float] = None) -> None:
        event = StreamEvent(
            type=event_type,
            data=data,
            timestamp=time.time(),
            progress=self.estimate_progress() if progress is None else progress,
        )
        for listener in list(self._listeners[event_type]):
            listener(event)


def parse_stream(
    chunks: Iterable[str],
    filing_type: Any = FilingType.GENERIC,
    options: Optional[ParseOptions] = None,
    collector: Optional[ParseMetricsCollector] = None,
    max_buffer_size: Optional[int] = DEFAULT_MAX_BUFFER_SIZE,
) -> ParseResult:
    """
    Stream chunks through a StreamingParser, then validate the first complete object.

    Validation, partial salvage and normalization follow parse_response. An
    object that outgrows max_buffer_size ends the stream as a failed result.
    """
    options = options or ParseOptions()
    filing_type = FilingType.parse(filing_type)
    metrics = ParseMetrics(document_type=filing_type.value)

    completed: list[ExtractedJSON] = []
    errors: list[str] = []
    received: list[str] = []

    parser = StreamingParser(StreamingOptions(
        allow_partial=options.allow_partial,
        max_buffer_size=max_buffer_size,
    ))
    parser.on(StreamEventType.COMPLETE, lambda event: completed.append(event.data))
    parser.on(StreamEventType.ERROR, lambda event: errors.append(str(event.data)))

    start = time.perf_counter()
    try:
        for chunk in chunks:
            received.append(chunk)
            parser.process_chunk(chunk)
    except ParserError as e:
        logger.warning(f"Stream aborted for {filing_type.value}: {e}")
        errors.append(str(e))
    else:
        if not completed:
            parser.finish()
    metrics.extraction_time_ms = (time.perf_counter() - start) * 1000

    if not completed:
        metrics.extraction_method = ExtractionMethod.NONE
        result = ParseResult(
            success=False,
            raw="".join(received),
            errors=errors or [NO_RESULT_ERROR],
            metrics=metrics if options.collect_metrics else None,
        )
    else:
        extracted = completed[0]
        metrics.extraction_method = extracted.extraction_method
        metrics.extraction_success = True
        result = build_parse_result(extracted, filing_type, options, metrics)

    if collector is not None:
        collector.record(metrics)
    return result
