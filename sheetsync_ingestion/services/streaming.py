"""
Row pump: drives one RowStream under a deadline and captures its outcome.

Every extraction path (window, full, csv, scan) reads rows through
``pump_rows`` so the timeout check, the invalid-stream fallback and the
stream-error capture behave the same everywhere.  The stream is closed on
every exit path; the transport session is never touched here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from sheetsync_kernel.domain.clock import Clock
from sheetsync_kernel.exceptions import RowStreamError
from sheetsync_kernel.logging_config import get_logger

from sheetsync_ingestion.adapters.base import InvalidStream, close_quietly, resolve_stream
from sheetsync_ingestion.domain.types import RowRecord, StreamDegradation

logger = get_logger("ingestion.streaming")

# Return False to stop reading (window satisfied, max_rows reached).
RowConsumer = Callable[[int, RowRecord], bool]


@dataclass
class StreamOutcome:
    """What happened while a stream was read."""

    rows_seen: int = 0
    timed_out: bool = False
    stopped_early: bool = False
    error: Exception | None = None
    invalid_reason: str | None = None

    @property
    def degradation(self) -> StreamDegradation | None:
        if self.invalid_reason is not None:
            return StreamDegradation.INVALID_STREAM
        if self.error is not None:
            return StreamDegradation.STREAM_ERROR
        if self.timed_out:
            return StreamDegradation.TIMEOUT
        return None

    @property
    def error_note(self) -> str | None:
        if self.invalid_reason is not None:
            return f"Invalid row stream: {self.invalid_reason}"
        if self.error is not None:
            return (
                f"Row stream failed after {self.rows_seen} rows: "
                f"{str(self.error) or type(self.error).__name__}"
            )
        return None

    def raise_if_fatal(self, operation: str, path: str, rows_held: int) -> None:
        """A stream error before any row was held is fatal; later ones degrade."""
        if self.error is not None and rows_held == 0:
            raise RowStreamError(operation, path, self.error) from self.error


def pump_rows(
    open_stream: Callable[[], Any],
    consume: RowConsumer,
    *,
    clock: Clock,
    timeout_seconds: float | None = None,
) -> StreamOutcome:
    """
    Open a stream and feed each row to ``consume`` until it ends.

    Reading stops when the stream ends, when ``consume`` returns False, when
    the deadline passes (checked between rows), or when the stream raises.
    None of these raise from here; the caller inspects the outcome.
    """
    outcome = StreamOutcome()
    deadline = clock.monotonic() + timeout_seconds if timeout_seconds is not None else None

    try:
        handle = resolve_stream(open_stream())
    except Exception as exc:
        outcome.error = exc
        logger.warning("row_stream_open_failed", extra={"error": str(exc)})
        return outcome
    if isinstance(handle, InvalidStream):
        outcome.invalid_reason = handle.reason
        logger.warning("row_stream_invalid", extra={"reason": handle.reason})
        return outcome

    stream = handle.stream
    try:
        rows = iter(stream)
        while True:
            if deadline is not None and clock.monotonic() >= deadline:
                outcome.timed_out = True
                logger.warning(
                    "row_stream_timeout",
                    extra={"rows_seen": outcome.rows_seen, "timeout_s": timeout_seconds},
                )
                break
            try:
                row = next(rows)
            except StopIteration:
                break
            except Exception as exc:
                outcome.error = exc
                logger.warning(
                    "row_stream_error",
                    extra={"rows_seen": outcome.rows_seen, "error": str(exc)},
                )
                break
            keep_reading = consume(outcome.rows_seen, row)
            outcome.rows_seen += 1
            if keep_reading is False:
                outcome.stopped_early = True
                break
    finally:
        close_quietly(stream)
    return outcome
