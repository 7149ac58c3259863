"""
Chunk processor: read one row window, transform it, submit the values.

One call handles one chunk and always returns a ChunkProcessingResult:

    window empty                 -> skipped, reason SKIP_EMPTY_CHUNK
    transform yields no values   -> skipped, reason SKIP_NO_VALUES
    sink accepted the values     -> submitted, values_submitted, submit_result
    read/transform/submit raised -> error note, nothing raised to the caller

Only invalid parameters raise (InputValidationError, before any I/O), so a
caller looping over chunk indexes keeps going past a bad chunk.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Sequence

from sheetsync_kernel.domain.clock import Clock, SystemClock
from sheetsync_kernel.exceptions import SheetSyncError
from sheetsync_kernel.logging_config import LogContext, get_logger

from sheetsync_ingestion.domain.types import ChunkProcessingResult, ExtractionResult, RowRecord
from sheetsync_ingestion.domain.validators import (
    validate_chunk_index,
    validate_chunk_size,
    validate_remote_path,
)
from sheetsync_ingestion.promoters.base import ValueSink
from sheetsync_ingestion.services.extraction_service import SheetExtractionService

logger = get_logger("ingestion.chunk_processor")

SKIP_EMPTY_CHUNK = "Empty chunk"
SKIP_NO_VALUES = "No values after transformation"

# (rows of the window, the extraction result) -> values to submit
ChunkTransform = Callable[[list[RowRecord], ExtractionResult], Sequence[Mapping[str, Any]] | None]


class ChunkProcessor:
    """Feeds row windows of a remote sheet through a transform into a ValueSink."""

    def __init__(
        self,
        extraction: SheetExtractionService,
        sink: ValueSink,
        clock: Clock | None = None,
    ):
        self._extraction = extraction
        self._sink = sink
        self._clock = clock or SystemClock()

    def process_chunk(
        self,
        path: str,
        chunk_index: int,
        chunk_size: int,
        transform: ChunkTransform,
        *,
        sheet: int | str | None = None,
    ) -> ChunkProcessingResult:
        """
        Read window ``chunk_index`` of ``path``, transform it and submit it.

        Raises:
            InputValidationError: bad path, chunk_index or chunk_size.
        """
        validate_remote_path("process_chunk", path)
        validate_chunk_index("process_chunk", chunk_index)
        validate_chunk_size("process_chunk", chunk_size)

        with LogContext.bind(operation="process_chunk", remote_path=path):
            started = time.monotonic()
            rows_read = 0
            try:
                extraction = self._extraction.extract_chunk(path, chunk_index, chunk_size, sheet=sheet)
                rows = list(extraction.rows)
                rows_read = len(rows)
                if not rows:
                    return self._skipped(chunk_index, 0, SKIP_EMPTY_CHUNK)

                values = self._transform(transform, rows, extraction)
                if not values:
                    return self._skipped(chunk_index, rows_read, SKIP_NO_VALUES)

                reply = self._sink.submit(values)
            except Exception as exc:
                code = exc.code if isinstance(exc, SheetSyncError) else None
                logger.warning(
                    "chunk_processing_failed",
                    extra={
                        "chunk_index": chunk_index,
                        "rows_read": rows_read,
                        "error_code": code,
                        "error": str(exc) or type(exc).__name__,
                    },
                )
                return ChunkProcessingResult(
                    chunk_index=chunk_index,
                    rows_processed=rows_read,
                    processed_at=self._clock.now(),
                    error=str(exc) or type(exc).__name__,
                    error_code=code,
                )

            logger.info(
                "chunk_processed",
                extra={
                    "chunk_index": chunk_index,
                    "rows_read": rows_read,
                    "values_submitted": len(values),
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
            return ChunkProcessingResult(
                chunk_index=chunk_index,
                rows_processed=rows_read,
                processed_at=self._clock.now(),
                values_submitted=len(values),
                submitted=True,
                submit_result=reply,
            )

    @staticmethod
    def _transform(
        transform: ChunkTransform,
        rows: list[RowRecord],
        extraction: ExtractionResult,
    ) -> list[dict[str, Any]]:
        produced = transform(rows, extraction)
        if produced is None:
            return []
        if isinstance(produced, (Mapping, str, bytes)) or not isinstance(produced, Sequence):
            raise TypeError(f"transform must return a sequence of dicts, got {type(produced).__name__}")
        return [dict(v) for v in produced]

    def _skipped(self, chunk_index: int, rows_read: int, reason: str) -> ChunkProcessingResult:
        logger.info("chunk_skipped", extra={"chunk_index": chunk_index, "rows_read": rows_read, "reason": reason})
        return ChunkProcessingResult(
            chunk_index=chunk_index,
            rows_processed=rows_read,
            processed_at=self._clock.now(),
            skipped=True,
            reason=reason,
        )
