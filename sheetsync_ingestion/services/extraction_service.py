"""
Sheet extraction service: row-window and full-file extraction.

Both operations fetch the whole remote file, materialize it to a temp file
and stream rows from it.  extract_chunk keeps one index window and stops the
stream as soon as the window is full; extract_all keeps every row up to
max_rows under a hard deadline.

Degradation (extract_all, fetch_csv):
    - deadline hit -> rows so far, truncated_by_timeout=True
    - parser returned no usable stream -> zero rows, degradation=INVALID_STREAM
    - stream error after rows were held -> rows so far, degradation=STREAM_ERROR
    - stream error before any row was held -> RowStreamError
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Callable

from sheetsync_config.schema import DEFAULT_CHUNK_SIZE, DEFAULT_STREAM_TIMEOUT, ExtractionSettings
from sheetsync_kernel.domain.clock import Clock
from sheetsync_kernel.exceptions import TransportError
from sheetsync_kernel.logging_config import LogContext, get_logger

from sheetsync_ingestion.adapters import CsvRowStream, open_row_stream
from sheetsync_ingestion.domain.types import (
    ChunkWindow,
    ExtractionMetadata,
    ExtractionResult,
    ProcessingMethod,
    RowRecord,
)
from sheetsync_ingestion.domain.validators import (
    validate_chunk_index,
    validate_chunk_size,
    validate_max_rows,
    validate_remote_path,
)
from sheetsync_ingestion.services.reader import ReadOutcome, RemoteSheetReader
from sheetsync_ingestion.transport.session import TransportSession

logger = get_logger("ingestion.extraction_service")


class SheetExtractionService:
    """Extracts rows from remote spreadsheets through one TransportSession."""

    def __init__(
        self,
        session: TransportSession,
        *,
        row_stream_factory: Callable[..., Any] = open_row_stream,
        clock: Clock | None = None,
        timeout_seconds: float = DEFAULT_STREAM_TIMEOUT,
        temp_dir: Path | str | None = None,
        with_header: bool = True,
        ignore_empty_rows: bool = True,
    ):
        self._reader = RemoteSheetReader(
            session,
            row_stream_factory=row_stream_factory,
            clock=clock,
            timeout_seconds=timeout_seconds,
            temp_dir=temp_dir,
            with_header=with_header,
            ignore_empty_rows=ignore_empty_rows,
        )
        self._clock = self._reader.clock
        self._ignore_empty_rows = ignore_empty_rows

    @classmethod
    def from_settings(
        cls,
        session: TransportSession,
        settings: ExtractionSettings,
        **kwargs: Any,
    ) -> SheetExtractionService:
        return cls(
            session,
            timeout_seconds=settings.timeout_seconds,
            temp_dir=settings.temp_dir,
            with_header=settings.with_header,
            ignore_empty_rows=settings.ignore_empty_rows,
            **kwargs,
        )

    @property
    def timeout_seconds(self) -> float:
        return self._reader.timeout_seconds

    # ------------------------------------------------------------------
    # Row window
    # ------------------------------------------------------------------

    def extract_chunk(
        self,
        path: str,
        chunk_index: int,
        chunk_size: int,
        *,
        sheet: int | str | None = None,
    ) -> ExtractionResult:
        """
        Return exactly the rows ``[chunk_index*chunk_size, ... + chunk_size - 1]``.

        A window past the end of the file returns fewer or zero rows.  No
        timeout applies; the stream is closed once the window is full.

        Raises:
            InputValidationError: bad path, chunk_index or chunk_size (before I/O).
            SessionNotReadyError: session not connected.
            TransportError: fetch failed.
            RowStreamError: the stream failed before any window row was held.
        """
        validate_remote_path("extract_chunk", path)
        window = ChunkWindow(
            chunk_index=validate_chunk_index("extract_chunk", chunk_index),
            chunk_size=validate_chunk_size("extract_chunk", chunk_size),
        )
        held: list[RowRecord] = []

        def consume(index: int, row: RowRecord) -> bool:
            if index < window.start_row:
                return True
            held.append(row)
            return len(held) < window.chunk_size

        with LogContext.bind(operation="extract_chunk", remote_path=path):
            started = time.monotonic()
            logger.info(
                "chunk_extraction_started",
                extra={
                    "chunk_index": window.chunk_index,
                    "chunk_size": window.chunk_size,
                    "start_row": window.start_row,
                    "end_row": window.end_row,
                },
            )
            outcome = self._reader.read(path, consume, sheet=sheet, timeout_seconds=None)
            outcome.stream.raise_if_fatal("extract_chunk", path, len(held))
            result = self._build_result(
                outcome,
                chunk_size=window.chunk_size,
                rows=held,
                chunks_processed=1,
                method=ProcessingMethod.CHUNKED_WINDOW,
                window=window,
            )
            logger.info(
                "chunk_extraction_completed",
                extra={
                    "rows_returned": result.rows_returned,
                    "rows_seen": result.total_rows_seen,
                    "stopped_early": result.metadata.stopped_early,
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
        return result

    # ------------------------------------------------------------------
    # Full file
    # ------------------------------------------------------------------

    def extract_all(
        self,
        path: str,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_rows: int | None = None,
        sheet: int | str | None = None,
    ) -> ExtractionResult:
        """
        Return every row up to ``max_rows``, batched by ``chunk_size`` for progress.

        On timeout the rows read so far are returned with
        ``truncated_by_timeout=True``; see the module docstring for the other
        degraded outcomes.
        """
        validate_remote_path("extract_all", path)
        chunk_size = validate_chunk_size("extract_all", chunk_size)
        max_rows = validate_max_rows("extract_all", max_rows)
        with LogContext.bind(operation="extract_all", remote_path=path):
            return self._extract_full(
                "extract_all",
                path,
                chunk_size=chunk_size,
                max_rows=max_rows,
                method=ProcessingMethod.FULL_STREAM,
                sheet=sheet,
            )

    def extract_with_settings(self, path: str, settings: ExtractionSettings) -> ExtractionResult:
        """extract_all with chunk_size, max_rows and sheet taken from ``settings``."""
        return self.extract_all(
            path,
            chunk_size=settings.chunk_size,
            max_rows=settings.max_rows,
            sheet=settings.sheet,
        )

    def fetch_csv(
        self,
        path: str,
        *,
        delimiter: str = ",",
        has_header: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_rows: int | None = None,
    ) -> ExtractionResult:
        """Full extraction of a delimited text file; same policy as extract_all."""
        validate_remote_path("fetch_csv", path)
        chunk_size = validate_chunk_size("fetch_csv", chunk_size)
        max_rows = validate_max_rows("fetch_csv", max_rows)

        def open_csv(local: Path) -> CsvRowStream:
            return CsvRowStream(
                local,
                delimiter=delimiter,
                has_header=has_header,
                ignore_empty_rows=self._ignore_empty_rows,
            )

        with LogContext.bind(operation="fetch_csv", remote_path=path):
            return self._extract_full(
                "fetch_csv",
                path,
                chunk_size=chunk_size,
                max_rows=max_rows,
                method=ProcessingMethod.CSV,
                stream_factory=open_csv,
            )

    def fetch_json(self, path: str) -> Any:
        """
        Fetch and decode a JSON document.

        Raises:
            TransportError: fetch failed, or the bytes are not valid UTF-8 JSON.
        """
        validate_remote_path("fetch_json", path)
        with LogContext.bind(operation="fetch_json", remote_path=path):
            data = self._reader.fetch(path)
            try:
                document = json.loads(data.decode("utf-8-sig"))
            except ValueError as exc:
                logger.error("json_decode_failed", extra={"error": str(exc), "size_bytes": len(data)})
                raise TransportError(
                    operation="fetch_json",
                    path=path,
                    detail=f"invalid JSON: {exc}",
                    cause=exc,
                ) from exc
            logger.info("json_fetched", extra={"size_bytes": len(data), "type": type(document).__name__})
        return document

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _extract_full(
        self,
        operation: str,
        path: str,
        *,
        chunk_size: int,
        max_rows: int | None,
        method: ProcessingMethod,
        sheet: int | str | None = None,
        stream_factory: Callable[[Path], Any] | None = None,
    ) -> ExtractionResult:
        rows: list[RowRecord] = []
        batch: list[RowRecord] = []
        batches = 0

        def flush() -> None:
            nonlocal batches
            rows.extend(batch)
            batches += 1
            logger.debug("batch_processed", extra={"batch": batches, "rows_total": len(rows)})
            batch.clear()

        def consume(index: int, row: RowRecord) -> bool:
            batch.append(row)
            if len(batch) >= chunk_size:
                flush()
            return max_rows is None or len(rows) + len(batch) < max_rows

        started = time.monotonic()
        logger.info(
            "full_extraction_started",
            extra={
                "chunk_size": chunk_size,
                "max_rows": max_rows,
                "timeout_s": self.timeout_seconds,
            },
        )
        outcome = self._reader.read(
            path,
            consume,
            sheet=sheet,
            timeout_seconds=self.timeout_seconds,
            stream_factory=stream_factory,
        )
        if batch:
            flush()
        outcome.stream.raise_if_fatal(operation, path, len(rows))
        result = self._build_result(
            outcome,
            chunk_size=chunk_size,
            rows=rows,
            chunks_processed=batches,
            method=method,
        )
        log = logger.warning if not result.is_complete else logger.info
        log(
            "full_extraction_completed",
            extra={
                "rows_returned": result.rows_returned,
                "chunks_processed": batches,
                "truncated_by_timeout": result.metadata.truncated_by_timeout,
                "degradation": result.metadata.degradation.value if result.metadata.degradation else None,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return result

    def _build_result(
        self,
        outcome: ReadOutcome,
        *,
        chunk_size: int,
        rows: list[RowRecord],
        chunks_processed: int,
        method: ProcessingMethod,
        window: ChunkWindow | None = None,
    ) -> ExtractionResult:
        stream = outcome.stream
        return ExtractionResult(
            file_name=outcome.file_name,
            file_size_bytes=outcome.file_size_bytes,
            chunk_size=chunk_size,
            rows=tuple(rows),
            chunks_processed=chunks_processed,
            total_rows_seen=stream.rows_seen,
            window=window,
            metadata=ExtractionMetadata(
                processed_at=self._clock.now(),
                processing_method=method,
                truncated_by_timeout=stream.timed_out,
                error_note=stream.error_note,
                degradation=stream.degradation,
                stopped_early=stream.stopped_early,
            ),
        )
