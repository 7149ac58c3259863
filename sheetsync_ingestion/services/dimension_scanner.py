"""
Dimension scanner: one full pass over a remote sheet collecting row count,
distinct dimension values and child -> parent links.

Row content is discarded after its configured columns are inspected; memory
grows with the number of distinct values, not with the row count.
"""

from __future__ import annotations

import math
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from sheetsync_config.schema import DEFAULT_STREAM_TIMEOUT, ScanSettings
from sheetsync_kernel.domain.clock import Clock
from sheetsync_kernel.logging_config import LogContext, get_logger

from sheetsync_ingestion.adapters import open_row_stream
from sheetsync_ingestion.domain.types import DimensionScanResult, RowRecord
from sheetsync_ingestion.domain.validators import (
    normalize_column_mapping,
    validate_chunk_size,
    validate_hierarchy_columns,
    validate_remote_path,
)
from sheetsync_ingestion.services.reader import RemoteSheetReader
from sheetsync_ingestion.transport.session import TransportSession

logger = get_logger("ingestion.dimension_scanner")


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def _dimension_value(row: RowRecord, candidates: tuple[str, ...]) -> Any:
    """Value of the first candidate column present and non-empty in ``row``."""
    for column in candidates:
        value = row.get(column)
        if _is_present(value):
            return value
    return None


class DimensionScanner:
    """Counts rows and collects dimension values of remote spreadsheets."""

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

    def scan_with_settings(
        self,
        path: str,
        chunk_size: int,
        settings: ScanSettings,
        *,
        sheet: int | str | None = None,
    ) -> DimensionScanResult:
        return self.scan_metadata(
            path,
            chunk_size,
            column_mapping=settings.column_mapping,
            hierarchy_columns=settings.hierarchy_columns,
            sheet=sheet,
        )

    def scan_metadata(
        self,
        path: str,
        chunk_size: int,
        *,
        column_mapping: Mapping[str, Sequence[str] | str],
        hierarchy_columns: Sequence[str] | None = None,
        sheet: int | str | None = None,
    ) -> DimensionScanResult:
        """
        Scan the whole file once.

        ``column_mapping`` maps a dimension name to candidate column headers;
        ``hierarchy_columns`` orders dimension names from root to leaf.  For
        each row where two adjacent hierarchy dimensions are both present,
        ``parent_map[child] = parent`` is recorded; the first link seen for a
        child is kept.

        Raises:
            InputValidationError: bad path, chunk_size, or mapping (before I/O).
            SessionNotReadyError, TransportError: from the fetch.
            RowStreamError: the stream failed before any row was counted.
        """
        validate_remote_path("scan_metadata", path)
        chunk_size = validate_chunk_size("scan_metadata", chunk_size)
        mapping = normalize_column_mapping("scan_metadata", column_mapping)
        levels = validate_hierarchy_columns("scan_metadata", hierarchy_columns, mapping)

        # dicts as insertion-ordered sets
        unique: dict[str, dict[Any, None]] = {dimension: {} for dimension in mapping}
        parent_map: dict[str, str] = {}

        def consume(index: int, row: RowRecord) -> bool:
            values = {dimension: _dimension_value(row, cols) for dimension, cols in mapping.items()}
            for dimension, value in values.items():
                if value is not None:
                    unique[dimension].setdefault(value, None)
            for parent_dim, child_dim in zip(levels, levels[1:]):
                parent, child = values[parent_dim], values[child_dim]
                if parent is not None and child is not None:
                    parent_map.setdefault(str(child), str(parent))
            return True

        with LogContext.bind(operation="scan_metadata", remote_path=path):
            started = time.monotonic()
            logger.info(
                "dimension_scan_started",
                extra={"dimensions": list(mapping), "hierarchy_columns": list(levels)},
            )
            outcome = self._reader.read(
                path,
                consume,
                sheet=sheet,
                timeout_seconds=self._reader.timeout_seconds,
            )
            stream = outcome.stream
            stream.raise_if_fatal("scan_metadata", path, stream.rows_seen)
            total_rows = stream.rows_seen
            result = DimensionScanResult(
                file_name=outcome.file_name,
                total_rows=total_rows,
                chunk_size=chunk_size,
                total_chunks=math.ceil(total_rows / chunk_size),
                unique_values={d: tuple(v) for d, v in unique.items()},
                parent_map=parent_map,
                processed_at=self._reader.clock.now(),
                truncated_by_timeout=stream.timed_out,
                error_note=stream.error_note,
                degradation=stream.degradation,
            )
            log = logger.warning if not result.is_complete else logger.info
            log(
                "dimension_scan_completed",
                extra={
                    "total_rows": total_rows,
                    "total_chunks": result.total_chunks,
                    "distinct_counts": {d: len(v) for d, v in result.unique_values.items()},
                    "parent_links": len(parent_map),
                    "truncated_by_timeout": stream.timed_out,
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
        return result
