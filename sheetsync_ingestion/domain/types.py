"""
sheetsync_ingestion.domain.types -- Pure frozen dataclasses for extraction.

ZERO I/O. Imports only from sheetsync_kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from sheetsync_kernel.exceptions import InputValidationError

# Header name, or 0-based column index for headerless sheets.
RowRecord = dict[str | int, Any]


# =============================================================================
# Enums
# =============================================================================


class ProcessingMethod(str, Enum):
    """How the rows of a result were produced."""

    CHUNKED_WINDOW = "chunked_window"  # extract_chunk: one index window
    FULL_STREAM = "full_stream"  # extract_all: every row up to max_rows
    CSV = "csv"  # fetch_csv: full stream over a CSV file
    DIMENSION_SCAN = "dimension_scan"  # scan_metadata: counts and distinct values


class StreamDegradation(str, Enum):
    """Non-fatal reasons a result may be incomplete."""

    TIMEOUT = "timeout"  # deadline hit, stream closed early
    INVALID_STREAM = "invalid_stream"  # parser returned something that is not a row stream
    STREAM_ERROR = "stream_error"  # parser failed after some rows were read


# =============================================================================
# Chunk window
# =============================================================================


@dataclass(frozen=True)
class ChunkWindow:
    """Index-addressed slice ``[start_row, end_row]`` of a row sequence (0-based)."""

    chunk_index: int
    chunk_size: int

    def __post_init__(self) -> None:
        if isinstance(self.chunk_index, bool) or not isinstance(self.chunk_index, int) or self.chunk_index < 0:
            raise InputValidationError("chunk_window", "chunk_index", self.chunk_index, "must be an integer >= 0")
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise InputValidationError("chunk_window", "chunk_size", self.chunk_size, "must be an integer > 0")

    @property
    def start_row(self) -> int:
        return self.chunk_index * self.chunk_size

    @property
    def end_row(self) -> int:
        return self.start_row + self.chunk_size - 1

    def contains(self, row_index: int) -> bool:
        return self.start_row <= row_index <= self.end_row


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ExtractionMetadata:
    """How and when a result was produced, and whether it is partial."""

    processed_at: datetime
    processing_method: ProcessingMethod
    truncated_by_timeout: bool
    error_note: str | None = None
    degradation: StreamDegradation | None = None
    stopped_early: bool = False  # window satisfied before end of file


@dataclass(frozen=True)
class ExtractionResult:
    """Rows returned by one extraction call. Owned by the caller once returned."""

    file_name: str
    file_size_bytes: int
    chunk_size: int
    rows: tuple[RowRecord, ...]
    chunks_processed: int
    total_rows_seen: int
    metadata: ExtractionMetadata
    window: ChunkWindow | None = None

    @property
    def rows_returned(self) -> int:
        return len(self.rows)

    @property
    def is_complete(self) -> bool:
        """False when the rows are a timeout- or error-truncated subset."""
        return self.metadata.degradation is None and not self.metadata.truncated_by_timeout


@dataclass(frozen=True)
class DimensionScanResult:
    """Row count, chunk count, distinct dimension values and parent links of a file."""

    file_name: str
    total_rows: int
    chunk_size: int
    total_chunks: int
    unique_values: Mapping[str, tuple[Any, ...]]
    parent_map: Mapping[str, str]
    processed_at: datetime | None = None
    truncated_by_timeout: bool = False
    error_note: str | None = None
    degradation: StreamDegradation | None = None

    @property
    def is_complete(self) -> bool:
        return self.degradation is None and not self.truncated_by_timeout

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view with list values, for job state and JSON output."""
        return {
            "fileName": self.file_name,
            "totalRows": self.total_rows,
            "chunkSize": self.chunk_size,
            "totalChunks": self.total_chunks,
            "uniqueValues": {k: list(v) for k, v in self.unique_values.items()},
            "parentMap": dict(self.parent_map),
            "truncatedByTimeout": self.truncated_by_timeout,
            "errorNote": self.error_note,
        }


@dataclass(frozen=True)
class ChunkProcessingResult:
    """
    Outcome of reading one chunk, transforming it and submitting the values.

    Exactly one of three shapes:
        - skipped=True with a reason (empty chunk, or the transform produced
          no values); nothing was submitted.
        - submitted=True with the number of values sent and the sink's reply.
        - error set (and error_code when the failure was a SheetSyncError);
          the chunk was not submitted.
    """

    chunk_index: int
    rows_processed: int
    processed_at: datetime
    values_submitted: int = 0
    submitted: bool = False
    skipped: bool = False
    reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    submit_result: Any = None

    @property
    def chunk_number(self) -> int:
        """1-based position of the chunk, for progress messages."""
        return self.chunk_index + 1

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a remote directory listing."""

    name: str
    size: int
    is_dir: bool
    modified_at: datetime | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
