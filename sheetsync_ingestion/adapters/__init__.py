"""Row stream adapters (file I/O only, no DB)."""

from __future__ import annotations

from pathlib import Path

from sheetsync_ingestion.adapters.base import (
    InvalidStream,
    PendingStreamHandle,
    RowStream,
    RowStreamFactory,
    StreamHandle,
    classify_stream,
    close_quietly,
    resolve_stream,
)
from sheetsync_ingestion.adapters.csv_stream import CsvRowStream
from sheetsync_ingestion.adapters.xlsx_stream import XlsxRowStream

_CSV_SUFFIXES = frozenset({".csv", ".txt"})


def open_row_stream(
    file_path: Path | str,
    *,
    sheet: int | str | None = None,
    with_header: bool = True,
    ignore_empty_rows: bool = True,
) -> RowStream:
    """Open a row stream for a local file, choosing the parser by suffix."""
    path = Path(file_path)
    if path.suffix.lower() in _CSV_SUFFIXES:
        return CsvRowStream(path, has_header=with_header, ignore_empty_rows=ignore_empty_rows)
    return XlsxRowStream(
        path,
        sheet=sheet,
        with_header=with_header,
        ignore_empty_rows=ignore_empty_rows,
    )


__all__ = [
    "CsvRowStream",
    "InvalidStream",
    "PendingStreamHandle",
    "RowStream",
    "RowStreamFactory",
    "StreamHandle",
    "XlsxRowStream",
    "classify_stream",
    "close_quietly",
    "open_row_stream",
    "resolve_stream",
]
