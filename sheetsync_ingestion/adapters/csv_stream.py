"""
CSV row stream.

Uses csv.reader over a file opened in text mode. Handles BOM via utf-8-sig
when encoding is utf-8. Headerless files yield records keyed by 0-based
column index.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterator

from sheetsync_ingestion.domain.types import RowRecord


def _get_encoding(encoding: str) -> str:
    if encoding.lower() == "utf-8":
        return "utf-8-sig"  # Strip BOM if present
    return encoding


class CsvRowStream:
    """Single-pass RowStream over a delimited text file."""

    def __init__(
        self,
        file_path: Path | str,
        *,
        delimiter: str = ",",
        has_header: bool = True,
        encoding: str = "utf-8",
        ignore_empty_rows: bool = True,
    ):
        self._handle = Path(file_path).open("r", encoding=_get_encoding(encoding), newline="")
        self._delimiter = delimiter
        self._has_header = has_header
        self._ignore_empty_rows = ignore_empty_rows
        self._closed = False
        self._rows = self._generate()

    def __iter__(self) -> Iterator[RowRecord]:
        return self

    def __next__(self) -> RowRecord:
        if self._closed:
            raise StopIteration
        return next(self._rows)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._rows.close()
        finally:
            self._handle.close()

    def _generate(self) -> Iterator[RowRecord]:
        reader = csv.reader(self._handle, delimiter=self._delimiter)
        headers: list[str] | None = None
        for row in reader:
            values = [v.strip() for v in row]
            if self._ignore_empty_rows and not any(values):
                continue
            if self._has_header and headers is None:
                headers = values
                continue
            if headers is None:
                yield {i: v for i, v in enumerate(values)}
            else:
                yield {h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)}
