"""
XLSX row stream over openpyxl read-only mode.

Rows are pulled from the worksheet one at a time; nothing beyond the current
row is held, so memory stays flat regardless of sheet size.

  - sheet by index (0-based) or name; default is the active sheet
  - first non-empty row is the header when with_header is true

Cell values are normalized on purpose so XLSX and CSV rows compare equal
and dimension values dedupe cleanly: surrounding whitespace is stripped
from strings, empty cells become "", and integral floats become ints
(Excel stores every number as a float, so an id typed as 12 reads as
12.0).  Dates, times and non-integral numbers pass through untouched.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterator

import openpyxl

from sheetsync_ingestion.domain.types import RowRecord


def _normalize_header_cell(value: Any) -> str:
    """Normalize a header cell for use as a record key."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _is_blank(values: list[Any]) -> bool:
    return not any(v != "" for v in values)


def _build_headers(raw: tuple[Any, ...]) -> list[str]:
    cells = list(raw)
    while cells and _normalize_header_cell(cells[-1]) == "":
        cells.pop()
    headers: list[str] = []
    for c, value in enumerate(cells):
        key = _normalize_header_cell(value) or f"Column_{c + 1}"
        # Dedupe duplicate headers
        base = key
        cnt = 0
        while key in headers:
            cnt += 1
            key = f"{base}_{cnt}"
        headers.append(key)
    return headers


def _get_sheet(wb: Any, sheet: int | str | None) -> Any:
    if sheet is None:
        return wb.active
    if isinstance(sheet, int):
        return wb.worksheets[sheet]
    return wb[sheet]


class XlsxRowStream:
    """
    Single-pass RowStream over one worksheet.

    Opening validates the workbook and sheet; a corrupt file or unknown sheet
    raises here, before any row is read.
    """

    def __init__(
        self,
        file_path: Path | str,
        *,
        sheet: int | str | None = None,
        with_header: bool = True,
        ignore_empty_rows: bool = True,
    ):
        self._path = Path(file_path)
        self._with_header = with_header
        self._ignore_empty_rows = ignore_empty_rows
        self._closed = False
        self._wb = openpyxl.load_workbook(self._path, read_only=True, data_only=True)
        try:
            self._sheet = _get_sheet(self._wb, sheet)
        except (IndexError, KeyError):
            self._wb.close()
            raise
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
            self._wb.close()

    def _generate(self) -> Iterator[RowRecord]:
        rows = self._sheet.iter_rows(values_only=True)
        headers: list[str] | None = None
        if self._with_header:
            for raw in rows:
                if _is_blank([_cell_value(v) for v in raw]):
                    continue
                headers = _build_headers(raw)
                break
            if headers is None:
                return

        for raw in rows:
            values = [_cell_value(v) for v in raw]
            if self._ignore_empty_rows and _is_blank(values):
                continue
            if headers is None:
                yield {i: v for i, v in enumerate(values)}
                continue
            record: RowRecord = {
                h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)
            }
            # Data past the last header keeps a positional name
            for i in range(len(headers), len(values)):
                if values[i] != "":
                    record[f"Column_{i + 1}"] = values[i]
            yield record
