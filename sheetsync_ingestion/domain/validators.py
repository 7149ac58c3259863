"""
Input validators for extraction, scanning and hierarchy calls.

Every validator raises InputValidationError before any I/O happens, so a bad
parameter never opens a connection or writes a temp file.

Architecture: sheetsync_ingestion/domain. ZERO I/O.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from sheetsync_kernel.exceptions import InputValidationError


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_remote_path(operation: str, path: Any) -> str:
    if not isinstance(path, str) or not path.strip():
        raise InputValidationError(operation, "path", path, "must be a non-empty string")
    return path


def validate_chunk_index(operation: str, chunk_index: Any) -> int:
    if not _is_int(chunk_index) or chunk_index < 0:
        raise InputValidationError(operation, "chunk_index", chunk_index, "must be an integer >= 0")
    return chunk_index


def validate_chunk_size(operation: str, chunk_size: Any) -> int:
    if not _is_int(chunk_size) or chunk_size <= 0:
        raise InputValidationError(operation, "chunk_size", chunk_size, "must be an integer > 0")
    return chunk_size


def validate_max_rows(operation: str, max_rows: Any) -> int | None:
    if max_rows is None:
        return None
    if not _is_int(max_rows) or max_rows <= 0:
        raise InputValidationError(operation, "max_rows", max_rows, "must be None or an integer > 0")
    return max_rows


def validate_max_level(operation: str, max_level: Any) -> int:
    if not _is_int(max_level) or max_level < 1:
        raise InputValidationError(operation, "max_level", max_level, "must be an integer >= 1")
    return max_level


def normalize_column_mapping(
    operation: str,
    column_mapping: Any,
) -> dict[str, tuple[str, ...]]:
    """Accept ``{dimension: "Column"}`` or ``{dimension: ["Col A", "Col B"]}``."""
    if not isinstance(column_mapping, Mapping) or not column_mapping:
        raise InputValidationError(
            operation, "column_mapping", column_mapping, "is required and must be a non-empty mapping"
        )
    normalized: dict[str, tuple[str, ...]] = {}
    for dimension, columns in column_mapping.items():
        if isinstance(columns, str):
            columns = (columns,)
        if not isinstance(columns, Sequence) or not columns:
            raise InputValidationError(
                operation, f"column_mapping[{dimension!r}]", columns, "must list at least one column"
            )
        normalized[str(dimension)] = tuple(str(c) for c in columns)
    return normalized


def validate_hierarchy_columns(
    operation: str,
    hierarchy_columns: Sequence[str] | None,
    column_mapping: Mapping[str, tuple[str, ...]],
) -> tuple[str, ...]:
    if not hierarchy_columns:
        return ()
    if isinstance(hierarchy_columns, str):
        raise InputValidationError(
            operation, "hierarchy_columns", hierarchy_columns, "must be a sequence of dimension names"
        )
    unknown = [h for h in hierarchy_columns if h not in column_mapping]
    if unknown:
        raise InputValidationError(
            operation, "hierarchy_columns", list(hierarchy_columns), f"not in column_mapping: {unknown}"
        )
    return tuple(hierarchy_columns)
