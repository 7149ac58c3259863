"""
Configuration Loader (``sheetsync_config.loader``).

Responsibility
--------------
Loads YAML job files and parses them into typed ``sheetsync_config.schema``
dataclass instances.  String values of the form ``${NAME}`` are replaced with
the environment variable ``NAME`` so credentials stay out of the file.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid values (non-positive chunk size, unset env var...)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
from datetime import date
from pathlib import Path
from typing import Any, Mapping

import yaml

from sheetsync_config.schema import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_OPENING_DATE,
    DEFAULT_PORT,
    DEFAULT_STREAM_TIMEOUT,
    ExtractionSettings,
    HierarchySettings,
    ScanSettings,
    SyncJobConfig,
    TransportConfig,
)

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def interpolate_env(value: Any, environ: Mapping[str, str] | None = None) -> Any:
    """
    Replace ``${NAME}`` references in strings, recursing into dicts and lists.

    Raises:
        ValueError: if a referenced variable is not set.
    """
    env = os.environ if environ is None else environ
    if isinstance(value, str):
        def _sub(match: re.Match[str]) -> str:
            name = match.group(1)
            if name not in env:
                raise ValueError(f"Environment variable {name} is not set")
            return env[name]

        return _ENV_REF.sub(_sub, value)
    if isinstance(value, dict):
        return {k: interpolate_env(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [interpolate_env(v, env) for v in value]
    return value


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return value


def parse_transport(data: dict[str, Any]) -> TransportConfig:
    """
    Parse a ``TransportConfig`` from a dict.

    Raises:
        KeyError: if ``host`` is missing.
    """
    return TransportConfig(
        host=data["host"],
        port=int(data.get("port", DEFAULT_PORT)),
        username=data.get("username") or "anonymous",
        password=data.get("password"),
        private_key_path=data.get("private_key_path"),
        connect_timeout=float(data.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT)),
    )


def parse_extraction(data: dict[str, Any]) -> ExtractionSettings:
    """Parse ``ExtractionSettings``; every key is optional."""
    max_rows = data.get("max_rows")
    return ExtractionSettings(
        chunk_size=_positive_int(data.get("chunk_size", DEFAULT_CHUNK_SIZE), "chunk_size"),
        max_rows=_positive_int(max_rows, "max_rows") if max_rows is not None else None,
        sheet=data.get("sheet"),
        with_header=bool(data.get("with_header", True)),
        ignore_empty_rows=bool(data.get("ignore_empty_rows", True)),
        timeout_seconds=float(data.get("timeout_seconds", DEFAULT_STREAM_TIMEOUT)),
        temp_dir=data.get("temp_dir"),
    )


def parse_scan(data: dict[str, Any]) -> ScanSettings:
    """
    Parse ``ScanSettings``.

    ``column_mapping`` values may be a single column name or a list of
    candidate names.

    Raises:
        KeyError: if ``column_mapping`` is missing.
        ValueError: if it is empty or a hierarchy column is not a mapped dimension.
    """
    raw_mapping = data["column_mapping"]
    if not raw_mapping:
        raise ValueError("column_mapping must not be empty")
    mapping: dict[str, tuple[str, ...]] = {}
    for dimension, columns in raw_mapping.items():
        if isinstance(columns, str):
            columns = [columns]
        mapping[dimension] = tuple(columns)

    hierarchy = tuple(data.get("hierarchy_columns", ()))
    unknown = [h for h in hierarchy if h not in mapping]
    if unknown:
        raise ValueError(f"hierarchy_columns not in column_mapping: {unknown}")
    return ScanSettings(column_mapping=mapping, hierarchy_columns=hierarchy)


def parse_hierarchy(data: dict[str, Any]) -> HierarchySettings:
    """
    Parse ``HierarchySettings``.

    Raises:
        KeyError: if ``max_level`` is missing.
    """
    opening = data.get("opening_date")
    return HierarchySettings(
        max_level=_positive_int(data["max_level"], "max_level"),
        opening_date=parse_date(opening) if opening else DEFAULT_OPENING_DATE,
        code_prefix=data.get("code_prefix", ""),
    )


def parse_job_config(
    data: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> SyncJobConfig:
    """
    Parse a full ``SyncJobConfig`` from a dict.

    The checksum is computed over the raw (pre-interpolation) dict so secrets
    never influence it.

    Raises:
        KeyError: if ``name``, ``transport`` or ``remote_path`` is missing.
    """
    checksum = compute_checksum(data)
    resolved = interpolate_env(data, environ)
    scan_data = resolved.get("scan")
    hierarchy_data = resolved.get("hierarchy")
    return SyncJobConfig(
        name=resolved["name"],
        transport=parse_transport(resolved["transport"]),
        remote_path=resolved["remote_path"],
        extraction=parse_extraction(resolved.get("extraction") or {}),
        scan=parse_scan(scan_data) if scan_data else None,
        hierarchy=parse_hierarchy(hierarchy_data) if hierarchy_data else None,
        checksum=checksum,
    )


def load_job_config(path: Path, environ: Mapping[str, str] | None = None) -> SyncJobConfig:
    """Load and parse a job configuration YAML file."""
    return parse_job_config(load_yaml_file(path), environ)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
