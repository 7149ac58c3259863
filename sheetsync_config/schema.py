"""
Sync job configuration schema.

Frozen dataclasses describing one extraction / hierarchy job.  YAML files are
parsed into these types by ``sheetsync_config.loader``; services receive the
typed objects and never read configuration files themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")

DEFAULT_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_STREAM_TIMEOUT = 300.0
DEFAULT_OPENING_DATE = date(2024, 1, 1)


def strip_scheme(host: str | None) -> str | None:
    """Remove a ``scheme://`` prefix (sftp://, ftp://, ...) and any trailing slash."""
    if host is None:
        return None
    cleaned = _SCHEME_PREFIX.sub("", host.strip()).rstrip("/")
    return cleaned or None


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransportConfig:
    """Connection settings for the remote file server."""

    host: str | None
    port: int = DEFAULT_PORT
    username: str = "anonymous"
    password: str | None = field(default=None, repr=False)
    private_key_path: str | None = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    @property
    def cleaned_host(self) -> str | None:
        return strip_scheme(self.host)

    def describe(self) -> dict[str, Any]:
        """Connection info safe to log (no secrets)."""
        return {
            "host": self.cleaned_host,
            "port": self.port,
            "username": self.username,
        }


# ---------------------------------------------------------------------------
# Extraction / scanning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionSettings:
    """How a spreadsheet is materialized and streamed."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_rows: int | None = None
    sheet: int | str | None = None
    with_header: bool = True
    ignore_empty_rows: bool = True
    timeout_seconds: float = DEFAULT_STREAM_TIMEOUT
    temp_dir: str | None = None


@dataclass(frozen=True)
class ScanSettings:
    """Dimension-scan options.

    column_mapping maps a dimension name (e.g. "regions") to candidate column
    headers; the first candidate present in a row is used.  hierarchy_columns
    lists dimension names from the root level down.
    """

    column_mapping: dict[str, tuple[str, ...]]
    hierarchy_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class HierarchySettings:
    """Level-ordered upsert options."""

    max_level: int
    opening_date: date = DEFAULT_OPENING_DATE
    code_prefix: str = ""


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncJobConfig:
    """One job: where the file lives and what to do with it."""

    name: str
    transport: TransportConfig
    remote_path: str
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    scan: ScanSettings | None = None
    hierarchy: HierarchySettings | None = None
    checksum: str = ""
