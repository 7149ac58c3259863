"""
Pytest fixtures for the sheetsync test suite.

Provides:
- Structured logging setup and a captured_logs fixture
- SQLite in-memory database sessions with per-test rollback
- A deterministic clock
- An openpyxl workbook builder and an in-memory remote file store
"""

import json
import logging
from datetime import datetime, timezone
from io import BytesIO, StringIO
from itertools import count
from pathlib import Path
from typing import Any, Callable, Generator

import openpyxl
import pytest
from sqlalchemy.orm import Session

from sheetsync_config.schema import TransportConfig
from sheetsync_kernel.db.engine import create_tables, init_engine_from_url, reset_engine
from sheetsync_kernel.domain.clock import DeterministicClock
from sheetsync_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sheetsync_ingestion.domain.types import RemoteEntry
from sheetsync_ingestion.transport.session import TransportSession


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture sheetsync logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, connected_session):
            connected_session.fetch_file("/data/sites.xlsx")
            logs = captured_logs()
            assert any(r["message"] == "file_fetched" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sheetsync")
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Fresh in-memory database per test; the module-level engine is reset at teardown."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction that is rolled back at teardown,
    so every test starts from empty tables.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc))


# =============================================================================
# Spreadsheets
# =============================================================================


def build_xlsx(
    rows: list[list[Any]],
    *,
    headers: list[str] | None = None,
    sheet_title: str = "Data",
    extra_sheets: dict[str, list[list[Any]]] | None = None,
) -> bytes:
    """Build an .xlsx workbook in memory and return its bytes."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_title
    if headers is not None:
        ws.append(headers)
    for row in rows:
        ws.append(row)
    for title, sheet_rows in (extra_sheets or {}).items():
        extra = wb.create_sheet(title)
        for row in sheet_rows:
            extra.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def numbered_rows(count: int) -> list[list[Any]]:
    """Rows ``[i, "row-i"]`` for i in 0..count-1."""
    return [[i, f"row-{i}"] for i in range(count)]


@pytest.fixture
def xlsx_builder() -> Callable[..., bytes]:
    return build_xlsx


# =============================================================================
# Remote store
# =============================================================================


class FakeRemoteClient:
    """In-memory RemoteFileClient. Files map path -> bytes (or an exception to raise)."""

    def __init__(self, files: dict[str, Any] | None = None, connect_error: Exception | None = None):
        self.files = files if files is not None else {}
        self.connect_error = connect_error
        self.close_error: Exception | None = None
        self.connected_with: TransportConfig | None = None
        self.fetches: list[str] = []
        self.closed = False

    def connect(self, config: TransportConfig) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_with = config

    def fetch_file(self, path: str) -> bytes:
        self.fetches.append(path)
        if path not in self.files:
            raise FileNotFoundError(f"No such file: {path}")
        content = self.files[path]
        if isinstance(content, Exception):
            raise content
        return content

    def list_directory(self, path: str) -> list[RemoteEntry]:
        prefix = path.rstrip("/") + "/"
        entries = []
        for name, content in sorted(self.files.items()):
            if name.startswith(prefix) and "/" not in name[len(prefix):]:
                size = len(content) if isinstance(content, bytes) else 0
                entries.append(RemoteEntry(name=name[len(prefix):], size=size, is_dir=False))
        if not entries:
            raise FileNotFoundError(f"No such file: {path}")
        return entries

    def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def transport_config() -> TransportConfig:
    return TransportConfig(host="sftp://files.example.org", username="loader", password="secret")


@pytest.fixture
def remote_files() -> dict[str, Any]:
    return {}


@pytest.fixture
def fake_client(remote_files) -> FakeRemoteClient:
    return FakeRemoteClient(remote_files)


@pytest.fixture
def connected_session(fake_client, transport_config) -> Generator[TransportSession, None, None]:
    session = TransportSession(client_factory=lambda: fake_client)
    session.connect(transport_config)
    yield session
    session.disconnect()


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    directory = tmp_path / "materialized"
    directory.mkdir()
    return directory


# =============================================================================
# Upsert target
# =============================================================================


class InMemoryTarget:
    """UpsertTarget keeping entities in a dict; records every call."""

    def __init__(self):
        self.entities: dict[str, dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self.fail_codes: set[str] = set()
        self._ids = count(1)

    def find(self, filters):
        return [
            {"id": remote_id, **entity}
            for remote_id, entity in self.entities.items()
            if all(entity.get(k) == v for k, v in filters.items())
        ]

    def create(self, payload):
        self._check(payload)
        remote_id = f"ou-{next(self._ids)}"
        self.entities[remote_id] = dict(payload)
        self.calls.append(("create", payload))
        return remote_id

    def update(self, remote_id, payload):
        self._check(payload)
        self.entities[remote_id] = dict(payload)
        self.calls.append(("update", payload))
        return remote_id

    def _check(self, payload):
        if payload["code"] in self.fail_codes:
            raise RuntimeError(f"target rejected {payload['code']}")
