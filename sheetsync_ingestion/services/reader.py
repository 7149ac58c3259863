"""
Remote sheet reader: fetch -> materialize -> stream, shared by the extractor
and the scanner.

Peak memory is one file's bytes plus one row; rows are handed to a consumer
and never buffered here.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable

from sheetsync_config.schema import DEFAULT_STREAM_TIMEOUT
from sheetsync_kernel.domain.clock import Clock, SystemClock
from sheetsync_kernel.logging_config import get_logger

from sheetsync_ingestion.adapters import open_row_stream
from sheetsync_ingestion.services.materialize import materialized_file
from sheetsync_ingestion.services.streaming import RowConsumer, StreamOutcome, pump_rows
from sheetsync_ingestion.transport.session import TransportSession

logger = get_logger("ingestion.reader")

_DEFAULT_SUFFIX = ".xlsx"


def remote_file_name(path: str) -> str:
    return PurePosixPath(path).name or path


@dataclass(frozen=True)
class ReadOutcome:
    """Bytes fetched plus what the stream did."""

    file_name: str
    file_size_bytes: int
    stream: StreamOutcome


class RemoteSheetReader:
    """Reads one remote file as rows through a caller-supplied consumer."""

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
        self.session = session
        self.clock = clock or SystemClock()
        self.timeout_seconds = timeout_seconds
        self._row_stream_factory = row_stream_factory
        self._temp_dir = temp_dir
        self._with_header = with_header
        self._ignore_empty_rows = ignore_empty_rows

    def fetch(self, path: str) -> bytes:
        return self.session.fetch_file(path)

    def read(
        self,
        path: str,
        consume: RowConsumer,
        *,
        sheet: int | str | None = None,
        timeout_seconds: float | None = None,
        stream_factory: Callable[[Path], Any] | None = None,
    ) -> ReadOutcome:
        """
        Fetch ``path``, write it to a temp file and pump its rows.

        ``stream_factory`` overrides the configured parser for this call; it
        receives the local temp path.  The temp file is deleted before return.

        Raises:
            SessionNotReadyError, TransportError: from the fetch.
        """
        data = self.fetch(path)
        suffix = PurePosixPath(path).suffix or _DEFAULT_SUFFIX
        with materialized_file(data, suffix=suffix, temp_dir=self._temp_dir, clock=self.clock) as local:
            def opener() -> Any:
                if stream_factory is not None:
                    return stream_factory(local)
                return self._row_stream_factory(
                    local,
                    sheet=sheet,
                    with_header=self._with_header,
                    ignore_empty_rows=self._ignore_empty_rows,
                )

            outcome = pump_rows(opener, consume, clock=self.clock, timeout_seconds=timeout_seconds)
        return ReadOutcome(
            file_name=remote_file_name(path),
            file_size_bytes=len(data),
            stream=outcome,
        )
