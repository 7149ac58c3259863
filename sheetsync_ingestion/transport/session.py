"""
Transport session: connection lifecycle for one remote file store.

A TransportSession is an explicit object owned by the caller and passed to
extractors; there is no process-global connection.  Calls against one
session must be serialized; ``session_scope`` holds the session lock across
connect -> operate -> disconnect.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from sheetsync_config.schema import TransportConfig
from sheetsync_kernel.exceptions import (
    ConnectionFailedError,
    ConnectionFailureReason,
    InputValidationError,
    SessionNotReadyError,
    TransportError,
)
from sheetsync_kernel.logging_config import LogContext, get_logger

from sheetsync_ingestion.domain.types import RemoteEntry
from sheetsync_ingestion.transport.base import (
    ClientFactory,
    RemoteFileClient,
    SessionState,
    classify_transport_error,
)

logger = get_logger("ingestion.transport.session")

_CONNECT_HINTS: dict[ConnectionFailureReason, str] = {
    ConnectionFailureReason.MISSING_HOST: "set host in the transport configuration",
    ConnectionFailureReason.DNS_LOOKUP: "DNS lookup failed - check host address",
    ConnectionFailureReason.REFUSED: "connection refused - check port and firewall",
    ConnectionFailureReason.TIMEOUT: "connection timeout - check network connectivity",
    ConnectionFailureReason.AUTHENTICATION: "authentication failed - check username/credentials",
}


def _default_client_factory() -> RemoteFileClient:
    from sheetsync_ingestion.transport.sftp import ParamikoSftpClient

    return ParamikoSftpClient()


class TransportSession:
    """One connection to a remote file store, with connect/disconnect lifecycle."""

    def __init__(self, client_factory: ClientFactory | None = None):
        self._client_factory = client_factory or _default_client_factory
        self._client: RemoteFileClient | None = None
        self._config: TransportConfig | None = None
        self._state = SessionState.DISCONNECTED
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == SessionState.READY and self._client is not None

    @property
    def config(self) -> TransportConfig | None:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, config: TransportConfig) -> TransportSession:
        """
        Open the connection described by ``config``.

        An already-open connection is closed first; a failure to close it is
        logged as a warning and does not stop the new connection.

        Raises:
            ConnectionFailedError: host missing, or the transport rejected us.
        """
        if self._client is not None:
            logger.warning("previous_connection_closing", extra=self._describe())
            self._close_client(event="previous_connection_close_failed")

        host = config.cleaned_host
        if config.host != host and config.host:
            logger.info("host_scheme_stripped", extra={"original_host": config.host, "host": host})
        if not host:
            error = ConnectionFailedError(
                host=None,
                port=config.port,
                reason=ConnectionFailureReason.MISSING_HOST,
                detail="host is required in configuration",
            )
            logger.error("connect_failed", extra={"reason": error.reason.value, "hint": _CONNECT_HINTS[error.reason]})
            raise error

        self._state = SessionState.CONNECTING
        logger.info("connect_started", extra={**config.describe(), "timeout_s": config.connect_timeout})
        client = self._client_factory()
        try:
            client.connect(config)
        except ConnectionFailedError as exc:
            self._state = SessionState.DISCONNECTED
            self._log_connect_failure(exc)
            raise
        except Exception as exc:
            self._state = SessionState.DISCONNECTED
            error = ConnectionFailedError(
                host=host,
                port=config.port,
                reason=ConnectionFailureReason.UNKNOWN,
                detail=str(exc) or type(exc).__name__,
                cause=exc,
            )
            self._log_connect_failure(error)
            raise error from exc

        self._client = client
        self._config = config
        self._state = SessionState.READY
        logger.info("connect_succeeded", extra=config.describe())
        return self

    def disconnect(self) -> None:
        """Close the connection. Never raises; a no-op when nothing is open."""
        if self._client is None:
            logger.debug("disconnect_noop")
            self._state = SessionState.DISCONNECTED
            return
        self._close_client(event="disconnect_failed")
        logger.info("disconnected")

    @contextmanager
    def session_scope(self, config: TransportConfig) -> Iterator[TransportSession]:
        """
        Connect, yield, and always disconnect, holding the session lock.

        Usage:
            with session.session_scope(config) as s:
                result = SheetExtractionService(s).extract_chunk(path, 0, 1000)
        """
        with self._lock:
            self.connect(config)
            try:
                yield self
            finally:
                self.disconnect()

    def _close_client(self, event: str) -> None:
        client = self._client
        self._client = None
        self._state = SessionState.DISCONNECTED
        try:
            client.close()
        except Exception as exc:
            # A failed close must not block the caller's error path.
            logger.warning(event, extra={**self._describe(), "error": str(exc)})

    def _describe(self) -> dict[str, object]:
        return self._config.describe() if self._config is not None else {}

    def _log_connect_failure(self, exc: ConnectionFailedError) -> None:
        logger.error(
            "connect_failed",
            extra={
                "host": exc.host,
                "port": exc.port,
                "reason": exc.reason.value,
                "error": exc.detail,
                "hint": _CONNECT_HINTS.get(exc.reason),
            },
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _require_ready(self, operation: str) -> RemoteFileClient:
        if not self.is_ready:
            raise SessionNotReadyError(operation, self._state.value)
        return self._client

    def fetch_file(self, path: str) -> bytes:
        """
        Read a whole remote file into memory.

        Raises:
            InputValidationError: path is empty.
            SessionNotReadyError: connect() has not succeeded.
            TransportError: not found, permission denied, connection lost...
        """
        if not isinstance(path, str) or not path.strip():
            raise InputValidationError("fetch_file", "path", path, "must be a non-empty string")
        client = self._require_ready("fetch_file")
        started = time.monotonic()
        with LogContext.bind(remote_path=path):
            try:
                data = client.fetch_file(path)
            except Exception as exc:
                raise self._transport_error("fetch_file", path, exc, started) from exc
            logger.info(
                "file_fetched",
                extra={"size_bytes": len(data), "duration_ms": round((time.monotonic() - started) * 1000)},
            )
        return data

    def list_directory(
        self,
        path: str,
        predicate: Callable[[RemoteEntry], bool] | None = None,
    ) -> list[RemoteEntry]:
        """List a remote directory, optionally filtered by ``predicate``."""
        if not isinstance(path, str) or not path.strip():
            raise InputValidationError("list", "path", path, "must be a non-empty string")
        client = self._require_ready("list")
        started = time.monotonic()
        with LogContext.bind(remote_path=path):
            try:
                entries = client.list_directory(path)
            except Exception as exc:
                raise self._transport_error("list", path, exc, started) from exc
            if predicate is not None:
                entries = [e for e in entries if predicate(e)]
            logger.info(
                "directory_listed",
                extra={
                    "entry_count": len(entries),
                    "sample": [e.name for e in entries[:3]],
                    "duration_ms": round((time.monotonic() - started) * 1000),
                },
            )
        return entries

    def _transport_error(
        self,
        operation: str,
        path: str,
        exc: BaseException,
        started: float,
    ) -> TransportError:
        reason = classify_transport_error(exc)
        logger.error(
            "transport_operation_failed",
            extra={
                "operation": operation,
                "reason": reason.value,
                "error": str(exc),
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return TransportError(
            operation=operation,
            path=path,
            detail=str(exc) or type(exc).__name__,
            reason=reason,
            cause=exc,
        )


def connect(config: TransportConfig, client_factory: ClientFactory | None = None) -> TransportSession:
    """Open and return a new session."""
    return TransportSession(client_factory).connect(config)


def disconnect(session: TransportSession | None) -> None:
    """Close ``session`` if given. Never raises."""
    if session is not None:
        session.disconnect()
