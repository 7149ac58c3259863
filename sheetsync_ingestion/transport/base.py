"""
Remote file client protocol and session state.

Contract:
    RemoteFileClient.connect() opens one connection; fetch_file() returns the
    whole remote file as bytes; close() releases the connection.

Architecture: sheetsync_ingestion/transport. No DB or kernel model imports.
"""

from __future__ import annotations

import errno
from enum import Enum
from typing import Callable, Protocol, runtime_checkable

from sheetsync_config.schema import TransportConfig
from sheetsync_kernel.exceptions import TransportFailureReason

from sheetsync_ingestion.domain.types import RemoteEntry


class SessionState(str, Enum):
    """Lifecycle of a TransportSession."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


@runtime_checkable
class RemoteFileClient(Protocol):
    """Protocol for one connection to a remote file store."""

    def connect(self, config: TransportConfig) -> None:
        """Open the connection. Raises ConnectionFailedError on rejection."""
        ...

    def fetch_file(self, path: str) -> bytes:
        """Return the whole remote file."""
        ...

    def list_directory(self, path: str) -> list[RemoteEntry]:
        """Return the entries of a remote directory."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...


ClientFactory = Callable[[], RemoteFileClient]


def classify_transport_error(exc: BaseException) -> TransportFailureReason:
    """Map a fetch/list failure to a diagnostic category."""
    if isinstance(exc, FileNotFoundError):
        return TransportFailureReason.NOT_FOUND
    if isinstance(exc, PermissionError):
        return TransportFailureReason.PERMISSION_DENIED
    if isinstance(exc, (ConnectionError, EOFError, TimeoutError)):
        return TransportFailureReason.CONNECTION_LOST
    if isinstance(exc, OSError):
        if exc.errno == errno.ENOENT:
            return TransportFailureReason.NOT_FOUND
        if exc.errno == errno.EACCES:
            return TransportFailureReason.PERMISSION_DENIED
    message = str(exc).lower()
    if "no such file" in message:
        return TransportFailureReason.NOT_FOUND
    if "permission" in message:
        return TransportFailureReason.PERMISSION_DENIED
    if "not connected" in message or "connection lost" in message:
        return TransportFailureReason.CONNECTION_LOST
    return TransportFailureReason.UNKNOWN
