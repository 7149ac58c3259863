"""Remote transport: session lifecycle and the SFTP client."""

from sheetsync_ingestion.transport.base import (
    ClientFactory,
    RemoteFileClient,
    SessionState,
    classify_transport_error,
)
from sheetsync_ingestion.transport.session import (
    TransportSession,
    connect,
    disconnect,
)

__all__ = [
    "ClientFactory",
    "RemoteFileClient",
    "SessionState",
    "TransportSession",
    "classify_transport_error",
    "connect",
    "disconnect",
]
