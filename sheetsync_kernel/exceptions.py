"""
Typed exception hierarchy for sheetsync.

Every error has a typed class, a machine-readable ``code`` class attribute,
and carries its context as attributes rather than only inside the message.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SheetSyncError (base)
    |
    +-- ConnectionFailedError          fatal, session could not be established
    |   +-- SessionNotReadyError       operation attempted without a READY session
    |
    +-- InputValidationError           fatal, raised before any I/O
    |
    +-- TransportError                 fatal for the call, remote fetch/list failed
    |   +-- RowStreamError             row stream failed before yielding any row
    |
    +-- NodeUpsertError                non-fatal, recorded per hierarchy node
        +-- UpsertConflictError        find-by-code matched more than one record
        +-- MissingRemoteIdError       target accepted the write but returned no id

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                  | When Raised
------------|-----------------------|---------------------------------------------
Connection  | CONNECTION_FAILED     | Missing host, DNS, refused, timeout, auth
            | SESSION_NOT_READY     | fetch/list called on a closed session
------------|-----------------------|---------------------------------------------
Validation  | VALIDATION_FAILED     | Bad path, chunk index/size, scan options
------------|-----------------------|---------------------------------------------
Transport   | TRANSPORT_FAILED      | Not found, permission denied, lost link
            | ROW_STREAM_FAILED     | Parser error with zero rows accumulated
------------|-----------------------|---------------------------------------------
Hierarchy   | NODE_UPSERT_FAILED    | One node's upsert failed (run continues)
            | UPSERT_CONFLICT       | More than one record shares the node code
            | MISSING_REMOTE_ID     | Upsert response without an identifier

Stream degradations (invalid stream shape, timeout) are NOT exceptions; they
are reported on the result metadata.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class SheetSyncError(Exception):
    """
    Base exception for all sheetsync errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SHEETSYNC_ERROR"


# Connection-related exceptions


class ConnectionFailureReason(str, Enum):
    """Diagnostic category of a failed connection attempt."""

    MISSING_HOST = "missing_host"
    DNS_LOOKUP = "dns_lookup"
    REFUSED = "refused"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    UNKNOWN = "unknown"


class ConnectionFailedError(SheetSyncError):
    """Transport session could not be established."""

    code: str = "CONNECTION_FAILED"

    def __init__(
        self,
        host: str | None,
        port: int | None,
        reason: ConnectionFailureReason,
        detail: str,
        cause: BaseException | None = None,
    ):
        self.host = host
        self.port = port
        self.reason = reason
        self.detail = detail
        self.cause = cause
        if host:
            message = f"Connection failed to {host}:{port}: {detail}"
        else:
            message = f"Connection failed: {detail}"
        super().__init__(message)


class SessionNotReadyError(ConnectionFailedError):
    """An operation needed a READY session but none is open."""

    code: str = "SESSION_NOT_READY"

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(
            host=None,
            port=None,
            reason=ConnectionFailureReason.UNKNOWN,
            detail=f"{operation} requires a ready session (state={state}); call connect() first",
        )


# Validation exceptions


class InputValidationError(SheetSyncError):
    """Malformed input parameters, raised before any I/O."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, operation: str, field: str, value: Any, reason: str):
        self.operation = operation
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{operation}: invalid {field}={value!r}: {reason}")


# Transport exceptions


class TransportFailureReason(str, Enum):
    """Diagnostic category of a failed remote file operation."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONNECTION_LOST = "connection_lost"
    UNKNOWN = "unknown"


class TransportError(SheetSyncError):
    """Remote file operation failed."""

    code: str = "TRANSPORT_FAILED"

    def __init__(
        self,
        operation: str,
        path: str,
        detail: str,
        reason: TransportFailureReason = TransportFailureReason.UNKNOWN,
        cause: BaseException | None = None,
    ):
        self.operation = operation
        self.path = path
        self.detail = detail
        self.reason = reason
        self.cause = cause
        super().__init__(f"{operation} failed for '{path}': {detail}")


class RowStreamError(TransportError):
    """The row stream failed before any row was accumulated."""

    code: str = "ROW_STREAM_FAILED"

    def __init__(self, operation: str, path: str, cause: BaseException):
        super().__init__(
            operation=operation,
            path=path,
            detail=f"row stream failed with no rows read: {cause}",
            cause=cause,
        )


# Hierarchy exceptions


class NodeUpsertError(SheetSyncError):
    """One hierarchy node could not be upserted. Recorded, never fatal to a run."""

    code: str = "NODE_UPSERT_FAILED"

    def __init__(self, node_name: str, detail: str):
        self.node_name = node_name
        self.detail = detail
        super().__init__(f"Upsert failed for '{node_name}': {detail}")


class UpsertConflictError(NodeUpsertError):
    """Find-by-code matched more than one record in the target."""

    code: str = "UPSERT_CONFLICT"

    def __init__(self, node_name: str, node_code: str, match_count: int):
        self.node_code = node_code
        self.match_count = match_count
        super().__init__(
            node_name,
            f"{match_count} records share code {node_code!r}; "
            "ensure the code is unique before upserting",
        )


class MissingRemoteIdError(NodeUpsertError):
    """The target accepted the write but returned no identifier."""

    code: str = "MISSING_REMOTE_ID"

    def __init__(self, node_name: str):
        super().__init__(node_name, "could not determine identifier from upsert response")
