"""
UpsertTarget and ValueSink protocols, and the find-by-code upsert.

Targets create and update reference entities in the downstream system.  The
orchestrator never talks to a target directly; it calls ``upsert_by_code``,
which makes every write idempotent on ``code``:

    0 matches -> create
    1 match   -> update that entity
    >1        -> UpsertConflictError (nothing written)

ValueSinks receive the transformed values of one extracted chunk at a time.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sheetsync_kernel.exceptions import (
    MissingRemoteIdError,
    NodeUpsertError,
    UpsertConflictError,
)
from sheetsync_kernel.logging_config import get_logger

from sheetsync_ingestion.domain.hierarchy import UpsertAction, UpsertResponse

logger = get_logger("ingestion.promoters")


@runtime_checkable
class UpsertTarget(Protocol):
    """Protocol for a system that stores hierarchy nodes."""

    def find(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Return entities matching every filter; each dict carries ``id``."""
        ...

    def create(self, payload: dict[str, Any]) -> str:
        """Create an entity and return its id."""
        ...

    def update(self, remote_id: str, payload: dict[str, Any]) -> str:
        """Update an entity and return its id."""
        ...


@runtime_checkable
class ValueSink(Protocol):
    """Protocol for a system that accepts batches of transformed row values."""

    def submit(self, values: list[dict[str, Any]]) -> Any:
        """Send one batch; the return value is kept on the chunk result."""
        ...


def upsert_by_code(
    target: UpsertTarget,
    node_name: str,
    payload: dict[str, Any],
) -> UpsertResponse:
    """
    Create or update the entity whose code is ``payload["code"]``.

    Raises:
        NodeUpsertError: payload has no code.
        UpsertConflictError: more than one entity has this code.
        MissingRemoteIdError: the target did not return an id.
    """
    code = payload.get("code")
    if not code:
        raise NodeUpsertError(node_name, "Missing code; cannot match an existing entity")

    matches = target.find({"code": code})
    if len(matches) > 1:
        raise UpsertConflictError(node_name, code, len(matches))

    if matches:
        existing_id = matches[0].get("id")
        if not existing_id:
            raise MissingRemoteIdError(node_name)
        remote_id = target.update(str(existing_id), payload)
        action = UpsertAction.UPDATED
    else:
        remote_id = target.create(payload)
        action = UpsertAction.CREATED

    if not remote_id:
        raise MissingRemoteIdError(node_name)
    logger.debug(
        "node_upserted",
        extra={"node_name": node_name, "code": code, "action": action.value, "remote_id": str(remote_id)},
    )
    return UpsertResponse(name=node_name, remote_id=str(remote_id), action=action, payload=dict(payload))
