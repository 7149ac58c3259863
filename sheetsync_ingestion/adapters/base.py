"""
Row stream protocol and stream-handle classification.

Contract:
    A RowStream yields one RowRecord per data row, in physical file order,
    and releases its file handle on close().  Iteration ending is the end
    of the file; an exception raised during iteration is a stream error.

    A parser may hand back something that is not yet (or never) a stream.
    classify_stream() tags it as StreamHandle, PendingStreamHandle or
    InvalidStream; resolve_stream() resolves a pending handle exactly once
    and re-classifies, so there is one fallback path and no recursion.

Architecture: sheetsync_ingestion/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

import asyncio
import inspect
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Protocol, runtime_checkable

from sheetsync_kernel.logging_config import get_logger

from sheetsync_ingestion.domain.types import RowRecord

logger = get_logger("ingestion.adapters")


@runtime_checkable
class RowStream(Protocol):
    """Single-pass iterator of row records with an explicit close()."""

    def __iter__(self) -> Iterator[RowRecord]:
        ...

    def close(self) -> None:
        """Stop reading and release the underlying file. Idempotent."""
        ...


RowStreamFactory = Callable[..., Any]


@dataclass(frozen=True)
class StreamHandle:
    """A usable row stream."""

    stream: RowStream


@dataclass(frozen=True)
class PendingStreamHandle:
    """A stream that has not been produced yet (future or awaitable)."""

    resolve: Callable[[], Any]


@dataclass(frozen=True)
class InvalidStream:
    """Anything the parser returned that cannot be read as rows."""

    reason: str


StreamVariant = StreamHandle | PendingStreamHandle | InvalidStream


async def _await(awaitable: Any) -> Any:
    return await awaitable


def classify_stream(candidate: Any) -> StreamVariant:
    """Tag a parser return value. Never raises."""
    if isinstance(candidate, (StreamHandle, PendingStreamHandle, InvalidStream)):
        return candidate
    if candidate is None:
        return InvalidStream("parser returned no stream")
    if isinstance(candidate, Future):
        return PendingStreamHandle(resolve=candidate.result)
    if inspect.isawaitable(candidate):
        return PendingStreamHandle(resolve=lambda: asyncio.run(_await(candidate)))
    if isinstance(candidate, RowStream):
        return StreamHandle(candidate)
    return InvalidStream(f"expected a row stream, got {type(candidate).__name__}")


def resolve_stream(candidate: Any) -> StreamHandle | InvalidStream:
    """
    Classify ``candidate``; if pending, resolve it once and classify again.

    A resolution that raises, or that yields another pending value, is
    reported as InvalidStream.
    """
    variant = classify_stream(candidate)
    if not isinstance(variant, PendingStreamHandle):
        return variant
    try:
        resolved = variant.resolve()
    except Exception as exc:
        logger.warning("stream_resolution_failed", extra={"error": str(exc)})
        return InvalidStream(f"pending stream failed to resolve: {exc}")
    variant = classify_stream(resolved)
    if isinstance(variant, PendingStreamHandle):
        return InvalidStream("stream still pending after resolution")
    return variant


def close_quietly(stream: Any) -> None:
    """Close a stream, logging instead of raising on failure."""
    close = getattr(stream, "close", None)
    if close is None:
        return
    try:
        close()
    except Exception as exc:
        logger.warning("stream_close_failed", extra={"error": str(exc)})
