"""
Temporary materialization of fetched bytes.

The streaming parsers read from a local path, so every extraction writes the
fetched file to a uniquely named temp file and removes it on every exit path.
"""

from __future__ import annotations

import secrets
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sheetsync_kernel.domain.clock import Clock, SystemClock
from sheetsync_kernel.logging_config import get_logger

logger = get_logger("ingestion.materialize")

TEMP_FILE_PREFIX = "sheetsync"


def temp_file_name(clock: Clock, suffix: str) -> str:
    """``sheetsync-<utc timestamp>-<random hex><suffix>``; unique per call."""
    stamp = clock.now().strftime("%Y%m%dT%H%M%S%fZ")
    return f"{TEMP_FILE_PREFIX}-{stamp}-{secrets.token_hex(6)}{suffix}"


@contextmanager
def materialized_file(
    data: bytes,
    *,
    suffix: str = ".xlsx",
    temp_dir: Path | str | None = None,
    clock: Clock | None = None,
) -> Iterator[Path]:
    """
    Write ``data`` to a new temp file, yield its path, delete it afterwards.

    The file is created exclusively, so two concurrent calls never share a
    path.  A failed delete is logged as ``temp_file_cleanup_failed`` and never
    raised, so it cannot mask the caller's result or error.
    """
    directory = Path(temp_dir) if temp_dir is not None else Path(tempfile.gettempdir())
    path = directory / temp_file_name(clock or SystemClock(), suffix)
    handle = path.open("xb")
    try:
        with handle:
            handle.write(data)
    except OSError:
        path.unlink(missing_ok=True)
        raise
    logger.debug("temp_file_written", extra={"temp_path": str(path), "size_bytes": len(data)})
    try:
        yield path
    finally:
        try:
            path.unlink()
        except OSError as exc:
            logger.warning(
                "temp_file_cleanup_failed",
                extra={"temp_path": str(path), "error": str(exc)},
            )
