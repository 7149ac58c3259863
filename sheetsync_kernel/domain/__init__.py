"""
Pure domain layer.

No ORM, database, or network dependencies.
"""

from sheetsync_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SequentialClock",
    "SystemClock",
]
