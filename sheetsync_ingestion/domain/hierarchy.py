"""
sheetsync_ingestion.domain.hierarchy -- Hierarchy nodes and the upsert report.

ZERO I/O. The orchestrator in services/hierarchy_service.py fills an
UpsertReport; targets in promoters/ produce UpsertResponses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from sheetsync_kernel.exceptions import InputValidationError


class UpsertAction(str, Enum):
    """What the target did for a node."""

    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True)
class HierarchyNode:
    """One named node of the tree, tagged with its level (1 = root)."""

    level: int
    name: str
    code: str
    short_name: str = ""
    parent_name: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.level, bool) or not isinstance(self.level, int) or self.level < 1:
            raise InputValidationError("hierarchy_node", "level", self.level, "must be an integer >= 1")
        if not isinstance(self.name, str) or not self.name.strip():
            raise InputValidationError("hierarchy_node", "name", self.name, "must be a non-empty string")
        if not self.short_name:
            object.__setattr__(self, "short_name", self.name[:50])
        if self.parent_name is not None and not str(self.parent_name).strip():
            object.__setattr__(self, "parent_name", None)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HierarchyNode:
        """
        Build from a dict; accepts camelCase keys and ``parent`` for the parent name.

        The parent is the first non-empty value of ``parent_name``,
        ``parentName`` and ``parent`` (a dict contributes its ``name``).

        Raises:
            InputValidationError: ``level`` or ``name`` is missing.
        """
        for required in ("level", "name"):
            if data.get(required) is None:
                raise InputValidationError("hierarchy_node", required, None, "is required")
        parent = None
        for key in ("parent_name", "parentName", "parent"):
            candidate = data.get(key)
            if isinstance(candidate, Mapping):
                candidate = candidate.get("name")
            if candidate is not None and str(candidate).strip():
                parent = candidate
                break
        return cls(
            level=data["level"],
            name=data["name"],
            code=str(data.get("code") or ""),
            short_name=data.get("short_name") or data.get("shortName") or "",
            parent_name=parent,
        )


@dataclass(frozen=True)
class UpsertResponse:
    """Successful upsert of one node."""

    name: str
    remote_id: str
    action: UpsertAction
    payload: dict[str, Any]


@dataclass(frozen=True)
class ErrorEntry:
    """A node that failed or was skipped. The run continued past it."""

    name: str
    message: str
    error_code: str


@dataclass
class UpsertReport:
    """
    Audit trail of one hierarchy run.

    Invariants:
        - mappings only grows; a name is never remapped.
        - responses has one entry per node reached, in processing order.
    """

    mappings: dict[str, str] = field(default_factory=dict)
    responses: list[UpsertResponse | ErrorEntry] = field(default_factory=list)

    def record_success(self, response: UpsertResponse) -> None:
        if response.name in self.mappings:
            raise ValueError(f"Name already mapped: {response.name!r}")
        self.mappings[response.name] = response.remote_id
        self.responses.append(response)

    def record_error(self, entry: ErrorEntry) -> None:
        self.responses.append(entry)

    @property
    def errors(self) -> list[ErrorEntry]:
        return [r for r in self.responses if isinstance(r, ErrorEntry)]

    @property
    def successes(self) -> list[UpsertResponse]:
        return [r for r in self.responses if isinstance(r, UpsertResponse)]

    def count(self, action: UpsertAction) -> int:
        return sum(1 for r in self.successes if r.action == action)
