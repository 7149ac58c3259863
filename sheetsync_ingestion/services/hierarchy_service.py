"""
Hierarchy upsert orchestrator: level-ordered propagation of named nodes.

For level = 1 .. max_level, nodes of that level are processed in input
order.  A node's parent is resolved by name through the mappings built from
earlier levels, so parents are always written before their children.

Per node:
    - name already mapped      -> ErrorEntry(DUPLICATE_NODE_NAME), skipped
    - parent not in mappings   -> ErrorEntry(PARENT_NOT_FOUND), skipped
    - upsert raises            -> ErrorEntry(<error code>), run continues
    - upsert succeeds          -> mappings[name] = remote_id

A skipped parent therefore cascades: its descendants are reported as
PARENT_NOT_FOUND too.  Nothing is rolled back across nodes.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any, Iterable, Mapping

from sheetsync_config.schema import DEFAULT_OPENING_DATE, HierarchySettings
from sheetsync_kernel.domain.clock import Clock, SystemClock
from sheetsync_kernel.exceptions import NodeUpsertError
from sheetsync_kernel.logging_config import LogContext, get_logger

from sheetsync_ingestion.domain.hierarchy import (
    ErrorEntry,
    HierarchyNode,
    UpsertAction,
    UpsertReport,
)
from sheetsync_ingestion.domain.validators import validate_max_level
from sheetsync_ingestion.promoters.base import UpsertTarget, upsert_by_code

logger = get_logger("ingestion.hierarchy_service")

PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
DUPLICATE_NODE_NAME = "DUPLICATE_NODE_NAME"


def build_payload(node: HierarchyNode, opening_date: date, parent_id: str | None) -> dict[str, Any]:
    """Target payload for one node."""
    return {
        "name": node.name,
        "short_name": node.short_name,
        "code": node.code,
        "opening_date": opening_date.isoformat(),
        "level": node.level,
        "parent_id": parent_id,
    }


class HierarchyUpsertOrchestrator:
    """Upserts a node list into an UpsertTarget, parents before children."""

    def __init__(self, target: UpsertTarget, clock: Clock | None = None):
        self._target = target
        self._clock = clock or SystemClock()

    def upsert_with_settings(
        self,
        nodes: Iterable[HierarchyNode | Mapping[str, Any]],
        settings: HierarchySettings,
    ) -> UpsertReport:
        return self.upsert_hierarchy(
            nodes,
            max_level=settings.max_level,
            opening_date=settings.opening_date,
        )

    def upsert_hierarchy(
        self,
        nodes: Iterable[HierarchyNode | Mapping[str, Any]],
        *,
        max_level: int,
        opening_date: date | None = None,
    ) -> UpsertReport:
        """
        Upsert every node with level <= ``max_level``.

        Nodes above ``max_level`` are ignored with a warning.  Failures are
        recorded in the report and never stop the run.

        Raises:
            InputValidationError: max_level < 1, or a node dict is malformed.
                Raised before any upsert.
        """
        validate_max_level("upsert_hierarchy", max_level)
        node_list = [n if isinstance(n, HierarchyNode) else HierarchyNode.from_mapping(n) for n in nodes]
        opening = opening_date or DEFAULT_OPENING_DATE

        ignored = [n for n in node_list if n.level > max_level]
        if ignored:
            logger.warning(
                "nodes_above_max_level_ignored",
                extra={
                    "max_level": max_level,
                    "ignored_count": len(ignored),
                    "sample": [n.name for n in ignored[:5]],
                },
            )

        report = UpsertReport()
        per_level = Counter(n.level for n in node_list if n.level <= max_level)
        with LogContext.bind(operation="upsert_hierarchy"):
            logger.info(
                "hierarchy_upsert_started",
                extra={
                    "node_count": sum(per_level.values()),
                    "max_level": max_level,
                    "opening_date": opening.isoformat(),
                    "started_at": self._clock.now(),
                },
            )
            for level in range(1, max_level + 1):
                level_nodes = [n for n in node_list if n.level == level]
                logger.info("hierarchy_level_started", extra={"hierarchy_level": level, "node_count": len(level_nodes)})
                errors_before = len(report.errors)
                for node in level_nodes:
                    self._upsert_node(node, opening, report)
                logger.info(
                    "hierarchy_level_completed",
                    extra={
                        "hierarchy_level": level,
                        "node_count": len(level_nodes),
                        "failed": len(report.errors) - errors_before,
                    },
                )

            logger.info(
                "hierarchy_upsert_completed",
                extra={
                    "created_count": report.count(UpsertAction.CREATED),
                    "updated_count": report.count(UpsertAction.UPDATED),
                    "failed": len(report.errors),
                    "mapped": len(report.mappings),
                },
            )
        return report

    def _upsert_node(self, node: HierarchyNode, opening: date, report: UpsertReport) -> None:
        if node.name in report.mappings:
            logger.warning("duplicate_node_name", extra={"node_name": node.name, "hierarchy_level": node.level})
            report.record_error(
                ErrorEntry(
                    name=node.name,
                    message="node name already mapped, node skipped",
                    error_code=DUPLICATE_NODE_NAME,
                )
            )
            return

        parent_id: str | None = None
        if node.parent_name is not None:
            parent_id = report.mappings.get(node.parent_name)
            if parent_id is None:
                logger.warning(
                    "parent_not_found",
                    extra={"node_name": node.name, "parent_name": node.parent_name, "hierarchy_level": node.level},
                )
                report.record_error(
                    ErrorEntry(
                        name=node.name,
                        message=f"parent '{node.parent_name}' not found, node skipped",
                        error_code=PARENT_NOT_FOUND,
                    )
                )
                return

        payload = build_payload(node, opening, parent_id)
        try:
            response = upsert_by_code(self._target, node.name, payload)
        except Exception as exc:
            code = exc.code if isinstance(exc, NodeUpsertError) else NodeUpsertError.code
            logger.warning(
                "node_upsert_failed",
                extra={"node_name": node.name, "hierarchy_level": node.level, "error_code": code, "error": str(exc)},
            )
            report.record_error(ErrorEntry(name=node.name, message=str(exc), error_code=code))
            return
        report.record_success(response)
        logger.info(
            "node_upsert_succeeded",
            extra={
                "node_name": node.name,
                "hierarchy_level": node.level,
                "action": response.action.value,
                "remote_id": response.remote_id,
            },
        )
