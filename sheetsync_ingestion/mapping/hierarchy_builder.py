"""
Hierarchy builder: dimension-scan output -> level-tagged HierarchyNodes.

The scan yields distinct values per dimension and child -> parent links.
Listing dimensions from root to leaf turns that into the node list the
orchestrator consumes: level is the dimension's position (1-based), the
parent comes from parent_map, and the code is derived from the name.
"""

from __future__ import annotations

import re
from typing import Sequence

from sheetsync_kernel.exceptions import InputValidationError
from sheetsync_kernel.logging_config import get_logger

from sheetsync_ingestion.domain.hierarchy import HierarchyNode
from sheetsync_ingestion.domain.types import DimensionScanResult

logger = get_logger("ingestion.mapping.hierarchy_builder")

MAX_CODE_LENGTH = 50
MAX_SHORT_NAME_LENGTH = 50

_NON_CODE_CHARS = re.compile(r"[^A-Z0-9]+")


def derive_code(name: str, prefix: str = "") -> str:
    """Upper-case, non-alphanumeric runs -> '_', trimmed to 50 characters."""
    body = _NON_CODE_CHARS.sub("_", str(name).upper()).strip("_")
    return f"{prefix}{body}"[:MAX_CODE_LENGTH]


def _unique_code(base: str, used: set[str]) -> str:
    code = base
    cnt = 0
    while code in used:
        cnt += 1
        suffix = f"_{cnt}"
        code = f"{base[:MAX_CODE_LENGTH - len(suffix)]}{suffix}"
    used.add(code)
    return code


def build_hierarchy_nodes(
    scan_result: DimensionScanResult,
    level_dimensions: Sequence[str],
    *,
    code_prefix: str = "",
) -> list[HierarchyNode]:
    """
    One node per distinct value of each listed dimension, roots first.

    A value seen in two dimensions becomes one node, at its shallowest level.
    Nodes below level 1 without a parent link keep parent_name=None and are
    upserted as roots of their level.

    Raises:
        InputValidationError: level_dimensions empty, or names a dimension the
            scan did not collect.
    """
    if not level_dimensions or isinstance(level_dimensions, str):
        raise InputValidationError(
            "build_hierarchy_nodes", "level_dimensions", level_dimensions, "must list at least one dimension"
        )
    missing = [d for d in level_dimensions if d not in scan_result.unique_values]
    if missing:
        raise InputValidationError(
            "build_hierarchy_nodes", "level_dimensions", list(level_dimensions), f"not scanned: {missing}"
        )

    nodes: list[HierarchyNode] = []
    seen_names: set[str] = set()
    used_codes: set[str] = set()
    orphans = 0
    for index, dimension in enumerate(level_dimensions):
        level = index + 1
        for value in scan_result.unique_values[dimension]:
            name = str(value).strip()
            if not name or name in seen_names:
                continue
            seen_names.add(name)
            parent = scan_result.parent_map.get(name) if level > 1 else None
            if level > 1 and parent is None:
                orphans += 1
            nodes.append(
                HierarchyNode(
                    level=level,
                    name=name,
                    code=_unique_code(derive_code(name, code_prefix), used_codes),
                    short_name=name[:MAX_SHORT_NAME_LENGTH],
                    parent_name=parent,
                )
            )
    logger.info(
        "hierarchy_nodes_built",
        extra={"node_count": len(nodes), "levels": len(level_dimensions), "without_parent": orphans},
    )
    return nodes
