"""Mapping from scan results to hierarchy nodes."""

from sheetsync_ingestion.mapping.hierarchy_builder import build_hierarchy_nodes, derive_code

__all__ = ["build_hierarchy_nodes", "derive_code"]
