"""Upsert targets for hierarchy nodes and sinks for chunk values."""

from sheetsync_ingestion.promoters.base import UpsertTarget, ValueSink, upsert_by_code
from sheetsync_ingestion.promoters.org_unit import SqlOrgUnitTarget

__all__ = [
    "SqlOrgUnitTarget",
    "UpsertTarget",
    "ValueSink",
    "upsert_by_code",
]
