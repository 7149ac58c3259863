"""Extraction, scanning, chunk processing and hierarchy services."""

from sheetsync_ingestion.services.chunk_processor import (
    SKIP_EMPTY_CHUNK,
    SKIP_NO_VALUES,
    ChunkProcessor,
    ChunkTransform,
)
from sheetsync_ingestion.services.dimension_scanner import DimensionScanner
from sheetsync_ingestion.services.extraction_service import SheetExtractionService
from sheetsync_ingestion.services.hierarchy_service import (
    DUPLICATE_NODE_NAME,
    PARENT_NOT_FOUND,
    HierarchyUpsertOrchestrator,
    build_payload,
)
from sheetsync_ingestion.services.job_runner import SyncJobRunner, run_hierarchy_job
from sheetsync_ingestion.services.materialize import materialized_file
from sheetsync_ingestion.services.reader import RemoteSheetReader
from sheetsync_ingestion.services.streaming import StreamOutcome, pump_rows

__all__ = [
    "ChunkProcessor",
    "ChunkTransform",
    "DUPLICATE_NODE_NAME",
    "DimensionScanner",
    "HierarchyUpsertOrchestrator",
    "PARENT_NOT_FOUND",
    "RemoteSheetReader",
    "SKIP_EMPTY_CHUNK",
    "SKIP_NO_VALUES",
    "SheetExtractionService",
    "StreamOutcome",
    "SyncJobRunner",
    "build_payload",
    "materialized_file",
    "pump_rows",
    "run_hierarchy_job",
]
