"""Pure domain types and validators for extraction and hierarchy runs."""

from sheetsync_ingestion.domain.hierarchy import (
    ErrorEntry,
    HierarchyNode,
    UpsertAction,
    UpsertReport,
    UpsertResponse,
)
from sheetsync_ingestion.domain.types import (
    ChunkProcessingResult,
    ChunkWindow,
    DimensionScanResult,
    ExtractionMetadata,
    ExtractionResult,
    ProcessingMethod,
    RemoteEntry,
    RowRecord,
    StreamDegradation,
)

__all__ = [
    "ChunkProcessingResult",
    "ChunkWindow",
    "DimensionScanResult",
    "ErrorEntry",
    "ExtractionMetadata",
    "ExtractionResult",
    "HierarchyNode",
    "ProcessingMethod",
    "RemoteEntry",
    "RowRecord",
    "StreamDegradation",
    "UpsertAction",
    "UpsertReport",
    "UpsertResponse",
]
