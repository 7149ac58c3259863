"""
Job runner: executes the steps of one SyncJobConfig.

The job file says where the spreadsheet lives (remote_path), how to stream
it (extraction), which dimensions to collect (scan) and how to upsert the
resulting tree (hierarchy).  The runner wires those settings into the
services; it owns no connection, the caller passes a connected session.

    with session.session_scope(job.transport) as s:
        report = SyncJobRunner(job, s).sync_hierarchy(SqlOrgUnitTarget(db))

``run_hierarchy_job`` does exactly that with a fresh session.
"""

from __future__ import annotations

from typing import Any, Callable

from sheetsync_config.schema import HierarchySettings, SyncJobConfig
from sheetsync_kernel.domain.clock import Clock, SystemClock
from sheetsync_kernel.exceptions import InputValidationError
from sheetsync_kernel.logging_config import LogContext, get_logger

from sheetsync_ingestion.adapters import open_row_stream
from sheetsync_ingestion.domain.hierarchy import HierarchyNode, UpsertReport
from sheetsync_ingestion.domain.types import (
    ChunkProcessingResult,
    DimensionScanResult,
    ExtractionResult,
)
from sheetsync_ingestion.mapping.hierarchy_builder import build_hierarchy_nodes
from sheetsync_ingestion.promoters.base import UpsertTarget, ValueSink
from sheetsync_ingestion.services.chunk_processor import ChunkProcessor, ChunkTransform
from sheetsync_ingestion.services.dimension_scanner import DimensionScanner
from sheetsync_ingestion.services.extraction_service import SheetExtractionService
from sheetsync_ingestion.services.hierarchy_service import HierarchyUpsertOrchestrator
from sheetsync_ingestion.transport.base import ClientFactory
from sheetsync_ingestion.transport.session import TransportSession

logger = get_logger("ingestion.job_runner")


class SyncJobRunner:
    """Runs extraction, scan, chunk and hierarchy steps of one job."""

    def __init__(
        self,
        job: SyncJobConfig,
        session: TransportSession,
        *,
        clock: Clock | None = None,
        row_stream_factory: Callable[..., Any] = open_row_stream,
    ):
        self._job = job
        self._clock = clock or SystemClock()
        settings = job.extraction
        self._extraction = SheetExtractionService.from_settings(
            session,
            settings,
            clock=self._clock,
            row_stream_factory=row_stream_factory,
        )
        self._scanner = DimensionScanner(
            session,
            row_stream_factory=row_stream_factory,
            clock=self._clock,
            timeout_seconds=settings.timeout_seconds,
            temp_dir=settings.temp_dir,
            with_header=settings.with_header,
            ignore_empty_rows=settings.ignore_empty_rows,
        )

    @property
    def job(self) -> SyncJobConfig:
        return self._job

    def extract(self) -> ExtractionResult:
        """Full extraction of the job's file, capped by its max_rows."""
        with LogContext.bind(job_id=self._job.name):
            return self._extraction.extract_with_settings(self._job.remote_path, self._job.extraction)

    def scan(self) -> DimensionScanResult:
        """
        Dimension scan of the job's file.

        Raises:
            InputValidationError: the job has no scan section.
        """
        if self._job.scan is None:
            raise InputValidationError("scan", "scan", None, "is not configured for this job")
        with LogContext.bind(job_id=self._job.name):
            return self._scanner.scan_with_settings(
                self._job.remote_path,
                self._job.extraction.chunk_size,
                self._job.scan,
                sheet=self._job.extraction.sheet,
            )

    def build_nodes(self, scan_result: DimensionScanResult) -> list[HierarchyNode]:
        """Hierarchy nodes from a scan, levels from hierarchy_columns, codes prefixed."""
        hierarchy = self._require_hierarchy()
        return build_hierarchy_nodes(
            scan_result,
            self._job.scan.hierarchy_columns,
            code_prefix=hierarchy.code_prefix,
        )

    def sync_hierarchy(self, target: UpsertTarget) -> UpsertReport:
        """
        Scan the file, build the node tree and upsert it into ``target``.

        Raises:
            InputValidationError: the job has no scan or hierarchy section, or
                no hierarchy_columns.
        """
        hierarchy = self._require_hierarchy()
        scan_result = self.scan()
        nodes = self.build_nodes(scan_result)
        with LogContext.bind(job_id=self._job.name):
            report = HierarchyUpsertOrchestrator(target, clock=self._clock).upsert_with_settings(nodes, hierarchy)
            logger.info(
                "job_hierarchy_synced",
                extra={
                    "job": self._job.name,
                    "checksum": self._job.checksum,
                    "scan_complete": scan_result.is_complete,
                    "mapped": len(report.mappings),
                    "failed": len(report.errors),
                },
            )
        return report

    def process_chunk(
        self,
        chunk_index: int,
        transform: ChunkTransform,
        sink: ValueSink,
    ) -> ChunkProcessingResult:
        """Process window ``chunk_index`` of the job's file with the job's chunk_size."""
        with LogContext.bind(job_id=self._job.name):
            return ChunkProcessor(self._extraction, sink, clock=self._clock).process_chunk(
                self._job.remote_path,
                chunk_index,
                self._job.extraction.chunk_size,
                transform,
                sheet=self._job.extraction.sheet,
            )

    def _require_hierarchy(self) -> HierarchySettings:
        if self._job.scan is None:
            raise InputValidationError("sync_hierarchy", "scan", None, "is not configured for this job")
        if self._job.hierarchy is None:
            raise InputValidationError("sync_hierarchy", "hierarchy", None, "is not configured for this job")
        if not self._job.scan.hierarchy_columns:
            raise InputValidationError(
                "sync_hierarchy", "scan.hierarchy_columns", (), "must list the levels from root to leaf"
            )
        return self._job.hierarchy


def run_hierarchy_job(
    job: SyncJobConfig,
    target: UpsertTarget,
    *,
    client_factory: ClientFactory | None = None,
    clock: Clock | None = None,
) -> UpsertReport:
    """Connect with the job's transport settings, sync the hierarchy, disconnect."""
    session = TransportSession(client_factory)
    with session.session_scope(job.transport) as connected:
        return SyncJobRunner(job, connected, clock=clock).sync_hierarchy(target)
