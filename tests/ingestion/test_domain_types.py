"""Domain type construction, invariants, immutability."""

import dataclasses
from datetime import datetime, timezone

import pytest

from sheetsync_kernel.exceptions import InputValidationError
from sheetsync_ingestion.domain.hierarchy import (
    ErrorEntry,
    HierarchyNode,
    UpsertAction,
    UpsertReport,
    UpsertResponse,
)
from sheetsync_ingestion.domain.types import (
    ChunkWindow,
    ExtractionMetadata,
    ExtractionResult,
    ProcessingMethod,
    StreamDegradation,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestChunkWindow:
    @pytest.mark.parametrize(
        "index, size, start, end",
        [(0, 100, 0, 99), (1, 100, 100, 199), (2, 100, 200, 299), (5, 1, 5, 5)],
    )
    def test_bounds(self, index, size, start, end):
        window = ChunkWindow(chunk_index=index, chunk_size=size)
        assert (window.start_row, window.end_row) == (start, end)
        assert window.contains(start) and window.contains(end)
        assert not window.contains(end + 1)

    @pytest.mark.parametrize("index, size", [(-1, 10), (0, 0), (True, 10), (0, 2.5)])
    def test_rejects_bad_values(self, index, size):
        with pytest.raises(InputValidationError):
            ChunkWindow(chunk_index=index, chunk_size=size)

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ChunkWindow(0, 10).chunk_size = 20


class TestExtractionResult:
    def _result(self, **metadata):
        return ExtractionResult(
            file_name="sites.xlsx",
            file_size_bytes=10,
            chunk_size=2,
            rows=({"a": 1}, {"a": 2}),
            chunks_processed=1,
            total_rows_seen=2,
            metadata=ExtractionMetadata(
                processed_at=NOW, processing_method=ProcessingMethod.FULL_STREAM, truncated_by_timeout=False, **metadata
            ),
        )

    def test_complete(self):
        result = self._result()
        assert result.rows_returned == 2
        assert result.is_complete

    def test_degraded_is_not_complete(self):
        assert not self._result(degradation=StreamDegradation.STREAM_ERROR).is_complete


class TestHierarchyNode:
    def test_short_name_defaults_to_name(self):
        node = HierarchyNode(level=1, name="n" * 60, code="N")
        assert node.short_name == "n" * 50

    def test_blank_parent_is_root(self):
        assert HierarchyNode(level=2, name="B", code="B", parent_name="  ").parent_name is None

    @pytest.mark.parametrize("level, name", [(0, "A"), (True, "A"), ("1", "A"), (1, ""), (1, "   ")])
    def test_rejects_bad_values(self, level, name):
        with pytest.raises(InputValidationError):
            HierarchyNode(level=level, name=name, code="X")

    def test_from_mapping_accepts_camel_case_and_parent_dict(self):
        node = HierarchyNode.from_mapping(
            {"level": 2, "name": "Zone A", "code": "ZA", "shortName": "ZA", "parent": {"name": "North"}}
        )
        assert node.short_name == "ZA"
        assert node.parent_name == "North"

    def test_from_mapping_skips_empty_parent_keys(self):
        node = HierarchyNode.from_mapping(
            {"level": 2, "name": "Zone A", "code": "ZA", "parent_name": None, "parentName": " ", "parent": "North"}
        )
        assert node.parent_name == "North"

    def test_from_mapping_without_parent(self):
        assert HierarchyNode.from_mapping({"level": 1, "name": "North", "code": "N"}).parent_name is None


class TestUpsertReport:
    def test_mapping_never_reassigned(self):
        report = UpsertReport()
        report.record_success(UpsertResponse("A", "ou-1", UpsertAction.CREATED, {}))
        with pytest.raises(ValueError):
            report.record_success(UpsertResponse("A", "ou-2", UpsertAction.UPDATED, {}))
        assert report.mappings == {"A": "ou-1"}

    def test_errors_and_counts(self):
        report = UpsertReport()
        report.record_success(UpsertResponse("A", "ou-1", UpsertAction.CREATED, {}))
        report.record_error(ErrorEntry("B", "boom", "NODE_UPSERT_FAILED"))
        report.record_success(UpsertResponse("C", "ou-3", UpsertAction.UPDATED, {}))
        assert [e.name for e in report.errors] == ["B"]
        assert report.count(UpsertAction.CREATED) == 1
        assert report.count(UpsertAction.UPDATED) == 1
        assert [r.name for r in report.responses] == ["A", "B", "C"]
