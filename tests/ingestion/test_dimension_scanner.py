"""DimensionScanner: row count, distinct values, parent links."""

import pytest

from sheetsync_config.schema import ScanSettings
from sheetsync_kernel.exceptions import InputValidationError, RowStreamError
from sheetsync_ingestion.domain.types import StreamDegradation
from sheetsync_ingestion.services.dimension_scanner import DimensionScanner
from sheetsync_ingestion.services.extraction_service import SheetExtractionService

from tests.conftest import build_xlsx

SITES_PATH = "/exports/sites.xlsx"

HEADERS = ["Region", "Zone", "District", "Site", "Visits"]
ROWS = [
    ["North", "Zone A", "District 1", "Site 1", 10],
    ["North", "Zone A", "District 1", "Site 2", 4],
    ["North", "Zone B", "District 2", "Site 3", 7],
    ["South", "Zone C", "District 3", "Site 4", 1],
    ["South", "Zone C", None, "Site 5", 3],
    ["North", "Zone A", "District 1", "Site 1", 2],
]

MAPPING = {
    "regions": ["Region"],
    "zones": ["Zone"],
    "districts": ["District"],
    "sites": ["Site"],
}
LEVELS = ["regions", "zones", "districts", "sites"]


@pytest.fixture
def scanner(connected_session, remote_files, temp_dir, deterministic_clock):
    remote_files[SITES_PATH] = build_xlsx(ROWS, headers=HEADERS)
    return DimensionScanner(connected_session, clock=deterministic_clock, temp_dir=temp_dir)


class TestScanMetadata:
    def test_totals_and_distinct_values(self, scanner, deterministic_clock):
        result = scanner.scan_metadata(SITES_PATH, 4, column_mapping=MAPPING, hierarchy_columns=LEVELS)

        assert result.file_name == "sites.xlsx"
        assert result.total_rows == 6
        assert result.chunk_size == 4
        assert result.total_chunks == 2
        assert result.unique_values["regions"] == ("North", "South")
        assert result.unique_values["zones"] == ("Zone A", "Zone B", "Zone C")
        assert result.unique_values["districts"] == ("District 1", "District 2", "District 3")
        assert result.unique_values["sites"] == ("Site 1", "Site 2", "Site 3", "Site 4", "Site 5")
        assert result.processed_at == deterministic_clock.now()
        assert result.is_complete

    def test_parent_map_from_adjacent_levels(self, scanner):
        result = scanner.scan_metadata(SITES_PATH, 100, column_mapping=MAPPING, hierarchy_columns=LEVELS)
        assert result.parent_map == {
            "Zone A": "North",
            "Zone B": "North",
            "Zone C": "South",
            "District 1": "Zone A",
            "District 2": "Zone B",
            "District 3": "Zone C",
            "Site 1": "District 1",
            "Site 2": "District 1",
            "Site 3": "District 2",
            "Site 4": "District 3",
        }
        # Site 5 has no district on its row, so no link is recorded for it
        assert "Site 5" not in result.parent_map

    def test_first_candidate_column_present_wins(self, connected_session, remote_files, temp_dir):
        remote_files[SITES_PATH] = build_xlsx(
            [["", "Lakeside"], ["Hilltop", "ignored"]],
            headers=["Facility", "Facility Name"],
        )
        scanner = DimensionScanner(connected_session, temp_dir=temp_dir)
        result = scanner.scan_metadata(SITES_PATH, 10, column_mapping={"sites": ["Facility", "Facility Name"]})
        assert result.unique_values["sites"] == ("Lakeside", "Hilltop")

    def test_total_rows_matches_full_extraction(self, scanner, connected_session, temp_dir):
        scan = scanner.scan_metadata(SITES_PATH, 1, column_mapping=MAPPING)
        full = SheetExtractionService(connected_session, temp_dir=temp_dir).extract_all(SITES_PATH)
        assert scan.total_rows == full.rows_returned == 6
        assert scan.total_chunks == 6

    def test_no_hierarchy_columns_gives_empty_parent_map(self, scanner):
        result = scanner.scan_metadata(SITES_PATH, 10, column_mapping={"regions": "Region"})
        assert result.parent_map == {}
        assert result.unique_values == {"regions": ("North", "South")}

    def test_to_dict(self, scanner):
        result = scanner.scan_metadata(SITES_PATH, 5, column_mapping={"regions": "Region"})
        data = result.to_dict()
        assert data["totalRows"] == 6
        assert data["totalChunks"] == 2
        assert data["uniqueValues"] == {"regions": ["North", "South"]}

    def test_scan_with_settings(self, scanner):
        settings = ScanSettings(column_mapping={"zones": ("Zone",)}, hierarchy_columns=())
        result = scanner.scan_with_settings(SITES_PATH, 3, settings)
        assert result.unique_values["zones"] == ("Zone A", "Zone B", "Zone C")

    def test_empty_sheet(self, connected_session, remote_files, temp_dir):
        remote_files[SITES_PATH] = build_xlsx([], headers=HEADERS)
        result = DimensionScanner(connected_session, temp_dir=temp_dir).scan_metadata(
            SITES_PATH, 10, column_mapping=MAPPING
        )
        assert result.total_rows == 0
        assert result.total_chunks == 0
        assert result.unique_values["regions"] == ()


class TestScanValidation:
    @pytest.mark.parametrize("mapping", [None, {}, {"regions": []}, "Region"])
    def test_column_mapping_required(self, scanner, fake_client, mapping):
        with pytest.raises(InputValidationError):
            scanner.scan_metadata(SITES_PATH, 10, column_mapping=mapping)
        assert fake_client.fetches == []

    def test_hierarchy_columns_must_be_mapped(self, scanner):
        with pytest.raises(InputValidationError):
            scanner.scan_metadata(SITES_PATH, 10, column_mapping=MAPPING, hierarchy_columns=["regions", "wards"])

    def test_chunk_size_positive(self, scanner):
        with pytest.raises(InputValidationError):
            scanner.scan_metadata(SITES_PATH, 0, column_mapping=MAPPING)


class TestScanDegradation:
    def _factory(self, count, *, clock=None, advance_at=None, fail_at=None):
        def factory(path, **kwargs):
            def rows():
                for i in range(count):
                    if fail_at is not None and i == fail_at:
                        raise ValueError("truncated archive")
                    if advance_at is not None and i == advance_at:
                        clock.advance(1000)
                    yield {"Region": f"R{i % 2}", "Site": f"S{i}"}

            return rows()

        return factory

    def test_timeout_flags_result(self, connected_session, remote_files, temp_dir, deterministic_clock):
        remote_files[SITES_PATH] = b"placeholder"
        scanner = DimensionScanner(
            connected_session,
            row_stream_factory=self._factory(50, clock=deterministic_clock, advance_at=9),
            clock=deterministic_clock,
            temp_dir=temp_dir,
        )
        result = scanner.scan_metadata(SITES_PATH, 4, column_mapping={"sites": "Site"})
        assert result.total_rows == 10
        assert result.total_chunks == 3
        assert result.truncated_by_timeout is True
        assert not result.is_complete

    def test_stream_error_after_rows_is_partial(self, connected_session, remote_files, temp_dir):
        remote_files[SITES_PATH] = b"placeholder"
        scanner = DimensionScanner(
            connected_session, row_stream_factory=self._factory(50, fail_at=6), temp_dir=temp_dir
        )
        result = scanner.scan_metadata(SITES_PATH, 4, column_mapping={"regions": "Region"})
        assert result.total_rows == 6
        assert result.degradation is StreamDegradation.STREAM_ERROR
        assert "truncated archive" in result.error_note

    def test_stream_error_without_rows_raises(self, connected_session, remote_files, temp_dir):
        remote_files[SITES_PATH] = b"placeholder"
        scanner = DimensionScanner(
            connected_session, row_stream_factory=self._factory(50, fail_at=0), temp_dir=temp_dir
        )
        with pytest.raises(RowStreamError):
            scanner.scan_metadata(SITES_PATH, 4, column_mapping={"regions": "Region"})

    def test_invalid_stream_gives_empty_scan(self, connected_session, remote_files, temp_dir):
        remote_files[SITES_PATH] = b"placeholder"
        scanner = DimensionScanner(
            connected_session, row_stream_factory=lambda path, **kwargs: object(), temp_dir=temp_dir
        )
        result = scanner.scan_metadata(SITES_PATH, 4, column_mapping={"regions": "Region"})
        assert result.total_rows == 0
        assert result.degradation is StreamDegradation.INVALID_STREAM
        assert result.error_note is not None
