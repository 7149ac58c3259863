"""SyncJobRunner: job settings flow into extraction, scan, chunk and hierarchy steps."""

import pytest

from sheetsync_config.loader import parse_job_config
from sheetsync_kernel.exceptions import InputValidationError
from sheetsync_ingestion.services.job_runner import SyncJobRunner, run_hierarchy_job

from tests.conftest import FakeRemoteClient, InMemoryTarget, build_xlsx

SITES_PATH = "/exports/sites.xlsx"

HEADERS = ["Region", "Zone", "Visits"]
ROWS = [
    ["North", "Zone A", 10],
    ["North", "Zone A", 4],
    ["North", "Zone B", 7],
    ["South", "Zone C", 1],
    ["South", "Zone C", 3],
    ["North", "Zone B", 2],
]


def _job_dict(temp_dir, **overrides):
    data = {
        "name": "site-hierarchy",
        "remote_path": SITES_PATH,
        "transport": {"host": "sftp://files.example.org", "username": "loader"},
        "extraction": {"chunk_size": 4, "max_rows": 3, "sheet": "Sites", "temp_dir": str(temp_dir)},
        "scan": {
            "column_mapping": {"regions": "Region", "zones": ["Zone", "Zone Name"]},
            "hierarchy_columns": ["regions", "zones"],
        },
        "hierarchy": {"max_level": 2, "code_prefix": "KE_"},
    }
    data.update(overrides)
    return data


@pytest.fixture
def sites_file(remote_files):
    # data lives on the second sheet so the configured sheet name matters
    remote_files[SITES_PATH] = build_xlsx(
        [["not", "site", "data"]],
        headers=["A", "B", "C"],
        sheet_title="Summary",
        extra_sheets={"Sites": [HEADERS, *ROWS]},
    )
    return remote_files


@pytest.fixture
def job(temp_dir):
    return parse_job_config(_job_dict(temp_dir))


@pytest.fixture
def runner(job, connected_session, sites_file, deterministic_clock):
    return SyncJobRunner(job, connected_session, clock=deterministic_clock)


class TestSyncJobRunner:
    def test_extract_applies_max_rows_chunk_size_and_sheet(self, runner, temp_dir):
        result = runner.extract()
        assert result.rows_returned == 3
        assert result.chunk_size == 4
        assert result.rows[0] == {"Region": "North", "Zone": "Zone A", "Visits": 10}
        assert list(temp_dir.iterdir()) == []

    def test_scan_uses_remote_path_and_chunk_size(self, runner, fake_client):
        result = runner.scan()
        assert fake_client.fetches == [SITES_PATH]
        assert result.total_rows == 6
        assert result.total_chunks == 2
        assert result.parent_map == {"Zone A": "North", "Zone B": "North", "Zone C": "South"}

    def test_sync_hierarchy_prefixes_codes_and_links_parents(self, runner):
        target = InMemoryTarget()
        report = runner.sync_hierarchy(target)

        assert report.errors == []
        by_code = {e["code"]: (remote_id, e) for remote_id, e in target.entities.items()}
        assert sorted(by_code) == ["KE_NORTH", "KE_SOUTH", "KE_ZONE_A", "KE_ZONE_B", "KE_ZONE_C"]
        south_id = by_code["KE_SOUTH"][0]
        assert by_code["KE_ZONE_C"][1]["parent_id"] == south_id
        assert by_code["KE_ZONE_C"][1]["opening_date"] == "2024-01-01"

    def test_process_chunk_uses_job_chunk_size(self, runner):
        batches = []

        class Sink:
            def submit(self, values):
                batches.append(values)
                return "ok"

        result = runner.process_chunk(1, lambda rows, extraction: [dict(r) for r in rows], Sink())
        assert result.submitted
        assert result.rows_processed == 2
        assert [v["Visits"] for v in batches[0]] == [3, 2]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"hierarchy": None},
            {"scan": None},
            {"scan": {"column_mapping": {"regions": "Region"}}},
        ],
    )
    def test_incomplete_job_rejected_before_fetch(self, temp_dir, connected_session, sites_file, fake_client, overrides):
        job = parse_job_config(_job_dict(temp_dir, **overrides))
        with pytest.raises(InputValidationError):
            SyncJobRunner(job, connected_session).sync_hierarchy(InMemoryTarget())
        assert fake_client.fetches == []


def test_run_hierarchy_job_connects_and_disconnects(job, sites_file):
    client = FakeRemoteClient(sites_file)
    report = run_hierarchy_job(job, InMemoryTarget(), client_factory=lambda: client)

    assert len(report.mappings) == 5
    assert client.connected_with.cleaned_host == "files.example.org"
    assert client.fetches == [SITES_PATH]
    assert client.closed
