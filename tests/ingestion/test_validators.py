"""Input validators: raised before any I/O."""

import pytest

from sheetsync_kernel.exceptions import InputValidationError
from sheetsync_ingestion.domain.validators import (
    normalize_column_mapping,
    validate_chunk_index,
    validate_chunk_size,
    validate_hierarchy_columns,
    validate_max_level,
    validate_max_rows,
    validate_remote_path,
)


@pytest.mark.parametrize(
    "validator, bad",
    [
        (validate_remote_path, ""),
        (validate_remote_path, "   "),
        (validate_remote_path, None),
        (validate_chunk_index, -1),
        (validate_chunk_index, False),
        (validate_chunk_size, 0),
        (validate_chunk_size, "10"),
        (validate_max_rows, 0),
        (validate_max_level, 0),
    ],
)
def test_rejects(validator, bad):
    with pytest.raises(InputValidationError) as exc_info:
        validator("extract_chunk", bad)
    assert exc_info.value.operation == "extract_chunk"
    assert exc_info.value.code == "VALIDATION_FAILED"


def test_accepts():
    assert validate_remote_path("op", "/in/a.xlsx") == "/in/a.xlsx"
    assert validate_chunk_index("op", 0) == 0
    assert validate_chunk_size("op", 1) == 1
    assert validate_max_rows("op", None) is None
    assert validate_max_level("op", 3) == 3


class TestColumnMapping:
    def test_single_column_becomes_tuple(self):
        assert normalize_column_mapping("op", {"region": "Region", "site": ["Site", "Facility"]}) == {
            "region": ("Region",),
            "site": ("Site", "Facility"),
        }

    @pytest.mark.parametrize("mapping", [None, {}, ["Region"], {"region": []}])
    def test_rejects(self, mapping):
        with pytest.raises(InputValidationError):
            normalize_column_mapping("scan_metadata", mapping)

    def test_hierarchy_columns(self):
        mapping = {"region": ("Region",), "site": ("Site",)}
        assert validate_hierarchy_columns("op", None, mapping) == ()
        assert validate_hierarchy_columns("op", ["region", "site"], mapping) == ("region", "site")
        with pytest.raises(InputValidationError):
            validate_hierarchy_columns("op", ["region", "ward"], mapping)
        with pytest.raises(InputValidationError):
            validate_hierarchy_columns("op", "region", mapping)
