import pytest

from conftest import FakeSheetsService, make_config
from petsync.errors import ConfigError, FormatError
from petsync.sheets import SheetWriter, block_range, column_letters, start_cell


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("A2", (2, 1)),
        ("A2:Z1000", (2, 1)),
        ("C4:F", (4, 3)),
        ("$B$7", (7, 2)),
        ("B:D", (1, 2)),
        ("3:9", (3, 1)),
        ("'My Sheet'!AA10:AB", (10, 27)),
    ],
)
def test_start_cell(expression, expected):
    assert start_cell(expression) == expected


def test_start_cell_rejects_garbage():
    with pytest.raises(ConfigError):
        start_cell("not a range")


def test_column_letters():
    assert column_letters(1) == "A"
    assert column_letters(26) == "Z"
    assert column_letters(27) == "AA"
    assert column_letters(703) == "AAA"


def test_block_range_quotes_sheet():
    assert block_range("Bob's", 2, 1, 3, 2) == "'Bob''s'!A2:B4"


def test_full_refresh_clears_then_writes_block(sheets_service):
    writer = SheetWriter(make_config(), service=sheets_service)

    result = writer.write([["1", "Rex", "dog"], ["2", "Tom", "cat"]], full_refresh=True)

    assert result.success is True
    assert result.rows == 2
    assert sheets_service.cleared == ["'PetData'!A2:Z1000"]
    assert sheets_service.updates == [
        {
            "range": "'PetData'!A2:C3",
            "values": [["1", "Rex", "dog"], ["2", "Tom", "cat"]],
        }
    ]


def test_incremental_writes_without_clearing(sheets_service):
    writer = SheetWriter(
        make_config(incremental_refresh_range="B5:C"), service=sheets_service
    )

    writer.write([("x", "y")], full_refresh=False)

    assert sheets_service.cleared == []
    assert sheets_service.updates[0]["range"] == "'PetData'!B5:C5"
    assert sheets_service.updates[0]["values"] == [["x", "y"]]


def test_falls_back_to_first_sheet_when_missing():
    service = FakeSheetsService(titles=["Sheet1", "Other"])
    writer = SheetWriter(make_config(sheet_name="Nope"), service=service)

    writer.write([["a"]])

    assert service.updates[0]["range"] == "'Sheet1'!A2:A2"


@pytest.mark.parametrize(
    "rows",
    [
        [],
        ["abc"],
        [[]],
        [["a", "b"], ["c"]],
        [["a"], "b"],
    ],
)
def test_malformed_rows_rejected_before_any_call(sheets_service, rows):
    writer = SheetWriter(make_config(), service=sheets_service)

    with pytest.raises(FormatError):
        writer.write(rows)

    assert sheets_service.cleared == []
    assert sheets_service.updates == []


def test_missing_spreadsheet_id(sheets_service):
    writer = SheetWriter(make_config(spreadsheet_id=""), service=sheets_service)

    with pytest.raises(ConfigError, match="SPREADSHEET_ID"):
        writer.write([["a"]])


def test_missing_credentials():
    writer = SheetWriter(make_config())

    with pytest.raises(ConfigError, match="credentials"):
        writer.write([["a"]])
