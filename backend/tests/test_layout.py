import pytest

from app.core.errors import LayoutError
from app.services.layout import find_data_start_row, is_header_row

from _helpers import HEADER_ROW, data_row


def test_header_at_row_five_means_data_starts_at_six():
    grid = [["title"], [], [None, "As of Date", "12/10/2024"], [None, "Comp Set", "Edmonton"], [None]]
    grid.append(list(HEADER_ROW))
    grid.append(data_row("12/11/2024"))
    assert len(grid) == 7
    assert find_data_start_row(grid) == 6


def test_header_match_is_case_insensitive_substring():
    row = [None, None, None, "CURRENT OTB", "Weekly PICKUP", "stly variance"]
    assert is_header_row(row)


@pytest.mark.parametrize(
    "row",
    [
        None,
        [],
        [None, None, None, "Current", "Pickup"],
        [None, None, None, "Current", None, "Var"],
        [None, None, None, "Occupancy", "Pickup", "Var"],
    ],
)
def test_non_header_rows(row):
    assert not is_header_row(row)


def test_missing_header_raises_layout_error():
    grid = [["title"], data_row("12/11/2024")]
    with pytest.raises(LayoutError) as exc:
        find_data_start_row(grid)
    assert exc.value.code == "UNRECOGNIZED_LAYOUT"
