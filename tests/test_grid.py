"""Tests for staggered grid addressing."""

import pytest

from ptracker.grid import (
    GridGeometry,
    array_to_cells,
    cell_key,
    cells_to_array,
    cols_for_row,
    parse_cell_key,
)
from ptracker.models import CellData


class TestColsForRow:
    """Tests for per-row cell counts."""

    def test_even_rows_have_all_columns(self):
        assert cols_for_row(0, 5) == 5
        assert cols_for_row(2, 5) == 5

    def test_odd_rows_have_one_fewer(self):
        assert cols_for_row(1, 5) == 4
        assert cols_for_row(3, 5) == 4

    def test_single_column_grid_has_empty_odd_rows(self):
        assert cols_for_row(1, 1) == 0


class TestCellKeys:
    """Tests for the sparse map keys and their wire encoding."""

    def test_key_format(self):
        assert cell_key(3, 2) == "3-2"

    def test_parse_key(self):
        assert parse_cell_key("10-4") == (10, 4)

    def test_cells_to_array(self):
        arr = cells_to_array({"0-1": "#ff0000", "1-0": "#00ff00"})
        assert CellData(row=0, col=1, color="#ff0000") in arr
        assert CellData(row=1, col=0, color="#00ff00") in arr
        assert len(arr) == 2

    def test_array_to_cells_last_duplicate_wins(self):
        cells = array_to_cells(
            [
                CellData(row=0, col=0, color="#111111"),
                CellData(row=0, col=0, color="#222222"),
            ]
        )
        assert cells == {"0-0": "#222222"}

    def test_map_survives_encoding(self):
        cells = {"0-0": "#ef4444", "3-2": "#22c55e", "9-4": "#000000"}
        assert array_to_cells(cells_to_array(cells)) == cells

    def test_empty_map_encodes_to_empty_array(self):
        assert cells_to_array({}) == []
        assert array_to_cells([]) == {}


class TestGridGeometry:
    """Tests for pixel geometry and hit-testing."""

    def test_canvas_size_uses_zoom(self):
        geometry = GridGeometry(rows=10, cols=5, cell_size=40, zoom=1.5)
        assert geometry.effective_size == 60
        assert geometry.canvas_size == (300, 600)

    def test_cell_count(self):
        # 5 + 4 + 5 + 4
        assert GridGeometry(rows=4, cols=5, cell_size=40).cell_count() == 18

    def test_iter_cells_row_major(self):
        cells = list(GridGeometry(rows=2, cols=3, cell_size=10).iter_cells())
        assert cells == [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1)]

    def test_contains(self):
        geometry = GridGeometry(rows=3, cols=5, cell_size=40)
        assert geometry.contains(0, 4)
        assert not geometry.contains(1, 4)
        assert not geometry.contains(3, 0)
        assert not geometry.contains(-1, 0)

    def test_odd_row_rect_is_offset_half_a_cell(self):
        geometry = GridGeometry(rows=2, cols=5, cell_size=40)
        assert geometry.cell_rect(0, 0) == (0, 0, 40, 40)
        assert geometry.cell_rect(1, 0) == (20, 40, 40, 40)

    def test_cell_at_even_row(self):
        geometry = GridGeometry(rows=10, cols=5, cell_size=40)
        assert geometry.cell_at(10, 10) == (0, 0)
        assert geometry.cell_at(45, 10) == (0, 1)

    def test_cell_at_odd_row(self):
        geometry = GridGeometry(rows=10, cols=5, cell_size=40)
        assert geometry.cell_at(25, 45) == (1, 0)
        assert geometry.cell_at(65, 45) == (1, 1)

    def test_cell_at_odd_row_left_gap(self):
        geometry = GridGeometry(rows=10, cols=5, cell_size=40)
        assert geometry.cell_at(5, 45) is None

    def test_cell_at_odd_row_right_gap(self):
        geometry = GridGeometry(rows=10, cols=5, cell_size=40)
        # Last odd-row cell spans [140, 180); the grid is 200 wide
        assert geometry.cell_at(179, 45) == (1, 3)
        assert geometry.cell_at(190, 45) is None

    def test_cell_at_outside_grid(self):
        geometry = GridGeometry(rows=2, cols=2, cell_size=40)
        assert geometry.cell_at(-1, 10) is None
        assert geometry.cell_at(10, -1) is None
        assert geometry.cell_at(10, 80) is None
        assert geometry.cell_at(80, 10) is None

    def test_cell_at_with_zoom(self):
        geometry = GridGeometry(rows=10, cols=5, cell_size=40, zoom=2.0)
        assert geometry.cell_at(85, 10) == (0, 1)
        assert geometry.cell_at(50, 90) == (1, 0)

    def test_cell_at_zero_size(self):
        assert GridGeometry(rows=2, cols=2, cell_size=0).cell_at(0, 0) is None

    @pytest.mark.parametrize("row,col", [(0, 0), (1, 2), (4, 3), (5, 0)])
    def test_cell_center_hits_its_own_cell(self, row, col):
        geometry = GridGeometry(rows=6, cols=5, cell_size=40, zoom=1.25)
        x, y, w, h = geometry.cell_rect(row, col)
        assert geometry.cell_at(x + w / 2, y + h / 2) == (row, col)
