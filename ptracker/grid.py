"""Staggered (brick-wall) grid addressing.

Even rows hold ``cols`` cells. Odd rows hold ``cols - 1`` cells and are
shifted right by half a cell, so the grid keeps a rectangular outline of
``cols * size`` by ``rows * size`` pixels.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator

from ptracker.models import CellData


def cols_for_row(row: int, cols: int) -> int:
    """Number of cells in ``row`` (odd rows have one fewer)."""
    return cols - 1 if row % 2 == 1 else cols


def cell_key(row: int, col: int) -> str:
    """Key of a cell in the sparse color map."""
    return f"{row}-{col}"


def parse_cell_key(key: str) -> tuple[int, int]:
    """Inverse of ``cell_key``."""
    row, col = key.split("-", 1)
    return int(row), int(col)


def cells_to_array(cells: dict[str, str]) -> list[CellData]:
    """Encode the sparse color map as ``{row, col, color}`` triples."""
    result = []
    for key, color in cells.items():
        row, col = parse_cell_key(key)
        result.append(CellData(row=row, col=col, color=color))
    return result


def array_to_cells(arr: Iterable[CellData]) -> dict[str, str]:
    """Decode ``{row, col, color}`` triples into the sparse color map.

    Later triples for the same cell win.
    """
    return {cell_key(cell.row, cell.col): cell.color for cell in arr}


class GridGeometry:
    """Pixel geometry of a staggered grid at a given zoom."""

    def __init__(self, rows: int, cols: int, cell_size: float, zoom: float = 1.0) -> None:
        self.rows = rows
        self.cols = cols
        self.cell_size = cell_size
        self.zoom = zoom

    @property
    def effective_size(self) -> float:
        return self.cell_size * self.zoom

    @property
    def canvas_size(self) -> tuple[float, float]:
        """Width and height of the whole grid in pixels."""
        return self.cols * self.effective_size, self.rows * self.effective_size

    def cols_for_row(self, row: int) -> int:
        return cols_for_row(row, self.cols)

    def row_offset(self, row: int) -> float:
        return self.effective_size * 0.5 if row % 2 == 1 else 0.0

    def contains(self, row: int, col: int) -> bool:
        """True if (row, col) is a cell of this grid."""
        return 0 <= row < self.rows and 0 <= col < self.cols_for_row(row)

    def cell_rect(self, row: int, col: int) -> tuple[float, float, float, float]:
        """Rendered rectangle of a cell as (x, y, width, height)."""
        size = self.effective_size
        return col * size + self.row_offset(row), row * size, size, size

    def cell_at(self, x: float, y: float) -> tuple[int, int] | None:
        """Cell covering the pixel (x, y), or None.

        Points outside the grid and points in the half-cell gaps at either
        end of an odd row map to no cell.
        """
        size = self.effective_size
        if size <= 0:
            return None
        row = math.floor(y / size)
        offset = self.row_offset(row)
        col = math.floor((x - offset) / size)
        if not self.contains(row, col):
            return None

        cell_x, cell_y, width, height = self.cell_rect(row, col)
        if cell_x <= x < cell_x + width and cell_y <= y < cell_y + height:
            return row, col
        return None

    def iter_cells(self) -> Iterator[tuple[int, int]]:
        """All cells in row-major order."""
        for row in range(self.rows):
            for col in range(self.cols_for_row(row)):
                yield row, col

    def cell_count(self) -> int:
        return sum(self.cols_for_row(row) for row in range(self.rows))
