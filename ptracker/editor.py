"""Bitmap editor state: the grid being edited, its settings, and saved designs."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import ImageColor
from pydantic import ValidationError

from ptracker.auth import AuthSession
from ptracker.canvas import export_filename, export_jpeg, render
from ptracker.errors import RemoteCallFailed
from ptracker.grid import GridGeometry, array_to_cells, cell_key, cells_to_array, parse_cell_key
from ptracker.models import Design
from ptracker.store import TableStore, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 10
DEFAULT_COLS = 5
DEFAULT_CELL_SIZE = 40
DEFAULT_COLOR = "#ef4444"
DEFAULT_NAME = "Untitled Design"

MIN_DIMENSION = 1
MAX_DIMENSION = 50
MIN_ZOOM = 0.25
MAX_ZOOM = 3.0
ZOOM_STEP = 0.25

PRESET_COLORS = [
    "#ef4444",  # red
    "#f97316",  # orange
    "#eab308",  # yellow
    "#22c55e",  # green
    "#06b6d4",  # cyan
    "#3b82f6",  # blue
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#ffffff",  # white
    "#000000",  # black
    "#6b7280",  # gray
    "#92400e",  # brown
]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


class BitmapEditor:
    """Edits one design at a time and saves it to the ``bitmap_designs`` table.

    Reads (fetch/load) and writes (save/delete) log store failures and report
    them by returning False; they never raise into the caller.
    """

    def __init__(self, store: TableStore, auth: AuthSession) -> None:
        self.store = store
        self.auth = auth

        self.rows = DEFAULT_ROWS
        self.cols = DEFAULT_COLS
        self.cell_size = DEFAULT_CELL_SIZE
        self.cells: dict[str, str] = {}

        self.show_grid = True
        self.show_pins = True
        self.zoom = 1.0
        self.selected_color = DEFAULT_COLOR
        self.erasing = False

        self.designs: list[Design] = []
        self.current_design_id: str | None = None
        self.current_design_name = DEFAULT_NAME

        self.loading = False
        self.saving = False
        self.dragging = False

    @property
    def geometry(self) -> GridGeometry:
        return GridGeometry(self.rows, self.cols, self.cell_size, self.zoom)

    # ---- settings ----

    def set_rows(self, rows: int) -> None:
        self.rows = int(_clamp(rows, MIN_DIMENSION, MAX_DIMENSION))
        self._prune_cells()

    def set_cols(self, cols: int) -> None:
        self.cols = int(_clamp(cols, MIN_DIMENSION, MAX_DIMENSION))
        self._prune_cells()

    def set_cell_size(self, size: int) -> None:
        if size <= 0:
            raise ValueError("Cell size must be positive")
        self.cell_size = size

    def set_zoom(self, zoom: float) -> None:
        self.zoom = _clamp(zoom, MIN_ZOOM, MAX_ZOOM)

    def zoom_in(self) -> None:
        self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> None:
        self.set_zoom(self.zoom - ZOOM_STEP)

    def set_selected_color(self, color: str) -> None:
        """Pick a paint color; leaves eraser mode.

        Raises:
            ValueError: If Pillow cannot parse the color.
        """
        ImageColor.getrgb(color)
        self.selected_color = color
        self.erasing = False

    def _prune_cells(self) -> None:
        geometry = self.geometry
        dropped = [key for key in self.cells if not geometry.contains(*parse_cell_key(key))]
        for key in dropped:
            del self.cells[key]
        if dropped:
            logger.debug("Dropped %d cell(s) outside the %dx%d grid", len(dropped), self.rows, self.cols)

    # ---- painting ----

    def set_cell_color(self, row: int, col: int, color: str) -> None:
        if not self.geometry.contains(row, col):
            raise ValueError(f"Cell ({row}, {col}) is outside the grid")
        self.cells[cell_key(row, col)] = color

    def clear_cell(self, row: int, col: int) -> None:
        self.cells.pop(cell_key(row, col), None)

    def clear_all_cells(self) -> None:
        self.cells = {}

    def apply_at(self, row: int, col: int) -> None:
        """Paint with the selected color, or erase in eraser mode."""
        if self.erasing:
            self.clear_cell(row, col)
        else:
            self.set_cell_color(row, col, self.selected_color)

    def pointer_down(self, x: float, y: float) -> tuple[int, int] | None:
        """Press at canvas pixel (x, y). Starts a drag only if a cell was hit."""
        cell = self.geometry.cell_at(x, y)
        if cell is not None:
            self.apply_at(*cell)
            self.dragging = True
        return cell

    def pointer_move(self, x: float, y: float) -> tuple[int, int] | None:
        """Move while pressed: every covered cell gets painted."""
        if not self.dragging:
            return None
        cell = self.geometry.cell_at(x, y)
        if cell is not None:
            self.apply_at(*cell)
        return cell

    def pointer_up(self) -> None:
        self.dragging = False

    pointer_leave = pointer_up

    # ---- designs ----

    def fetch_designs(self) -> bool:
        user = self.auth.user
        if user is None:
            return False
        self.loading = True
        try:
            rows = self.store.select("bitmap_designs", user_id=user.id, order="updated_at", descending=True)
            self.designs = [Design.model_validate(row) for row in rows]
            return True
        except RemoteCallFailed:
            logger.exception("Error fetching designs")
            return False
        except ValidationError:
            logger.exception("Malformed design row")
            return False
        finally:
            self.loading = False

    def save_design(self) -> bool:
        """Insert the design, or update it if it was saved before."""
        user = self.auth.user
        if user is None:
            logger.info("Not signed in, design not saved")
            return False

        self.saving = True
        try:
            fields = {
                "name": self.current_design_name,
                "rows": self.rows,
                "cols": self.cols,
                "cell_size": self.cell_size,
                "cells": [cell.model_dump() for cell in cells_to_array(self.cells)],
            }
            if self.current_design_id:
                self.store.update(
                    "bitmap_designs",
                    self.current_design_id,
                    {**fields, "updated_at": utc_now_iso()},
                )
            else:
                row = self.store.insert("bitmap_designs", {**fields, "user_id": user.id})
                self.current_design_id = row["id"]
        except RemoteCallFailed:
            logger.exception("Error saving design")
            return False
        finally:
            self.saving = False

        self.fetch_designs()
        return True

    def load_design(self, design_id: str) -> bool:
        self.loading = True
        try:
            row = self.store.get("bitmap_designs", design_id)
            if row is None:
                logger.error("Design %s not found", design_id)
                return False
            design = Design.model_validate(row)
        except RemoteCallFailed:
            logger.exception("Error loading design")
            return False
        except ValidationError:
            logger.exception("Design %s is malformed", design_id)
            return False
        finally:
            self.loading = False

        self.current_design_id = design.id
        self.current_design_name = design.name
        self.rows = design.rows
        self.cols = design.cols
        self.cell_size = design.cell_size
        self.cells = array_to_cells(design.cells)
        self._prune_cells()
        return True

    def delete_design(self, design_id: str) -> bool:
        try:
            self.store.delete("bitmap_designs", design_id)
        except RemoteCallFailed:
            logger.exception("Error deleting design")
            return False

        if self.current_design_id == design_id:
            self.new_design()
        self.fetch_designs()
        return True

    def new_design(self) -> None:
        self.current_design_id = None
        self.current_design_name = DEFAULT_NAME
        self.rows = DEFAULT_ROWS
        self.cols = DEFAULT_COLS
        self.cell_size = DEFAULT_CELL_SIZE
        self.cells = {}
        self.zoom = 1.0

    # ---- export ----

    def export(self, path: Path | None = None) -> Path:
        """Render the current design and write it as a JPEG."""
        image = render(self.geometry, self.cells, show_grid=self.show_grid, show_pins=self.show_pins)
        if path is None:
            path = Path(export_filename(self.current_design_name))
        return export_jpeg(image, path)
