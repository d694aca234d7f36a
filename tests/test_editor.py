"""Tests for the bitmap editor."""

from unittest.mock import patch

import pytest
from PIL import Image

from ptracker.auth import AuthSession
from ptracker.editor import (
    DEFAULT_CELL_SIZE,
    DEFAULT_COLOR,
    DEFAULT_COLS,
    DEFAULT_NAME,
    DEFAULT_ROWS,
    MAX_DIMENSION,
    MAX_ZOOM,
    MIN_ZOOM,
    BitmapEditor,
)
from ptracker.errors import RemoteCallFailed


@pytest.fixture
def editor(store, auth):
    return BitmapEditor(store, auth)


class TestDefaults:
    """Tests for a fresh editor."""

    def test_defaults(self, editor):
        assert (editor.rows, editor.cols, editor.cell_size) == (DEFAULT_ROWS, DEFAULT_COLS, DEFAULT_CELL_SIZE)
        assert editor.cells == {}
        assert editor.zoom == 1.0
        assert editor.selected_color == DEFAULT_COLOR
        assert editor.current_design_id is None
        assert editor.current_design_name == DEFAULT_NAME


class TestSettings:
    """Tests for grid settings."""

    def test_dimensions_clamped(self, editor):
        editor.set_rows(0)
        editor.set_cols(500)
        assert editor.rows == 1
        assert editor.cols == MAX_DIMENSION

    def test_shrinking_drops_cells_outside(self, editor):
        editor.set_cell_color(0, 4, "#fff")
        editor.set_cell_color(9, 0, "#fff")
        editor.set_cell_color(0, 0, "#fff")

        editor.set_cols(4)
        editor.set_rows(5)

        assert editor.cells == {"0-0": "#fff"}

    def test_zoom_clamped(self, editor):
        editor.set_zoom(10)
        assert editor.zoom == MAX_ZOOM
        editor.set_zoom(0)
        assert editor.zoom == MIN_ZOOM

    def test_zoom_steps(self, editor):
        editor.zoom_in()
        assert editor.zoom == 1.25
        editor.zoom_out()
        editor.zoom_out()
        assert editor.zoom == 0.75

    def test_cell_size_positive(self, editor):
        with pytest.raises(ValueError):
            editor.set_cell_size(0)

    def test_selecting_color_leaves_eraser(self, editor):
        editor.erasing = True
        editor.set_selected_color("#22c55e")
        assert editor.selected_color == "#22c55e"
        assert editor.erasing is False

    def test_invalid_color_rejected(self, editor):
        with pytest.raises(ValueError):
            editor.set_selected_color("not-a-color")
        assert editor.selected_color == DEFAULT_COLOR


class TestPainting:
    """Tests for painting cells."""

    def test_set_and_clear(self, editor):
        editor.set_cell_color(2, 3, "#00ff00")
        assert editor.cells == {"2-3": "#00ff00"}
        editor.clear_cell(2, 3)
        assert editor.cells == {}

    def test_outside_grid_rejected(self, editor):
        with pytest.raises(ValueError):
            editor.set_cell_color(1, 4, "#fff")

    def test_painting_twice_is_idempotent(self, editor):
        editor.set_cell_color(2, 3, "#00ff00")
        editor.set_cell_color(2, 3, "#00ff00")
        assert editor.cells == {"2-3": "#00ff00"}

    def test_clear_missing_cell_is_noop(self, editor):
        editor.clear_cell(0, 0)
        assert editor.cells == {}

    def test_clear_all(self, editor):
        editor.set_cell_color(0, 0, "#fff")
        editor.set_cell_color(1, 1, "#fff")
        editor.clear_all_cells()
        assert editor.cells == {}

    def test_click_paints_hit_cell(self, editor):
        assert editor.pointer_down(25, 45) == (1, 0)
        editor.pointer_up()
        assert editor.cells == {"1-0": DEFAULT_COLOR}

    def test_click_in_gap_does_nothing(self, editor):
        assert editor.pointer_down(5, 45) is None
        assert editor.dragging is False
        assert editor.cells == {}

    def test_drag_paints_every_cell_passed(self, editor):
        editor.pointer_down(10, 10)
        editor.pointer_move(50, 10)
        editor.pointer_move(90, 10)
        editor.pointer_up()
        editor.pointer_move(130, 10)

        assert set(editor.cells) == {"0-0", "0-1", "0-2"}

    def test_pointer_leave_ends_drag(self, editor):
        editor.pointer_down(10, 10)
        editor.pointer_leave()
        assert editor.pointer_move(50, 10) is None
        assert set(editor.cells) == {"0-0"}

    def test_eraser(self, editor):
        editor.set_cell_color(0, 0, "#fff")
        editor.set_cell_color(0, 1, "#fff")
        editor.erasing = True

        editor.pointer_down(10, 10)
        editor.pointer_move(50, 10)
        editor.pointer_up()

        assert editor.cells == {}

    def test_hit_testing_follows_zoom(self, editor):
        editor.set_zoom(2.0)
        assert editor.pointer_down(85, 10) == (0, 1)


class TestDesigns:
    """Tests for saving and loading designs."""

    def test_save_inserts_then_updates(self, editor, store, user):
        editor.current_design_name = "Heart"
        editor.set_cell_color(0, 0, "#ff0000")

        assert editor.save_design() is True
        design_id = editor.current_design_id
        assert design_id is not None

        editor.set_cell_color(1, 1, "#00ff00")
        assert editor.save_design() is True
        assert editor.current_design_id == design_id

        rows = store.select("bitmap_designs", user_id=user.id)
        assert len(rows) == 1
        assert {(c["row"], c["col"]) for c in rows[0]["cells"]} == {(0, 0), (1, 1)}
        assert [d.name for d in editor.designs] == ["Heart"]

    def test_save_requires_user(self, store):
        editor = BitmapEditor(store, AuthSession())
        assert editor.save_design() is False
        assert editor.current_design_id is None

    def test_save_failure_returns_false(self, editor, store):
        with patch.object(store, "insert", side_effect=RemoteCallFailed("down")):
            assert editor.save_design() is False
        assert editor.saving is False

    def test_load_restores_state(self, editor, store, auth):
        editor.current_design_name = "Stripes"
        editor.set_rows(4)
        editor.set_cols(3)
        editor.set_cell_size(20)
        editor.set_cell_color(3, 1, "#123456")
        editor.save_design()
        design_id = editor.current_design_id

        other = BitmapEditor(store, auth)
        assert other.load_design(design_id) is True
        assert other.current_design_name == "Stripes"
        assert (other.rows, other.cols, other.cell_size) == (4, 3, 20)
        assert other.cells == {"3-1": "#123456"}

    def test_load_missing(self, editor):
        assert editor.load_design("nope") is False

    def test_load_drops_out_of_range_cells(self, editor, store, user):
        row = store.insert(
            "bitmap_designs",
            {
                "user_id": user.id,
                "name": "Odd",
                "rows": 2,
                "cols": 2,
                "cell_size": 40,
                "cells": [
                    {"row": 0, "col": 0, "color": "#fff"},
                    {"row": 1, "col": 1, "color": "#fff"},
                    {"row": 5, "col": 0, "color": "#fff"},
                ],
            },
        )
        assert editor.load_design(row["id"]) is True
        assert editor.cells == {"0-0": "#fff"}

    def test_load_null_cells_as_empty(self, editor, store, user):
        row = store.insert(
            "bitmap_designs",
            {"user_id": user.id, "name": "Blank", "rows": 2, "cols": 2, "cell_size": 40, "cells": []},
        )
        with patch.object(store, "get", return_value={**row, "cells": None}):
            assert editor.load_design(row["id"]) is True
        assert editor.current_design_name == "Blank"
        assert editor.cells == {}

    def test_load_malformed_design(self, editor, store):
        with patch.object(store, "get", return_value={"id": "broken", "name": "Broken"}):
            assert editor.load_design("broken") is False
        assert editor.current_design_id is None
        assert editor.loading is False

    def test_fetch_malformed_row(self, editor, store):
        with patch.object(store, "select", return_value=[{"id": "broken"}]):
            assert editor.fetch_designs() is False
        assert editor.designs == []
        assert editor.loading is False

    def test_fetch_requires_user(self, store):
        assert BitmapEditor(store, AuthSession()).fetch_designs() is False

    def test_fetch_most_recent_first(self, editor, store, user):
        for name, updated in (("old", "2025-01-01T00:00:00Z"), ("new", "2025-02-01T00:00:00Z")):
            store.insert(
                "bitmap_designs",
                {
                    "user_id": user.id,
                    "name": name,
                    "rows": 1,
                    "cols": 1,
                    "cell_size": 40,
                    "cells": [],
                    "updated_at": updated,
                },
            )
        assert editor.fetch_designs() is True
        assert [d.name for d in editor.designs] == ["new", "old"]

    def test_delete_current_resets_editor(self, editor):
        editor.current_design_name = "Gone"
        editor.set_cell_color(0, 0, "#fff")
        editor.save_design()

        assert editor.delete_design(editor.current_design_id) is True

        assert editor.current_design_id is None
        assert editor.current_design_name == DEFAULT_NAME
        assert editor.cells == {}
        assert editor.designs == []

    def test_delete_other_keeps_current(self, editor, store, auth):
        editor.current_design_name = "Keep"
        editor.save_design()
        other = BitmapEditor(store, auth)
        other.current_design_name = "Drop"
        other.save_design()

        editor.delete_design(other.current_design_id)

        assert editor.current_design_name == "Keep"
        assert [d.name for d in editor.designs] == ["Keep"]

    def test_new_design_resets(self, editor):
        editor.set_rows(3)
        editor.set_zoom(2)
        editor.set_cell_color(0, 0, "#fff")
        editor.new_design()
        assert editor.rows == DEFAULT_ROWS
        assert editor.zoom == 1.0
        assert editor.cells == {}


class TestExport:
    """Tests for exporting the current design."""

    def test_export_default_name(self, editor, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        editor.current_design_name = "My Heart"
        path = editor.export()
        assert path.name == "My_Heart.jpg"
        assert (tmp_path / "My_Heart.jpg").exists()

    def test_export_uses_zoom(self, editor, tmp_path):
        editor.set_zoom(0.5)
        path = editor.export(tmp_path / "small.jpg")
        with Image.open(path) as image:
            assert image.size == (100, 200)
