"""Rasterize a staggered-grid design with Pillow."""

from __future__ import annotations

import logging
import math
import re
from pathlib import Path

from PIL import Image, ImageDraw

from ptracker.grid import GridGeometry, cell_key

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = "#1a1a2e"
BORDER_COLOR = "#3b82f6"
BORDER_WIDTH = 3
GRID_COLOR = "#ef4444"
PIN_FILL = "#ffffff"
PIN_OUTLINE = "#000000"

# Pin geometry relative to the effective cell size
PIN_RADIUS = 0.08
PIN_OFFSET = 0.15

JPEG_QUALITY = 95


def pin_centers(x: float, y: float, size: float) -> tuple[tuple[float, float], tuple[float, float]]:
    """Centres of the two pins near the top corners of a cell."""
    offset = size * PIN_OFFSET
    return (x + offset, y + offset), (x + size - offset, y + offset)


def render(
    geometry: GridGeometry,
    cells: dict[str, str],
    *,
    show_grid: bool = True,
    show_pins: bool = True,
) -> Image.Image:
    """Draw the grid and its painted cells onto a new RGB image."""
    width, height = geometry.canvas_size
    image = Image.new("RGB", (max(1, math.ceil(width)), max(1, math.ceil(height))), BACKGROUND_COLOR)
    draw = ImageDraw.Draw(image)

    size = geometry.effective_size
    pin_radius = size * PIN_RADIUS
    for row, col in geometry.iter_cells():
        x, y, w, h = geometry.cell_rect(row, col)
        box = [x, y, max(x, x + w - 1), max(y, y + h - 1)]
        color = cells.get(cell_key(row, col), BACKGROUND_COLOR)
        draw.rectangle(box, fill=color)

        if show_grid:
            draw.rectangle(box, outline=GRID_COLOR, width=1)

        if show_pins:
            for cx, cy in pin_centers(x, y, size):
                draw.ellipse(
                    [cx - pin_radius, cy - pin_radius, cx + pin_radius, cy + pin_radius],
                    fill=PIN_FILL,
                    outline=PIN_OUTLINE,
                    width=1,
                )

    # Border goes on top of the edge cells
    draw.rectangle([0, 0, image.width - 1, image.height - 1], outline=BORDER_COLOR, width=BORDER_WIDTH)
    return image


def export_filename(name: str) -> str:
    """Download name for a design: non-alphanumerics become underscores."""
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE) + ".jpg"


def export_jpeg(image: Image.Image, path: Path, *, quality: int = JPEG_QUALITY) -> Path:
    """Write the image as a JPEG and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    image.convert("RGB").save(path, format="JPEG", quality=quality)
    logger.info("Exported %dx%d image to %s", image.width, image.height, path)
    return path


def render_text(geometry: GridGeometry, cells: dict[str, str], *, painted: str = "#", empty: str = ".") -> str:
    """Terminal preview: odd rows indented by one column, one char per cell."""
    lines = []
    for row in range(geometry.rows):
        marks = [
            painted if cell_key(row, col) in cells else empty
            for col in range(geometry.cols_for_row(row))
        ]
        indent = " " if row % 2 == 1 else ""
        lines.append(indent + " ".join(marks))
    return "\n".join(lines)
