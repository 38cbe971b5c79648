from __future__ import annotations
from dataclasses import dataclass

from core.app_settings import (
    GRID_GAP,
    GRID_PADDING,
    GRID_ROW_GAP,
    clamp_thumbnail_size,
)


@dataclass(frozen=True)
class GridConfig:
    columns: int
    thumbnail_size: int
    gap: int = GRID_GAP
    row_gap: int = GRID_ROW_GAP

    @property
    def row_height(self) -> int:
        return self.thumbnail_size + self.row_gap


def compute_grid_config(viewport_width: int, base_size: int) -> GridConfig:
    """Fit as many ``base_size`` cells as the width allows, then stretch them.

    The base size is clamped to the configured bounds; the resulting
    thumbnail size fills the row exactly (minus gaps and outer padding).
    """
    base = clamp_thumbnail_size(base_size)
    width = max(0, viewport_width - GRID_PADDING * 2)
    columns = max(1, (width + GRID_GAP) // (base + GRID_GAP))
    thumbnail_size = max(1, (width - GRID_GAP * (columns - 1)) // columns)
    return GridConfig(columns=columns, thumbnail_size=thumbnail_size)
