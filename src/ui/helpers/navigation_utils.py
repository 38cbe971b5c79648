from __future__ import annotations
from typing import Optional

# Cursor arithmetic for keyboard navigation. These are UI-agnostic and operate
# on filtered-view indices plus the grid column count. None means "stay put".


def step_linear(current: int, delta: int, length: int) -> Optional[int]:
    """Move by ``delta`` without wrap-around; None when the move leaves the range."""
    if length <= 0:
        return None
    if current < 0:
        return 0
    target = current + delta
    if 0 <= target < length and target != current:
        return target
    return None


def step_row_up(current: int, columns: int, length: int) -> Optional[int]:
    """Same column, previous row. No-op on the first row."""
    if length <= 0:
        return None
    if current < 0:
        return 0
    columns = max(1, columns)
    if current >= columns:
        return current - columns
    return None


def step_row_down(current: int, columns: int, length: int) -> Optional[int]:
    """Same column, next row.

    When the next row is shorter than the current column (or missing) the
    cursor jumps to the last item instead of staying put.
    """
    if length <= 0:
        return None
    if current < 0:
        return 0
    columns = max(1, columns)
    if current + columns < length:
        return current + columns
    if current < length - 1:
        return length - 1
    return None


def step_page(
    current: int, columns: int, rows_per_page: int, direction: int, length: int
) -> Optional[int]:
    """PageUp/PageDown: move ``columns * rows_per_page`` items, clamped to the ends."""
    if length <= 0:
        return None
    page = max(1, columns) * max(1, rows_per_page)
    start = max(current, 0)
    target = max(0, min(length - 1, start + direction * page))
    if target == current:
        return None
    return target


def first_index(length: int) -> Optional[int]:
    return 0 if length > 0 else None


def last_index(length: int) -> Optional[int]:
    return length - 1 if length > 0 else None
