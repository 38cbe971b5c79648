from typing import Dict, List, Optional, Sequence

from ui.controllers.selection_controller import SelectionState


def clamp_index(index: int, length: int) -> int:
    """Clamp ``index`` into ``[0, length)``; -1 when there is nothing to select."""
    if length <= 0:
        return -1
    return max(0, min(index, length - 1))


def ids_for_indices(view_ids: Sequence[str], indices) -> List[str]:
    return [view_ids[i] for i in indices if 0 <= i < len(view_ids)]


def reanchor_index(index: int, ids_before: Sequence[str], ids_after: Sequence[str]) -> int:
    """Follow the item at ``index`` into the new view, clamping if it is gone."""
    if index < 0:
        return -1
    if index < len(ids_before):
        item_id = ids_before[index]
        for new_index, new_id in enumerate(ids_after):
            if new_id == item_id:
                return new_index
    return clamp_index(index, len(ids_after))


def reanchor_selection(
    state: SelectionState,
    ids_before: Sequence[str],
    ids_after: Sequence[str],
) -> SelectionState:
    """Carry a selection across a filtered-view recomputation.

    Filtered indices are not stable, so every index is resolved to its item
    id in the old view and looked up again in the new one:

    1. The cursor follows its item when that item is still visible.
       Otherwise the old index is clamped to the new length, which lands on
       the item that moved into its slot (or the new last item).
    2. Multi-selected items that are no longer visible are dropped; the
       rest keep their selection order.
    3. The range anchor follows its item or is cleared.
    """
    if list(ids_before) == list(ids_after):
        return state

    position: Dict[str, int] = {item_id: i for i, item_id in enumerate(ids_after)}
    primary = reanchor_index(state.primary_index, ids_before, ids_after)

    multi = tuple(
        position[item_id]
        for item_id in ids_for_indices(ids_before, state.multi_select)
        if item_id in position
    )

    anchor: Optional[int] = None
    if state.last_anchor is not None and 0 <= state.last_anchor < len(ids_before):
        anchor = position.get(ids_before[state.last_anchor])

    return SelectionState(primary_index=primary, multi_select=multi, last_anchor=anchor)
