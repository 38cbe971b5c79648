from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Iterable, List, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, pyqtSignal

logger = logging.getLogger(__name__)


class SelectionAction(Enum):
    CLICK = "click"  # plain click
    TOGGLE = "toggle"  # Ctrl/Cmd-click
    RANGE = "range"  # Shift-click
    MOVE = "move"  # keyboard cursor move
    CLEAR = "clear"
    RESET = "reset"  # folder load


@dataclass(frozen=True)
class SelectionState:
    """Cursor + multi-selection over filtered-view indices."""

    primary_index: int = -1
    multi_select: Tuple[int, ...] = ()  # insertion order, no duplicates
    last_anchor: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "multi_select", _ordered_unique(self.multi_select))

    @property
    def has_primary(self) -> bool:
        return self.primary_index >= 0

    @property
    def has_multi_selection(self) -> bool:
        return len(self.multi_select) > 0

    def targets(self) -> List[int]:
        """Indices a label operation applies to.

        The multi-selection in the order items were selected, else the
        cursor. The first entry decides the direction of a toggle.
        """
        if self.multi_select:
            return list(self.multi_select)
        if self.primary_index >= 0:
            return [self.primary_index]
        return []


def _ordered_unique(indices: Iterable[int]) -> Tuple[int, ...]:
    return tuple(dict.fromkeys(indices))


def action_for_modifiers(modifiers: Qt.KeyboardModifier) -> SelectionAction:
    """Map click modifiers to a selection action. Shift wins over Ctrl/Cmd."""
    if modifiers & Qt.KeyboardModifier.ShiftModifier:
        return SelectionAction.RANGE
    if modifiers & (
        Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier
    ):
        return SelectionAction.TOGGLE
    return SelectionAction.CLICK


def reduce_selection(
    state: SelectionState,
    action: SelectionAction,
    length: int,
    index: int = -1,
) -> SelectionState:
    """Return the selection after applying ``action`` at ``index``.

    ``length`` is the current filtered-view length. Out-of-range indices
    leave the state untouched.
    """
    if action is SelectionAction.CLEAR:
        if not state.multi_select:
            return state
        return replace(state, multi_select=())

    if action is SelectionAction.RESET:
        start = -1 if length <= 0 else max(0, min(index, length - 1))
        return SelectionState(primary_index=start)

    if not 0 <= index < length:
        logger.debug(f"Selection {action.value} ignored: index {index} not in [0, {length})")
        return state

    if action is SelectionAction.CLICK:
        return SelectionState(
            primary_index=index, multi_select=(index,), last_anchor=index
        )

    if action is SelectionAction.TOGGLE:
        if index in state.multi_select:
            multi = tuple(i for i in state.multi_select if i != index)
        else:
            multi = state.multi_select + (index,)
        return SelectionState(
            primary_index=index, multi_select=multi, last_anchor=index
        )

    if action is SelectionAction.RANGE:
        if not state.multi_select:
            # No anchor to extend from
            return reduce_selection(state, SelectionAction.CLICK, length, index)
        origin = state.primary_index if state.primary_index >= 0 else index
        lo, hi = min(origin, index), max(origin, index)
        return SelectionState(
            primary_index=index,
            multi_select=tuple(range(lo, hi + 1)),
            last_anchor=state.last_anchor,
        )

    if action is SelectionAction.MOVE:
        # Cursor moves; the batch selection stays for gallery/compare actions
        return replace(state, primary_index=index)

    return state


class SelectionController(QObject):
    """Holds the current SelectionState and announces changes."""

    selection_changed = pyqtSignal(object)  # SelectionState

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._state = SelectionState()

    @property
    def state(self) -> SelectionState:
        return self._state

    def set_state(self, new_state: SelectionState) -> bool:
        if new_state == self._state:
            return False
        self._state = new_state
        self.selection_changed.emit(new_state)
        return True

    def dispatch(
        self, action: SelectionAction, length: int, index: int = -1
    ) -> SelectionState:
        self.set_state(reduce_selection(self._state, action, length, index))
        return self._state

    # --- Convenience wrappers ---
    def select(
        self,
        index: int,
        length: int,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier,
    ) -> SelectionState:
        return self.dispatch(action_for_modifiers(modifiers), length, index)

    def move_to(self, index: int, length: int) -> SelectionState:
        return self.dispatch(SelectionAction.MOVE, length, index)

    def clear(self) -> SelectionState:
        return self.dispatch(SelectionAction.CLEAR, 0)

    def reset(self, start_index: int, length: int) -> SelectionState:
        return self.dispatch(SelectionAction.RESET, length, start_index)
