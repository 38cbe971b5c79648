from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional, Protocol

from PyQt6.QtCore import Qt

from core.app_settings import PAGE_SCROLL_ROWS
from core.models import ViewMode
from ui.controllers.selection_controller import SelectionState
from ui.controllers.view_mode_controller import ComparePair
from ui.helpers.navigation_utils import (
    first_index,
    last_index,
    step_linear,
    step_page,
    step_row_down,
    step_row_up,
)

logger = logging.getLogger(__name__)

_COMMAND_MODIFIERS = (
    Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier
)
_ENTER_KEYS = (Qt.Key.Key_Return, Qt.Key.Key_Enter, Qt.Key.Key_Space)


class NavCommand(Enum):
    NOOP = "noop"  # bound key with nothing to do (e.g. Left on the first item)
    MOVE_PRIMARY = "move_primary"
    MOVE_COMPARE_RIGHT = "move_compare_right"
    TOGGLE_SELECTION_LABEL = "toggle_selection_label"
    TOGGLE_COMPARE_LEFT_LABEL = "toggle_compare_left_label"
    TOGGLE_COMPARE_RIGHT_LABEL = "toggle_compare_right_label"
    ENTER_VIEW = "enter_view"
    EXIT_VIEW = "exit_view"
    CLEAR_SELECTION = "clear_selection"
    OPEN_FOLDER = "open_folder"
    EXPORT = "export"


@dataclass(frozen=True)
class NavAction:
    command: NavCommand
    index: int = -1
    view_mode: Optional[ViewMode] = None


_NOOP = NavAction(NavCommand.NOOP)


def _move(target: Optional[int]) -> NavAction:
    return NavAction(NavCommand.MOVE_PRIMARY, target) if target is not None else _NOOP


def _resolve_grid(key, cursor: int, columns: int, length: int) -> Optional[NavAction]:
    if key == Qt.Key.Key_Left:
        return _move(step_linear(cursor, -1, length))
    if key == Qt.Key.Key_Right:
        return _move(step_linear(cursor, 1, length))
    if key == Qt.Key.Key_Up:
        return _move(step_row_up(cursor, columns, length))
    if key == Qt.Key.Key_Down:
        return _move(step_row_down(cursor, columns, length))
    if key == Qt.Key.Key_Home:
        return _move(first_index(length))
    if key == Qt.Key.Key_End:
        return _move(last_index(length))
    if key == Qt.Key.Key_PageUp:
        return _move(step_page(cursor, columns, PAGE_SCROLL_ROWS, -1, length))
    if key == Qt.Key.Key_PageDown:
        return _move(step_page(cursor, columns, PAGE_SCROLL_ROWS, 1, length))
    if key == Qt.Key.Key_1:
        return NavAction(NavCommand.TOGGLE_SELECTION_LABEL)
    if key in _ENTER_KEYS:
        return NavAction(NavCommand.ENTER_VIEW, view_mode=ViewMode.DETAIL)
    if key == Qt.Key.Key_C:
        return NavAction(NavCommand.ENTER_VIEW, view_mode=ViewMode.COMPARE)
    if key == Qt.Key.Key_G:
        return NavAction(NavCommand.ENTER_VIEW, view_mode=ViewMode.GALLERY)
    if key == Qt.Key.Key_Escape:
        return NavAction(NavCommand.CLEAR_SELECTION)
    return None


def _resolve_detail(key, cursor: int, length: int) -> Optional[NavAction]:
    if key == Qt.Key.Key_Escape:
        return NavAction(NavCommand.EXIT_VIEW)
    if key == Qt.Key.Key_Left:
        return _move(step_linear(cursor, -1, length))
    if key == Qt.Key.Key_Right:
        return _move(step_linear(cursor, 1, length))
    if key == Qt.Key.Key_1:
        return NavAction(NavCommand.TOGGLE_SELECTION_LABEL)
    return None


def _resolve_compare(
    key, shift: bool, cursor: int, compare_right: int, length: int
) -> Optional[NavAction]:
    if key == Qt.Key.Key_Escape:
        return NavAction(NavCommand.EXIT_VIEW)
    if key in (Qt.Key.Key_Left, Qt.Key.Key_Right):
        delta = -1 if key == Qt.Key.Key_Left else 1
        if shift:
            target = compare_right + delta
            if compare_right >= 0 and 0 <= target < length:
                return NavAction(NavCommand.MOVE_COMPARE_RIGHT, target)
            return _NOOP
        return _move(step_linear(cursor, delta, length))
    if key == Qt.Key.Key_1:
        return NavAction(NavCommand.TOGGLE_COMPARE_LEFT_LABEL)
    if key == Qt.Key.Key_2:
        return NavAction(NavCommand.TOGGLE_COMPARE_RIGHT_LABEL)
    return None


def _resolve_gallery(
    key, cursor: int, length: int, has_multi_selection: bool
) -> Optional[NavAction]:
    if key == Qt.Key.Key_Left:
        return _move(step_linear(cursor, -1, length))
    if key == Qt.Key.Key_Right:
        return _move(step_linear(cursor, 1, length))
    if key == Qt.Key.Key_1:
        return NavAction(NavCommand.TOGGLE_SELECTION_LABEL)
    if key == Qt.Key.Key_Escape:
        # Gallery only closes through its explicit close control
        return NavAction(NavCommand.CLEAR_SELECTION) if has_multi_selection else _NOOP
    return None


def resolve_key(
    key,
    modifiers: Qt.KeyboardModifier,
    view_mode: ViewMode,
    columns: int,
    length: int,
    cursor: int,
    compare_right: int = -1,
    has_multi_selection: bool = False,
) -> Optional[NavAction]:
    """Translate a key press into a navigation action.

    Pure and synchronous. Returns None for keys that are not bound in
    ``view_mode``; bound keys that cannot move (edges, empty view) resolve
    to a NOOP action.
    """
    if modifiers & _COMMAND_MODIFIERS:
        if key == Qt.Key.Key_O:
            return NavAction(NavCommand.OPEN_FOLDER)
        if key == Qt.Key.Key_E:
            return NavAction(NavCommand.EXPORT)

    if view_mode is ViewMode.DETAIL:
        return _resolve_detail(key, cursor, length)
    if view_mode is ViewMode.COMPARE:
        shift = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
        return _resolve_compare(key, shift, cursor, compare_right, length)
    if view_mode is ViewMode.GALLERY:
        return _resolve_gallery(key, cursor, length, has_multi_selection)
    return _resolve_grid(key, cursor, columns, length)


class NavigationContext(Protocol):
    def is_modal_active(self) -> bool: ...
    def get_view_mode(self) -> ViewMode: ...
    def get_grid_columns(self) -> int: ...
    def get_view_length(self) -> int: ...
    def get_selection(self) -> SelectionState: ...
    def get_compare_pair(self) -> Optional[ComparePair]: ...
    def move_primary(self, index: int) -> None: ...
    def move_compare_right(self, index: int) -> None: ...
    def toggle_selection_label(self) -> None: ...
    def toggle_label_at(self, index: int) -> None: ...
    def enter_view(self, mode: ViewMode) -> bool: ...
    def exit_view(self) -> None: ...
    def clear_selection(self) -> None: ...
    def request_open_folder(self) -> None: ...
    def request_export(self) -> None: ...


class NavigationController:
    """Routes key presses to selection / view-mode / label operations."""

    def __init__(self, ctx: NavigationContext):
        self.ctx = ctx

    def handle_key(
        self, key, modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier
    ) -> bool:
        """Handle one key press. Returns True when the key is bound.

        Keys are ignored entirely while a blocking modal is open.
        """
        if self.ctx.is_modal_active():
            return False

        selection = self.ctx.get_selection()
        pair = self.ctx.get_compare_pair()
        action = resolve_key(
            key,
            modifiers,
            self.ctx.get_view_mode(),
            self.ctx.get_grid_columns(),
            self.ctx.get_view_length(),
            selection.primary_index,
            compare_right=pair.right if pair is not None else -1,
            has_multi_selection=selection.has_multi_selection,
        )
        if action is None:
            return False
        self.apply(action)
        return True

    def apply(self, action: NavAction) -> None:
        cmd = action.command
        if cmd is NavCommand.NOOP:
            return
        logger.debug(f"Navigation action: {cmd.value} {action.index}")
        if cmd is NavCommand.MOVE_PRIMARY:
            self.ctx.move_primary(action.index)
        elif cmd is NavCommand.MOVE_COMPARE_RIGHT:
            self.ctx.move_compare_right(action.index)
        elif cmd is NavCommand.TOGGLE_SELECTION_LABEL:
            self.ctx.toggle_selection_label()
        elif cmd is NavCommand.TOGGLE_COMPARE_LEFT_LABEL:
            pair = self.ctx.get_compare_pair()
            if pair is not None:
                self.ctx.toggle_label_at(pair.left)
        elif cmd is NavCommand.TOGGLE_COMPARE_RIGHT_LABEL:
            pair = self.ctx.get_compare_pair()
            if pair is not None:
                self.ctx.toggle_label_at(pair.right)
        elif cmd is NavCommand.ENTER_VIEW and action.view_mode is not None:
            self.ctx.enter_view(action.view_mode)
        elif cmd is NavCommand.EXIT_VIEW:
            self.ctx.exit_view()
        elif cmd is NavCommand.CLEAR_SELECTION:
            self.ctx.clear_selection()
        elif cmd is NavCommand.OPEN_FOLDER:
            self.ctx.request_open_folder()
        elif cmd is NavCommand.EXPORT:
            self.ctx.request_export()
