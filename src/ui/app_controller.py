from __future__ import annotations
import asyncio
import contextlib
from dataclasses import replace
import logging
import time
from typing import Iterator, List, Optional, Sequence, Set

from PyQt6.QtCore import QObject, Qt, QThread, pyqtSignal

from core.app_settings import DEFAULT_THUMBNAIL_SIZE, clamp_thumbnail_size
from core.collection_store import CollectionStore
from core.models import (
    BatchResult,
    ExportMode,
    ExportResult,
    FilterMode,
    Item,
    Label,
    ThumbnailResult,
    ViewMode,
)
from core.persistence import PersistenceBackend
from ui.controllers.filter_controller import FilterController
from ui.controllers.label_controller import LabelController
from ui.controllers.navigation_controller import NavigationController
from ui.controllers.selection_controller import SelectionController, SelectionState
from ui.controllers.view_mode_controller import ComparePair, ViewModeController
from ui.helpers.grid_config import GridConfig, compute_grid_config
from ui.helpers.virtual_window import VirtualWindow
from ui.selection_utils import ids_for_indices, reanchor_index, reanchor_selection
from workers.thumbnail_batch_worker import ThumbnailBatchWorker, ThumbnailGenerator

logger = logging.getLogger(__name__)


class AppController(QObject):
    """
    Single entry point for the presentation layer.

    Owns the collection, the filter, the selection, the view mode and the
    virtual grid window, and keeps them consistent: every change of the
    filtered view (filter switch, label change, folder load) re-anchors the
    selection by item id and revalidates the view mode.

    Label operations are coroutines. Keyboard-triggered ones are scheduled
    on the running event loop and tracked until ``wait_for_pending``.
    """

    collection_loaded = pyqtSignal(object)  # OpenFolderResult
    load_failed = pyqtSignal(str)
    view_changed = pyqtSignal(list)  # List[Item], the new filtered view
    selection_changed = pyqtSignal(object)  # SelectionState
    view_mode_changed = pyqtSignal(object)  # ViewMode
    compare_pair_changed = pyqtSignal(object)  # ComparePair or None
    labels_changed = pyqtSignal(list)  # ids
    batch_finished = pyqtSignal(object)  # BatchResult
    thumbnail_progress = pyqtSignal(int, int)  # completed, total
    thumbnails_updated = pyqtSignal(int)  # number of items updated
    open_folder_requested = pyqtSignal()
    export_requested = pyqtSignal()

    def __init__(
        self,
        persistence: PersistenceBackend,
        filter_mode: FilterMode = FilterMode.ALL,
        base_thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.persistence = persistence
        self.store = CollectionStore()

        self.filter_controller = FilterController(self, filter_mode)
        self.selection_controller = SelectionController(self)
        self.view_mode_controller = ViewModeController(self)
        self.label_controller = LabelController(
            self.store, persistence, mutation_scope=self._view_mutation, parent=self
        )
        self.navigation_controller = NavigationController(self)
        self.window = VirtualWindow(parent=self)

        self.selection_controller.selection_changed.connect(self.selection_changed)
        self.view_mode_controller.view_mode_changed.connect(self.view_mode_changed)
        self.view_mode_controller.compare_pair_changed.connect(
            self.compare_pair_changed
        )
        self.label_controller.labels_changed.connect(self.labels_changed)
        self.label_controller.batch_finished.connect(self.batch_finished)

        self.session_id: Optional[str] = None
        self.folder_path: Optional[str] = None
        self.cache_location: Optional[str] = None
        self._base_thumbnail_size = clamp_thumbnail_size(base_thumbnail_size)
        self._viewport_width = 0
        self.grid_config: GridConfig = compute_grid_config(0, self._base_thumbnail_size)

        self._view_ids: List[str] = []
        self._modal_active = False
        self._pending_tasks: Set[asyncio.Task] = set()
        self._thumbnail_thread: Optional[QThread] = None
        self._thumbnail_worker: Optional[ThumbnailBatchWorker] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def filtered_view(self) -> List[Item]:
        return self.filter_controller.view(self.store)

    @property
    def selection(self) -> SelectionState:
        return self.selection_controller.state

    @property
    def view_mode(self) -> ViewMode:
        return self.view_mode_controller.mode

    @property
    def compare_pair(self) -> Optional[ComparePair]:
        return self.view_mode_controller.compare_pair

    @property
    def filter_mode(self) -> FilterMode:
        return self.filter_controller.get_filter_mode()

    @property
    def current_item(self) -> Optional[Item]:
        primary = self.selection.primary_index
        if 0 <= primary < len(self._view_ids):
            return self.store.get(self._view_ids[primary])
        return None

    def selected_ids(self) -> List[str]:
        """Ids a label operation would target right now."""
        return ids_for_indices(self._view_ids, self.selection.targets())

    def multi_selected_ids(self) -> List[str]:
        """Ids of the multi-selection only, in selection order."""
        return ids_for_indices(self._view_ids, self.selection.multi_select)

    def counts(self):
        return self.store.counts()

    # ------------------------------------------------------------------
    # Filtered view bookkeeping
    # ------------------------------------------------------------------

    def _sync_view(self):
        """Recompute the filtered view and carry the selection across it."""
        view = self.filtered_view
        new_ids = [item.id for item in view]
        if new_ids == self._view_ids:
            return
        state = reanchor_selection(self.selection, self._view_ids, new_ids)
        pair = self.compare_pair
        compare_right = (
            reanchor_index(pair.right, self._view_ids, new_ids) if pair is not None else None
        )
        self._view_ids = new_ids
        self.window.set_item_count(len(new_ids))
        self.selection_controller.set_state(state)
        self.view_mode_controller.revalidate(
            len(new_ids), state.primary_index, compare_right
        )
        logger.debug(f"Filtered view recomputed: {len(new_ids)} items")
        self.view_changed.emit(view)

    @contextlib.contextmanager
    def _view_mutation(self) -> Iterator[None]:
        try:
            yield
        finally:
            self._sync_view()

    def refresh_filter(self):
        self._sync_view()

    # ------------------------------------------------------------------
    # Folder lifecycle
    # ------------------------------------------------------------------

    def _reset_to_empty(self):
        self.store.clear()
        self.session_id = None
        self.cache_location = None
        self._view_ids = []
        self.window.set_item_count(0)
        self.selection_controller.reset(-1, 0)
        self.view_mode_controller.exit_to_grid()
        self.view_changed.emit([])

    async def open_folder(self, path: str) -> bool:
        """Load ``path`` through persistence, replacing the current collection.

        On failure the collection is emptied and False is returned; a
        partial collection is never exposed.
        """
        start_time = time.perf_counter()
        logger.info(f"Opening folder: {path}")
        try:
            result = await self.persistence.open_folder(path)
        except Exception as e:
            logger.error(f"Failed to open folder {path}: {e}", exc_info=True)
            self.folder_path = None
            self._reset_to_empty()
            self.load_failed.emit(str(e))
            return False

        self.store.load(result.items, result.existing_labels, result.last_selected_index)
        self.session_id = result.session_id
        self.folder_path = path
        self.cache_location = result.cache_location

        view = self.filtered_view
        self._view_ids = [item.id for item in view]
        self.window.set_item_count(len(view))
        self.view_mode_controller.exit_to_grid()
        state = self.selection_controller.reset(
            result.last_selected_index, len(view)
        )
        if state.has_primary:
            self.window.scroll_to_index(state.primary_index)

        logger.info(
            f"Folder ready: {len(self.store)} items, {len(view)} visible "
            f"({time.perf_counter() - start_time:.2f}s)"
        )
        self.view_changed.emit(view)
        self.collection_loaded.emit(result)
        return True

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _after_cursor_change(self, previous_primary: int):
        primary = self.selection.primary_index
        if primary == previous_primary or primary < 0:
            return
        self.window.scroll_to_index(primary)
        self.view_mode_controller.sync_compare_left(primary)
        self._schedule_save_index(primary)

    def select(
        self,
        index: int,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier,
    ) -> SelectionState:
        previous = self.selection.primary_index
        state = self.selection_controller.select(index, len(self._view_ids), modifiers)
        self._after_cursor_change(previous)
        return state

    def _schedule_save_index(self, index: int):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; selected index not saved")
            return
        task = loop.create_task(self.persistence.save_selected_index(index))
        self._pending_tasks.add(task)
        task.add_done_callback(self._on_save_index_done)

    def _on_save_index_done(self, task: asyncio.Task):
        self._pending_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Failed to save selected index: {exc}")

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    async def toggle_label(self) -> BatchResult:
        """Toggle the label of the current selection (multi-select, else cursor)."""
        return await self.label_controller.toggle_label(self.selected_ids())

    async def toggle_label_by_id(self, item_id: str) -> BatchResult:
        return await self.label_controller.toggle_by_stable_id(item_id)

    async def batch_toggle_label(self, ids: Sequence[str], label: Label) -> BatchResult:
        return await self.label_controller.batch_toggle_label(ids, label)

    async def mark_selected_rejected(self) -> BatchResult:
        """Reject the multi-selection; fails without touching the cursor item if empty."""
        return await self.label_controller.mark_selected_rejected(
            self.multi_selected_ids()
        )

    async def remove_selected_rejected(self) -> BatchResult:
        return await self.label_controller.remove_selected_rejected(
            self.multi_selected_ids()
        )

    async def mark_all_rejected(self) -> BatchResult:
        return await self.label_controller.mark_all_rejected(self.filtered_view)

    async def remove_all_rejected(self) -> BatchResult:
        return await self.label_controller.remove_all_rejected(self.filtered_view)

    def _spawn(self, coro) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; label change dropped")
            coro.close()
            return None
        task = loop.create_task(coro)
        self._pending_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._pending_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Background label task failed", exc_info=task.exception()
            )

    async def wait_for_pending(self):
        """Wait until every scheduled label change and index save has settled."""
        while self._pending_tasks:
            await asyncio.gather(*list(self._pending_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Filter / view mode
    # ------------------------------------------------------------------

    def set_filter_mode(self, mode: FilterMode) -> bool:
        return self.filter_controller.set_filter_mode(mode)

    def enter_view(self, mode: ViewMode) -> bool:
        if not self.view_mode_controller.enter(
            mode, len(self._view_ids), self.selection
        ):
            return False
        pair = self.compare_pair
        if pair is not None and pair.left != self.selection.primary_index:
            # The left pane is the cursor
            previous = self.selection.primary_index
            self.selection_controller.set_state(
                replace(self.selection, primary_index=pair.left)
            )
            self._after_cursor_change(previous)
        return True

    def exit_view(self):
        self.view_mode_controller.exit_to_grid()

    def close_gallery(self) -> bool:
        return self.view_mode_controller.close_gallery()

    # ------------------------------------------------------------------
    # Keyboard
    # ------------------------------------------------------------------

    def set_modal_active(self, active: bool):
        self._modal_active = bool(active)

    def handle_key(
        self, key, modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier
    ) -> bool:
        return self.navigation_controller.handle_key(key, modifiers)

    # NavigationContext
    def is_modal_active(self) -> bool:
        return self._modal_active

    def get_view_mode(self) -> ViewMode:
        return self.view_mode

    def get_grid_columns(self) -> int:
        return self.window.columns

    def get_view_length(self) -> int:
        return len(self._view_ids)

    def get_selection(self) -> SelectionState:
        return self.selection

    def get_compare_pair(self) -> Optional[ComparePair]:
        return self.compare_pair

    def move_primary(self, index: int):
        previous = self.selection.primary_index
        self.selection_controller.move_to(index, len(self._view_ids))
        self._after_cursor_change(previous)

    def move_compare_right(self, index: int):
        pair = self.compare_pair
        if pair is None:
            return
        self.view_mode_controller.move_compare_right(
            index - pair.right, len(self._view_ids)
        )

    def toggle_selection_label(self):
        self._spawn(self.toggle_label())

    def toggle_label_at(self, index: int):
        if 0 <= index < len(self._view_ids):
            self._spawn(self.toggle_label_by_id(self._view_ids[index]))

    def clear_selection(self):
        self.selection_controller.clear()

    def request_open_folder(self):
        self.open_folder_requested.emit()

    def request_export(self):
        self.export_requested.emit()

    # ------------------------------------------------------------------
    # Grid geometry
    # ------------------------------------------------------------------

    def set_viewport_size(self, width: int, height: int):
        self._viewport_width = width
        self._apply_grid_config()
        self.window.set_viewport_height(height)

    def set_base_thumbnail_size(self, size: int):
        self._base_thumbnail_size = clamp_thumbnail_size(size)
        self._apply_grid_config()

    def _apply_grid_config(self):
        self.grid_config = compute_grid_config(
            self._viewport_width, self._base_thumbnail_size
        )
        self.window.set_columns(self.grid_config.columns)
        self.window.set_row_height(self.grid_config.row_height)
        if self.selection.has_primary:
            self.window.scroll_to_index(self.selection.primary_index)

    # ------------------------------------------------------------------
    # Thumbnails
    # ------------------------------------------------------------------

    def on_thumbnail_progress(self, completed: int, total: int):
        self.thumbnail_progress.emit(completed, total)

    def on_thumbnails_complete(self, results: List[ThumbnailResult]):
        updated = self.store.apply_thumbnail_results(results)
        if updated:
            self.thumbnails_updated.emit(updated)

    def _on_thumbnail_error(self, message: str):
        logger.warning(f"Thumbnail batch failed: {message}")

    def create_thumbnail_worker(
        self, generator: ThumbnailGenerator, max_workers: Optional[int] = None
    ) -> Optional[ThumbnailBatchWorker]:
        """Build a batch worker over the open collection with its signals wired here."""
        if self.cache_location is None:
            logger.debug("No folder open; thumbnail worker not created")
            return None
        worker = ThumbnailBatchWorker(
            generator,
            self.cache_location,
            thumbnail_size=self._base_thumbnail_size,
            max_workers=max_workers,
            items=self.store.items,
        )
        worker.progress.connect(self.on_thumbnail_progress)
        worker.batch_complete.connect(self.on_thumbnails_complete)
        worker.error.connect(self._on_thumbnail_error)
        return worker

    def start_thumbnail_generation(
        self, generator: ThumbnailGenerator, max_workers: Optional[int] = None
    ) -> bool:
        """Generate thumbnails for the whole collection on a background QThread."""
        self.stop_thumbnail_generation()
        worker = self.create_thumbnail_worker(generator, max_workers)
        if worker is None:
            return False
        thread = QThread()
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(thread.quit)
        thread.finished.connect(self._on_thumbnail_thread_finished)

        self._thumbnail_thread = thread
        self._thumbnail_worker = worker
        thread.start()
        logger.info(f"Thumbnail thread started for {len(worker.items)} items.")
        return True

    def stop_thumbnail_generation(self):
        thread, worker = self._thumbnail_thread, self._thumbnail_worker
        if thread is None:
            return
        if worker is not None:
            worker.stop()
        if thread.isRunning():
            thread.quit()
            if not thread.wait(5000):
                logger.warning("Thumbnail thread did not quit gracefully. Terminating.")
                thread.terminate()
                thread.wait()
        self._cleanup_thumbnail_refs()

    def _on_thumbnail_thread_finished(self):
        sender = self.sender()
        if sender is not None and sender is not self._thumbnail_thread:
            return  # thread already stopped and replaced
        self._cleanup_thumbnail_refs()

    def _cleanup_thumbnail_refs(self):
        if self._thumbnail_worker is not None:
            self._thumbnail_worker.deleteLater()
            self._thumbnail_worker = None
        if self._thumbnail_thread is not None:
            self._thumbnail_thread.deleteLater()
            self._thumbnail_thread = None
        logger.debug("Thumbnail thread and worker cleaned up.")

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(
        self, dest_path: str, mode: ExportMode = ExportMode.COPY
    ) -> ExportResult:
        """Copy or move every non-rejected file of the open folder to ``dest_path``.

        A moved export reloads the folder, since the moved files are gone.
        """
        if self.folder_path is None:
            logger.warning("Export requested with no folder open")
            return ExportResult(copied=0, total=0, errors=["No folder is open"])
        try:
            result = await self.persistence.export_selection(
                self.folder_path, dest_path, mode
            )
        except Exception as e:
            logger.error(f"Export to {dest_path} failed: {e}", exc_info=True)
            return ExportResult(copied=0, total=0, errors=[str(e)])

        logger.info(
            f"Export ({mode.value}) to {dest_path}: {result.copied}/{result.total} files, "
            f"{result.skipped} rejected skipped, {len(result.errors)} errors"
        )
        if mode is ExportMode.MOVE and result.copied:
            await self.open_folder(self.folder_path)
        return result
