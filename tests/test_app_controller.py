"""
End-to-end tests for the application facade: folder load, selection,
filtering, keyboard routing and label reconciliation working together.
"""

import asyncio
import time
from unittest.mock import Mock

from PyQt6.QtCore import QCoreApplication, Qt

from core.errors import FolderNotFoundError
from core.models import ExportMode, FilterMode, Item, Label, ThumbnailResult, ViewMode
from ui.app_controller import AppController

from conftest import FakePersistence, make_items

K = Qt.Key
SHIFT = Qt.KeyboardModifier.ShiftModifier
CTRL = Qt.KeyboardModifier.ControlModifier


def _loaded(count=5, **kwargs):
    persistence = FakePersistence(items=make_items(count), **kwargs)
    controller = AppController(persistence)
    assert asyncio.run(controller.open_folder("/photos")) is True
    return controller, persistence


def test_open_folder_resets_selection_to_saved_index():
    controller, _ = _loaded(5, last_selected_index=3)
    assert controller.selection.primary_index == 3
    assert controller.selection.multi_select == ()
    assert controller.view_mode is ViewMode.GRID
    assert len(controller.filtered_view) == 5
    assert controller.window.item_count == 5


def test_open_folder_applies_stored_labels():
    controller, _ = _loaded(3, labels={"img_001.jpg": Label.REJECTED})
    assert controller.store.get("img_001.jpg").label is Label.REJECTED
    assert controller.counts() == {"total": 3, "adopted": 2, "rejected": 1}


def test_failed_open_exposes_empty_collection():
    controller, _ = _loaded(4)
    controller.persistence.open_error = FolderNotFoundError("/gone")
    failures = []
    controller.load_failed.connect(failures.append)

    assert asyncio.run(controller.open_folder("/gone")) is False
    assert controller.filtered_view == []
    assert controller.selection.primary_index == -1
    assert controller.view_mode is ViewMode.GRID
    assert len(failures) == 1


def test_toggle_scenario_five_items():
    controller, persistence = _loaded(5)

    async def scenario():
        controller.select(2)
        first = await controller.toggle_label()
        after_first = controller.store.get("img_002.jpg").label
        second = await controller.toggle_label()
        return first, after_first, second

    first, after_first, second = asyncio.run(scenario())
    assert first.success and second.success
    assert after_first is Label.REJECTED
    assert controller.store.get("img_002.jpg").label is Label.ADOPTED
    assert persistence.set_label_calls == [("img_002.jpg", "rejected"), ("img_002.jpg", None)]


def test_zero_match_filter_makes_select_a_noop():
    controller, _ = _loaded(5)
    assert controller.set_filter_mode(FilterMode.REJECTED_ONLY) is True
    assert controller.filtered_view == []
    before = controller.selection
    controller.select(0)
    assert controller.selection == before
    assert controller.selection.primary_index == -1


def test_rejecting_under_adopted_filter_reanchors_cursor():
    controller, _ = _loaded(5)
    controller.set_filter_mode(FilterMode.ADOPTED_ONLY)

    async def scenario():
        controller.select(4)
        await controller.toggle_label()  # img_004 leaves the view

    asyncio.run(scenario())
    assert [i.id for i in controller.filtered_view] == [
        "img_000.jpg",
        "img_001.jpg",
        "img_002.jpg",
        "img_003.jpg",
    ]
    assert controller.selection.primary_index == 3


def test_filter_change_keeps_cursor_on_same_item():
    controller, _ = _loaded(5, labels={"img_001.jpg": Label.REJECTED})
    controller.select(3)
    controller.set_filter_mode(FilterMode.ADOPTED_ONLY)
    assert controller.current_item.id == "img_003.jpg"
    assert controller.selection.primary_index == 2


def test_failed_write_rolls_back_under_filter():
    controller, _ = _loaded(3, fail_ids={"img_001.jpg"})
    controller.set_filter_mode(FilterMode.ADOPTED_ONLY)

    async def scenario():
        controller.select(1)
        return await controller.toggle_label()

    result = asyncio.run(scenario())
    assert result.failed_ids == ["img_001.jpg"]
    # item came back after rollback
    assert len(controller.filtered_view) == 3


def test_keyboard_navigation_in_grid():
    controller, _ = _loaded(20)
    controller.window.set_columns(4)

    async def scenario():
        controller.select(18)
        assert controller.handle_key(K.Key_Down) is True
        assert controller.selection.primary_index == 19
        controller.select(5)
        controller.handle_key(K.Key_Up)
        assert controller.selection.primary_index == 1
        controller.handle_key(K.Key_End)
        assert controller.selection.primary_index == 19
        controller.handle_key(K.Key_Home)
        assert controller.selection.primary_index == 0
        await controller.wait_for_pending()

    asyncio.run(scenario())


def test_key_toggle_is_scheduled_and_awaited():
    controller, persistence = _loaded(3)

    async def scenario():
        controller.select(1)
        assert controller.handle_key(K.Key_1) is True
        await controller.wait_for_pending()

    asyncio.run(scenario())
    assert controller.store.get("img_001.jpg").label is Label.REJECTED
    assert ("img_001.jpg", "rejected") in persistence.set_label_calls


def test_modal_blocks_keys():
    controller, _ = _loaded(3)
    controller.set_modal_active(True)
    assert controller.handle_key(K.Key_Right) is False
    controller.set_modal_active(False)
    assert controller.handle_key(K.Key_Right) is True


def test_selected_index_saved_fire_and_forget():
    controller, persistence = _loaded(5)

    async def scenario():
        controller.select(3)
        controller.handle_key(K.Key_Right)
        await controller.wait_for_pending()

    asyncio.run(scenario())
    assert persistence.saved_indices == [3, 4]


def test_failed_index_save_is_not_surfaced():
    class FlakyPersistence(FakePersistence):
        async def save_selected_index(self, index):
            raise OSError("read-only")

    controller = AppController(FlakyPersistence(items=make_items(3)))

    async def scenario():
        await controller.open_folder("/photos")
        controller.select(2)
        await controller.wait_for_pending()

    asyncio.run(scenario())
    assert controller.selection.primary_index == 2


def test_shift_click_range_and_batch_reject():
    controller, _ = _loaded(10)

    async def scenario():
        controller.select(3)
        controller.select(7, SHIFT)
        return await controller.mark_selected_rejected()

    result = asyncio.run(scenario())
    assert controller.selection.multi_select == (3, 4, 5, 6, 7)
    assert result.success_count == 5
    assert controller.counts()["rejected"] == 5


def test_enter_views_respect_preconditions():
    controller, _ = _loaded(1)
    assert controller.enter_view(ViewMode.COMPARE) is False
    assert controller.enter_view(ViewMode.DETAIL) is True
    assert controller.handle_key(K.Key_Escape) is True
    assert controller.view_mode is ViewMode.GRID


def test_compare_mode_pairs_and_toggles_by_pane():
    controller, _ = _loaded(5)

    async def scenario():
        controller.select(1)
        controller.select(3, CTRL)
        assert controller.enter_view(ViewMode.COMPARE) is True
        assert (controller.compare_pair.left, controller.compare_pair.right) == (1, 3)
        assert controller.selection.primary_index == 1
        controller.handle_key(K.Key_2)
        await controller.wait_for_pending()
        controller.handle_key(K.Key_Right, SHIFT)
        assert controller.compare_pair.right == 4
        controller.handle_key(K.Key_Right)
        assert controller.compare_pair.left == 2

    asyncio.run(scenario())
    assert controller.store.get("img_003.jpg").label is Label.REJECTED
    assert controller.store.get("img_001.jpg").label is Label.ADOPTED


def test_gallery_escape_clears_selection_but_stays_open():
    controller, _ = _loaded(5)
    controller.select(1)
    controller.select(2, CTRL)
    assert controller.enter_view(ViewMode.GALLERY)
    controller.handle_key(K.Key_Escape)
    assert controller.selection.multi_select == ()
    assert controller.view_mode is ViewMode.GALLERY
    controller.handle_key(K.Key_Escape)
    assert controller.view_mode is ViewMode.GALLERY
    assert controller.close_gallery() is True
    assert controller.view_mode is ViewMode.GRID


def test_view_falls_back_to_grid_when_filter_empties_it():
    controller, _ = _loaded(2)
    controller.select(0)
    assert controller.enter_view(ViewMode.COMPARE)
    controller.set_filter_mode(FilterMode.REJECTED_ONLY)
    assert controller.view_mode is ViewMode.GRID


def test_global_shortcuts_emit_requests():
    controller, _ = _loaded(2)
    opened, exported = [], []
    controller.open_folder_requested.connect(lambda: opened.append(True))
    controller.export_requested.connect(lambda: exported.append(True))
    controller.handle_key(K.Key_O, CTRL)
    controller.handle_key(K.Key_E, CTRL)
    assert opened == [True]
    assert exported == [True]


def test_thumbnail_events_merge_by_id():
    controller, _ = _loaded(3)
    progress, updated = [], []
    controller.thumbnail_progress.connect(lambda c, t: progress.append((c, t)))
    controller.thumbnails_updated.connect(updated.append)

    controller.on_thumbnail_progress(2, 3)
    controller.on_thumbnails_complete(
        [
            ThumbnailResult(id="img_002.jpg", success=True, thumbnail_ref="/t/2.jpg"),
            ThumbnailResult(id="stranger.jpg", success=True, thumbnail_ref="/t/x.jpg"),
        ]
    )

    assert progress == [(2, 3)]
    assert updated == [1]
    assert controller.store.get("img_002.jpg").thumbnail_ready


def test_viewport_size_drives_grid_columns():
    controller, _ = _loaded(50)
    controller.set_viewport_size(1000, 600)
    assert controller.window.columns == 5
    assert controller.get_grid_columns() == 5
    assert controller.window.row_height == controller.grid_config.row_height


def test_export_delegates_to_persistence():
    controller, persistence = _loaded(4, labels={"img_000.jpg": Label.REJECTED})
    result = asyncio.run(controller.export("/out", ExportMode.COPY))
    assert persistence.export_calls == [("/photos", "/out", ExportMode.COPY)]
    assert result.copied == 3
    assert result.skipped == 1


def test_export_without_folder_reports_error():
    controller = AppController(FakePersistence())
    result = asyncio.run(controller.export("/out"))
    assert result.copied == 0
    assert result.errors


def test_mark_all_rejected_uses_filtered_view():
    controller, _ = _loaded(4, labels={"img_000.jpg": Label.REJECTED})
    controller.set_filter_mode(FilterMode.ADOPTED_ONLY)
    result = asyncio.run(controller.mark_all_rejected())
    assert result.success_count == 3
    assert controller.filtered_view == []
    assert controller.selection.primary_index == -1


def test_toggle_label_by_id_ignores_selection():
    controller, _ = _loaded(3)
    controller.select(0)
    result = asyncio.run(controller.toggle_label_by_id("img_002.jpg"))
    assert result.success
    assert controller.store.get("img_002.jpg").label is Label.REJECTED
    assert controller.store.get("img_000.jpg").label is Label.ADOPTED


def test_batch_toggle_label_explicit_label():
    items = [Item(id=n, path=f"/p/{n}") for n in ("a.jpg", "b.jpg", "c.jpg")]
    persistence = FakePersistence(items=items, fail_ids={"b.jpg"})
    controller = AppController(persistence)
    asyncio.run(controller.open_folder("/p"))

    result = asyncio.run(
        controller.batch_toggle_label(["a.jpg", "b.jpg", "c.jpg"], Label.REJECTED)
    )

    assert (result.success, result.success_count, result.failed_count) == (False, 2, 1)
    assert result.failed_ids == ["b.jpg"]
    assert controller.store.get("b.jpg").label is Label.ADOPTED


def test_toggle_direction_comes_from_first_selected_item():
    controller, _ = _loaded(6, labels={"img_005.jpg": Label.REJECTED})

    async def scenario():
        controller.select(5, CTRL)
        controller.select(2, CTRL)
        return await controller.toggle_label()

    result = asyncio.run(scenario())
    assert result.success_count == 2
    assert controller.store.get("img_005.jpg").label is Label.ADOPTED
    assert controller.store.get("img_002.jpg").label is Label.ADOPTED


def test_mark_selected_requires_multi_selection():
    controller, persistence = _loaded(3)
    assert controller.selection.primary_index == 0
    assert controller.selection.multi_select == ()

    result = asyncio.run(controller.mark_selected_rejected())

    assert result.success is False
    assert controller.store.get("img_000.jpg").label is Label.ADOPTED
    assert persistence.set_label_calls == []


def test_compare_right_pane_follows_its_item():
    controller, _ = _loaded(6)
    controller.set_filter_mode(FilterMode.ADOPTED_ONLY)

    async def scenario():
        controller.select(3)
        assert controller.enter_view(ViewMode.COMPARE)
        for _ in range(3):
            controller.handle_key(K.Key_Left, SHIFT)
        assert (controller.compare_pair.left, controller.compare_pair.right) == (3, 1)
        await controller.batch_toggle_label(["img_000.jpg"], Label.REJECTED)

    asyncio.run(scenario())
    view = controller.filtered_view
    pair = controller.compare_pair
    assert view[pair.left].id == "img_003.jpg"
    assert view[pair.right].id == "img_001.jpg"


def test_compare_right_pane_clamped_when_its_item_leaves():
    controller, _ = _loaded(4)
    controller.set_filter_mode(FilterMode.ADOPTED_ONLY)

    async def scenario():
        controller.select(2)
        assert controller.enter_view(ViewMode.COMPARE)  # pair (2, 3)
        await controller.batch_toggle_label(["img_003.jpg"], Label.REJECTED)

    asyncio.run(scenario())
    assert controller.view_mode is ViewMode.COMPARE
    assert (controller.compare_pair.left, controller.compare_pair.right) == (2, 2)


def _thumbnails(batch, size, cache_location, max_workers):
    return [
        ThumbnailResult(id=i.id, success=True, thumbnail_ref=f"{cache_location}/{i.id}")
        for i in batch
    ]


def test_thumbnail_worker_requires_open_folder():
    controller = AppController(FakePersistence())
    assert controller.create_thumbnail_worker(Mock()) is None
    assert controller.start_thumbnail_generation(Mock()) is False


def test_thumbnail_worker_is_wired_to_controller():
    controller, _ = _loaded(3)
    generator = Mock()
    generator.generate.side_effect = _thumbnails
    progress, updated = [], []
    controller.thumbnail_progress.connect(lambda c, t: progress.append((c, t)))
    controller.thumbnails_updated.connect(updated.append)

    worker = controller.create_thumbnail_worker(generator, max_workers=1)
    assert [item.id for item in worker.items] == ["img_000.jpg", "img_001.jpg", "img_002.jpg"]
    worker.run()

    assert progress == [(3, 3)]
    assert updated == [3]
    assert all(item.thumbnail_ready for item in controller.store.items())


def test_thumbnail_generation_runs_on_background_thread():
    controller, _ = _loaded(3)
    generator = Mock()
    generator.generate.side_effect = _thumbnails
    progress = []
    controller.thumbnail_progress.connect(lambda c, t: progress.append((c, t)))

    assert controller.start_thumbnail_generation(generator, max_workers=1) is True
    deadline = time.monotonic() + 5
    while controller._thumbnail_thread is not None and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)

    assert controller._thumbnail_thread is None
    assert progress == [(3, 3)]
    assert all(item.thumbnail_ready for item in controller.store.items())
