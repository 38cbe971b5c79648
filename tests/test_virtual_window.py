import pytest

from ui.helpers.grid_config import compute_grid_config
from ui.helpers.virtual_window import VirtualWindow


def make_window(n=100, columns=4, row_height=100, viewport=300, overscan=3):
    return VirtualWindow(
        item_count=n,
        columns=columns,
        row_height=row_height,
        viewport_height=viewport,
        overscan_rows=overscan,
    )


def test_row_metrics():
    window = make_window(n=10, columns=4)
    assert window.row_count == 3
    assert window.total_height == 300
    assert make_window(n=0).row_count == 0


def test_last_row_never_addresses_past_end():
    window = make_window(n=10, columns=4)
    assert window.row_items(2) == [8, 9]
    assert window.row_items(3) == []


def test_materialized_range_includes_overscan():
    window = make_window()
    window.set_scroll_offset(1000)  # rows 10..12 visible
    assert window.visible_rows() == (10, 12)
    assert window.materialized_rows() == (7, 15)
    assert window.materialized_indices() == range(28, 64)


def test_materialized_range_clamped_at_edges():
    window = make_window(n=10)
    assert window.materialized_rows() == (0, 2)
    assert list(window.materialized_indices()) == list(range(10))
    assert make_window(n=0).materialized_indices() == range(0)


def test_scroll_to_index_is_minimal():
    window = make_window()
    # row 1 already visible: no scroll
    assert window.scroll_to_index(5) == 0
    # row 10 below viewport: align its bottom edge
    assert window.scroll_to_index(40) == 1100 - 300
    # row 2 above viewport: align its top edge
    assert window.scroll_to_index(8) == 200
    # out of range is ignored
    assert window.scroll_to_index(400) == 200


def test_set_columns_reclamps_scroll():
    window = make_window(n=40, columns=2)  # 20 rows, 2000px
    window.set_scroll_offset(1700)
    window.set_columns(8)  # 5 rows, 500px -> max offset 200
    assert window.row_count == 5
    assert window.scroll_offset == 200


def test_layout_signal_on_metric_change():
    window = make_window()
    changes = []
    window.layout_changed.connect(lambda: changes.append(True))
    window.set_row_height(120)
    window.set_row_height(120)
    window.set_viewport_height(500)
    assert len(changes) == 2


@pytest.mark.parametrize(
    "width,base,columns",
    [
        (1000, 180, 5),
        (100, 180, 1),
        (1000, 50, 9),  # base clamped up to 100
        (2000, 999, 6),  # base clamped down to 300
    ],
)
def test_grid_config_columns(width, base, columns):
    assert compute_grid_config(width, base).columns == columns


def test_grid_config_stretches_thumbnails_to_fill_width():
    config = compute_grid_config(1000, 180)
    # (1000 - 32 - 8 * 4) // 5
    assert config.thumbnail_size == 187
    assert config.row_height == 187 + 12
