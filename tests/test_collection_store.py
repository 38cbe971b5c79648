from core.collection_store import CollectionStore
from core.models import FilterMode, Item, Label, ThumbnailResult

from conftest import make_items


def test_load_applies_existing_labels_by_id():
    store = CollectionStore()
    start = store.load(
        make_items(4),
        {"img_001.jpg": Label.REJECTED, "unknown.jpg": Label.REJECTED},
        last_selected_index=2,
    )
    assert start == 2
    assert store.get("img_001.jpg").label is Label.REJECTED
    assert store.get("img_000.jpg").label is Label.ADOPTED
    assert "unknown.jpg" not in store


def test_load_replaces_instead_of_merging():
    store = CollectionStore()
    store.load(make_items(3, prefix="old"))
    generation = store.generation
    store.load(make_items(2, prefix="new"))
    assert store.ids() == ["new_000.jpg", "new_001.jpg"]
    assert store.generation == generation + 1


def test_load_clamps_start_index():
    store = CollectionStore()
    assert store.load(make_items(3), last_selected_index=10) == 2
    assert store.load([], last_selected_index=3) == -1


def test_duplicate_ids_are_skipped():
    store = CollectionStore()
    store.load([Item(id="a.jpg", path="/x/a.jpg"), Item(id="a.jpg", path="/y/a.jpg")])
    assert len(store) == 1
    assert store.get("a.jpg").path == "/x/a.jpg"


def test_filtered_view_preserves_order():
    store = CollectionStore()
    store.load(
        make_items(6),
        {"img_001.jpg": Label.REJECTED, "img_004.jpg": Label.REJECTED},
    )
    assert [i.id for i in store.filtered_view(FilterMode.REJECTED_ONLY)] == [
        "img_001.jpg",
        "img_004.jpg",
    ]
    assert [i.id for i in store.filtered_view(FilterMode.ADOPTED_ONLY)] == [
        "img_000.jpg",
        "img_002.jpg",
        "img_003.jpg",
        "img_005.jpg",
    ]
    assert len(store.filtered_view(FilterMode.ALL)) == 6
    assert store.counts() == {"total": 6, "adopted": 4, "rejected": 2}


def test_set_label_returns_previous_value():
    store = CollectionStore()
    store.load(make_items(2))
    assert store.set_label("img_000.jpg", Label.REJECTED) is Label.ADOPTED
    assert store.set_label("img_000.jpg", Label.ADOPTED) is Label.REJECTED
    assert store.set_label("missing.jpg", Label.REJECTED) is None


def test_thumbnail_results_merge_by_id():
    store = CollectionStore()
    store.load(make_items(3))
    updated = store.apply_thumbnail_results(
        [
            ThumbnailResult(id="img_002.jpg", success=True, thumbnail_ref="/t/2.jpg"),
            ThumbnailResult(id="img_000.jpg", success=False, error="corrupt"),
            ThumbnailResult(id="ghost.jpg", success=True, thumbnail_ref="/t/g.jpg"),
        ]
    )
    assert updated == 1
    assert store.get("img_002.jpg").thumbnail_ready is True
    assert store.get("img_002.jpg").thumbnail_ref == "/t/2.jpg"
    assert store.get("img_000.jpg").thumbnail_ready is False


def test_clear_empties_collection():
    store = CollectionStore()
    store.load(make_items(3))
    store.clear()
    assert len(store) == 0
    assert store.filtered_view() == []
