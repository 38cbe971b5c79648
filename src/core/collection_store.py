import logging
from typing import Dict, Iterable, List, Mapping, Optional

from core.models import FilterMode, Item, Label, ThumbnailResult

logger = logging.getLogger(__name__)


class CollectionStore:
    """
    Owns the ordered list of items of the open folder and their labels.

    Items are kept in scan order and addressed by position; an id -> position
    map gives O(1) lookups for label and thumbnail updates. The filtered view
    is derived on demand and never stored here.
    """

    def __init__(self):
        self._items: List[Item] = []
        self._positions: Dict[str, int] = {}
        # Bumped on every load/clear so late async results can detect a reload
        self.generation = 0

    # --- Lifecycle ---
    def load(
        self,
        items: Iterable[Item],
        existing_labels: Optional[Mapping[str, Label]] = None,
        last_selected_index: int = 0,
    ) -> int:
        """Replace the collection wholesale.

        Returns the starting cursor position: ``last_selected_index`` clamped
        into range, or -1 for an empty collection.
        """
        new_items: List[Item] = []
        positions: Dict[str, int] = {}
        for item in items:
            if item.id in positions:
                logger.warning(f"Duplicate item id ignored during load: {item.id}")
                continue
            positions[item.id] = len(new_items)
            new_items.append(item)

        applied = 0
        for item_id, label in (existing_labels or {}).items():
            pos = positions.get(item_id)
            if pos is None:
                continue
            new_items[pos].label = label
            applied += 1

        self._items = new_items
        self._positions = positions
        self.generation += 1
        logger.info(
            f"Collection loaded: {len(new_items)} items, {applied} stored labels applied"
        )

        if not new_items:
            return -1
        return max(0, min(last_selected_index, len(new_items) - 1))

    def clear(self):
        count = len(self._items)
        self._items = []
        self._positions = {}
        self.generation += 1
        logger.debug(f"Collection cleared ({count} items)")

    # --- Access ---
    @property
    def items(self) -> List[Item]:
        return list(self._items)

    def ids(self) -> List[str]:
        return [item.id for item in self._items]

    def get(self, item_id: str) -> Optional[Item]:
        pos = self._positions.get(item_id)
        return self._items[pos] if pos is not None else None

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._positions

    def __len__(self) -> int:
        return len(self._items)

    def filtered_view(self, predicate: FilterMode = FilterMode.ALL) -> List[Item]:
        """Ordered subsequence of items whose label matches ``predicate``."""
        if predicate is FilterMode.ALL:
            return list(self._items)
        return [item for item in self._items if predicate.matches(item.label)]

    def counts(self) -> Dict[str, int]:
        rejected = sum(1 for item in self._items if item.label is Label.REJECTED)
        return {
            "total": len(self._items),
            "adopted": len(self._items) - rejected,
            "rejected": rejected,
        }

    # --- Mutation ---
    def set_label(self, item_id: str, label: Label) -> Optional[Label]:
        """Set one item's label and return the previous one (None if unknown)."""
        item = self.get(item_id)
        if item is None:
            logger.debug(f"set_label ignored for unknown id: {item_id}")
            return None
        previous = item.label
        item.label = label
        return previous

    def apply_thumbnail_results(self, results: Iterable[ThumbnailResult]) -> int:
        """Merge thumbnail completion events by id. Unknown ids are ignored."""
        updated = 0
        for result in results:
            item = self.get(result.id)
            if item is None:
                logger.debug(f"Thumbnail result for unknown id ignored: {result.id}")
                continue
            if not result.success:
                logger.warning(
                    f"Thumbnail generation failed for {result.id}: {result.error}"
                )
                continue
            item.thumbnail_ready = True
            item.thumbnail_ref = result.thumbnail_ref
            updated += 1
        return updated
