from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import List, Protocol

from core.collection_store import CollectionStore
from core.models import FilterMode, Item

logger = logging.getLogger(__name__)


class FilterContext(Protocol):
    def refresh_filter(self) -> None: ...  # recompute view + re-anchor selection


@dataclass
class FilterState:
    filter_mode: FilterMode = FilterMode.ALL


class FilterController:
    """Tracks the active label filter and derives the filtered view.

    Responsibilities:
    - Track the current filter choice
    - Ask the context to refresh when it changes (no-op when unchanged)
    - Derive the filtered view from a CollectionStore on demand
    """

    def __init__(self, ctx: FilterContext, initial_mode: FilterMode = FilterMode.ALL):
        self.ctx = ctx
        self.state = FilterState(filter_mode=initial_mode)

    # --- Public API ---
    def set_filter_mode(self, mode: FilterMode) -> bool:
        if mode == self.state.filter_mode:
            return False
        logger.debug(f"Filter mode: {self.state.filter_mode.value} -> {mode.value}")
        self.state.filter_mode = mode
        self.ctx.refresh_filter()
        return True

    def clear_filters(self) -> bool:
        return self.set_filter_mode(FilterMode.ALL)

    def get_filter_mode(self) -> FilterMode:
        return self.state.filter_mode

    def matches(self, item: Item) -> bool:
        return self.state.filter_mode.matches(item.label)

    def view(self, store: CollectionStore) -> List[Item]:
        return store.filtered_view(self.state.filter_mode)
