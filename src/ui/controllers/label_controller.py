"""
Label Controller
Applies rejected/adopted labels optimistically and reconciles them against
asynchronous persistence results.
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
from typing import Callable, ContextManager, Dict, Iterable, List, Optional, Sequence

from PyQt6.QtCore import QObject, pyqtSignal

from core.collection_store import CollectionStore
from core.models import BatchResult, Item, Label
from core.persistence import PersistenceBackend

logger = logging.getLogger(__name__)


class LabelController(QObject):
    """Optimistic label writes with per-item rollback.

    Every batch:
      1. snapshots the current label of each target,
      2. applies the new label in memory immediately,
      3. fires one ``set_label`` call per target concurrently and waits for
         all of them (a failure never cancels the others),
      4. restores the snapshot value for each target whose call failed.

    Overlapping batches on the same id are not coordinated; whichever
    settles last wins.
    """

    labels_changed = pyqtSignal(list)  # ids whose in-memory label changed
    batch_finished = pyqtSignal(object)  # BatchResult

    def __init__(
        self,
        store: CollectionStore,
        persistence: PersistenceBackend,
        mutation_scope: Optional[Callable[[], ContextManager]] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.store = store
        self.persistence = persistence
        # Wraps every in-memory label mutation; the app controller uses it to
        # re-anchor the selection when the filtered view changes underneath it.
        self._mutation_scope = mutation_scope or contextlib.nullcontext

    async def _persist(self, item_id: str, label: Label) -> None:
        await self.persistence.set_label(item_id, label.to_persisted())

    def _write_labels(self, labels: Dict[str, Label]) -> List[str]:
        changed: List[str] = []
        with self._mutation_scope():
            for item_id, label in labels.items():
                if self.store.set_label(item_id, label) is not None:
                    changed.append(item_id)
        if changed:
            self.labels_changed.emit(changed)
        return changed

    async def apply_label(
        self, target_ids: Iterable[str], new_label: Label
    ) -> BatchResult:
        """Set ``new_label`` on every target and reconcile with persistence."""
        ids = list(dict.fromkeys(target_ids))
        if not ids:
            return BatchResult.empty(success=True)

        known = [item_id for item_id in ids if item_id in self.store]
        for item_id in ids:
            if item_id not in self.store:
                logger.warning(f"Label target not in collection: {item_id}")

        snapshot: Dict[str, Label] = {
            item_id: self.store.get(item_id).label for item_id in known
        }
        generation = self.store.generation

        self._write_labels({item_id: new_label for item_id in known})
        logger.debug(
            f"Optimistically set {new_label.value} on {len(known)} item(s); persisting"
        )

        outcomes = await asyncio.gather(
            *(self._persist(item_id, new_label) for item_id in known),
            return_exceptions=True,
        )

        failed_known = set()
        for item_id, outcome in zip(known, outcomes):
            if isinstance(outcome, BaseException):
                failed_known.add(item_id)
                logger.error(f"Failed to set label for {item_id}: {outcome}")

        if failed_known:
            if generation == self.store.generation:
                self._write_labels(
                    {item_id: snapshot[item_id] for item_id in known if item_id in failed_known}
                )
            else:
                logger.info("Collection reloaded during label batch; rollback skipped")

        failed_ids = [
            item_id for item_id in ids if item_id not in snapshot or item_id in failed_known
        ]
        result = BatchResult(
            success=not failed_ids,
            success_count=len(known) - len(failed_known),
            failed_count=len(failed_ids),
            failed_ids=failed_ids,
        )
        if failed_ids:
            logger.warning(
                f"Label batch finished with failures: {result.success_count} ok, "
                f"{result.failed_count} failed"
            )
        else:
            logger.info(f"Label batch finished: {result.success_count} item(s) set to {new_label.value}")
        self.batch_finished.emit(result)
        return result

    async def toggle_label(self, target_ids: Sequence[str]) -> BatchResult:
        """Flip the label of the whole batch based on its first item.

        The first target decides: rejected -> adopted, adopted -> rejected.
        All targets receive that same label, so a mixed selection is not
        inverted item by item.
        """
        ids = list(target_ids)
        first = self.store.get(ids[0]) if ids else None
        if first is None:
            return BatchResult.empty(success=False)
        return await self.apply_label(ids, first.label.inverted())

    async def toggle_by_stable_id(self, item_id: str) -> BatchResult:
        """Invert one item's own label, independent of the selection."""
        item = self.store.get(item_id)
        if item is None:
            return BatchResult(success=False, failed_ids=[item_id])
        return await self.apply_label([item_id], item.label.inverted())

    async def batch_toggle_label(
        self, target_ids: Sequence[str], label: Label
    ) -> BatchResult:
        """Apply an explicit label to a batch (gallery batch actions)."""
        return await self.apply_label(target_ids, label)

    async def mark_selected_rejected(self, target_ids: Sequence[str]) -> BatchResult:
        if not target_ids:
            return BatchResult.empty(success=False)
        return await self.apply_label(target_ids, Label.REJECTED)

    async def remove_selected_rejected(self, target_ids: Sequence[str]) -> BatchResult:
        if not target_ids:
            return BatchResult.empty(success=False)
        return await self.apply_label(target_ids, Label.ADOPTED)

    async def mark_all_rejected(self, view: Sequence[Item]) -> BatchResult:
        """Reject every item currently in the filtered view."""
        if not view:
            return BatchResult.empty(success=False)
        return await self.apply_label([item.id for item in view], Label.REJECTED)

    async def remove_all_rejected(self, view: Sequence[Item]) -> BatchResult:
        """Adopt every item currently in the filtered view."""
        if not view:
            return BatchResult.empty(success=False)
        return await self.apply_label([item.id for item in view], Label.ADOPTED)
