"""
Thumbnail Batch Worker
Drives a thumbnail generator over a freshly opened folder in fixed-size
batches, reporting progress and per-item results without blocking the UI.
"""

import logging
from typing import List, Optional, Protocol, Sequence

from PyQt6.QtCore import QObject, pyqtSignal

from core.app_settings import (
    DEFAULT_THUMBNAIL_SIZE,
    THUMBNAIL_BATCH_SIZE,
    THUMBNAIL_RENDER_SCALE,
    calculate_thumbnail_threads,
)
from core.models import Item, ThumbnailResult

logger = logging.getLogger(__name__)


class ThumbnailGenerator(Protocol):
    """Decodes images and writes thumbnails; supplied by the host application."""

    def generate(
        self,
        items: Sequence[Item],
        size: int,
        cache_location: str,
        max_workers: int,
    ) -> List[ThumbnailResult]: ...


class ThumbnailBatchWorker(QObject):
    """Worker for generating thumbnails in a background thread."""

    # Signals
    progress = pyqtSignal(int, int)  # completed, total
    batch_complete = pyqtSignal(list)  # List[ThumbnailResult]
    finished = pyqtSignal()
    error = pyqtSignal(str)

    def __init__(
        self,
        generator: ThumbnailGenerator,
        cache_location: str,
        thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE,
        batch_size: int = THUMBNAIL_BATCH_SIZE,
        max_workers: Optional[int] = None,
        items: Optional[Sequence[Item]] = None,
    ):
        super().__init__()
        self.items: List[Item] = list(items or [])
        self.generator = generator
        self.cache_location = cache_location
        self.render_size = thumbnail_size * THUMBNAIL_RENDER_SCALE
        self.batch_size = max(1, batch_size)
        self.max_workers = max_workers or calculate_thumbnail_threads()
        self._is_running = True

    def stop(self):
        """Signal the worker to stop after the current batch."""
        self._is_running = False
        logger.info("Thumbnail batch worker stop requested")

    def run(self):
        """Entry point for QThread.started: process the items given at construction."""
        self.generate_thumbnails(self.items)

    def generate_thumbnails(self, items: List[Item]):
        """
        Generate thumbnails for ``items`` batch by batch.

        A failing batch is reported through ``error`` and skipped; the
        remaining batches still run.

        Args:
            items: Items of the collection, in scan order
        """
        self._is_running = True
        total = len(items)

        if total == 0:
            logger.info("No images to generate thumbnails for")
            self.finished.emit()
            return

        logger.info(
            f"Starting thumbnail generation for {total} images "
            f"(batch size {self.batch_size}, {self.render_size}px)"
        )
        failed_batches = 0
        for start in range(0, total, self.batch_size):
            if not self._is_running:
                logger.info("Thumbnail generation stopped by user request")
                return
            batch = items[start : start + self.batch_size]
            try:
                results = self.generator.generate(
                    batch, self.render_size, self.cache_location, self.max_workers
                )
            except Exception as e:
                failed_batches += 1
                error_msg = f"Error generating thumbnails for batch at {start}: {e}"
                logger.error(error_msg, exc_info=True)
                self.error.emit(error_msg)
                continue

            self.batch_complete.emit(list(results))
            self.progress.emit(min(start + self.batch_size, total), total)

        if failed_batches:
            logger.warning(
                f"Thumbnail generation finished with {failed_batches} failed batch(es)"
            )
        else:
            logger.info(f"Thumbnail generation complete for {total} images")
        self.finished.emit()
