import os
import shutil
import logging
from typing import Iterable, Tuple

from core.models import ExportMode, ExportResult

logger = logging.getLogger(__name__)


class FileExporter:
    """Copies or moves culled files into a destination folder."""

    @staticmethod
    def _unique_destination(destination_folder: str, filename: str) -> str:
        destination_path = os.path.join(destination_folder, filename)
        if os.path.exists(destination_path):
            # Basic conflict resolution: append a number if file exists
            base, ext = os.path.splitext(filename)
            counter = 1
            while os.path.exists(destination_path):
                destination_path = os.path.join(
                    destination_folder, f"{base}_{counter}{ext}"
                )
                counter += 1
            logger.debug(
                f"Destination file exists. Renaming to: {os.path.basename(destination_path)}."
            )
        return destination_path

    @staticmethod
    def export_file(
        source_path: str, destination_folder: str, mode: ExportMode
    ) -> Tuple[bool, str]:
        """
        Copies or moves one file into ``destination_folder``.

        Returns:
            tuple: (True, new_path) on success, or (False, error message).
        """
        if not os.path.isfile(source_path):
            return False, f"Source is not a valid file: {source_path}"

        filename = os.path.basename(source_path)
        destination_path = FileExporter._unique_destination(
            destination_folder, filename
        )
        try:
            if mode is ExportMode.MOVE:
                shutil.move(source_path, destination_path)
            else:
                shutil.copy2(source_path, destination_path)
            logger.debug(
                f"{mode.value.capitalize()} '{filename}' -> '{os.path.basename(destination_path)}'."
            )
            return True, destination_path
        except Exception as e:
            error_msg = f"Error exporting file '{filename}': {e}"
            logger.error(error_msg, exc_info=True)
            return False, error_msg

    @staticmethod
    def export_files(
        source_paths: Iterable[str],
        destination_folder: str,
        mode: ExportMode = ExportMode.COPY,
        total: int = 0,
        skipped: int = 0,
    ) -> ExportResult:
        """Export every path, collecting per-file errors instead of raising.

        ``total`` and ``skipped`` are reported as-is so callers can include
        files they filtered out (rejected items) in the summary.
        """
        paths = list(source_paths)
        errors = []
        copied = 0
        try:
            os.makedirs(destination_folder, exist_ok=True)
        except OSError as e:
            msg = f"Destination folder could not be created: {destination_folder}. Error: {e}"
            logger.error(msg)
            return ExportResult(
                copied=0, total=total or len(paths), skipped=skipped, errors=[msg]
            )

        for path in paths:
            ok, detail = FileExporter.export_file(path, destination_folder, mode)
            if ok:
                copied += 1
            else:
                errors.append(detail)

        logger.info(
            f"Export ({mode.value}) to {destination_folder} complete: "
            f"{copied} exported, {len(errors)} failed, {skipped} skipped"
        )
        return ExportResult(
            copied=copied, total=total or len(paths), skipped=skipped, errors=errors
        )
