import sys
import os
import time
from typing import List, Optional

# Ensure the 'src' directory is on sys.path when executing as a script
SRC_DIR = os.path.dirname(__file__)
if SRC_DIR and SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

import asyncio  # noqa: E402
import logging  # noqa: E402
import argparse  # noqa: E402
import traceback  # noqa: E402  # For global exception handler

from core.app_settings import (  # noqa: E402
    add_recent_folder,
    get_base_thumbnail_size,
    get_export_mode,
    get_filter_mode,
)
from core.models import ExportMode, FilterMode  # noqa: E402

LOG_DIR = os.path.join(os.path.expanduser("~"), ".glimpse_logs")
LOG_FORMAT = (
    "%(asctime)s - %(levelname)-8s - [%(name)s] - [%(filename)s:%(lineno)d] - %(message)s"
)


# --- Global Exception Handler ---
def global_exception_handler(exc_type, exc_value, exc_traceback):
    """Logs any unhandled exception before the interpreter exits."""
    if issubclass(exc_type, KeyboardInterrupt):
        logging.info("Application terminated by user.")
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    error_message_details = "".join(
        traceback.format_exception(exc_type, exc_value, exc_traceback)
    )
    logging.critical(f"Unhandled exception occurred:\n{error_message_details}")


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger: console handler plus optional file log."""
    root_logger = logging.getLogger()

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    console_level = logging.DEBUG if verbose else logging.INFO

    if sys.stderr is not None:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(console_level)
        root_logger.addHandler(console_handler)

    enable_file_logging_env = os.environ.get("GLIMPSE_ENABLE_FILE_LOGGING", "false")
    if enable_file_logging_env.lower() == "true":
        try:
            log_file_path = os.path.join(LOG_DIR, "glimpse_app.log")
            os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)
            root_logger.setLevel(logging.DEBUG)
            logging.info(f"File logging enabled: {log_file_path}")
        except Exception as e_file_log:
            logging.error(
                f"Failed to initialize file logging: {e_file_log}", exc_info=True
            )
            root_logger.setLevel(console_level)
    else:
        root_logger.setLevel(console_level)
        logging.debug(
            "File logging disabled. To enable, set GLIMPSE_ENABLE_FILE_LOGGING=true."
        )

    # diskcache logs every SQL retry at DEBUG
    logging.getLogger("diskcache").setLevel(logging.INFO)

    sys.excepthook = global_exception_handler
    logging.debug("Global exception hook set.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glimpse", description="Glimpse - fast photo culling"
    )
    parser.add_argument("--folder", type=str, help="Folder of photos to open")
    parser.add_argument(
        "--filter",
        choices=[mode.value for mode in FilterMode],
        default=None,
        help="Label filter for the listing (default: last used)",
    )
    parser.add_argument(
        "--export",
        metavar="DEST",
        type=str,
        help="Export every non-rejected photo to DEST",
    )
    parser.add_argument(
        "--move",
        action="store_true",
        help="Move instead of copy when exporting",
    )
    parser.add_argument(
        "--clear-labels",
        action="store_true",
        help="Remove every stored label before starting",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def format_summary(controller) -> str:
    counts = controller.counts()
    lines = [
        f"Folder:   {controller.folder_path}",
        f"Session:  {controller.session_id}",
        f"Photos:   {counts['total']} ({counts['adopted']} adopted, "
        f"{counts['rejected']} rejected)",
        f"Filter:   {controller.filter_mode.value} -> "
        f"{len(controller.filtered_view)} shown",
    ]
    current = controller.current_item
    if current is not None:
        lines.append(
            f"Cursor:   {controller.selection.primary_index} ({current.id}, "
            f"{current.label.value})"
        )
    return "\n".join(lines)


async def run(args: argparse.Namespace) -> int:
    from core.session_store import SessionStore
    from ui.app_controller import AppController

    store = SessionStore()
    try:
        if args.clear_labels:
            removed = store.clear_all_labels()
            logging.info(f"Cleared {removed} stored label(s)")

        if not args.folder:
            logging.info("No folder given; nothing to do.")
            return 0

        filter_mode = (
            FilterMode.from_string(args.filter) if args.filter else get_filter_mode()
        )
        controller = AppController(
            store,
            filter_mode=filter_mode,
            base_thumbnail_size=get_base_thumbnail_size(),
        )
        if not await controller.open_folder(args.folder):
            return 1
        add_recent_folder(os.path.abspath(args.folder))
        print(format_summary(controller))

        exit_code = 0
        if args.export:
            mode = ExportMode.MOVE if args.move else get_export_mode()
            result = await controller.export(args.export, mode)
            print(
                f"Exported {result.copied}/{result.total} file(s) to {args.export} "
                f"({result.skipped} rejected skipped)"
            )
            for error in result.errors:
                print(f"  error: {error}")
            if result.errors:
                exit_code = 1

        await controller.wait_for_pending()
        return exit_code
    finally:
        store.label_cache.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    main_start_time = time.perf_counter()
    logging.debug("Application starting...")
    exit_code = asyncio.run(run(args))
    logging.debug(
        f"Application exited with code {exit_code}. Total runtime: "
        f"{time.perf_counter() - main_start_time:.4f}s"
    )
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
