"""
Application Settings Module
Manages persistent application settings using QSettings.
"""

import os
from PyQt6.QtCore import QSettings

from core.models import ExportMode, FilterMode

# --- Settings Constants ---

# Settings organization and application name
SETTINGS_ORGANIZATION = "Glimpse"
SETTINGS_APPLICATION = "Glimpse"

# Settings keys
RECENT_FOLDERS_KEY = "UI/RecentFolders"  # Key for recent folders list
BASE_THUMBNAIL_SIZE_KEY = "Grid/BaseThumbnailSize"  # User-chosen thumbnail size
FILTER_MODE_KEY = "UI/FilterMode"  # Last used filter (all/adopted/rejected)
EXPORT_MODE_KEY = "Export/Mode"  # copy or move
THUMBNAIL_THREADS_KEY = (
    "Performance/ThumbnailThreads"  # 0 means auto (80% of logical cores)
)

# Default values
MAX_RECENT_FOLDERS = 10  # Max number of recent folders to store
DEFAULT_FILTER_MODE = FilterMode.ALL
DEFAULT_EXPORT_MODE = ExportMode.COPY
DEFAULT_THUMBNAIL_THREADS = 0  # Auto

# --- UI Constants ---
# Grid view settings
MIN_THUMBNAIL_SIZE = 100  # Smallest selectable thumbnail size
MAX_THUMBNAIL_SIZE = 300  # Largest selectable thumbnail size
DEFAULT_THUMBNAIL_SIZE = 180  # Default base thumbnail size
GRID_GAP = 8  # Horizontal gap between grid cells
GRID_ROW_GAP = 12  # Vertical gap (slightly wider than horizontal)
GRID_PADDING = 16  # Padding around the grid container

# Virtualization
GRID_OVERSCAN_ROWS = 3  # Extra rows materialized above/below the viewport
PAGE_SCROLL_ROWS = 5  # PageUp/PageDown move by columns * this many rows

# --- Thumbnail Pipeline Constants ---
THUMBNAIL_BATCH_SIZE = 50  # Items handed to the thumbnail generator per batch
THUMBNAIL_RENDER_SCALE = 2  # Generate thumbnails at 2x for high-DPI displays
MIN_THUMBNAIL_THREADS = 2  # Lower bound for the auto thread count
THUMBNAIL_THREAD_CPU_RATIO = 0.8  # Auto mode uses 80% of logical cores

# --- Cache Constants ---
DEFAULT_LABEL_CACHE_SIZE_LIMIT_MB = 64  # Labels and sessions are tiny
DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".cache", "glimpse")
DEFAULT_LABEL_CACHE_DIR = os.path.join(DEFAULT_DATA_DIR, "labels")
DEFAULT_THUMBNAIL_CACHE_ROOT = os.path.join(DEFAULT_DATA_DIR, "thumbnails")

# --- File Scanning Constants ---
RAW_EXTENSIONS = {
    ".nef",  # Nikon
    ".arw",  # Sony
    ".cr2",
    ".cr3",  # Canon
    ".raf",  # Fujifilm
    ".orf",  # Olympus
    ".rw2",  # Panasonic
    ".dng",  # Adobe
}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
SUPPORTED_EXTENSIONS = RAW_EXTENSIONS | IMAGE_EXTENSIONS


def _get_settings() -> QSettings:
    """Get a QSettings instance with the application's organization and name."""
    return QSettings(SETTINGS_ORGANIZATION, SETTINGS_APPLICATION)


# --- Recent Folders ---
def get_recent_folders() -> list[str]:
    """Gets the list of recent folders from settings."""
    settings = _get_settings()
    recent_folders = settings.value(RECENT_FOLDERS_KEY, [], type=list)
    # Filter out folders that no longer exist
    return [folder for folder in recent_folders if os.path.isdir(folder)]


def add_recent_folder(path: str):
    """Adds a folder to the top of the recent folders list."""
    if not path or not os.path.isdir(path):
        return

    settings = _get_settings()
    recent_folders = get_recent_folders()

    normalized_path = os.path.normpath(path)

    # Remove if already exists (case-insensitive on Windows)
    recent_folders = [
        p
        for p in recent_folders
        if os.path.normpath(p).lower() != normalized_path.lower()
    ]

    recent_folders.insert(0, normalized_path)

    if len(recent_folders) > MAX_RECENT_FOLDERS:
        recent_folders = recent_folders[:MAX_RECENT_FOLDERS]

    settings.setValue(RECENT_FOLDERS_KEY, recent_folders)


# --- Grid ---
def clamp_thumbnail_size(size: int) -> int:
    return max(MIN_THUMBNAIL_SIZE, min(MAX_THUMBNAIL_SIZE, int(size)))


def get_base_thumbnail_size() -> int:
    """Gets the configured base thumbnail size, clamped to the allowed range."""
    settings = _get_settings()
    size = settings.value(BASE_THUMBNAIL_SIZE_KEY, DEFAULT_THUMBNAIL_SIZE, type=int)
    return clamp_thumbnail_size(size)


def set_base_thumbnail_size(size: int):
    settings = _get_settings()
    settings.setValue(BASE_THUMBNAIL_SIZE_KEY, clamp_thumbnail_size(size))


# --- Filter / Export ---
def get_filter_mode() -> FilterMode:
    """Gets the last used filter mode."""
    settings = _get_settings()
    mode_str = settings.value(FILTER_MODE_KEY, DEFAULT_FILTER_MODE.value, type=str)
    return FilterMode.from_string(mode_str)


def set_filter_mode(mode: FilterMode):
    settings = _get_settings()
    settings.setValue(FILTER_MODE_KEY, mode.value)


def get_export_mode() -> ExportMode:
    settings = _get_settings()
    mode_str = settings.value(EXPORT_MODE_KEY, DEFAULT_EXPORT_MODE.value, type=str)
    return ExportMode.from_string(mode_str)


def set_export_mode(mode: ExportMode):
    settings = _get_settings()
    settings.setValue(EXPORT_MODE_KEY, mode.value)


# --- Performance Settings ---
def get_thumbnail_threads() -> int:
    """Gets the user-defined thumbnail thread count (0 = auto)."""
    settings = _get_settings()
    return settings.value(THUMBNAIL_THREADS_KEY, DEFAULT_THUMBNAIL_THREADS, type=int)


def set_thumbnail_threads(count: int):
    """Sets the thumbnail thread count. 0 restores auto mode."""
    max_threads = os.cpu_count() or 4
    if not (0 <= count <= max_threads):
        raise ValueError(
            f"Thread count must be between 0 and {max_threads}, got {count}"
        )
    settings = _get_settings()
    settings.setValue(THUMBNAIL_THREADS_KEY, count)


def calculate_default_threads(cpu_count: int) -> int:
    """80% of logical cores, never less than MIN_THUMBNAIL_THREADS."""
    return max(MIN_THUMBNAIL_THREADS, int(cpu_count * THUMBNAIL_THREAD_CPU_RATIO))


def calculate_thumbnail_threads() -> int:
    """
    Number of worker threads the thumbnail generator should use.

    Returns the configured count when one is set, otherwise the auto value
    from calculate_default_threads().
    """
    configured = get_thumbnail_threads()
    if configured > 0:
        return configured
    return calculate_default_threads(os.cpu_count() or 4)
