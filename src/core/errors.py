"""
Error types raised by persistence collaborators.

The selection/navigation core never raises these across its own boundary:
per-item failures are folded into a BatchResult, and folder load failures
surface as an empty collection.
"""


class GlimpseError(Exception):
    """Base class for all application errors."""


class PersistenceError(GlimpseError):
    """A persistence collaborator failed to complete a request."""


class PersistenceIOError(PersistenceError):
    """Underlying storage (disk cache, filesystem) raised an I/O error."""


class ItemNotFoundError(PersistenceError):
    """The referenced item id is not part of the active session."""

    def __init__(self, item_id: str):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class FolderNotFoundError(PersistenceError):
    """The folder to open does not exist or is not a directory."""

    def __init__(self, folder_path: str):
        super().__init__(f"Folder not found: {folder_path}")
        self.folder_path = folder_path


class NoActiveSessionError(PersistenceError):
    """A session-scoped request was made before any folder was opened."""

    def __init__(self):
        super().__init__("No session active")
