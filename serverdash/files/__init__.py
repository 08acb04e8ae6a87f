"""Directory state and file actions for the file manager."""

from .actions import FLASH_KEY, FileActionOrchestrator, RenameFlow
from .store import DirectoryStore

__all__ = ["DirectoryStore", "FileActionOrchestrator", "FLASH_KEY", "RenameFlow"]
