"""
File actions for a single directory entry.

One FileActionOrchestrator backs one entry menu. It checks the user's
capabilities, talks to the panel and, on success, patches the directory
store. Failures are flashed under the "files" key for the file manager to
show; they never leave the store with a path that does not match its
entries.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Optional

from ..context import ServerContext
from ..errors import (
    ActionInProgressError,
    ActionNotPermittedError,
    TransportError,
    ValidationError,
    http_error_to_human,
)
from ..flash import FlashStore
from ..models import DirectoryEntry
from ..paths import ROOT, basename, join_path, normalize, parent_directory, resolve_path
from ..permissions import FileAction
from .store import DirectoryStore

logger = logging.getLogger(__name__)

FLASH_KEY = "files"


@dataclass(frozen=True)
class RenameFlow:
    """
    An open rename/move dialog.

    ``use_move_terminology`` only changes how the dialog words things; the
    submitted name decides whether the entry stays in this directory.
    """

    entry: DirectoryEntry
    use_move_terminology: bool = False

    @property
    def action(self) -> FileAction:
        return FileAction.MOVE if self.use_move_terminology else FileAction.RENAME


class FileActionOrchestrator:
    """
    Coordinates rename, move, copy, delete and download for one entry.

    Only one operation runs at a time: ``busy`` is set when an operation
    starts and cleared when it finishes, whatever the outcome, and a second
    invocation while busy raises ActionInProgressError.
    """

    def __init__(
        self,
        context: ServerContext,
        store: DirectoryStore,
        uuid: str,
        flashes: FlashStore,
        navigate: Callable[[str], Any],
    ):
        """
        Initialize the orchestrator for one entry.

        Args:
            context: The server and the user's permissions on it
            store: The directory store the entry lives in
            uuid: Identity of the entry in the store
            flashes: Where user facing errors are reported
            navigate: Hands a download URL to the consuming environment
        """
        self.context = context
        self.store = store
        self.uuid = uuid
        self.flashes = flashes
        self.navigate = navigate

        self.busy = False
        self.modal: Optional[RenameFlow] = None
        self._closed = False

    @property
    def entry(self) -> Optional[DirectoryEntry]:
        return self.store.find_entry(self.uuid)

    @property
    def available_actions(self) -> FrozenSet[FileAction]:
        """Actions the menu may offer for this entry."""
        return self.context.allowed_actions()

    def close(self) -> None:
        """Tear down the menu; results of in-flight operations are ignored."""
        self._closed = True
        self.modal = None

    # --- rename / move ---

    def open_rename(self, move: bool = False) -> RenameFlow:
        """Open the rename dialog, or the move dialog when ``move`` is set."""
        action = FileAction.MOVE if move else FileAction.RENAME
        self._check_allowed(action)
        self.modal = RenameFlow(entry=self._require_entry(), use_move_terminology=move)
        return self.modal

    def dismiss(self) -> None:
        self.modal = None

    async def submit_rename(self, new_name: str) -> bool:
        """
        Rename or move the entry to ``new_name``, relative to the current directory.

        ``.`` and ``..`` in ``new_name`` are resolved. If the destination is
        still inside the current directory the entry is upserted under its new
        name; otherwise it has left this listing and is removed from it.

        Raises:
            ValidationError: If ``new_name`` is blank or resolves to the current
                directory or the root. Errors raised by the panel client other
                than TransportError pass through unchanged.
        """
        if self.modal is None:
            raise RuntimeError("No rename in progress. Call open_rename() first.")

        name = (new_name or "").strip()
        if not name:
            raise ValidationError("A file name must be provided.", field_name="name")

        directory = self.store.directory
        rename_to = resolve_path(join_path(directory, name))
        if rename_to in (ROOT, normalize(directory)):
            raise ValidationError("The destination must name a file.", field_name="name")

        entry = self._begin(self.modal.action)
        rename_from = join_path(directory, entry.name)

        try:
            await self.context.client.rename_entry(self.context.server_uuid, rename_from, rename_to)
        except TransportError as e:
            self._fail("Error while attempting to rename a file", e)
            return False
        finally:
            self.busy = False

        if self._closed:
            return False

        if parent_directory(rename_to) == normalize(directory):
            self.store.upsert_entry(entry.renamed(basename(rename_to)))
        else:
            self.store.remove_entry(entry.uuid)

        self.modal = None
        return True

    # --- copy / delete / download ---

    async def copy(self) -> bool:
        """
        Duplicate the entry next to itself and reload the directory.

        The copy's name is chosen by the panel, so the listing is fetched
        again instead of upserting a guessed entry.
        """
        entry = self._begin(FileAction.COPY)
        location = join_path(self.store.directory, entry.name)

        try:
            await self.context.client.copy_entry(self.context.server_uuid, location)
            if self._closed:
                return False
            await self.store.fetch_directory(self.store.target_directory)
        except TransportError as e:
            self._fail("Error while attempting to copy file", e)
            return False
        finally:
            self.busy = False

        return True

    async def delete(self) -> bool:
        entry = self._begin(FileAction.DELETE)
        location = join_path(self.store.directory, entry.name)

        try:
            await self.context.client.delete_entry(self.context.server_uuid, location)
        except TransportError as e:
            self._fail("Error while attempting to delete a file", e)
            return False
        finally:
            self.busy = False

        if self._closed:
            return False

        self.store.remove_entry(entry.uuid)
        return True

    async def download(self) -> bool:
        """Fetch a signed download URL and hand it to ``navigate``."""
        entry = self._begin(FileAction.DOWNLOAD)
        location = join_path(self.store.directory, entry.name)

        try:
            url = await self.context.client.get_download_url(self.context.server_uuid, location)
        except TransportError as e:
            self._fail("Error while attempting to download a file", e)
            return False
        finally:
            self.busy = False

        if self._closed:
            return False

        self.navigate(url)
        return True

    # --- helpers ---

    def _require_entry(self) -> DirectoryEntry:
        entry = self.entry
        if entry is None:
            raise LookupError(f"No entry with uuid {self.uuid} in {self.store.directory}")
        return entry

    def _check_allowed(self, action: FileAction) -> None:
        if not self.context.action_allowed(action):
            raise ActionNotPermittedError(f"Not permitted to {action.value} files on this server")

    def _begin(self, action: FileAction) -> DirectoryEntry:
        """Validate and mark the start of an operation. No awaits happen in here."""
        self._check_allowed(action)
        if self.busy:
            raise ActionInProgressError(f"Another file operation is still running for {self.uuid}")
        entry = self._require_entry()

        self.busy = True
        self.flashes.clear_flashes(FLASH_KEY)
        return entry

    def _fail(self, context_message: str, error: TransportError) -> None:
        logger.error(f"{context_message}: {error}")
        if self._closed:
            return
        self.flashes.add_error(FLASH_KEY, http_error_to_human(error))
