"""
Directory store for the file manager.

Holds the current directory and its entries for one server. Listings are
fetched asynchronously and replace the state wholesale; file actions patch
the state in between with upsert_entry() and remove_entry().

All writes go through _commit(), guarded by a lock, and the entries are kept
in an immutable tuple so a snapshot handed out is never modified afterwards.
"""

import logging
import threading
from typing import Optional, Tuple

from ..context import ServerContext
from ..errors import TransportError
from ..models import DirectoryEntry, DirectoryState
from ..paths import ROOT, normalize

logger = logging.getLogger(__name__)


class DirectoryStore:
    """
    Authoritative in-memory view of "current directory + its entries".

    Concurrent fetches resolve to the most recently *issued* request: every
    fetch takes a ticket and a response is only applied if its ticket is
    still the latest one. A failed fetch leaves the last good state in place.
    """

    def __init__(self, context: ServerContext):
        self.context = context
        self._state = DirectoryState(path=ROOT, entries=())
        self._lock = threading.Lock()

        self._latest_ticket = 0
        self._latest_target: Optional[str] = None
        self._closed = False

    # --- snapshots ---

    @property
    def state(self) -> DirectoryState:
        return self._state

    @property
    def directory(self) -> str:
        return self._state.path

    @property
    def entries(self) -> Tuple[DirectoryEntry, ...]:
        return self._state.entries

    @property
    def target_directory(self) -> str:
        """The directory of the most recently issued fetch, or the current one."""
        with self._lock:
            if self._latest_target is not None:
                return self._latest_target
            return self._state.path

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._latest_target is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def find_entry(self, uuid: str) -> Optional[DirectoryEntry]:
        return self._state.find(uuid)

    # --- fetch ---

    async def fetch_directory(self, requested_path: Optional[str]) -> bool:
        """
        Load the listing for ``requested_path`` and make it the current directory.

        Args:
            requested_path: Any spelling of the directory; it is normalized first

        Returns:
            True if the listing was applied, False if it was discarded because
            a newer fetch was issued or the store was closed meanwhile.

        Raises:
            TransportError: If the latest fetch fails. The store is unchanged.
        """
        target = normalize(requested_path)

        with self._lock:
            if self._closed:
                logger.debug(f"Ignoring fetch of {target} on a closed directory store")
                return False
            self._latest_ticket += 1
            ticket = self._latest_ticket
            self._latest_target = target

        logger.debug(f"Fetching directory {target} (request {ticket})")

        try:
            entries = await self.context.client.list_directory(self.context.server_uuid, target)
        except TransportError as e:
            with self._lock:
                if self._closed or ticket != self._latest_ticket:
                    logger.debug(f"Discarding failed listing of {target} (request {ticket}): {e}")
                    return False
                self._latest_target = None
            logger.error(f"Failed to load directory {target}: {e}")
            raise
        except BaseException:
            # Cancelled or failed outside the transport; the target never loaded
            with self._lock:
                if ticket == self._latest_ticket:
                    self._latest_target = None
            raise

        def replace_listing() -> bool:
            if self._closed or ticket != self._latest_ticket:
                return False
            self._latest_target = None
            self._state = DirectoryState(path=target, entries=tuple(entries))
            return True

        applied = bool(self._commit(replace_listing))
        if applied:
            logger.debug(f"Loaded {len(entries)} entries for {target}")
        else:
            logger.debug(f"Discarding stale listing of {target} (request {ticket})")
        return applied

    # --- local mutations ---

    def set_directory(self, path: Optional[str]) -> None:
        """
        Set the current path without touching the entries.

        Only meant to be used as part of the fetch sequence; on its own it
        would pair a path with another directory's entries.
        """
        def set_path() -> None:
            self._state = DirectoryState(path=normalize(path), entries=self._state.entries)

        self._commit(set_path)

    def upsert_entry(self, entry: DirectoryEntry) -> None:
        """Replace the entry with the same uuid in place, or append it."""

        def upsert() -> None:
            entries = self._state.entries
            for index, existing in enumerate(entries):
                if existing.uuid == entry.uuid:
                    updated = entries[:index] + (entry,) + entries[index + 1:]
                    break
            else:
                updated = entries + (entry,)
            self._state = DirectoryState(path=self._state.path, entries=updated)

        self._commit(upsert)

    def remove_entry(self, uuid: str) -> None:
        """Drop the entry with ``uuid``; a missing uuid leaves the state untouched."""

        def remove() -> None:
            entries = self._state.entries
            remaining = tuple(entry for entry in entries if entry.uuid != uuid)
            if len(remaining) != len(entries):
                self._state = DirectoryState(path=self._state.path, entries=remaining)

        self._commit(remove)

    def close(self) -> None:
        """Tear down the store; in-flight listings and late mutations become no-ops."""
        with self._lock:
            self._closed = True
            self._latest_target = None
        logger.debug(f"Directory store closed for {self.context.server_uuid}")

    def _commit(self, mutation):
        """Run a mutation on the single write path. Closed stores ignore writes."""
        with self._lock:
            if self._closed:
                logger.debug("Ignoring mutation on a closed directory store")
                return None
            return mutation()
