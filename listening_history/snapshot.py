"""Shared, swappable handle on the current index."""
import logging
import threading
from typing import Iterable, Optional

from listening_history.events import EventStore, PlayEvent
from listening_history.index import Index, ListenPolicy

logger = logging.getLogger(__name__)


class Snapshot:
    """
    Holds the index concurrent readers query.

    Readers call ``get()`` once and keep using that index for the whole
    request; they never lock. ``rebuild`` always constructs a brand new store
    and index from the full set of sequences and only then replaces the
    reference, so a half-built index is never visible.
    """

    def __init__(self, index: Optional[Index] = None):
        self._index = index
        self._write_lock = threading.Lock()
        self.generation = 0 if index is None else 1

    def get(self) -> Optional[Index]:
        return self._index

    def swap(self, index: Index) -> Optional[Index]:
        """Install ``index`` and return the one it replaces."""
        with self._write_lock:
            previous, self._index = self._index, index
            self.generation += 1
        logger.info("Index swapped in (generation %d)", self.generation)
        return previous

    def rebuild(self, sequences: Iterable[Iterable[PlayEvent]],
                policy: Optional[ListenPolicy] = None) -> Index:
        index = Index.build(EventStore(*sequences), policy)
        self.swap(index)
        return index
