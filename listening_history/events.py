"""Play events and the deduplicated, time-ordered store holding them."""
import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional

import pandas as pd

from listening_history.errors import StoreFrozenError

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ['timestamp', 'ms_played', 'track_name', 'album_name', 'artist_name']


@dataclass(frozen=True)
class PlayEvent:
    """One recorded stream of a track."""
    timestamp: datetime
    ms_played: int
    track_name: str
    album_name: str
    artist_name: str

    def __post_init__(self):
        if self.ms_played < 0:
            raise ValueError(f"ms_played must be non-negative, got {self.ms_played}")
        for field_name in ('track_name', 'album_name', 'artist_name'):
            if not getattr(self, field_name):
                raise ValueError(f"{field_name} must be a non-empty string")
        if self.timestamp.microsecond:
            # second precision is what makes timestamps usable as the dedup key
            object.__setattr__(self, 'timestamp', self.timestamp.replace(microsecond=0))


class EventStore:
    """
    Merged timeline of play events, strictly increasing by timestamp.

    The store starts out accepting events. Sequences are merged in the order
    they are ingested and the timestamp is the only deduplication key: when two
    events share a timestamp the one seen first is kept and the other is
    dropped without complaint. The first read freezes the store; from then on
    it is read-only and ``ingest`` raises ``StoreFrozenError``.
    """

    def __init__(self, *sequences: Iterable[PlayEvent]):
        self._pending: Dict[datetime, PlayEvent] = {}
        self._events: List[PlayEvent] = []
        self._timestamps: List[datetime] = []
        self._frozen = False
        self.duplicates = 0
        for events in sequences:
            self.ingest(events)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def ingest(self, events: Iterable[PlayEvent]) -> int:
        """Add a sequence of events, returning how many were accepted."""
        if self._frozen:
            raise StoreFrozenError("cannot ingest events into a frozen store")
        accepted = 0
        for event in events:
            if event.timestamp in self._pending:
                self.duplicates += 1
                continue
            self._pending[event.timestamp] = event
            accepted += 1
        logger.debug("Ingested %d events (%d duplicates so far)", accepted, self.duplicates)
        return accepted

    def freeze(self) -> 'EventStore':
        """Sort the timeline and switch to the read-only phase."""
        if not self._frozen:
            self._events = sorted(self._pending.values(), key=lambda e: e.timestamp)
            self._timestamps = [e.timestamp for e in self._events]
            self._pending = {}
            self._frozen = True
            logger.info("Event store frozen with %d events, %d duplicates discarded",
                        len(self._events), self.duplicates)
        return self

    def __len__(self) -> int:
        self.freeze()
        return len(self._events)

    def __iter__(self) -> Iterator[PlayEvent]:
        self.freeze()
        return iter(self._events)

    def __bool__(self) -> bool:
        return len(self) > 0

    def filter(self, predicate: Callable[[PlayEvent], bool]) -> Iterator[PlayEvent]:
        """Lazily yield the events matching ``predicate`` in timeline order."""
        for event in self:
            if predicate(event):
                yield event

    def between(self, start: Optional[datetime] = None,
                end: Optional[datetime] = None) -> Iterator[PlayEvent]:
        """Lazily yield the events with ``start <= timestamp <= end``."""
        self.freeze()
        if start is not None and end is not None and start > end:
            raise ValueError("start date is after end date")
        lo = 0 if start is None else bisect_left(self._timestamps, start)
        hi = len(self._events) if end is None else bisect_right(self._timestamps, end)
        for i in range(lo, hi):
            yield self._events[i]

    def first_date(self) -> Optional[datetime]:
        self.freeze()
        return self._timestamps[0] if self._timestamps else None

    def last_date(self) -> Optional[datetime]:
        self.freeze()
        return self._timestamps[-1] if self._timestamps else None

    def to_frame(self) -> pd.DataFrame:
        """One row per event, in timeline order."""
        self.freeze()
        df = pd.DataFrame(
            [(e.timestamp, e.ms_played, e.track_name, e.album_name, e.artist_name)
             for e in self._events],
            columns=FRAME_COLUMNS,
        )
        df['timestamp'] = pd.to_datetime(df['timestamp'])
        return df
