"""
Stateless aggregate queries over an index.

Windowless queries reduce the counters the index already keeps; a song summed
across albums costs one step per album containing that title. Queries
restricted to a time window fall back to a filtered scan of the event store,
since the index counters cover the whole history.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NamedTuple, Optional, Tuple

from listening_history.aspect import Selection
from listening_history.constants import ANALYSIS_CONSTANTS
from listening_history.events import EventStore
from listening_history.index import Index
from listening_history.ranking import Metric, artist_ranking


class Totals(NamedTuple):
    plays: int
    ms_played: int

    def value(self, metric: Metric) -> int:
        return self.plays if metric is Metric.PLAYS else self.ms_played


def totals(index: Index, selection: Optional[Selection] = None,
           start: Optional[datetime] = None, end: Optional[datetime] = None) -> Totals:
    """
    Plays and listening time of ``selection`` (the whole history when None).

    A selection that is not in the index has zero totals.
    """
    nodes = index.scope(selection) if selection is not None else [index.totals]
    if not nodes:
        return Totals(0, 0)
    if start is None and end is None:
        return Totals(sum(n.plays for n in nodes), sum(n.ms_played for n in nodes))

    plays = ms_played = 0
    for event in index.store.between(start, end):
        if selection is None or selection.matches(event):
            plays += 1
            ms_played += event.ms_played
    return Totals(plays, ms_played)


def plays(index: Index, selection: Optional[Selection] = None,
          start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
    return totals(index, selection, start, end).plays


def listening_time(index: Index, selection: Optional[Selection] = None,
                   start: Optional[datetime] = None, end: Optional[datetime] = None) -> timedelta:
    return timedelta(milliseconds=totals(index, selection, start, end).ms_played)


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return min(100.0, 100.0 * part / whole)


def percentage(index: Index, selection: Selection, metric: Metric = Metric.PLAYS,
               relative_to: Optional[Selection] = None,
               start: Optional[datetime] = None, end: Optional[datetime] = None) -> float:
    """
    Share of ``selection`` in percent, of all listening or of ``relative_to``.

    Returns 0.0 when the denominator is zero.
    """
    part = totals(index, selection, start, end).value(metric)
    whole = totals(index, relative_to, start, end).value(metric)
    return _percentage(part, whole)


def percentage_of_plays(index: Index, selection: Selection,
                        relative_to: Optional[Selection] = None) -> float:
    return percentage(index, selection, Metric.PLAYS, relative_to)


def percentage_of_time(index: Index, selection: Selection,
                       relative_to: Optional[Selection] = None) -> float:
    return percentage(index, selection, Metric.DURATION, relative_to)


def first_listen(index: Index, selection: Selection) -> Optional[datetime]:
    return min((n.first_listen for n in index.scope(selection)), default=None)


def last_listen(index: Index, selection: Selection) -> Optional[datetime]:
    return max((n.last_listen for n in index.scope(selection)), default=None)


def full_listens(index: Index, selection: Selection) -> int:
    return sum(n.full_listens for n in index.scope(selection))


def ninety_percent_listens(index: Index, selection: Selection) -> int:
    return sum(n.ninety_listens for n in index.scope(selection))


def artist_position(index: Index, artist: str, metric: Metric = Metric.PLAYS) -> int:
    """1-based rank of ``artist`` among all artists; raises NotFound if absent."""
    index.artist(artist)
    return [r.name for r in artist_ranking(index, metric)].index(artist) + 1


def max_listening_period(store: EventStore, days: int) -> Tuple[timedelta, Optional[datetime], Optional[datetime]]:
    """
    Find the window of ``days`` days with the most listening time.

    The length is clamped to at least one day and at most the whole history.
    Windows start at midnight of each day of the history. Returns
    ``(listening time, window start, window end)``; both dates are None for an
    empty store.
    """
    first, last = store.first_date(), store.last_date()
    if first is None:
        return timedelta(0), None, None

    span = timedelta(days=max(days, ANALYSIS_CONSTANTS['MIN_PERIOD_DAYS']))
    if span >= last - first:
        return timedelta(milliseconds=sum(e.ms_played for e in store)), first, last

    events = list(store)
    best_ms, best_start = -1, None
    window_start = first.replace(hour=0, minute=0, second=0)
    lo = hi = 0
    running = 0
    while window_start + span <= last + timedelta(days=1):
        window_end = window_start + span
        while hi < len(events) and events[hi].timestamp < window_end:
            running += events[hi].ms_played
            hi += 1
        while lo < hi and events[lo].timestamp < window_start:
            running -= events[lo].ms_played
            lo += 1
        if running > best_ms:
            best_ms, best_start = running, window_start
        window_start += timedelta(days=1)
    return timedelta(milliseconds=best_ms), best_start, best_start + span


@dataclass(frozen=True)
class Summary:
    """Everything a presentation layer shows about one selection."""
    selection: Selection
    plays: int
    listening_time: timedelta
    percentage_of_plays: float
    percentage_of_time: float
    first_listen: datetime
    last_listen: datetime
    full_listens: int
    ninety_percent_listens: int
    position: Optional[int] = None
    percentage_of_parent: Optional[float] = None


def summary(index: Index, selection: Selection) -> Summary:
    """Collect the headline numbers of a selection; raises NotFound if absent."""
    nodes = index.nodes_for(selection)
    sel_totals = Totals(sum(n.plays for n in nodes), sum(n.ms_played for n in nodes))
    parent = selection.parent()
    return Summary(
        selection=selection,
        plays=sel_totals.plays,
        listening_time=timedelta(milliseconds=sel_totals.ms_played),
        percentage_of_plays=_percentage(sel_totals.plays, index.totals.plays),
        percentage_of_time=_percentage(sel_totals.ms_played, index.totals.ms_played),
        first_listen=min(n.first_listen for n in nodes),
        last_listen=max(n.last_listen for n in nodes),
        full_listens=sum(n.full_listens for n in nodes),
        ninety_percent_listens=sum(n.ninety_listens for n in nodes),
        position=artist_position(index, selection.artist) if parent is None else None,
        percentage_of_parent=percentage_of_plays(index, selection, parent) if parent else None,
    )
