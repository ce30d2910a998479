"""
Time-bucketed series for trend plots.

Series cover every bucket from the first to the last event of the selection,
with empty buckets reported as zero so the plot axis stays continuous. They
are generators streaming off a scan of the event store: finite, forward-only
and not restartable.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, Iterator, NamedTuple, Optional

import pandas as pd

from listening_history.aspect import Selection
from listening_history.events import PlayEvent
from listening_history.ranking import Metric


class Granularity(Enum):
    DAY = 'day'
    MONTH = 'month'
    YEAR = 'year'

    @property
    def freq(self) -> str:
        """pandas offset alias of the bucket start dates"""
        return {'day': 'D', 'month': 'MS', 'year': 'YS'}[self.value]


class Point(NamedTuple):
    start: datetime
    value: float


def bucket_start(ts: datetime, granularity: Granularity) -> datetime:
    day = ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.MONTH:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def next_bucket(start: datetime, granularity: Granularity) -> datetime:
    if granularity is Granularity.DAY:
        return start + timedelta(days=1)
    if granularity is Granularity.MONTH:
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)
    return start.replace(year=start.year + 1)


def _measure(event: PlayEvent, metric: Metric) -> int:
    return 1 if metric is Metric.PLAYS else event.ms_played


def _bucketed(events: Iterable[PlayEvent], granularity: Granularity,
              metric: Metric) -> Iterator[Point]:
    """Per-bucket sums of time-ordered events with zero-filled gaps."""
    current = None
    value = 0
    for event in events:
        bucket = bucket_start(event.timestamp, granularity)
        if current is None:
            current = bucket
        while bucket != current:
            yield Point(current, value)
            value = 0
            current = next_bucket(current, granularity)
        value += _measure(event, metric)
    if current is not None:
        yield Point(current, value)


def absolute(index, selection: Optional[Selection], granularity: Granularity,
             metric: Metric = Metric.PLAYS, cumulative: bool = False) -> Iterator[Point]:
    """
    Plays (or milliseconds) of ``selection`` per bucket.

    With ``cumulative`` the running total is reported instead. A selection of
    None covers the whole history; a selection absent from the index yields
    nothing.
    """
    if selection is not None:
        if not index.scope(selection):
            return
        events = index.store.filter(selection.matches)
    else:
        events = iter(index.store)

    running = 0
    for point in _bucketed(events, granularity, metric):
        if cumulative:
            running += point.value
            yield Point(point.start, running)
        else:
            yield point


def relative(index, selection: Selection, granularity: Granularity,
             metric: Metric = Metric.PLAYS,
             baseline: Optional[Selection] = None) -> Iterator[Point]:
    """
    Share of ``selection`` in each bucket's total, as a fraction in [0, 1].

    The first pass sums the baseline (all listening, or ``baseline`` such as
    the selection's artist) per bucket; the second streams the selection's
    own per-bucket values and divides. Buckets without baseline listening
    yield 0.0. A selection absent from the index yields nothing.
    """
    nodes = index.scope(selection)
    if not nodes:
        return
    first = min(n.first_listen for n in nodes)
    last = max(n.last_listen for n in nodes)

    grand: Dict[datetime, int] = defaultdict(int)
    for event in index.store.between(bucket_start(first, granularity),
                                     next_bucket(bucket_start(last, granularity), granularity)):
        if baseline is None or baseline.matches(event):
            grand[bucket_start(event.timestamp, granularity)] += _measure(event, metric)

    for point in absolute(index, selection, granularity, metric):
        whole = grand.get(point.start, 0)
        yield Point(point.start, point.value / whole if whole else 0.0)


def to_series(points: Iterable[Point], name: Optional[str] = None) -> pd.Series:
    """Materialize a series into a pandas Series indexed by bucket start."""
    points = list(points)
    return pd.Series(
        [p.value for p in points],
        index=pd.DatetimeIndex([p.start for p in points], name='bucket'),
        name=name,
        dtype='float64',
    )


def reindexed(series: pd.Series, granularity: Granularity) -> pd.Series:
    """
    Fill any missing buckets of a series with zero.

    Series produced by this module are already gap-free; this is for series
    assembled elsewhere, for instance from a DataFrame groupby.
    """
    if series.empty:
        return series
    complete = pd.date_range(start=series.index.min(), end=series.index.max(),
                             freq=granularity.freq)
    return series.reindex(complete, fill_value=0)
