"""In-memory index and analytics over a music streaming history export."""
from listening_history.aspect import Aspect, Selection
from listening_history.errors import NotFound, StoreFrozenError
from listening_history.events import EventStore, PlayEvent
from listening_history.index import Album, Artist, Index, ListenPolicy, Song, infer_song_lengths
from listening_history.ranking import Metric, RankScope, Ranked, top
from listening_history.snapshot import Snapshot
from listening_history.timeseries import Granularity, Point

__all__ = [
    'Album', 'Artist', 'Aspect', 'EventStore', 'Granularity', 'Index', 'ListenPolicy',
    'Metric', 'NotFound', 'PlayEvent', 'Point', 'RankScope', 'Ranked', 'Selection',
    'Snapshot', 'Song', 'StoreFrozenError', 'infer_song_lengths', 'top',
]

__version__ = '0.1.0'
