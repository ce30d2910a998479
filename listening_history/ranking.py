"""
Top-N rankings over artists, albums and songs.

Every ranking uses the same total order: the metric descending, then the
earlier first listen, then the name (and album name for songs). Identical
input therefore always produces identical rankings.
"""
import heapq
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from listening_history.aspect import Selection
from listening_history.constants import ANALYSIS_CONSTANTS


class Metric(Enum):
    PLAYS = 'plays'
    DURATION = 'duration'


class RankScope(Enum):
    ARTISTS = 'artists'
    ALBUMS = 'albums'
    SONGS = 'songs'
    ALBUMS_OF_ARTIST = 'albums_of_artist'
    SONGS_OF_ARTIST = 'songs_of_artist'


@dataclass(frozen=True)
class Ranked:
    """One row of a ranking."""
    name: str
    plays: int
    ms_played: int
    first_listen: datetime
    artist: Optional[str] = None
    album: Optional[str] = None

    def value(self, metric: Metric) -> int:
        return self.plays if metric is Metric.PLAYS else self.ms_played

    @property
    def minutes_played(self) -> float:
        return self.ms_played / (1000 * 60)


def rank_key(metric: Metric) -> Callable[[Ranked], Tuple]:
    """Sort key putting the best entity first."""
    def key(r: Ranked) -> Tuple:
        return (-r.value(metric), r.first_listen, r.name, r.album or '', r.artist or '')
    return key


def select_top(candidates: List[Ranked], n: Optional[int], metric: Metric) -> List[Ranked]:
    """Return the best ``n`` candidates (all of them when n is None), in order."""
    key = rank_key(metric)
    if n is None or n >= len(candidates) or len(candidates) <= ANALYSIS_CONSTANTS['FULL_SORT_MAX_CANDIDATES']:
        ranked = sorted(candidates, key=key)
        return ranked if n is None else ranked[:max(n, 0)]
    if n <= 0:
        return []
    return heapq.nsmallest(n, candidates, key=key)


def _ranked_from_node(node, artist=None, album=None) -> Ranked:
    return Ranked(name=node.name, plays=node.plays, ms_played=node.ms_played,
                  first_listen=node.first_listen, artist=artist, album=album)


def _sum_versions(versions: Iterable) -> Ranked:
    """
    Fold the album-scoped instances of one song title into a single row.

    The reported album is the one with the most plays, alphabetically last
    on ties.
    """
    versions = list(versions)
    top_album = max(versions, key=lambda s: (s.plays, s.album_name)).album_name
    return Ranked(
        name=versions[0].name,
        plays=sum(s.plays for s in versions),
        ms_played=sum(s.ms_played for s in versions),
        first_listen=min(s.first_listen for s in versions),
        artist=versions[0].artist_name,
        album=top_album,
    )


def _candidates(index, scope: RankScope, artist: Optional[str],
                sum_across_albums: bool) -> List[Ranked]:
    if scope in (RankScope.ALBUMS_OF_ARTIST, RankScope.SONGS_OF_ARTIST) \
            and not index.scope(Selection.of_artist(_require(artist))):
        return []
    if scope is RankScope.ARTISTS:
        return [_ranked_from_node(a) for a in index.artists()]
    if scope is RankScope.ALBUMS:
        return [_ranked_from_node(a, artist=a.artist_name) for a in index.all_albums()]
    if scope is RankScope.ALBUMS_OF_ARTIST:
        return [_ranked_from_node(a, artist=a.artist_name) for a in index.albums(artist)]
    if scope in (RankScope.SONGS, RankScope.SONGS_OF_ARTIST):
        songs = (index.all_songs() if scope is RankScope.SONGS
                 else index.songs_of_artist(artist))
        if not sum_across_albums:
            return [_ranked_from_node(s, artist=s.artist_name, album=s.album_name) for s in songs]
        grouped: Dict[Tuple[str, str], list] = defaultdict(list)
        for s in songs:
            grouped[(s.artist_name, s.name)].append(s)
        return [_sum_versions(versions) for versions in grouped.values()]
    raise ValueError(f"unknown scope {scope}")


def _candidates_in_window(index, scope: RankScope, artist: Optional[str],
                          sum_across_albums: bool, start: Optional[datetime],
                          end: Optional[datetime]) -> List[Ranked]:
    """Re-aggregate candidates from the events inside the time window."""
    if scope in (RankScope.ALBUMS_OF_ARTIST, RankScope.SONGS_OF_ARTIST):
        _require(artist)

    # key -> [plays, ms_played, first_listen, per-album plays]
    acc: Dict[Tuple, list] = {}
    for event in index.store.between(start, end):
        if artist is not None and scope in (RankScope.ALBUMS_OF_ARTIST, RankScope.SONGS_OF_ARTIST) \
                and event.artist_name != artist:
            continue
        if scope is RankScope.ARTISTS:
            key = (event.artist_name,)
        elif scope in (RankScope.ALBUMS, RankScope.ALBUMS_OF_ARTIST):
            key = (event.artist_name, event.album_name)
        elif sum_across_albums:
            key = (event.artist_name, event.track_name)
        else:
            key = (event.artist_name, event.album_name, event.track_name)

        entry = acc.get(key)
        if entry is None:
            entry = acc[key] = [0, 0, event.timestamp, defaultdict(int)]
        entry[0] += 1
        entry[1] += event.ms_played
        entry[3][event.album_name] += 1

    ranked = []
    for key, (n_plays, ms, first, albums) in acc.items():
        if scope is RankScope.ARTISTS:
            ranked.append(Ranked(key[0], n_plays, ms, first))
        elif scope in (RankScope.ALBUMS, RankScope.ALBUMS_OF_ARTIST):
            ranked.append(Ranked(key[1], n_plays, ms, first, artist=key[0]))
        else:
            album = max(albums.items(), key=lambda item: (item[1], item[0]))[0]
            ranked.append(Ranked(key[-1], n_plays, ms, first, artist=key[0], album=album))
    return ranked


def _require(artist: Optional[str]) -> str:
    if artist is None:
        raise ValueError("this ranking scope needs an artist")
    return artist


def top(index, metric: Metric = Metric.PLAYS, n: Optional[int] = ANALYSIS_CONSTANTS['DEFAULT_TOP_N'],
        scope: RankScope = RankScope.ARTISTS, artist: Optional[str] = None,
        sum_across_albums: bool = False, start: Optional[datetime] = None,
        end: Optional[datetime] = None) -> List[Ranked]:
    """
    Return at most ``n`` entities of ``scope`` ordered by ``metric``.

    Args:
        index: The index to rank over
        metric: Plays or listening duration
        n: Maximum number of rows, None for all of them
        scope: Which entities compete
        artist: Required for the per-artist scopes
        sum_across_albums: Treat a song title on several albums as one song
        start, end: Optional inclusive time window

    Returns:
        The ranking, shorter than ``n`` when there are fewer entities. A
        per-artist scope of an artist absent from the index ranks nothing.
    """
    if start is None and end is None:
        candidates = _candidates(index, scope, artist, sum_across_albums)
    else:
        candidates = _candidates_in_window(index, scope, artist, sum_across_albums, start, end)
    return select_top(candidates, n, metric)


def artist_ranking(index, metric: Metric = Metric.PLAYS) -> List[Ranked]:
    """Every artist in rank order."""
    return top(index, metric, n=None)


def to_frame(ranking: List[Ranked], metric: Metric = Metric.PLAYS) -> pd.DataFrame:
    """Tabulate a ranking with a 1-based ``rank`` column."""
    df = pd.DataFrame(
        [{
            'rank': position,
            'name': r.name,
            'artist': r.artist,
            'album': r.album,
            'plays': r.plays,
            'minutes_played': r.minutes_played,
            'first_listen': r.first_listen,
        } for position, r in enumerate(ranking, 1)],
        columns=['rank', 'name', 'artist', 'album', 'plays', 'minutes_played', 'first_listen'],
    )
    df.attrs['metric'] = metric.value
    return df
