"""
Artist -> Album -> Song hierarchy folded out of a frozen event store.

Every node keeps running counters. Each event is folded into exactly one
Song and, through it, into that song's Album, its Artist and the index-wide
totals, so the sums of the children always equal the parent's counters.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from listening_history.aspect import Aspect, Selection
from listening_history.constants import ANALYSIS_CONSTANTS
from listening_history.errors import NotFound
from listening_history.events import EventStore, PlayEvent

logger = logging.getLogger(__name__)

SongKey = Tuple[str, str, str]  # (artist, album, track)


@dataclass
class Counters:
    """Aggregates over the events belonging to one node."""
    plays: int = 0
    ms_played: int = 0
    full_listens: int = 0
    ninety_listens: int = 0
    first_listen: Optional[datetime] = None
    last_listen: Optional[datetime] = None

    def add(self, event: PlayEvent, full: bool, ninety: bool) -> None:
        self.plays += 1
        self.ms_played += event.ms_played
        self.full_listens += full
        self.ninety_listens += ninety
        # the store is strictly increasing, so the first fold is the first listen
        if self.first_listen is None:
            self.first_listen = event.timestamp
        self.last_listen = event.timestamp


@dataclass
class Song(Counters):
    name: str = ''
    album_name: str = ''
    artist_name: str = ''

    @property
    def key(self) -> SongKey:
        return (self.artist_name, self.album_name, self.name)


@dataclass
class Album(Counters):
    name: str = ''
    artist_name: str = ''
    songs: Dict[str, Song] = field(default_factory=dict)


@dataclass
class Artist(Counters):
    name: str = ''
    albums: Dict[str, Album] = field(default_factory=dict)


def infer_song_lengths(store: EventStore) -> Dict[SongKey, int]:
    """
    Estimate each track's length as its most common ``ms_played`` value.

    Not the maximum: seeking inside a track can push ``ms_played`` past the
    real length. When several durations are equally common the largest one
    wins so the result does not depend on iteration order.
    """
    durations: Dict[SongKey, Counter] = defaultdict(Counter)
    for event in store:
        durations[(event.artist_name, event.album_name, event.track_name)][event.ms_played] += 1

    lengths = {}
    for key, counts in durations.items():
        lengths[key] = max(counts.items(), key=lambda item: (item[1], item[0]))[0]
    return lengths


class ListenPolicy:
    """Decides whether a play counts as a full listen or a 90% listen."""

    def __init__(self, durations: Optional[Mapping[SongKey, int]] = None,
                 fallback_ms: int = ANALYSIS_CONSTANTS['FULL_LISTEN_FALLBACK_MS'],
                 ratio: float = ANALYSIS_CONSTANTS['NINETY_PERCENT_RATIO']):
        self.durations = durations or {}
        self.fallback_ms = fallback_ms
        self.ratio = ratio

    def length_of(self, event: PlayEvent) -> int:
        known = self.durations.get((event.artist_name, event.album_name, event.track_name))
        return known if known else self.fallback_ms

    def classify(self, event: PlayEvent) -> Tuple[bool, bool]:
        """Return ``(full, ninety_percent)`` for one play."""
        length = self.length_of(event)
        return event.ms_played >= length, event.ms_played >= self.ratio * length


class Index:
    """
    Read-only hierarchy built once per analysis session.

    Constructing an index folds the whole store, which is frozen first; there
    is no partially built state.
    """

    def __init__(self, store: EventStore, policy: Optional[ListenPolicy] = None):
        self.store = store.freeze()
        self.policy = policy or ListenPolicy()
        self.totals = Counters()
        self._artists: Dict[str, Artist] = {}
        # (artist, track) -> albums containing that track, in first-listen order
        versions: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        for event in self.store:
            self._fold(event, versions)
        self._versions = dict(versions)
        logger.info("Index built: %d artists, %d plays", len(self._artists), self.totals.plays)

    @classmethod
    def build(cls, store: EventStore, policy: Optional[ListenPolicy] = None) -> 'Index':
        return cls(store, policy)

    def _fold(self, event: PlayEvent, versions: Dict[Tuple[str, str], List[str]]) -> None:
        artist = self._artists.get(event.artist_name)
        if artist is None:
            artist = self._artists[event.artist_name] = Artist(name=event.artist_name)

        album = artist.albums.get(event.album_name)
        if album is None:
            album = artist.albums[event.album_name] = Album(
                name=event.album_name, artist_name=event.artist_name)

        song = album.songs.get(event.track_name)
        if song is None:
            song = album.songs[event.track_name] = Song(
                name=event.track_name, album_name=event.album_name,
                artist_name=event.artist_name)
            versions[(event.artist_name, event.track_name)].append(event.album_name)

        full, ninety = self.policy.classify(event)
        for node in (song, album, artist, self.totals):
            node.add(event, full, ninety)

    # lookups

    def artist(self, name: str) -> Artist:
        try:
            return self._artists[name]
        except KeyError:
            raise NotFound('artist', name) from None

    def album(self, artist: str, album: str) -> Album:
        try:
            return self.artist(artist).albums[album]
        except KeyError:
            raise NotFound('album', (artist, album)) from None

    def song(self, artist: str, album: str, song: str) -> Song:
        try:
            return self.album(artist, album).songs[song]
        except KeyError:
            raise NotFound('song', (artist, album, song)) from None

    def song_versions(self, artist: str, song: str) -> List[Song]:
        """Every album-scoped instance of ``song`` by ``artist``."""
        albums = self._versions.get((artist, song))
        if not albums:
            raise NotFound('song', (artist, song))
        artist_node = self._artists[artist]
        return [artist_node.albums[album].songs[song] for album in albums]

    def nodes_for(self, selection: Selection) -> List[Counters]:
        """Resolve a selection to the nodes whose counters make up its totals."""
        if selection.aspect is Aspect.ARTIST:
            return [self.artist(selection.artist)]
        if selection.aspect is Aspect.ALBUM:
            return [self.album(selection.artist, selection.album)]
        if selection.aspect is Aspect.SONG:
            return [self.song(selection.artist, selection.album, selection.song)]
        if selection.aspect is Aspect.SONG_ACROSS_ALBUMS:
            return list(self.song_versions(selection.artist, selection.song))
        raise ValueError(f"unknown aspect {selection.aspect}")

    def scope(self, selection: Selection) -> List[Counters]:
        """Like ``nodes_for``, but a selection absent from the index is an empty scope."""
        try:
            return self.nodes_for(selection)
        except NotFound:
            return []

    def __contains__(self, selection: Selection) -> bool:
        return bool(self.scope(selection))

    # enumerations, all in first-listen order

    def artists(self) -> List[Artist]:
        return list(self._artists.values())

    def albums(self, artist: str) -> List[Album]:
        return list(self.artist(artist).albums.values())

    def songs(self, artist: str, album: str) -> List[Song]:
        return list(self.album(artist, album).songs.values())

    def songs_of_artist(self, artist: str) -> List[Song]:
        return [song for album in self.albums(artist) for song in album.songs.values()]

    def all_albums(self) -> Iterator[Album]:
        for artist in self._artists.values():
            yield from artist.albums.values()

    def all_songs(self) -> Iterator[Song]:
        for album in self.all_albums():
            yield from album.songs.values()

    def song_titles(self, artist: str) -> List[str]:
        """Distinct song titles of an artist, regardless of album."""
        self.artist(artist)
        return [title for (art, title) in self._versions if art == artist]

    def __len__(self) -> int:
        return len(self._artists)
