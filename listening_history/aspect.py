"""Query selections: which slice of the history a query is about."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from listening_history.events import PlayEvent


class Aspect(Enum):
    ARTIST = 'artist'
    ALBUM = 'album'
    SONG = 'song'
    SONG_ACROSS_ALBUMS = 'song_across_albums'


@dataclass(frozen=True)
class Selection:
    """
    A whole artist, one album, one album-scoped song, or a song title summed
    over every album of the artist it appears on.

    Build instances with the classmethods rather than the constructor.
    """
    aspect: Aspect
    artist: str
    album: Optional[str] = None
    song: Optional[str] = None

    @classmethod
    def of_artist(cls, artist: str) -> 'Selection':
        return cls(Aspect.ARTIST, artist)

    @classmethod
    def of_album(cls, artist: str, album: str) -> 'Selection':
        return cls(Aspect.ALBUM, artist, album=album)

    @classmethod
    def of_song(cls, artist: str, album: str, song: str) -> 'Selection':
        return cls(Aspect.SONG, artist, album=album, song=song)

    @classmethod
    def of_song_across_albums(cls, artist: str, song: str) -> 'Selection':
        return cls(Aspect.SONG_ACROSS_ALBUMS, artist, song=song)

    def matches(self, event: PlayEvent) -> bool:
        if event.artist_name != self.artist:
            return False
        if self.aspect is Aspect.ARTIST:
            return True
        if self.aspect is Aspect.ALBUM:
            return event.album_name == self.album
        if self.aspect is Aspect.SONG:
            return event.album_name == self.album and event.track_name == self.song
        if self.aspect is Aspect.SONG_ACROSS_ALBUMS:
            return event.track_name == self.song
        raise ValueError(f"unknown aspect {self.aspect}")

    def parent(self) -> Optional['Selection']:
        """The enclosing selection: song -> album -> artist, song across albums -> artist."""
        if self.aspect is Aspect.ARTIST:
            return None
        if self.aspect is Aspect.SONG:
            return Selection.of_album(self.artist, self.album)
        return Selection.of_artist(self.artist)

    def __str__(self) -> str:
        if self.aspect is Aspect.ARTIST:
            return self.artist
        if self.aspect is Aspect.ALBUM:
            return f"{self.album} | {self.artist}"
        if self.aspect is Aspect.SONG:
            return f"{self.song} - {self.album} | {self.artist}"
        return f"{self.song} | {self.artist}"
