"""Case-insensitive and fuzzy lookups of artists, albums and songs."""
from typing import List, Optional, Tuple

from rapidfuzz import fuzz

from listening_history.constants import SEARCH_CONSTANTS
from listening_history.index import Album, Artist, Index, Song, SongKey


def find_artist(index: Index, name: str) -> List[Artist]:
    """
    Every artist whose name equals ``name`` ignoring case.

    Exports sometimes carry one artist under several capitalizations, so all
    of them are returned, in first-listen order.
    """
    wanted = name.lower()
    return [a for a in index.artists() if a.name.lower() == wanted]


def find_album(index: Index, album_name: str, artist_name: str) -> List[Album]:
    wanted = album_name.lower()
    return [album for artist in find_artist(index, artist_name)
            for album in artist.albums.values() if album.name.lower() == wanted]


def find_song(index: Index, song_name: str, artist_name: str,
              album_name: Optional[str] = None) -> List[Song]:
    """Every album-scoped version of a song, optionally limited to one album."""
    wanted = song_name.lower()
    if album_name is not None:
        albums = find_album(index, album_name, artist_name)
    else:
        albums = [album for artist in find_artist(index, artist_name)
                  for album in artist.albums.values()]
    return [song for album in albums
            for song in album.songs.values() if song.name.lower() == wanted]


def fuzzy_search_songs(index: Index, query: str, limit: int = None,
                       min_score: int = None) -> List[Tuple[SongKey, float, str]]:
    """
    Perform weighted fuzzy search on songs with field-specific scoring.

    Args:
        index: Index whose songs are searched
        query: Search query string
        limit: Maximum number of results to return
        min_score: Minimum score threshold for matches

    Returns:
        List of tuples: (song key, weighted score, match type)
    """
    # Use default values from constants if not provided
    if limit is None:
        limit = SEARCH_CONSTANTS['DEFAULT_SEARCH_LIMIT']
    if min_score is None:
        min_score = SEARCH_CONSTANTS['DEFAULT_MIN_SCORE']

    if not query or not query.strip():
        return []

    results = []
    query_lower = query.lower().strip()
    epsilon = SEARCH_CONSTANTS['FLOAT_EPSILON']

    for song in index.all_songs():
        combined = f"TRACK:{song.name} ARTIST:{song.artist_name} ALBUM:{song.album_name}"

        # Calculate weighted scores for each field
        track_score = fuzz.WRatio(query_lower, song.name.lower()) * SEARCH_CONSTANTS['TRACK_WEIGHT']
        artist_score = fuzz.WRatio(query_lower, song.artist_name.lower()) * SEARCH_CONSTANTS['ARTIST_WEIGHT']
        album_score = fuzz.WRatio(query_lower, song.album_name.lower()) * SEARCH_CONSTANTS['ALBUM_WEIGHT']
        combined_score = fuzz.WRatio(query_lower, combined.lower()) * SEARCH_CONSTANTS['COMBINED_WEIGHT']

        best_score = max(track_score, artist_score, album_score, combined_score)
        if best_score < min_score:
            continue

        if abs(track_score - best_score) < epsilon:
            match_type = "track"
        elif abs(artist_score - best_score) < epsilon:
            match_type = "artist"
        elif abs(album_score - best_score) < epsilon:
            match_type = "album"
        else:
            match_type = "combined"

        # slight bonus for much-played songs so ties break towards them
        play_bonus = min(song.ms_played / (1000 * 60) / SEARCH_CONSTANTS['PLAY_BONUS_DIVISOR'],
                         SEARCH_CONSTANTS['MAX_PLAY_BONUS'])
        results.append((song.key, best_score + play_bonus, match_type))

    # by score, then by key so equal scores come out in a stable order
    results.sort(key=lambda x: (-x[1], x[0]))
    return results[:limit]


def fuzzy_search_artists(index: Index, query: str, limit: int = 20,
                         min_score: int = None) -> List[Tuple[str, float]]:
    """Simple fuzzy search for artist names using RapidFuzz WRatio."""
    if min_score is None:
        min_score = SEARCH_CONSTANTS['SEARCH_MIN_SCORE']
    if not query or not query.strip():
        return []
    q = query.lower().strip()
    results: List[Tuple[str, float]] = []
    for artist in index.artists():
        score = fuzz.WRatio(q, artist.name.lower())
        if score >= min_score:
            results.append((artist.name, score))
    results.sort(key=lambda x: (-x[1], x[0]))
    return results[:limit]
