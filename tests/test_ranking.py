import random
from datetime import datetime, timedelta

import pytest

from listening_history.aspect import Selection
from listening_history.events import EventStore, PlayEvent
from listening_history.index import Index
from listening_history.ranking import Metric, RankScope, Ranked, rank_key, select_top, to_frame, top

from conftest import HISTORY, OZZY, SABBATH, THEOCRACY, at, play


def test_duplicate_timestamp_is_counted_once():
    t100 = datetime(2020, 1, 1) + timedelta(seconds=100)
    t200 = datetime(2020, 1, 1) + timedelta(seconds=200)
    store = EventStore([
        PlayEvent(t100, 180000, "Bark at the Moon", "Bark at the Moon", OZZY),
        PlayEvent(t100, 150000, "Crazy Train", "Blizzard of Ozz", OZZY),
        PlayEvent(t200, 180000, "Bark at the Moon", "Bark at the Moon", OZZY),
    ])
    assert len(store) == 2
    assert store.duplicates == 1
    assert [e.timestamp for e in store] == [t100, t200]

    index = Index.build(store)
    assert index.artist(OZZY).plays == 2
    song = index.song(OZZY, "Bark at the Moon", "Bark at the Moon")
    assert song.plays == 2
    assert song.first_listen == t100
    assert song.last_listen == t200
    assert Selection.of_song(OZZY, "Blizzard of Ozz", "Crazy Train") not in index

    [best] = top(index, Metric.PLAYS, 1)
    assert best.name == OZZY
    assert best.plays == 2


def test_top_artists_by_plays(index):
    ranking = top(index, Metric.PLAYS, 10)
    assert [(r.name, r.plays) for r in ranking] == [(OZZY, 4), (SABBATH, 4), (THEOCRACY, 1)]


def test_top_artists_by_duration(index):
    ranking = top(index, Metric.DURATION, 2)
    assert [r.name for r in ranking] == [OZZY, SABBATH]
    assert ranking[0].ms_played == 1125000


def test_truncation(index):
    assert len(top(index, Metric.PLAYS, 1)) == 1
    assert top(index, Metric.PLAYS, 0) == []
    assert len(top(index, Metric.PLAYS, None)) == 3


def test_empty_index_ranks_nothing(empty_index):
    assert top(empty_index, Metric.PLAYS, 5) == []


def test_top_songs(index):
    ranking = top(index, Metric.PLAYS, None, scope=RankScope.SONGS)
    assert [(r.name, r.album, r.plays) for r in ranking] == [
        ("Iron Man", "Paranoid", 3),
        ("Crazy Train", "Blizzard of Ozz", 2),
        ("Bark at the Moon", "Bark at the Moon", 1),
        ("Crazy Train", "The Ozzman Cometh", 1),
        ("Paranoid", "Paranoid", 1),
        ("Laying the Demon to Rest", "Mirror of Souls", 1),
    ]


def test_top_songs_summed_across_albums(index):
    ranking = top(index, Metric.PLAYS, 10, scope=RankScope.SONGS_OF_ARTIST, artist=OZZY, sum_across_albums=True)
    assert [(r.name, r.plays) for r in ranking] == [("Crazy Train", 3), ("Bark at the Moon", 1)]
    # the album with the most plays represents the song
    assert ranking[0].album == "Blizzard of Ozz"
    assert ranking[0].ms_played == 3 * 290000


def test_top_albums(index):
    ranking = top(index, Metric.PLAYS, 2, scope=RankScope.ALBUMS)
    assert [(r.name, r.artist, r.plays) for r in ranking] == [("Paranoid", SABBATH, 4), ("Blizzard of Ozz", OZZY, 2)]
    of_ozzy = top(index, Metric.PLAYS, None, scope=RankScope.ALBUMS_OF_ARTIST, artist=OZZY)
    assert [r.name for r in of_ozzy] == ["Blizzard of Ozz", "Bark at the Moon", "The Ozzman Cometh"]


def test_per_artist_scope_needs_artist(index):
    with pytest.raises(ValueError):
        top(index, scope=RankScope.SONGS_OF_ARTIST)


def test_per_artist_scope_of_missing_artist_is_empty(index, empty_index):
    assert top(index, scope=RankScope.ALBUMS_OF_ARTIST, artist="Nonexistent Artist") == []
    assert top(empty_index, scope=RankScope.SONGS_OF_ARTIST, artist=OZZY) == []
    assert top(empty_index, scope=RankScope.ALBUMS_OF_ARTIST, artist=OZZY, start=at(0), end=at(90)) == []
    assert top(index, scope=RankScope.SONGS_OF_ARTIST, artist="Nonexistent Artist",
               sum_across_albums=True, start=at(0), end=at(90)) == []


def test_summed_song_ties_show_last_album():
    store = EventStore([
        play(at(0), "Crazy Train", "Blizzard of Ozz", OZZY, 290000),
        play(at(1), "Crazy Train", "The Ozzman Cometh", OZZY, 290000),
    ])
    index = Index.build(store)
    [whole] = top(index, scope=RankScope.SONGS_OF_ARTIST, artist=OZZY, sum_across_albums=True)
    [windowed] = top(index, scope=RankScope.SONGS_OF_ARTIST, artist=OZZY, sum_across_albums=True,
                     start=at(0, 0), end=at(2, 0))
    assert whole.plays == windowed.plays == 2
    assert whole.album == windowed.album == "The Ozzman Cometh"


def test_top_in_window(index):
    ranking = top(index, Metric.PLAYS, 10, start=at(31, 0), end=at(90, 0))
    assert [(r.name, r.plays) for r in ranking] == [(SABBATH, 2), (OZZY, 1), (THEOCRACY, 1)]


def test_windowed_songs_summed_across_albums(index):
    ranking = top(index, Metric.PLAYS, 10, scope=RankScope.SONGS_OF_ARTIST, artist=OZZY,
                  sum_across_albums=True, start=at(1, 0), end=at(2, 0))
    assert [(r.name, r.plays) for r in ranking] == [("Bark at the Moon", 1), ("Crazy Train", 1)]
    assert ranking[1].album == "The Ozzman Cometh"


def test_windowed_matches_whole_history(index):
    """A window covering everything ranks exactly like the index counters."""
    for scope in (RankScope.ARTISTS, RankScope.ALBUMS, RankScope.SONGS):
        assert top(index, Metric.PLAYS, None, scope=scope, start=at(-1), end=at(100)) == \
            top(index, Metric.PLAYS, None, scope=scope)


def test_ranking_is_deterministic():
    shuffled = list(HISTORY)
    random.Random(7).shuffle(shuffled)
    first = top(Index.build(EventStore(HISTORY)), Metric.PLAYS, None, scope=RankScope.SONGS)
    second = top(Index.build(EventStore(shuffled)), Metric.PLAYS, None, scope=RankScope.SONGS)
    assert first == second


def test_equal_values_break_on_first_listen_then_name():
    when = datetime(2023, 1, 1)
    a = Ranked("Abba", 5, 1000, when)
    b = Ranked("Blur", 5, 1000, when)
    earlier = Ranked("Cream", 5, 1000, when - timedelta(days=1))
    assert sorted([b, a, earlier], key=rank_key(Metric.PLAYS)) == [earlier, a, b]


def test_heap_selection_matches_full_sort():
    events = []
    ts = datetime(2023, 1, 1)
    rng = random.Random(42)
    for i in range(100):
        for _ in range(rng.randint(1, 6)):
            ts += timedelta(minutes=5)
            events.append(play(ts, f"Song {i}", f"Album {i}", f"Artist {i:03d}", rng.randint(1000, 300000)))
    index = Index.build(EventStore(events))

    for metric in Metric:
        everything = top(index, metric, None)
        assert top(index, metric, 7) == everything[:7]
        assert select_top(everything, 3, metric) == everything[:3]


def test_to_frame(index):
    df = to_frame(top(index, Metric.DURATION, 3), Metric.DURATION)
    assert list(df['rank']) == [1, 2, 3]
    assert list(df['name']) == [OZZY, SABBATH, THEOCRACY]
    assert df.attrs['metric'] == 'duration'
    assert df.loc[0, 'minutes_played'] == pytest.approx(1125000 / 60000)
