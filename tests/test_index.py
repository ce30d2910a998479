import pytest

from listening_history.aspect import Selection
from listening_history.errors import NotFound
from listening_history.events import EventStore
from listening_history.index import Index, ListenPolicy, infer_song_lengths

from conftest import OZZY, SABBATH, THEOCRACY, at, play


def test_counters_roll_up(index):
    """Children's counters always sum to their parent's."""
    assert index.totals.plays == sum(a.plays for a in index.artists())
    assert index.totals.ms_played == sum(a.ms_played for a in index.artists())
    for artist in index.artists():
        assert artist.plays == sum(al.plays for al in artist.albums.values())
        assert artist.ms_played == sum(al.ms_played for al in artist.albums.values())
        for album in artist.albums.values():
            assert album.plays == sum(s.plays for s in album.songs.values())
            assert album.ms_played == sum(s.ms_played for s in album.songs.values())


def test_totals_match_store(index, store):
    assert index.totals.plays == len(store)
    assert index.totals.ms_played == sum(e.ms_played for e in store)


def test_artist_counters(index):
    ozzy = index.artist(OZZY)
    assert ozzy.plays == 4
    assert ozzy.ms_played == 3 * 290000 + 255000
    assert ozzy.first_listen == at(0)
    assert ozzy.last_listen == at(40)
    assert [a.name for a in index.albums(OZZY)] == ["Blizzard of Ozz", "Bark at the Moon", "The Ozzman Cometh"]


def test_song_lookup(index):
    song = index.song(SABBATH, "Paranoid", "Iron Man")
    assert song.plays == 3
    assert song.key == (SABBATH, "Paranoid", "Iron Man")
    assert song.first_listen == at(0, 13)
    assert song.last_listen == at(75, 13)


def test_artists_in_first_listen_order(index):
    assert [a.name for a in index.artists()] == [OZZY, SABBATH, THEOCRACY]
    assert len(index) == 3


def test_song_versions(index):
    versions = index.song_versions(OZZY, "Crazy Train")
    assert [(s.album_name, s.plays) for s in versions] == [("Blizzard of Ozz", 2), ("The Ozzman Cometh", 1)]
    assert sorted(index.song_titles(OZZY)) == ["Bark at the Moon", "Crazy Train"]


@pytest.mark.parametrize("lookup", [
    lambda idx: idx.artist("Nonexistent Artist"),
    lambda idx: idx.album(OZZY, "Paranoid"),
    lambda idx: idx.song(OZZY, "Blizzard of Ozz", "Iron Man"),
    lambda idx: idx.song_versions(SABBATH, "Crazy Train"),
    lambda idx: idx.albums("Nonexistent Artist"),
])
def test_missing_lookups_raise_without_mutating(index, lookup):
    before = (len(index), index.totals.plays, len(list(index.all_albums())), len(list(index.all_songs())))
    with pytest.raises(NotFound):
        lookup(index)
    after = (len(index), index.totals.plays, len(list(index.all_albums())), len(list(index.all_songs())))
    assert before == after


def test_not_found_carries_key(index):
    with pytest.raises(NotFound) as excinfo:
        index.artist("Nonexistent Artist")
    assert excinfo.value.what == 'artist'
    assert excinfo.value.key == "Nonexistent Artist"
    assert isinstance(excinfo.value, LookupError)


def test_selection_membership(index):
    assert Selection.of_artist(OZZY) in index
    assert Selection.of_album(OZZY, "Blizzard of Ozz") in index
    assert Selection.of_song(OZZY, "Blizzard of Ozz", "Crazy Train") in index
    assert Selection.of_song_across_albums(OZZY, "Crazy Train") in index
    assert Selection.of_song(OZZY, "Paranoid", "Crazy Train") not in index
    assert Selection.of_artist("Nonexistent Artist") not in index


def test_nodes_for_song_across_albums(index):
    nodes = index.nodes_for(Selection.of_song_across_albums(OZZY, "Crazy Train"))
    assert sum(n.plays for n in nodes) == 3


def test_build_freezes_store(history):
    store = EventStore(history)
    Index.build(store)
    assert store.frozen


def test_empty_index(empty_index):
    assert len(empty_index) == 0
    assert empty_index.totals.plays == 0
    assert empty_index.artists() == []
    assert list(empty_index.all_songs()) == []


def test_default_policy_uses_fallback(index):
    # only the 20 second Iron Man play is shorter than the 30 second fallback
    assert index.totals.full_listens == 8
    assert index.totals.ninety_listens == 8
    assert index.song(SABBATH, "Paranoid", "Iron Man").full_listens == 2


def test_policy_with_known_lengths(history):
    policy = ListenPolicy({
        (SABBATH, "Paranoid", "Paranoid"): 170000,
        (OZZY, "Bark at the Moon", "Bark at the Moon"): 260000,
    })
    index = Index.build(EventStore(history), policy)

    paranoid = index.song(SABBATH, "Paranoid", "Paranoid")
    assert (paranoid.full_listens, paranoid.ninety_listens) == (0, 0)
    bark = index.song(OZZY, "Bark at the Moon", "Bark at the Moon")
    assert (bark.full_listens, bark.ninety_listens) == (0, 1)


def test_classify_boundaries():
    policy = ListenPolicy({(OZZY, "Blizzard of Ozz", "Crazy Train"): 100000})
    exact = play(at(0), "Crazy Train", "Blizzard of Ozz", OZZY, 100000)
    ninety = play(at(1), "Crazy Train", "Blizzard of Ozz", OZZY, 90000)
    short = play(at(2), "Crazy Train", "Blizzard of Ozz", OZZY, 89999)
    assert policy.classify(exact) == (True, True)
    assert policy.classify(ninety) == (False, True)
    assert policy.classify(short) == (False, False)


def test_infer_song_lengths(store):
    lengths = infer_song_lengths(store)
    assert lengths[(SABBATH, "Paranoid", "Iron Man")] == 355000
    assert lengths[(OZZY, "Blizzard of Ozz", "Crazy Train")] == 290000
    assert len(lengths) == len(list(Index.build(store).all_songs()))


def test_infer_song_lengths_tie_takes_longest():
    store = EventStore([
        play(at(0), "Crazy Train", "Blizzard of Ozz", OZZY, 120000),
        play(at(1), "Crazy Train", "Blizzard of Ozz", OZZY, 290000),
    ])
    assert infer_song_lengths(store) == {(OZZY, "Blizzard of Ozz", "Crazy Train"): 290000}


def test_constructor_builds_the_whole_index(history):
    store = EventStore(history)
    index = Index(store)
    assert store.frozen
    assert index.totals.plays == len(history)
    assert [s.album_name for s in index.song_versions(OZZY, "Crazy Train")] == ["Blizzard of Ozz", "The Ozzman Cometh"]


def test_scope_of_missing_selection_is_empty(index):
    assert index.scope(Selection.of_artist("Nonexistent Artist")) == []
    assert index.scope(Selection.of_song_across_albums(SABBATH, "Crazy Train")) == []
    assert [n.plays for n in index.scope(Selection.of_artist(OZZY))] == [4]
