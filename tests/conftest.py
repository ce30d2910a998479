import json
from datetime import datetime, timedelta

import pytest

from listening_history.events import EventStore, PlayEvent
from listening_history.index import Index

OZZY = "Ozzy Osbourne"
SABBATH = "Black Sabbath"
THEOCRACY = "Theocracy"

BASE = datetime(2023, 1, 1)


def at(day, hour=12, minute=0):
    return BASE + timedelta(days=day, hours=hour, minutes=minute)


def play(ts, track, album, artist, ms):
    return PlayEvent(timestamp=ts, ms_played=ms, track_name=track, album_name=album, artist_name=artist)


# Jan: 5 plays, Feb: 2 plays, Mar: 2 plays
HISTORY = [
    play(at(0), "Crazy Train", "Blizzard of Ozz", OZZY, 290000),
    play(at(0, 13), "Iron Man", "Paranoid", SABBATH, 355000),
    play(at(1), "Bark at the Moon", "Bark at the Moon", OZZY, 255000),
    play(at(1, 13), "Crazy Train", "The Ozzman Cometh", OZZY, 290000),
    play(at(3), "Paranoid", "Paranoid", SABBATH, 100000),
    play(at(40), "Crazy Train", "Blizzard of Ozz", OZZY, 290000),
    play(at(40, 13), "Laying the Demon to Rest", "Mirror of Souls", THEOCRACY, 400000),
    play(at(75), "Iron Man", "Paranoid", SABBATH, 355000),
    play(at(75, 13), "Iron Man", "Paranoid", SABBATH, 20000),
]


@pytest.fixture
def history():
    return list(HISTORY)


@pytest.fixture
def store(history):
    return EventStore(history).freeze()


@pytest.fixture
def index(store):
    return Index.build(store)


@pytest.fixture
def empty_index():
    return Index.build(EventStore())


def raw_record(ts, track, album, artist, ms, **extra):
    """A record shaped like the extended streaming history export."""
    record = {
        "ts": ts,
        "platform": "android",
        "ms_played": ms,
        "master_metadata_track_name": track,
        "master_metadata_album_artist_name": artist,
        "master_metadata_album_album_name": album,
        "spotify_track_uri": None if track is None else "spotify:track:abc",
        "offline": False,
        "offline_timestamp": None,
    }
    record.update(extra)
    return record


@pytest.fixture
def export_dir(tmp_path):
    first = [
        raw_record("2023-01-01T12:00:00Z", "Crazy Train", "Blizzard of Ozz", OZZY, 290000),
        raw_record("2023-01-01T13:00:00Z", "Iron Man", "Paranoid", SABBATH, 355000),
        raw_record("2023-01-02T09:00:00Z", None, None, None, 600000, episode_name="Some Podcast"),
    ]
    second = [
        # same timestamp as a record of the first file: dropped
        raw_record("2023-01-01T13:00:00Z", "Paranoid", "Paranoid", SABBATH, 170000),
        raw_record("2023-02-10T12:00:00Z", "Crazy Train", "Blizzard of Ozz", OZZY, 290000),
    ]
    (tmp_path / "Streaming_History_Audio_2023_0.json").write_text(json.dumps(first), encoding="utf-8")
    (tmp_path / "Streaming_History_Audio_2023_1.json").write_text(json.dumps(second), encoding="utf-8")
    (tmp_path / "Streaming_History_Video_2023.json").write_text(json.dumps(first), encoding="utf-8")
    return tmp_path
