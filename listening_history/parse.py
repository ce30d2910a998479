"""
Ingestion of Spotify extended streaming history exports.

Raw export records are validated here and turned into ``PlayEvent``s; podcast
streams and records with missing metadata never reach the core.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from tqdm import tqdm

from listening_history.events import EventStore, PlayEvent

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def smart_convert_to_datetime(timestamp: int, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Convert an epoch timestamp to local time, handling both seconds and milliseconds."""
    if not timestamp:
        return None
    # timestamp may be in milliseconds or seconds
    if timestamp >= 10000000000:
        timestamp = timestamp / 1000
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone(tz).replace(tzinfo=None)


def parse_ts(ts: str, tz: Optional[tzinfo] = None) -> datetime:
    """Parse an export ``ts`` field ("2016-07-21T01:02:07Z", UTC) into naive local time."""
    timestamp = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(tz).replace(tzinfo=None, microsecond=0)


def is_history_file(path: Path) -> bool:
    # only include audio history files (and the older endsong_N.json exports)
    return path.suffix == ".json" and ("Audio" in path.name or path.name.startswith("endsong"))


def history_files(json_dir: PathLike) -> List[Path]:
    return [jf for jf in sorted(Path(json_dir).glob("*.json")) if is_history_file(jf)]


def load_entries(path: PathLike) -> List[Dict]:
    """Load the raw records of one export file, or of every export file in a directory."""
    path = Path(path)
    files = history_files(path) if path.is_dir() else [path]
    entries: List[Dict] = []
    for jf in files:
        try:
            data = json.loads(jf.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Skipping %s: JSON error %s", jf, e)
            continue
        if isinstance(data, list):
            entries.extend(data)
        else:
            logger.warning("Skipping %s: expected a list of records", jf)
    return entries


def clean_entry(entry: Dict, tz: Optional[tzinfo] = None) -> Optional[PlayEvent]:
    """Validate one raw record, returning None for anything that is not a song stream."""
    track = entry.get("master_metadata_track_name")
    album = entry.get("master_metadata_album_album_name")
    artist = entry.get("master_metadata_album_artist_name")
    ms_played = entry.get("ms_played")
    # podcast episodes have no track metadata
    if not track or not album or not artist:
        return None
    if not isinstance(ms_played, int) or ms_played < 0:
        return None

    timestamp = None
    if entry.get("offline"):
        timestamp = smart_convert_to_datetime(entry.get("offline_timestamp"), tz)
    if timestamp is None:
        ts = entry.get("ts")
        if not ts:
            return None
        try:
            timestamp = parse_ts(ts, tz)
        except ValueError:
            return None

    return PlayEvent(
        timestamp=timestamp,
        ms_played=ms_played,
        track_name=str(track),
        album_name=str(album),
        artist_name=str(artist),
    )


def clean_entries(entries: Iterable[Dict], tz: Optional[tzinfo] = None) -> List[PlayEvent]:
    """Clean and standardize entry data."""
    cleaned_entries = []
    skipped = 0
    for entry in entries:
        event = clean_entry(entry, tz)
        if event is None:
            skipped += 1
            continue
        cleaned_entries.append(event)
    if skipped:
        logger.debug("Dropped %d records that are not valid song streams", skipped)
    return cleaned_entries


def load_file(path: PathLike, tz: Optional[tzinfo] = None) -> List[PlayEvent]:
    return clean_entries(load_entries(path), tz)


def load_store(paths: Union[PathLike, Sequence[PathLike]], tz: Optional[tzinfo] = None,
               workers: int = 1, progress: bool = False) -> EventStore:
    """
    Parse export files into a single event store.

    ``paths`` is a directory or a list of files. Files may be parsed in a
    thread pool, one partition per file, but they are merged into the store in
    file order so the first-seen-wins rule is applied over the whole history.
    """
    if isinstance(paths, (str, Path)):
        paths = history_files(paths) if Path(paths).is_dir() else [Path(paths)]
    paths = [Path(p) for p in paths]

    store = EventStore()
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            partitions = pool.map(lambda p: load_file(p, tz), paths)
            for events in tqdm(partitions, total=len(paths), desc="Loading files", disable=not progress):
                store.ingest(events)
    else:
        for path in tqdm(paths, desc="Loading files", disable=not progress):
            store.ingest(load_file(path, tz))
    return store.freeze()
