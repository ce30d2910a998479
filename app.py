import argparse
import logging
import sys
from datetime import datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from listening_history import aggregate
from listening_history.aspect import Selection
from listening_history.constants import ANALYSIS_CONSTANTS, SEARCH_CONSTANTS
from listening_history.errors import NotFound
from listening_history.index import Index, ListenPolicy, infer_song_lengths
from listening_history.parse import history_files, load_store
from listening_history.plot import (absolute_figure, daily_minutes_figure, open_plot,
                                    relative_figure, write_plot)
from listening_history.ranking import Metric, RankScope, Ranked, top
from listening_history.search import find_artist, fuzzy_search_artists, fuzzy_search_songs
from listening_history.timeseries import Granularity, absolute, relative


def format_duration(duration: timedelta) -> str:
    """Format a duration as "_d _h _m"."""
    minutes = int(duration.total_seconds() // 60)
    if minutes < 2:
        return f"{int(duration.total_seconds())}s"
    days, minutes = divmod(minutes, 60 * 24)
    hours, minutes = divmod(minutes, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def parse_date(value: str) -> datetime:
    """argparse type for YYYY-MM-DD dates"""
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def build_index(data: str, tz: Optional[str], workers: int, infer_lengths: bool) -> Index:
    """Load the export files and fold them into an index."""
    files = history_files(data)
    print(f"{len(files)} history files found in {data}")
    store = load_store(files, tz=ZoneInfo(tz) if tz else None, workers=workers, progress=True)
    print(f"{len(store)} plays loaded ({store.duplicates} duplicate timestamps skipped)")
    policy = ListenPolicy(infer_song_lengths(store)) if infer_lengths else None
    return Index.build(store, policy)


def selection_from_args(index: Index, args) -> Selection:
    """Resolve artist/album/song flags into a selection, fixing capitalization."""
    matches = find_artist(index, args.artist)
    artist = matches[0].name if matches else args.artist
    if args.song and args.album:
        return Selection.of_song(artist, args.album, args.song)
    if args.song:
        return Selection.of_song_across_albums(artist, args.song)
    if args.album:
        return Selection.of_album(artist, args.album)
    return Selection.of_artist(artist)


def print_ranking(title: str, ranking: List[Ranked], metric: Metric) -> None:
    print(f"\n=== {title} ===")
    if not ranking:
        print("  (no plays)")
    for i, r in enumerate(ranking, 1):
        label = r.name if r.album is None else f"{r.name} ({r.album})"
        if r.artist and r.album is not None:
            label = f"{label} by {r.artist}"
        value = f"{r.plays} plays" if metric is Metric.PLAYS else format_duration(timedelta(milliseconds=r.ms_played))
        print(f"  {i}. {label} | {value}")


def cmd_summary(index: Index, args) -> None:
    store = index.store
    if not store:
        print("No plays in the loaded data.")
        return
    print(f"\nTotal plays: {index.totals.plays:,}")
    print(f"Total listening time: {format_duration(aggregate.listening_time(index))}")
    print(f"Artists: {len(index):,}")
    print(f"Date range: {store.first_date():%Y-%m-%d} to {store.last_date():%Y-%m-%d}")
    span, start, end = aggregate.max_listening_period(store, args.days)
    print(f"Most listening in {args.days} days: {format_duration(span)} "
          f"({start:%Y-%m-%d} to {end:%Y-%m-%d})")
    metric = Metric(args.metric)
    print_ranking(f"Top {args.top} artists", top(index, metric, args.top), metric)


def cmd_top(index: Index, args) -> None:
    metric = Metric(args.metric)
    scope = RankScope(args.scope)
    ranking = top(index, metric, args.top, scope=scope, artist=args.artist,
                  sum_across_albums=args.sum_across_albums, start=args.start, end=args.end)
    print_ranking(f"Top {args.top} {scope.value.replace('_', ' ')} by {metric.value}", ranking, metric)


def cmd_artist(index: Index, args) -> None:
    selection = selection_from_args(index, args)
    s = aggregate.summary(index, selection)
    print(f"\n=== {selection} ===")
    print(f"Plays: {s.plays} ({s.percentage_of_plays:.2f}% of all plays)")
    print(f"Listening time: {format_duration(s.listening_time)} ({s.percentage_of_time:.2f}% of all time)")
    if s.position is not None:
        print(f"Position: #{s.position}")
    if s.percentage_of_parent is not None:
        print(f"Share of {selection.parent()}: {s.percentage_of_parent:.2f}%")
    print(f"First listen: {s.first_listen:%Y-%m-%d %H:%M}")
    print(f"Last listen: {s.last_listen:%Y-%m-%d %H:%M}")
    print(f"Full listens: {s.full_listens} | 90% listens: {s.ninety_percent_listens}")
    if args.album is None and args.song is None:
        print_ranking("Top albums", top(index, Metric.PLAYS, args.top, RankScope.ALBUMS_OF_ARTIST,
                                         artist=selection.artist), Metric.PLAYS)
        print_ranking("Top songs", top(index, Metric.PLAYS, args.top, RankScope.SONGS_OF_ARTIST,
                                        artist=selection.artist, sum_across_albums=True), Metric.PLAYS)


def cmd_search(index: Index, args) -> None:
    print("\nArtists:")
    for name, score in fuzzy_search_artists(index, args.query, min_score=SEARCH_CONSTANTS['SEARCH_MIN_SCORE']):
        print(f"  {name} ({score:.0f})")
    print("\nSongs:")
    for (artist, album, track), score, match_type in fuzzy_search_songs(index, args.query):
        print(f"  {track} - {album} | {artist} ({score:.0f}, {match_type})")


def cmd_plot(index: Index, args) -> None:
    if args.daily:
        fig = daily_minutes_figure(index.store, args.ema)
        name = "daily_minutes"
    else:
        selection = selection_from_args(index, args)
        index.nodes_for(selection)
        granularity = Granularity(args.granularity)
        metric = Metric(args.metric)
        if args.relative:
            baseline = selection.parent() if args.relative_to_parent else None
            fig = relative_figure(relative(index, selection, granularity, metric, baseline), str(selection))
        else:
            fig = absolute_figure(absolute(index, selection, granularity, metric, args.cumulative),
                                  str(selection), "Plays" if metric is Metric.PLAYS else "Milliseconds")
        name = f"{selection}_{'relative' if args.relative else 'absolute'}"
    path = write_plot(fig, name, args.output)
    print(f"Plot written to {path}")
    if args.open:
        open_plot(path)


def add_selection_args(parser: argparse.ArgumentParser, required: bool = True) -> None:
    parser.add_argument("--artist", required=required, help="Artist name (case-insensitive)")
    parser.add_argument("--album", help="Album name")
    parser.add_argument("--song", help="Song name (summed across albums unless --album is given)")


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Spotify Listening History Analytics")
    parser.add_argument("--data", type=str, required=True,
                        help="Path to Spotify Extended Streaming History directory")
    parser.add_argument("--tz", type=str, default=None,
                        help="Time zone for timestamps, e.g. Europe/Berlin (default: system zone)")
    parser.add_argument("--workers", type=int, default=1, help="Files parsed in parallel")
    parser.add_argument("--infer-lengths", action="store_true",
                        help="Estimate track lengths from the data for full-listen counts")
    parser.add_argument("--debug", action="store_true", help="Show debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("summary", help="Overall numbers and top artists")
    p.add_argument("--top", type=int, default=ANALYSIS_CONSTANTS['DEFAULT_TOP_N'])
    p.add_argument("--metric", choices=[m.value for m in Metric], default=Metric.PLAYS.value)
    p.add_argument("--days", type=int, default=30, help="Length of the busiest-period window")
    p.set_defaults(func=cmd_summary)

    p = sub.add_parser("top", help="Top-N ranking")
    p.add_argument("--top", type=int, default=ANALYSIS_CONSTANTS['DEFAULT_TOP_N'])
    p.add_argument("--metric", choices=[m.value for m in Metric], default=Metric.PLAYS.value)
    p.add_argument("--scope", choices=[s.value for s in RankScope], default=RankScope.ARTISTS.value)
    p.add_argument("--artist", help="Artist for the per-artist scopes")
    p.add_argument("--sum-across-albums", action="store_true")
    p.add_argument("--start", type=parse_date)
    p.add_argument("--end", type=parse_date)
    p.set_defaults(func=cmd_top)

    p = sub.add_parser("artist", help="Details of an artist, album or song")
    add_selection_args(p)
    p.add_argument("--top", type=int, default=ANALYSIS_CONSTANTS['DEFAULT_TOP_N'])
    p.set_defaults(func=cmd_artist)

    p = sub.add_parser("search", help="Fuzzy search for artists and songs")
    p.add_argument("query")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("plot", help="Write a trend plot as HTML")
    add_selection_args(p, required=False)
    p.add_argument("--granularity", choices=[g.value for g in Granularity], default=Granularity.MONTH.value)
    p.add_argument("--metric", choices=[m.value for m in Metric], default=Metric.PLAYS.value)
    p.add_argument("--relative", action="store_true", help="Share of each bucket's total listening")
    p.add_argument("--relative-to-parent", action="store_true",
                   help="With --relative, compare against the enclosing album/artist")
    p.add_argument("--cumulative", action="store_true")
    p.add_argument("--daily", action="store_true", help="Daily minutes over the whole history")
    p.add_argument("--ema", type=int, default=None, help="EMA span in days for --daily")
    p.add_argument("--output", default=None, help="Directory for the HTML file")
    p.add_argument("--open", action="store_true", help="Open the plot in the browser")
    p.set_defaults(func=cmd_plot)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = make_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    if args.command == "plot" and not args.daily and not args.artist:
        parser.error("plot needs --artist unless --daily is given")

    # Load data
    print("Loading Spotify data...")
    try:
        index = build_index(args.data, args.tz, args.workers, args.infer_lengths)
    except (OSError, ValueError, ZoneInfoNotFoundError) as e:
        print(f"❌ Error loading data: {e}", file=sys.stderr)
        return 1
    print(f"✅ Index built: {len(index)} artists")

    try:
        args.func(index, args)
    except (NotFound, ValueError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
