# seeker.py
import argparse
import logging
import sys
import time
from typing import List, Optional

from .config.settings import GACHA, SEARCH
from .data_loader import create_gacha_event, load_catalog, resolve_active_events
from .data_types import ProgressMessage, SeedSearchRange, WorkerMessage
from .modules.gacha import roll_multiple
from .modules.tracks import roll_tracks
from .services.search_runner import SearchRunner
from .services.seed_search import SeedSearchError
from .services.track_table import tracks_to_frame

logger = logging.getLogger(__name__)


def _cat_name(catalog):
    def lookup(cat_id: int) -> str:
        cat = catalog['cats'].get(str(cat_id))
        if cat is None:
            return str(cat_id)
        names = cat.get('name') or [str(cat_id)]
        return names[0]
    return lookup


def _event(catalog, code: str):
    if code not in catalog['events']:
        raise SystemExit(f'イベントが見つかりません: {code}')
    return create_gacha_event(catalog['events'][code], catalog)


def cmd_roll(args) -> int:
    catalog = load_catalog(args.catalog)
    event = _event(catalog, args.event)
    lookup = _cat_name(catalog)
    for roll in roll_multiple(args.seed, event, args.count):
        line = f'{roll.index + 1:>3} {roll.rarity.name:<10} {lookup(roll.prize_id)}'
        if roll.switch_tracks:
            line += f' (rerolled from {lookup(roll.switched_from_id)})'
        print(line)
    return 0


def cmd_tracks(args) -> int:
    catalog = load_catalog(args.catalog)
    event = _event(catalog, args.event)
    df = tracks_to_frame(roll_tracks(event, args.seed, args.count), _cat_name(catalog))
    print(df.to_string())
    return 0


def _print_message(message: WorkerMessage) -> None:
    if isinstance(message, ProgressMessage):
        logger.info(
            'worker %d: %d/%d seeds (%.0f seeds/s, ETA %.0fs)',
            message.worker_id, message.seeds_checked, message.total_seeds,
            message.seeds_per_second, message.eta_seconds,
        )


def cmd_search(args) -> int:
    catalog = load_catalog(args.catalog)
    if args.event:
        events = [_event(catalog, code) for code in args.event]
    else:
        events = resolve_active_events(catalog, args.date)
    seed_range = SeedSearchRange(args.start, args.end if args.end is not None else GACHA.UINT32_MAX)

    start = time.perf_counter()
    try:
        runner = SearchRunner(events, args.cats, args.workers, seed_range, on_message=_print_message)
        result = runner.run()
    except SeedSearchError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    for match in result.matches:
        print(f'seed={match.seed} event={match.event_id} {match.event_name}')
    print(f'{len(result.matches)} matches, {result.seeds_checked} seeds, {time.perf_counter() - start:.1f}s ({result.state.value})')
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='にゃんこ大戦争 ガチャシード予測・探索')
    parser.add_argument('--catalog', help='抽出済みカタログJSON (既定: $NYANKO_CATALOG)')
    parser.add_argument('-v', '--verbose', action='store_true')
    sub = parser.add_subparsers(dest='command', required=True)

    roll = sub.add_parser('roll', help='1本の連続ロール')
    roll.add_argument('event', help='イベントコード')
    roll.add_argument('seed', type=int)
    roll.add_argument('--count', type=int, default=10)
    roll.set_defaults(func=cmd_roll)

    tracks = sub.add_parser('tracks', help='A/Bトラック表')
    tracks.add_argument('event', help='イベントコード')
    tracks.add_argument('seed', type=int)
    tracks.add_argument('--count', type=int, default=100)
    tracks.set_defaults(func=cmd_tracks)

    search = sub.add_parser('search', help='キャラ列からシードを全探索')
    search.add_argument('cats', type=int, nargs='+', help=f'引いたキャラID ({SEARCH.MIN_TARGET_LENGTH}体以上)')
    search.add_argument('--event', action='append', help='対象イベントコード (省略時は開催中の全イベント)')
    search.add_argument('--date', help='開催判定日 YYYY-MM-DD')
    search.add_argument('--workers', type=int)
    search.add_argument('--start', type=int, default=0)
    search.add_argument('--end', type=int)
    search.set_defaults(func=cmd_search)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
