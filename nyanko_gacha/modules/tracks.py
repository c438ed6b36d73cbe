# modules/tracks.py
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from ..data_types import TRACK_NAMES, GachaEvent, Rarity, RollResult, Tracks
from .gacha import roll_multiple, roll_once, score, select_prize
from .xorshift import advance, advance_n, rewind

logger = logging.getLogger(__name__)

TRACK_A = 0
TRACK_B = 1


def other_track(track: int) -> int:
    return TRACK_B if track == TRACK_A else TRACK_A


# マスターシードからの位置pで、トラックAは偶数(2k+2)、トラックBは奇数(2k+3)
def track_position(track: int, index: int) -> int:
    return 2 * index + 2 + track


def position_to_roll(position: int) -> Tuple[int, int]:
    track = position % 2
    return track, (position - 2 - track) // 2


def roll_label(track: int, index: int) -> str:
    return f'{index + 1}{TRACK_NAMES[track]}'


def _guaranteed_window(
    event: GachaEvent,
    cursor: int,
    position: int,
    start_index: int,
    last_prize_id: Optional[int],
) -> Tuple[RollResult, str]:
    """
    cursorは位置positionのひとつ前の状態。
    確定分の通常ロールを実際の移動込みで進め、到達した状態(最後のスロット用シード)で超激レアを決める。
    再開位置はその2つ先で、移動がなければ反対側のトラックになる。
    """
    switches = 0
    for _ in range(event.guaranteed_rolls):
        result, cursor = roll_once(cursor, event, last_prize_id)
        position += 2
        if result.switch_tracks:
            # 再抽選で進んだ分だけトラックがずれる
            cursor = advance_n(cursor, result.reroll_steps)
            position += result.reroll_steps
            switches += result.reroll_steps
        last_prize_id = result.prize_id

    uber_seed = cursor
    prize_id, slot = select_prize(uber_seed, Rarity.UBER, event)
    landing_track, landing_index = position_to_roll(position + 1)
    logger.debug(
        'guaranteed window from %d: %d switches, landing %s',
        start_index, switches, roll_label(landing_track, landing_index),
    )
    guaranteed = RollResult(
        index=start_index,
        seed=uber_seed,
        slot_seed=uber_seed,
        rarity=Rarity.UBER,
        prize_id=prize_id,
        slot=slot,
        score=score(uber_seed),
        is_guaranteed=True,
        track=landing_track,
    )
    return guaranteed, roll_label(landing_track, landing_index)


def guaranteed_roll(
    event: GachaEvent,
    seed: int,
    track: int,
    index: int,
    last_prize_id: Optional[int] = None,
) -> Tuple[RollResult, str]:
    """マスターシードseedのトラックtrack、index番目から確定を引いた結果と再開位置"""
    if not event.guaranteed_rolls:
        raise ValueError(f'event {event.id} has no guaranteed rolls')
    position = track_position(track, index)
    cursor = advance_n(seed, position - 1)
    return _guaranteed_window(event, cursor, position, index, last_prize_id)


def _annotate(event: GachaEvent, track: int, rolls: List[RollResult], first_last: Optional[int]) -> List[RollResult]:
    annotated = []
    last_prize_id = first_last
    for roll in rolls:
        guaranteed, landing = _guaranteed_window(
            event,
            rewind(roll.seed),
            track_position(track, roll.index),
            roll.index,
            last_prize_id,
        )
        annotated.append(replace(roll, guaranteed=guaranteed, next_after_guaranteed=landing))
        last_prize_id = roll.prize_id
    return annotated


def roll_tracks(event: GachaEvent, seed: int, count: int) -> Tracks:
    """
    マスターシードから2本のトラックを生成する。
    A: advance(seed)から開始。
    B: seedから1本多く生成し先頭を捨てる(先頭は被り判定にだけ使う)。
    """
    track_a = roll_multiple(advance(seed), event, count, track=TRACK_A)
    lead_b = roll_multiple(seed, event, count + 1, track=TRACK_B)
    track_b = [replace(roll, index=roll.index - 1) for roll in lead_b[1:]]

    if event.guaranteed_rolls:
        track_a = _annotate(event, TRACK_A, track_a, None)
        track_b = _annotate(event, TRACK_B, track_b, lead_b[0].prize_id)

    return Tracks(track_a=tuple(track_a), track_b=tuple(track_b))
