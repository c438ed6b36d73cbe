# modules/gacha.py
import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple

from ..config.settings import GACHA
from ..data_types import GachaEvent, Rarity, Rates, RollResult
from .xorshift import advance

logger = logging.getLogger(__name__)

BASE = GACHA.BASE
NO_PRIZE = GACHA.NO_PRIZE


class Reroll(NamedTuple):
    prize_id: int
    slot: int
    steps: int
    seed: int


# === レアリティ・スロット決定 ===

def score(seed: int) -> int:
    return seed % BASE


def determine_rarity(score: int, rates: Rates) -> Rarity:
    """
    レアリティ値に応じたレアリティを返す。
    閾値は累積で、レア→激レア→超激レアの順に判定する。
    """
    if score < rates.rare:
        return Rarity.RARE
    if score < rates.rare + rates.supa:
        return Rarity.SUPER_RARE
    if score < rates.rare + rates.supa + rates.uber:
        return Rarity.UBER
    return Rarity.LEGEND


def select_prize(slot_seed: int, rarity: Rarity, event: GachaEvent) -> Tuple[int, int]:
    """スロットからキャラIDを取得。空のプールは(NO_PRIZE, NO_PRIZE)。"""
    pool = event.pool(rarity)
    if not pool:
        return NO_PRIZE, NO_PRIZE
    slot = slot_seed % len(pool)
    return pool[slot], slot


def create_prize(event: GachaEvent, rarity_seed: int, slot_seed: int) -> int:
    rarity = determine_rarity(score(rarity_seed), event.rates)
    prize_id, _ = select_prize(slot_seed, rarity, event)
    return prize_id


# === 被り処理 ===

def reroll(
    slot_seed: int,
    original_id: int,
    original_slot: int,
    pool: Sequence[int],
) -> Optional[Reroll]:
    """
    被り時の再抽選。
    直前のスロットをプールのコピーから取り除きながら、被りの個数だけ試す。
    別のキャラが出なければNone(元の結果のまま)。
    """
    duplicate_count = sum(1 for prize_id in pool if prize_id == original_id)
    rerolling = list(pool)
    seed = slot_seed
    slot = original_slot

    for steps in range(1, duplicate_count + 1):
        seed = advance(seed)
        del rerolling[slot]
        if not rerolling:
            return None
        slot = seed % len(rerolling)
        prize_id = rerolling[slot]
        if prize_id != original_id:
            return Reroll(prize_id, slot, steps, seed)

    logger.debug('reroll exhausted for prize %s (%d copies)', original_id, duplicate_count)
    return None


# === 1回分のガチャ ===

def roll_once(
    seed: int,
    event: GachaEvent,
    last_prize_id: Optional[int] = None,
    index: int = 0,
    track: Optional[int] = None,
) -> Tuple[RollResult, int]:
    """
    seedの次の状態でレアリティ、さらに次の状態でスロットを決める。
    戻り値の2番目はスロット用シードで、次のロールの入力になる。
    """
    rarity_seed = advance(seed)
    slot_seed = advance(rarity_seed)
    roll_score = score(rarity_seed)
    rarity = determine_rarity(roll_score, event.rates)
    prize_id, slot = select_prize(slot_seed, rarity, event)

    switched_from_id = None
    reroll_steps = 0
    if (
        prize_id != NO_PRIZE
        and prize_id == last_prize_id
        and rarity in GACHA.REROLL_RARITIES
    ):
        rerolled = reroll(slot_seed, prize_id, slot, event.pool(rarity))
        if rerolled is not None:
            switched_from_id = prize_id
            prize_id, slot, reroll_steps = rerolled.prize_id, rerolled.slot, rerolled.steps

    result = RollResult(
        index=index,
        seed=rarity_seed,
        slot_seed=slot_seed,
        rarity=rarity,
        prize_id=prize_id,
        slot=slot,
        score=roll_score,
        switched_from_id=switched_from_id,
        reroll_steps=reroll_steps,
        track=track,
    )
    return result, slot_seed


def roll_multiple(
    seed: int,
    event: GachaEvent,
    count: int,
    track: Optional[int] = None,
) -> List[RollResult]:
    """roll_onceを連結する。直前のキャラIDを畳み込みながら進める。"""
    results: List[RollResult] = []
    last_prize_id = None
    for i in range(count):
        result, seed = roll_once(seed, event, last_prize_id, index=i, track=track)
        results.append(result)
        last_prize_id = result.prize_id
    return results
