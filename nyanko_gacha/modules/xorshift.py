#https://qiita.com/SatoshiTerasaki/items/e101d4c0e2e9e0e55663
# modules/xorshift.py
from typing import List

from numba import njit

U32_MASK = 0xFFFFFFFF #32ビットの下位ビットだけを残すマスク


def _xor_shift(seed: int, direction: str, bits: int) -> int:
    shifted = seed << bits if direction == '<<' else seed >> bits
    return (seed ^ shifted) & U32_MASK


def advance(seed: int) -> int:
    """xorshift32で1ステップ進める"""
    seed &= U32_MASK # 入力を32ビット符号なしに正規化
    seed = _xor_shift(seed, '<<', 13)
    seed = _xor_shift(seed, '>>', 17)
    seed = _xor_shift(seed, '<<', 15)
    return seed


def retreat(seed: int) -> int:
    """
    旧クライアントの逆算処理(26, 13, 17, 30, 15)。
    advanceの逆関数ではないので、前の状態が必要な場合はrewindを使う。
    """
    seed &= U32_MASK
    seed = _xor_shift(seed, '<<', 26)
    seed = _xor_shift(seed, '<<', 13)
    seed = _xor_shift(seed, '>>', 17)
    seed = _xor_shift(seed, '<<', 30)
    seed = _xor_shift(seed, '<<', 15)
    return seed


def rewind(seed: int) -> int:
    """advanceの厳密な逆関数。シフトを逆順に打ち消す。"""
    seed &= U32_MASK
    # << 15 の打ち消し
    seed = _xor_shift(seed, '<<', 15)
    seed = _xor_shift(seed, '<<', 30)
    # >> 17 の打ち消し
    seed = _xor_shift(seed, '>>', 17)
    # << 13 の打ち消し
    seed = _xor_shift(seed, '<<', 13)
    seed = _xor_shift(seed, '<<', 26)
    return seed


def advance_n(seed: int, n: int) -> int:
    for _ in range(n):
        seed = advance(seed)
    return seed


def seed_chain(seed: int, count: int) -> List[int]:
    """seedを含まない、以降count個の状態"""
    seeds = []
    for _ in range(count):
        seed = advance(seed)
        seeds.append(seed)
    return seeds


@njit(inline='always')
def xorshift32(x):
    """njit版。int64で受けて各段で32ビットに丸める。"""
    x ^= (x << 13) & U32_MASK
    x ^= (x >> 17)
    x ^= (x << 15) & U32_MASK
    return x & U32_MASK
