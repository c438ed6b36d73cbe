# services/seed_search.py
import logging
import threading
import time
from typing import Callable, List, NamedTuple, Optional, Sequence

import numpy as np
from numba import njit

from ..config.settings import GACHA, SEARCH
from ..data_types import (
    CompleteMessage,
    ErrorMessage,
    GachaEvent,
    MatchMessage,
    ProgressMessage,
    Rarity,
    SearchState,
    SeedMatch,
    SeedSearchResult,
    StartRequest,
    StoppedMessage,
    WorkerMessage,
)
from ..modules.gacha import roll_once
from ..modules.xorshift import xorshift32

logger = logging.getLogger(__name__)

N_RARITIES = len(Rarity)


class SeedSearchError(ValueError):
    pass


class CancelToken:
    """探索ループに渡す停止フラグ。multiprocessing.Eventも同じis_set()で使える。"""

    def __init__(self):
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


def validate_search(target: Sequence[int], events: Sequence[GachaEvent]) -> None:
    if len(target) < SEARCH.MIN_TARGET_LENGTH:
        raise SeedSearchError(
            f'キャラを{SEARCH.MIN_TARGET_LENGTH}体以上選択してください (現在{len(target)}体)'
        )
    if not events:
        raise SeedSearchError('本日開催中のガチャイベントがありません')


def seed_matches(event: GachaEvent, seed: int, target: Sequence[int]) -> bool:
    """1キャラずつ照合し、最初の不一致で打ち切る。被りの再抽選も反映する。"""
    current = seed
    last_prize_id = None
    for expected in target:
        result, current = roll_once(current, event, last_prize_id)
        if result.prize_id != expected:
            return False
        last_prize_id = result.prize_id
    return True


# === numba用のテーブル変換 ===

class PackedEvents(NamedTuple):
    rates: np.ndarray        # (E, 3) rare, supa, uber
    pool_ids: np.ndarray     # 全プールを連結したキャラID
    pool_starts: np.ndarray  # (E, 6) 各プールの開始位置
    pool_sizes: np.ndarray   # (E, 6) 各プールの個数
    reroll: np.ndarray       # (6,) 被り再抽選するレアリティは1


def pack_events(events: Sequence[GachaEvent]) -> PackedEvents:
    rates = np.zeros((len(events), 3), dtype=np.int64)
    pool_starts = np.zeros((len(events), N_RARITIES), dtype=np.int64)
    pool_sizes = np.zeros((len(events), N_RARITIES), dtype=np.int64)
    ids: List[int] = []
    for e, event in enumerate(events):
        rates[e] = (event.rates.rare, event.rates.supa, event.rates.uber)
        for rarity in Rarity:
            pool = event.pool(rarity)
            pool_starts[e, rarity] = len(ids)
            pool_sizes[e, rarity] = len(pool)
            ids.extend(pool)
    pool_ids = np.array(ids, dtype=np.int64) if ids else np.zeros(1, dtype=np.int64)
    reroll = np.array([1 if r in GACHA.REROLL_RARITIES else 0 for r in Rarity], dtype=np.int64)
    return PackedEvents(rates, pool_ids, pool_starts, pool_sizes, reroll)


@njit(inline='always')
def _rarity_index(score, rare, supa, uber):
    if score < rare:
        return 2
    if score < rare + supa:
        return 3
    if score < rare + supa + uber:
        return 4
    return 5


@njit
def _reroll_prize(slot_seed, original_id, original_slot, pool_ids, start, size, scratch):
    """gacha.rerollと同じ手順。別のキャラが出なければoriginal_idのまま。"""
    duplicates = 0
    for j in range(size):
        scratch[j] = pool_ids[start + j]
        if scratch[j] == original_id:
            duplicates += 1

    n = size
    seed = slot_seed
    slot = original_slot
    for _ in range(duplicates):
        seed = xorshift32(seed)
        # scratch[slot]を詰めて取り除く
        for j in range(slot, n - 1):
            scratch[j] = scratch[j + 1]
        n -= 1
        if n == 0:
            return original_id
        slot = seed % n
        if scratch[slot] != original_id:
            return scratch[slot]
    return original_id


@njit
def scan_block(start, stop, target, rates, pool_ids, pool_starts, pool_sizes, reroll, scratch, out_seeds, out_events):
    """
    [start, stop)の全シード×全イベントを照合する。
    直前のキャラと被ったレアは再抽選してから比較する。
    一致数を返す。out_*の容量を超えた分は書き込まず数だけ数える。
    """
    n_events = rates.shape[0]
    n_target = target.shape[0]
    capacity = out_seeds.shape[0]
    found = 0
    for seed in range(start, stop):
        for e in range(n_events):
            current = seed
            last = -1
            matched = True
            for i in range(n_target):
                rarity_seed = xorshift32(current)
                slot_seed = xorshift32(rarity_seed)
                rarity = _rarity_index(rarity_seed % 10000, rates[e, 0], rates[e, 1], rates[e, 2])
                size = pool_sizes[e, rarity]
                if size == 0:
                    prize = -1
                else:
                    slot = slot_seed % size
                    prize = pool_ids[pool_starts[e, rarity] + slot]
                    if prize == last and reroll[rarity] == 1:
                        prize = _reroll_prize(
                            slot_seed, prize, slot, pool_ids, pool_starts[e, rarity], size, scratch,
                        )
                if prize != target[i]:
                    matched = False
                    break
                last = prize
                current = slot_seed
            if matched:
                if found < capacity:
                    out_seeds[found] = seed
                    out_events[found] = e
                found += 1
    return found


class BlockScanner:
    """scan_blockの呼び出しと出力バッファの管理"""

    def __init__(self, events: Sequence[GachaEvent], target: Sequence[int], capacity: int = 1024):
        self.packed = pack_events(events)
        self.target = np.asarray(target, dtype=np.int64)
        # 再抽選用の作業領域。最大プールが入ればよい
        self.scratch = np.empty(max(int(self.packed.pool_sizes.max()), 1), dtype=np.int64)
        self._allocate(capacity)

    def _allocate(self, capacity: int) -> None:
        self.out_seeds = np.empty(capacity, dtype=np.int64)
        self.out_events = np.empty(capacity, dtype=np.int64)

    def scan(self, start: int, stop: int) -> List[tuple]:
        found = self._run(start, stop)
        if found > self.out_seeds.shape[0]:
            logger.debug('match buffer overflow (%d), rescanning [%d, %d)', found, start, stop)
            self._allocate(found)
            found = self._run(start, stop)
        return [(int(self.out_seeds[i]), int(self.out_events[i])) for i in range(found)]

    def _run(self, start: int, stop: int) -> int:
        p = self.packed
        return scan_block(
            start, stop, self.target,
            p.rates, p.pool_ids, p.pool_starts, p.pool_sizes, p.reroll, self.scratch,
            self.out_seeds, self.out_events,
        )


# === ワーカー ===

Emit = Callable[[WorkerMessage], None]


class SeedSearchWorker:
    """
    割り当て範囲を全探索するワーカー。
    Idle → Searching → Complete | Stopped | Error
    """

    def __init__(
        self,
        request: StartRequest,
        cancel_token=None,
        emit: Optional[Emit] = None,
        yield_interval: int = SEARCH.YIELD_INTERVAL,
        progress_interval: int = SEARCH.PROGRESS_INTERVAL,
    ):
        self.request = request
        self.cancel_token = cancel_token if cancel_token is not None else CancelToken()
        self.emit = emit or (lambda message: None)
        self.yield_interval = yield_interval
        self.progress_interval = progress_interval
        self.state = SearchState.IDLE

    def run(self) -> SeedSearchResult:
        request = self.request
        result = SeedSearchResult()
        try:
            validate_search(request.target_sequence, request.events)
            seed_range = request.seed_range
            scanner = BlockScanner(request.events, request.target_sequence)
        except Exception as exc:
            return self._fail(result, exc)

        self.state = SearchState.SEARCHING
        logger.info(
            'worker %d: searching [%d, %d) over %d events',
            request.worker_id, seed_range.start, seed_range.end, len(request.events),
        )
        start_time = time.perf_counter()
        total_seeds = len(seed_range)
        next_progress = self.progress_interval

        try:
            block_start = seed_range.start
            while block_start < seed_range.end:
                if self.cancel_token.is_set():
                    return self._stop(result, start_time)

                block_end = min(block_start + self.yield_interval, seed_range.end)
                for seed, e in scanner.scan(block_start, block_end):
                    event = request.events[e]
                    match = SeedMatch(seed, event.id, event.name)
                    result.matches.append(match)
                    self.emit(MatchMessage(seed, event.id, event.name, request.worker_id))
                result.seeds_checked += block_end - block_start
                block_start = block_end

                if result.seeds_checked >= next_progress:
                    self._progress(result.seeds_checked, total_seeds, start_time)
                    # ブロックが通知間隔より大きくても遅れないよう、次の区切りへ進める
                    next_progress = (result.seeds_checked // self.progress_interval + 1) * self.progress_interval
                # スケジューラへ制御を返す
                time.sleep(0)
        except Exception as exc:
            return self._fail(result, exc)

        result.time_elapsed = time.perf_counter() - start_time
        result.state = self.state = SearchState.COMPLETE
        self.emit(CompleteMessage(
            result.seeds_checked, result.time_elapsed, tuple(result.matches), request.worker_id,
        ))
        logger.info(
            'worker %d: complete, %d seeds in %.1fs, %d matches',
            request.worker_id, result.seeds_checked, result.time_elapsed, len(result.matches),
        )
        return result

    def _progress(self, seeds_checked: int, total_seeds: int, start_time: float) -> None:
        elapsed = max(time.perf_counter() - start_time, 1e-9)
        seeds_per_second = seeds_checked / elapsed
        eta_seconds = (total_seeds - seeds_checked) / seeds_per_second
        self.emit(ProgressMessage(
            seeds_checked, total_seeds, seeds_per_second, eta_seconds, self.request.worker_id,
        ))

    def _stop(self, result: SeedSearchResult, start_time: float) -> SeedSearchResult:
        result.time_elapsed = time.perf_counter() - start_time
        result.state = self.state = SearchState.STOPPED
        logger.info('worker %d: stopped after %d seeds', self.request.worker_id, result.seeds_checked)
        self.emit(StoppedMessage(result.seeds_checked, tuple(result.matches), self.request.worker_id))
        return result

    def _fail(self, result: SeedSearchResult, exc: Exception) -> SeedSearchResult:
        result.state = self.state = SearchState.ERROR
        result.error = str(exc)
        logger.error('worker %d failed: %s', self.request.worker_id, exc, exc_info=True)
        self.emit(ErrorMessage(str(exc), self.request.worker_id))
        return result


def search_range(
    events: Sequence[GachaEvent],
    target: Sequence[int],
    start: int = 0,
    end: int = GACHA.UINT32_MAX,
    cancel_token=None,
    emit: Optional[Emit] = None,
    **kwargs,
) -> SeedSearchResult:
    """1ワーカー分の探索をこのプロセス内で実行する"""
    validate_search(target, events)
    request = StartRequest(tuple(events), tuple(target), start, end)
    return SeedSearchWorker(request, cancel_token, emit, **kwargs).run()
