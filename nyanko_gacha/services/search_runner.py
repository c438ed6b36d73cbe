# services/search_runner.py
import logging
import multiprocessing as mp
import queue
import signal
import time
from typing import Callable, Dict, List, Optional, Sequence

from ..config.settings import SEARCH
from ..data_types import (
    FULL_SEED_SPACE,
    CompleteMessage,
    ErrorMessage,
    GachaEvent,
    MatchMessage,
    ProgressMessage,
    SearchState,
    SeedMatch,
    SeedSearchRange,
    SeedSearchResult,
    StartRequest,
    StoppedMessage,
    WorkerMessage,
)
from .seed_search import SeedSearchError, SeedSearchWorker, validate_search

logger = logging.getLogger(__name__)


def worker_process(request: StartRequest, stop_event, result_queue, yield_interval: int, progress_interval: int):
    """
    ワーカープロセスの本体。メッセージは全てresult_queueへ流す。
    Ctrl-Cは親だけが受け、ワーカーはstop_event経由で止まる。
    """
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        worker = SeedSearchWorker(
            request,
            cancel_token=stop_event,
            emit=result_queue.put,
            yield_interval=yield_interval,
            progress_interval=progress_interval,
        )
        worker.run()
    except Exception as e:
        result_queue.put(ErrorMessage(str(e), request.worker_id))


class SearchRunner:
    """
    シード空間を分割してワーカープロセスで並列探索する。
    どれか1つがエラーを返したら残りのワーカーも停止させる。
    """

    def __init__(
        self,
        events: Sequence[GachaEvent],
        target: Sequence[int],
        num_workers: Optional[int] = None,
        seed_range: SeedSearchRange = FULL_SEED_SPACE,
        on_message: Optional[Callable[[WorkerMessage], None]] = None,
        yield_interval: int = SEARCH.YIELD_INTERVAL,
        progress_interval: int = SEARCH.PROGRESS_INTERVAL,
    ):
        validate_search(target, events)
        self.events = tuple(events)
        self.target = tuple(target)
        self.num_workers = num_workers or SEARCH.default_workers()
        self.seed_range = seed_range
        self.on_message = on_message or (lambda message: None)
        self.yield_interval = yield_interval
        self.progress_interval = progress_interval
        self._context = mp.get_context('spawn')
        self.stop_event = self._context.Event()
        self.progress: Dict[int, ProgressMessage] = {}

    def requests(self) -> List[StartRequest]:
        return [
            StartRequest(self.events, self.target, r.start, r.end, worker_id)
            for worker_id, r in enumerate(self.seed_range.split(self.num_workers))
        ]

    def stop(self) -> None:
        self.stop_event.set()

    def run(self) -> SeedSearchResult:
        result_queue = self._context.Queue()
        processes = []
        for request in self.requests():
            p = self._context.Process(
                target=worker_process,
                args=(request, self.stop_event, result_queue, self.yield_interval, self.progress_interval),
                daemon=True,
            )
            processes.append(p)

        start_time = time.perf_counter()
        for p in processes:
            p.start()
        logger.info('started %d workers over [%d, %d)', len(processes), self.seed_range.start, self.seed_range.end)

        try:
            result = self._collect(result_queue, processes)
        finally:
            for p in processes:
                p.join(timeout=5)
                if p.is_alive():
                    p.terminate()

        result.time_elapsed = time.perf_counter() - start_time
        if result.error is not None:
            raise SeedSearchError(result.error)
        return result

    def _collect(self, result_queue, processes) -> SeedSearchResult:
        result = SeedSearchResult(state=SearchState.SEARCHING)
        finished: Dict[int, WorkerMessage] = {}
        matches: List[SeedMatch] = []

        while len(finished) < len(processes):
            try:
                message = result_queue.get(timeout=SEARCH.POLL_TIMEOUT)
            except KeyboardInterrupt:
                # 停止を通知し、各ワーカーのstoppedを待ってここまでの結果を返す
                logger.warning('interrupted; waiting for workers to stop')
                self.stop()
                continue
            except queue.Empty:
                if not any(p.is_alive() for p in processes):
                    # 終了通知なしで落ちたワーカー
                    if result.error is None:
                        result.error = 'worker exited unexpectedly'
                    self.stop()
                    break
                continue

            self.on_message(message)
            if isinstance(message, ProgressMessage):
                self.progress[message.worker_id] = message
            elif isinstance(message, MatchMessage):
                logger.info('match: seed=%d event=%s (%s)', message.seed, message.event_id, message.event_name)
            elif isinstance(message, (CompleteMessage, StoppedMessage)):
                finished[message.worker_id] = message
                matches.extend(message.matching_seeds)
                result.seeds_checked += message.seeds_checked
            elif isinstance(message, ErrorMessage):
                finished[message.worker_id] = message
                if result.error is None:
                    logger.error('worker %d error: %s; stopping all workers', message.worker_id, message.message)
                    result.error = message.message
                    self.stop()

        result.matches = sorted(matches, key=lambda m: m.seed)
        if result.error is not None:
            result.state = SearchState.ERROR
        elif any(isinstance(m, StoppedMessage) for m in finished.values()):
            result.state = SearchState.STOPPED
        else:
            result.state = SearchState.COMPLETE
        return result


def run_in_process(
    events: Sequence[GachaEvent],
    target: Sequence[int],
    seed_ranges: Sequence[SeedSearchRange],
    cancel_token=None,
    on_message: Optional[Callable[[WorkerMessage], None]] = None,
    **kwargs,
) -> SeedSearchResult:
    """
    分割した範囲を同じプロセス内で順に探索し、結果をまとめる。
    どの分割でも全範囲を一度に探索した結果と一致する。
    """
    validate_search(target, events)
    merged = SeedSearchResult(state=SearchState.SEARCHING)
    for worker_id, r in enumerate(seed_ranges):
        request = StartRequest(tuple(events), tuple(target), r.start, r.end, worker_id)
        part = SeedSearchWorker(request, cancel_token, on_message, **kwargs).run()
        merged.matches.extend(part.matches)
        merged.seeds_checked += part.seeds_checked
        merged.time_elapsed += part.time_elapsed
        if part.state is SearchState.ERROR:
            raise SeedSearchError(part.error)
        if part.state is SearchState.STOPPED:
            merged.state = SearchState.STOPPED
            break
    else:
        merged.state = SearchState.COMPLETE
    merged.matches.sort(key=lambda m: m.seed)
    return merged
