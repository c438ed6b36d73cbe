# data_types.py
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .config.settings import GACHA

class Rarity(IntEnum):
    NORMAL = 0
    SPECIAL = 1
    RARE = 2
    SUPER_RARE = 3
    UBER = 4
    LEGEND = 5

TRACK_NAMES = ('A', 'B')

@dataclass(frozen=True)
class Rates:
    """レアリティ確率(BASE=10000に対する値)"""
    rare: int
    supa: int
    uber: int

    @property
    def legend(self) -> int:
        return GACHA.BASE - self.rare - self.supa - self.uber

@dataclass(frozen=True)
class GachaEvent:
    id: Union[int, str]
    slots: Mapping[Rarity, Tuple[int, ...]]
    rates: Rates
    guaranteed_rolls: int = 0
    name: str = ''

    def __post_init__(self):
        if self.guaranteed_rolls not in GACHA.GUARANTEED_ROLLS.values():
            raise ValueError(f'guaranteed_rolls must be one of 0/10/15: {self.guaranteed_rolls}')
        # 辞書の中身もタプルに揃え、読み取り専用にする
        slots = {Rarity(r): tuple(ids) for r, ids in self.slots.items()}
        object.__setattr__(self, 'slots', MappingProxyType(slots))

    def __reduce__(self):
        # mappingproxyはpickleできないのでdictに戻して渡す(spawnワーカー用)
        return (type(self), (self.id, dict(self.slots), self.rates, self.guaranteed_rolls, self.name))

    def pool(self, rarity: Rarity) -> Tuple[int, ...]:
        return self.slots.get(rarity, ())

@dataclass(frozen=True)
class RollResult:
    index: int
    seed: int
    slot_seed: int
    rarity: Rarity
    prize_id: int
    slot: int
    score: int
    switched_from_id: Optional[int] = None
    reroll_steps: int = 0
    is_guaranteed: bool = False
    track: Optional[int] = None
    guaranteed: Optional['RollResult'] = None
    next_after_guaranteed: Optional[str] = None

    @property
    def switch_tracks(self) -> bool:
        return self.switched_from_id is not None

    @property
    def label(self) -> str:
        suffix = TRACK_NAMES[self.track] if self.track is not None else ''
        return f'{self.index + 1}{suffix}'

@dataclass(frozen=True)
class Tracks:
    track_a: Tuple[RollResult, ...]
    track_b: Tuple[RollResult, ...]

    def __getitem__(self, track: int) -> Tuple[RollResult, ...]:
        return (self.track_a, self.track_b)[track]

@dataclass(frozen=True)
class SeedSearchRange:
    start: int
    end: int

    def __post_init__(self):
        if not 0 <= self.start <= self.end <= GACHA.UINT32_MAX:
            raise ValueError(f'invalid seed range: [{self.start}, {self.end})')

    def __len__(self) -> int:
        return self.end - self.start

    def __contains__(self, seed: int) -> bool:
        return self.start <= seed < self.end

    def split(self, parts: int) -> List['SeedSearchRange']:
        """連続・非重複のparts個の範囲に分割する。余りは最後の範囲へ。"""
        if parts < 1:
            raise ValueError('parts must be >= 1')
        size = len(self) // parts
        ranges = []
        for i in range(parts):
            start = self.start + i * size
            end = self.end if i == parts - 1 else start + size
            ranges.append(SeedSearchRange(start, end))
        return ranges

FULL_SEED_SPACE = SeedSearchRange(0, GACHA.UINT32_MAX)

def partition_seed_space(parts: int) -> List[SeedSearchRange]:
    return FULL_SEED_SPACE.split(parts)

@dataclass(frozen=True)
class SeedMatch:
    seed: int
    event_id: Union[int, str]
    event_name: str = ''

class SearchState(str, Enum):
    IDLE = 'idle'
    SEARCHING = 'searching'
    COMPLETE = 'complete'
    STOPPED = 'stopped'
    ERROR = 'error'

@dataclass
class SeedSearchResult:
    matches: List[SeedMatch] = field(default_factory=list)
    seeds_checked: int = 0
    time_elapsed: float = 0.0
    state: SearchState = SearchState.IDLE
    error: Optional[str] = None

    @property
    def seeds(self) -> List[int]:
        return sorted({m.seed for m in self.matches})

# === ワーカー間メッセージ ===

@dataclass(frozen=True)
class StartRequest:
    events: Tuple[GachaEvent, ...]
    target_sequence: Tuple[int, ...]
    range_start: int
    range_end: int
    worker_id: int = 0
    type: str = 'start'

    @property
    def seed_range(self) -> SeedSearchRange:
        return SeedSearchRange(self.range_start, self.range_end)

@dataclass(frozen=True)
class _Message:
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass(frozen=True)
class ProgressMessage(_Message):
    seeds_checked: int
    total_seeds: int
    seeds_per_second: float
    eta_seconds: float
    worker_id: int = 0
    type: str = 'progress'

@dataclass(frozen=True)
class MatchMessage(_Message):
    seed: int
    event_id: Union[int, str]
    event_name: str
    worker_id: int = 0
    type: str = 'match'

@dataclass(frozen=True)
class CompleteMessage(_Message):
    seeds_checked: int
    time_elapsed: float
    matching_seeds: Tuple[SeedMatch, ...]
    worker_id: int = 0
    type: str = 'complete'

@dataclass(frozen=True)
class StoppedMessage(_Message):
    seeds_checked: int
    matching_seeds: Tuple[SeedMatch, ...]
    worker_id: int = 0
    type: str = 'stopped'

@dataclass(frozen=True)
class ErrorMessage(_Message):
    message: str
    worker_id: int = 0
    type: str = 'error'

WorkerMessage = Union[ProgressMessage, MatchMessage, CompleteMessage, StoppedMessage, ErrorMessage]
