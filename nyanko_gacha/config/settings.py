# config/settings.py
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet

@dataclass(frozen=True)
class GachaSettings:
    U32_MASK: int = 0xFFFFFFFF
    UINT32_MAX: int = 0x100000000  # シード空間の上限(排他的)
    BASE: int = 10000
    NO_PRIZE: int = -1
    # 被り再抽選の対象レアリティ(2=レア)
    REROLL_RARITIES: FrozenSet[int] = frozenset({2})
    GUARANTEED_ROLLS: Dict[str, int] = field(default_factory=lambda: {
        'none': 0,
        'guaranteed': 10,
        'step_up': 15,
    })

@dataclass(frozen=True)
class SearchSettings:
    MIN_TARGET_LENGTH: int = 5
    YIELD_INTERVAL: int = 50_000      # 停止フラグ確認間隔
    PROGRESS_INTERVAL: int = 500_000  # 進捗通知間隔
    MAX_WORKERS: int = 8
    POLL_TIMEOUT: float = 0.2

    @staticmethod
    def default_workers() -> int:
        return min(os.cpu_count() or 4, SearchSettings.MAX_WORKERS)

@dataclass(frozen=True)
class FileSettings:
    CATALOG_FILE: str = field(
        default_factory=lambda: os.environ.get('NYANKO_CATALOG', './data/bc-en.json')
    )

GACHA = GachaSettings()
SEARCH = SearchSettings()
