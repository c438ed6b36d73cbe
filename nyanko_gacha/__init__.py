from .data_types import GachaEvent, Rarity, Rates, RollResult, Tracks
from .modules.gacha import roll_multiple, roll_once
from .modules.tracks import guaranteed_roll, roll_tracks

__all__ = [
    'GachaEvent',
    'Rarity',
    'Rates',
    'RollResult',
    'Tracks',
    'guaranteed_roll',
    'roll_multiple',
    'roll_once',
    'roll_tracks',
]
