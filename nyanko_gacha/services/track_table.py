# services/track_table.py
from typing import Callable, Dict, List, Optional

import pandas as pd

from ..data_types import TRACK_NAMES, RollResult, Tracks

NameLookup = Callable[[int], str]


def _roll_columns(roll: RollResult, prefix: str, lookup: Optional[NameLookup]) -> Dict[str, object]:
    name = lookup or str
    row = {
        f'{prefix}_seed': roll.seed,
        f'{prefix}_score': roll.score,
        f'{prefix}_rarity': roll.rarity.name,
        f'{prefix}_prize': name(roll.prize_id),
        f'{prefix}_switched_from': name(roll.switched_from_id) if roll.switch_tracks else None,
    }
    if roll.guaranteed is not None:
        row[f'{prefix}_guaranteed'] = name(roll.guaranteed.prize_id)
        row[f'{prefix}_next'] = roll.next_after_guaranteed
    return row


def tracks_to_frame(tracks: Tracks, lookup: Optional[NameLookup] = None) -> pd.DataFrame:
    """
    2本のトラックをロール番号ごとに横並びにした表。
    lookupを渡すとキャラIDを名前に変換する。
    """
    rows: List[Dict[str, object]] = []
    for roll_a, roll_b in zip(tracks.track_a, tracks.track_b):
        row: Dict[str, object] = {'No.': roll_a.index + 1}
        row.update(_roll_columns(roll_a, TRACK_NAMES[0], lookup))
        row.update(_roll_columns(roll_b, TRACK_NAMES[1], lookup))
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=['No.'])
    return pd.DataFrame(rows).set_index('No.')


def switch_summary(tracks: Tracks) -> pd.DataFrame:
    """被りでトラック移動が起きた位置の一覧"""
    df = tracks_to_frame(tracks)
    if df.empty:
        return df
    cols = [c for c in df.columns if c.endswith('_switched_from')]
    return df[df[cols].notna().any(axis=1)][cols]
