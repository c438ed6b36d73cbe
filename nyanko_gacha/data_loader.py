# data_loader.py
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .config.settings import GACHA, FileSettings
from .data_types import GachaEvent, Rarity, Rates

logger = logging.getLogger(__name__)

Catalog = Dict[str, Any]

EVENT_COLUMNS = ['code', 'id', 'name', 'start_on', 'end_on', 'platinum']


def load_catalog(file_path: Optional[str] = None) -> Catalog:
    """抽出済みカタログ(JSON)の読み込み"""
    path = file_path or FileSettings().CATALOG_FILE
    with open(path, encoding='utf-8') as f:
        catalog = json.load(f)
    for key in ('cats', 'gacha', 'events'):
        if key not in catalog:
            raise KeyError(f'catalog {path} has no "{key}" section')
    logger.info('loaded catalog %s: %d cats, %d events', path, len(catalog['cats']), len(catalog['events']))
    return catalog


def _guaranteed_rolls(event_data: Dict[str, Any]) -> int:
    if event_data.get('step_up'):
        return GACHA.GUARANTEED_ROLLS['step_up']
    if event_data.get('guaranteed'):
        return GACHA.GUARANTEED_ROLLS['guaranteed']
    return GACHA.GUARANTEED_ROLLS['none']


def create_gacha_event(event_data: Dict[str, Any], catalog: Catalog) -> GachaEvent:
    """
    イベント定義とカタログからGachaEventを作る。
    プールのキャラIDはレアリティ別にまとめ、順序と重複はそのまま残す。
    """
    gacha = catalog['gacha'].get(str(event_data['id']))
    if gacha is None:
        raise KeyError(f'gacha pool {event_data["id"]} not found')

    slots: Dict[Rarity, List[int]] = {rarity: [] for rarity in Rarity}
    cats = catalog['cats']
    for cat_id in gacha['cats']:
        cat = cats.get(str(cat_id))
        if cat is None or cat.get('rarity') is None:
            continue
        slots[Rarity(cat['rarity'])].append(cat_id)

    return GachaEvent(
        id=event_data['id'],
        slots=slots,
        rates=Rates(
            rare=int(event_data['rare']),
            supa=int(event_data['supa']),
            uber=int(event_data['uber']),
        ),
        guaranteed_rolls=_guaranteed_rolls(event_data),
        name=event_data.get('name', ''),
    )


def events_frame(catalog: Catalog) -> pd.DataFrame:
    df = pd.DataFrame.from_dict(catalog['events'], orient='index')
    if df.empty:
        return pd.DataFrame(columns=EVENT_COLUMNS)
    df.index.name = 'code'
    df = df.reset_index()
    if 'platinum' not in df.columns:
        df['platinum'] = None
    return df


def active_events(catalog: Catalog, today: Optional[Union[date, str]] = None) -> pd.DataFrame:
    """
    本日開催中のイベント。プラチナは除外し、同じidは最初の1件だけ残す。
    """
    today = (today or date.today())
    today = today.isoformat() if isinstance(today, date) else today
    df = events_frame(catalog)
    if df.empty:
        return df
    platinum = df['platinum'].fillna('').astype(bool)
    mask = (~platinum) & (df['start_on'] <= today) & (df['end_on'] >= today)
    return df[mask].drop_duplicates(subset='id', keep='first')


def resolve_active_events(catalog: Catalog, today: Optional[Union[date, str]] = None) -> List[GachaEvent]:
    df = active_events(catalog, today)
    events = []
    for code in df['code']:
        events.append(create_gacha_event(catalog['events'][code], catalog))
    logger.debug('%d active events on %s', len(events), today)
    return events
