import json

import pytest

from nyanko_gacha.data_loader import (
    active_events,
    create_gacha_event,
    load_catalog,
    resolve_active_events,
)
from nyanko_gacha.data_types import Rarity

CATALOG = {
    'cats': {
        '1': {'rarity': 2, 'name': ['ネコ']},
        '2': {'rarity': 2, 'name': ['タンクネコ']},
        '3': {'rarity': 3, 'name': ['バトルネコ']},
        '4': {'rarity': 4, 'name': ['ネコムート']},
        '5': {'rarity': 5, 'name': ['ネコ伝説']},
        '6': {'name': ['レアリティ不明']},
    },
    'gacha': {
        '100': {'cats': [1, 2, 3, 4, 5, 6, 99]},
        '200': {'cats': [3, 4]},
        '300': {'cats': [1, 4]},
    },
    'events': {
        '2025-12-01_100': {
            'id': 100, 'name': '通常', 'start_on': '2025-12-01', 'end_on': '2025-12-31',
            'rare': 6970, 'supa': 2500, 'uber': 500, 'guaranteed': True,
        },
        '2025-12-05_100': {
            'id': 100, 'name': '通常(再)', 'start_on': '2025-12-05', 'end_on': '2025-12-31',
            'rare': 6970, 'supa': 2500, 'uber': 500,
        },
        '2025-12-01_200': {
            'id': 200, 'name': 'ステップアップ', 'start_on': '2025-12-01', 'end_on': '2025-12-10',
            'rare': 0, 'supa': 7000, 'uber': 3000, 'step_up': True,
        },
        '2025-12-01_300': {
            'id': 300, 'name': 'プラチナ', 'start_on': '2025-12-01', 'end_on': '2025-12-31',
            'rare': 0, 'supa': 0, 'uber': 10000, 'platinum': 'platinum',
        },
        '2026-01-01_200': {
            'id': 200, 'name': '来月', 'start_on': '2026-01-01', 'end_on': '2026-01-31',
            'rare': 0, 'supa': 7000, 'uber': 3000,
        },
    },
}


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / 'catalog.json'
    path.write_text(json.dumps(CATALOG, ensure_ascii=False), encoding='utf-8')
    return path


def test_load_catalog(catalog_file):
    catalog = load_catalog(str(catalog_file))
    assert set(catalog) == {'cats', 'gacha', 'events'}


def test_load_catalog_requires_sections(tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text(json.dumps({'cats': {}, 'gacha': {}}), encoding='utf-8')
    with pytest.raises(KeyError):
        load_catalog(str(path))


def test_create_gacha_event_groups_by_rarity():
    event = create_gacha_event(CATALOG['events']['2025-12-01_100'], CATALOG)
    assert event.id == 100
    assert event.pool(Rarity.RARE) == (1, 2)
    assert event.pool(Rarity.SUPER_RARE) == (3,)
    assert event.pool(Rarity.UBER) == (4,)
    assert event.pool(Rarity.LEGEND) == (5,)
    assert event.pool(Rarity.NORMAL) == ()
    assert event.rates.legend == 30
    assert event.guaranteed_rolls == 10
    assert event.name == '通常'


def test_guaranteed_roll_counts():
    step_up = create_gacha_event(CATALOG['events']['2025-12-01_200'], CATALOG)
    assert step_up.guaranteed_rolls == 15
    plain = create_gacha_event(CATALOG['events']['2025-12-05_100'], CATALOG)
    assert plain.guaranteed_rolls == 0


def test_create_gacha_event_unknown_pool():
    with pytest.raises(KeyError):
        create_gacha_event({'id': 999, 'rare': 0, 'supa': 0, 'uber': 0}, CATALOG)


def test_active_events_filters_by_date_and_platinum():
    df = active_events(CATALOG, '2025-12-06')
    assert list(df['code']) == ['2025-12-01_100', '2025-12-01_200']

    df = active_events(CATALOG, '2025-12-20')
    assert list(df['code']) == ['2025-12-01_100']

    df = active_events(CATALOG, '2026-01-15')
    assert list(df['code']) == ['2026-01-01_200']


def test_resolve_active_events():
    events = resolve_active_events(CATALOG, '2025-12-06')
    assert [(e.id, e.guaranteed_rolls) for e in events] == [(100, 10), (200, 15)]


def test_no_active_events():
    assert resolve_active_events(CATALOG, '2024-01-01') == []
