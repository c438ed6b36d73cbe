import pytest

from nyanko_gacha.data_types import GachaEvent, Rarity, Rates


@pytest.fixture
def event():
    return GachaEvent(
        id=1020,
        name='test event',
        slots={
            Rarity.RARE: (100, 101, 102, 103, 104, 105),
            Rarity.SUPER_RARE: (200, 201, 202),
            Rarity.UBER: (300, 301, 302, 303),
            Rarity.LEGEND: (),
        },
        rates=Rates(rare=6970, supa=2500, uber=500),
    )


@pytest.fixture
def dup_event():
    # レアしか出ず、プールが2体なので被りが頻発する
    return GachaEvent(
        id=7,
        name='dup event',
        slots={Rarity.RARE: (1, 2), Rarity.UBER: (900, 901, 902)},
        rates=Rates(rare=10000, supa=0, uber=0),
        guaranteed_rolls=10,
    )


@pytest.fixture
def no_rare_event():
    # レアが出ないので再抽選は起きない
    return GachaEvent(
        id=42,
        name='no rare event',
        slots={
            Rarity.SUPER_RARE: (10, 11, 12, 13, 14, 15, 16),
            Rarity.UBER: (20, 21, 22),
        },
        rates=Rates(rare=0, supa=7000, uber=3000),
        guaranteed_rolls=10,
    )
