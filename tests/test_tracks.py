import pytest

from nyanko_gacha.data_types import Rarity
from nyanko_gacha.modules.gacha import roll_multiple, roll_once, select_prize
from nyanko_gacha.modules.tracks import (
    TRACK_A,
    TRACK_B,
    guaranteed_roll,
    position_to_roll,
    roll_tracks,
    track_position,
)
from nyanko_gacha.modules.xorshift import advance, rewind

SEED = 2428617162


@pytest.mark.parametrize('count', [0, 1, 13, 50])
def test_tracks_have_requested_length(event, count):
    tracks = roll_tracks(event, SEED, count)
    assert len(tracks.track_a) == count
    assert len(tracks.track_b) == count


def test_track_b_is_one_advance_behind_a(event):
    tracks = roll_tracks(event, SEED, 30)
    for a, b in zip(tracks.track_a, tracks.track_b):
        assert b.seed == advance(a.seed)
        assert a.track == TRACK_A and b.track == TRACK_B
    assert tracks.track_a[0].label == '1A'
    assert tracks.track_b[2].label == '3B'
    assert tracks[TRACK_B] is tracks.track_b


def test_tracks_match_chained_rolls(dup_event):
    tracks = roll_tracks(dup_event, SEED, 40)
    expected_a = roll_multiple(advance(SEED), dup_event, 40)
    expected_b = roll_multiple(SEED, dup_event, 41)[1:]
    assert [r.prize_id for r in tracks.track_a] == [r.prize_id for r in expected_a]
    # Bの先頭は捨てた1本目との被り判定を引き継ぐ
    assert [r.prize_id for r in tracks.track_b] == [r.prize_id for r in expected_b]
    assert [r.index for r in tracks.track_b] == list(range(40))


def test_tracks_keep_separate_duplicate_state(dup_event):
    tracks = roll_tracks(dup_event, SEED, 100)
    for track in (tracks.track_a, tracks.track_b):
        for prev, cur in zip(track, track[1:]):
            if cur.switch_tracks:
                assert cur.switched_from_id == prev.prize_id
                assert cur.prize_id != prev.prize_id


def test_position_mapping():
    assert track_position(TRACK_A, 0) == 2
    assert track_position(TRACK_B, 0) == 3
    for track in (TRACK_A, TRACK_B):
        for index in range(5):
            assert position_to_roll(track_position(track, index)) == (track, index)


def test_no_guaranteed_annotations_without_guaranteed_rolls(event):
    tracks = roll_tracks(event, SEED, 10)
    assert all(r.guaranteed is None for r in tracks.track_a + tracks.track_b)
    with pytest.raises(ValueError):
        guaranteed_roll(event, SEED, TRACK_A, 0)


def test_guaranteed_without_switches_lands_on_other_track(no_rare_event):
    g = no_rare_event.guaranteed_rolls
    tracks = roll_tracks(no_rare_event, SEED, 40)
    for i in range(20):
        roll_a = tracks.track_a[i]
        assert roll_a.next_after_guaranteed == f'{i + g + 1}B'
        assert roll_a.guaranteed.is_guaranteed
        assert roll_a.guaranteed.track == TRACK_B
        assert roll_a.guaranteed.rarity == Rarity.UBER
        # 確定枠は窓の最後のロールのスロット用シードで決まる
        last_a = tracks.track_a[i + g - 1]
        assert roll_a.guaranteed.seed == last_a.slot_seed
        assert roll_a.guaranteed.prize_id == select_prize(last_a.slot_seed, Rarity.UBER, no_rare_event)[0]

        roll_b = tracks.track_b[i]
        assert roll_b.next_after_guaranteed == f'{i + g + 2}A'
        assert roll_b.guaranteed.track == TRACK_A
        assert roll_b.guaranteed.seed == tracks.track_b[i + g - 1].slot_seed


def _replay_switches(event, start_roll, last_prize_id):
    cursor = rewind(start_roll.seed)
    switches = 0
    for _ in range(event.guaranteed_rolls):
        result, cursor = roll_once(cursor, event, last_prize_id)
        for _ in range(result.reroll_steps):
            cursor = advance(cursor)
        switches += result.reroll_steps
        last_prize_id = result.prize_id
    return switches


def test_guaranteed_landing_follows_switch_parity(dup_event):
    tracks = roll_tracks(dup_event, SEED, 30)
    lead_b = roll_multiple(SEED, dup_event, 1)[0]
    parities = set()
    for track_id, track, first_last in ((TRACK_A, tracks.track_a, None), (TRACK_B, tracks.track_b, lead_b.prize_id)):
        last = first_last
        for roll in track:
            switches = _replay_switches(dup_event, roll, last)
            parities.add(switches % 2)
            expected_track = 1 - track_id if switches % 2 == 0 else track_id
            assert roll.guaranteed.track == expected_track
            assert roll.next_after_guaranteed.endswith('AB'[expected_track])
            last = roll.prize_id
    assert parities == {0, 1}


def test_guaranteed_roll_matches_track_annotation(dup_event):
    tracks = roll_tracks(dup_event, SEED, 15)
    roll = tracks.track_a[4]
    guaranteed, landing = guaranteed_roll(dup_event, SEED, TRACK_A, 4, tracks.track_a[3].prize_id)
    assert guaranteed == roll.guaranteed
    assert landing == roll.next_after_guaranteed


def test_roll_tracks_is_deterministic(dup_event):
    assert roll_tracks(dup_event, SEED, 25) == roll_tracks(dup_event, SEED, 25)
