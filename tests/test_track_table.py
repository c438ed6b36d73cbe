from nyanko_gacha.modules.tracks import roll_tracks
from nyanko_gacha.services.track_table import switch_summary, tracks_to_frame

SEED = 2428617162


def test_tracks_to_frame(event):
    tracks = roll_tracks(event, SEED, 10)
    df = tracks_to_frame(tracks)
    assert list(df.index) == list(range(1, 11))
    assert df.index.name == 'No.'
    assert df.loc[1, 'A_seed'] == tracks.track_a[0].seed
    assert df.loc[1, 'B_prize'] == str(tracks.track_b[0].prize_id)
    assert 'A_guaranteed' not in df.columns


def test_tracks_to_frame_with_guaranteed(no_rare_event):
    tracks = roll_tracks(no_rare_event, SEED, 5)
    df = tracks_to_frame(tracks, lookup=lambda cat_id: f'cat{cat_id}')
    assert df.loc[1, 'A_prize'] == f'cat{tracks.track_a[0].prize_id}'
    assert df.loc[1, 'A_next'] == tracks.track_a[0].next_after_guaranteed
    assert df.loc[2, 'B_guaranteed'] == f'cat{tracks.track_b[1].guaranteed.prize_id}'


def test_empty_tracks(event):
    df = tracks_to_frame(roll_tracks(event, SEED, 0))
    assert df.empty
    assert switch_summary(roll_tracks(event, SEED, 0)).empty


def test_switch_summary(dup_event):
    tracks = roll_tracks(dup_event, SEED, 60)
    summary = switch_summary(tracks)
    expected = {
        r.index + 1
        for r in tracks.track_a + tracks.track_b
        if r.switch_tracks
    }
    assert expected
    assert set(summary.index) == expected
