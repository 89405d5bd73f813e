"""Tests for trailing-window reductions and row retention.

Cases:
- Trailing urine sum over the current bin and the 24 before it
- Partial windows at the start of a stay
- Trailing worst sub-score carries a value for 24 bins, then drops to 0
- All-NULL windows coalesce to 0 and the composite is their sum
- Pre-admission bins are kept only when they carry a lab value
"""

import pandas as pd
import pytest

from hourlysofa.sofa._utils import SUBSCORE_COLUMNS, TRAILING_COLUMNS, SofaConfig
from hourlysofa.sofa._window import _apply_trailing_window, _trailing_urine_output


def _urine_bins(urine, start_hr=0):
    return pd.DataFrame({
        'stay_id': 'S1',
        'hr': range(start_hr, start_hr + len(urine)),
        'urineoutput': urine,
    }).astype({'urineoutput': 'Float64'})


def _scored_bins(hrs, stay_id='S1', **columns):
    """Scored bins with every sub-score and lab column NULL unless given."""
    df = pd.DataFrame({'stay_id': stay_id, 'hr': list(hrs)})
    for col in SUBSCORE_COLUMNS:
        df[col] = pd.array(columns.get(col, [None] * len(df)), dtype='Int64')
    for col in ('bilirubin_max', 'creatinine_max', 'platelet_min'):
        df[col] = pd.array(columns.get(col, [None] * len(df)), dtype='Float64')
    return df


def _trailing_df(con, scored, cfg=None):
    result = _apply_trailing_window(con, con.from_df(scored), cfg or SofaConfig())
    return result.df().sort_values(['stay_id', 'hr']).reset_index(drop=True)


def test_trailing_urine_sum_full_window(con):
    bins = _urine_bins([10.0] * 30)
    result = _trailing_urine_output(con, con.from_df(bins), SofaConfig()).df()
    uo = dict(zip(result['hr'], result['uo_24hr']))

    assert uo[0] == 10.0        # partial window, one bin
    assert uo[9] == 100.0
    assert uo[24] == 250.0      # current bin plus 24 preceding
    assert uo[29] == 250.0


def test_trailing_urine_sum_skips_nulls(con):
    bins = _urine_bins([None, 50.0, None, 25.0])
    result = _trailing_urine_output(con, con.from_df(bins), SofaConfig()).df()
    uo = dict(zip(result['hr'], result['uo_24hr']))

    assert pd.isna(uo[0])
    assert uo[1] == 50.0
    assert uo[2] == 50.0
    assert uo[3] == 75.0


def test_trailing_urine_sum_custom_window(con):
    bins = _urine_bins([10.0] * 10)
    result = _trailing_urine_output(con, con.from_df(bins), SofaConfig(window_hours=2)).df()

    assert result.set_index('hr').loc[9, 'uo_24hr'] == 30.0


def test_trailing_urine_sum_per_stay(con):
    bins = pd.concat([
        _urine_bins([100.0] * 3),
        _urine_bins([1.0] * 3).assign(stay_id='S2'),
    ], ignore_index=True)
    result = _trailing_urine_output(con, con.from_df(bins), SofaConfig()).df()
    last = result[result['hr'] == 2].set_index('stay_id')['uo_24hr']

    assert last['S1'] == 300.0
    assert last['S2'] == 3.0


def test_trailing_max_expires_after_window(con):
    liver = [3] + [None] * 29
    result = _trailing_df(con, _scored_bins(range(30), liver=liver))
    trailing = dict(zip(result['hr'], result['liver_24hours']))

    assert all(trailing[hr] == 3 for hr in range(0, 25))
    assert trailing[25] == 0


def test_trailing_max_keeps_worst(con):
    cns = [1, None, 4, 2, None]
    result = _trailing_df(con, _scored_bins(range(5), cns=cns))

    assert result['cns_24hours'].tolist() == [1, 1, 4, 4, 4]


def test_no_data_coalesces_to_zero(con):
    result = _trailing_df(con, _scored_bins(range(5)))

    for col in TRAILING_COLUMNS + ['sofa_24hours']:
        assert (result[col] == 0).all(), col


def test_composite_is_sum_of_trailing(con):
    result = _trailing_df(con, _scored_bins(
        range(2),
        respiration=[2, None],
        coagulation=[None, 3],
        liver=[1, 1],
        cardiovascular=[4, None],
        cns=[0, 0],
        renal=[None, 2],
    ))

    assert result['sofa_24hours'].tolist() == [2 + 1 + 4, 2 + 3 + 1 + 4 + 2]
    assert (result['sofa_24hours'] == result[TRAILING_COLUMNS].sum(axis=1)).all()


def test_pre_admission_rows_need_a_lab(con):
    hrs = range(-3, 2)
    scored = _scored_bins(
        hrs,
        liver=[None, 2, None, None, None],
        bilirubin_max=[None, 3.0, None, None, None],
        cns=[None, None, 3, None, None],
    )
    result = _trailing_df(con, scored)

    assert result['hr'].tolist() == [-2, 0, 1]
    assert result.set_index('hr').loc[0, 'liver_24hours'] == 2


def test_dropped_bins_still_feed_the_window(con):
    # The hr=-1 bin has no lab so it is dropped, but its score still counts
    scored = _scored_bins(range(-1, 2), cns=[4, None, None])
    result = _trailing_df(con, scored)

    assert result['hr'].tolist() == [0, 1]
    assert result['cns_24hours'].tolist() == [4, 4]


@pytest.mark.parametrize('window_hours, expected', [(0, [2, 0, 0]), (1, [2, 2, 0])])
def test_custom_window_length(con, window_hours, expected):
    scored = _scored_bins(range(3), renal=[2, None, None])
    result = _trailing_df(con, scored, SofaConfig(window_hours=window_hours))

    assert result['renal_24hours'].tolist() == expected
