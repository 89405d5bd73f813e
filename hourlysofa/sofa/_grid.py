"""Hourly grid construction.

Every stay gets one bin per hour, from ``hr = -lookback_hours`` up to the
number of (started) hours between intime and outtime. Bin ``hr`` covers the
left-open, right-closed interval ``(starttime, endtime]`` with
``endtime = date_trunc('hour', intime) + hr hours``, so the bin labelled
``hr`` holds what was charted during the hour that just ended.
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation

from ._utils import SofaConfig


def _build_hourly_grid(
    con: duckdb.DuckDBPyConnection,
    stays_rel: DuckDBPyRelation,
    cfg: SofaConfig,
) -> DuckDBPyRelation:
    """
    Expand stays into a contiguous hourly grid.

    Parameters
    ----------
    con : duckdb.DuckDBPyConnection
        Batch connection owning ``stays_rel``.
    stays_rel : DuckDBPyRelation
        Validated stays with columns [stay_id, admission_id, intime, outtime]
        (outtime >= intime for every row).
    cfg : SofaConfig
        Configuration with lookback_hours

    Returns
    -------
    DuckDBPyRelation
        Columns: [stay_id, admission_id, intime, outtime, hr, starttime, endtime],
        one row per (stay_id, hr).
    """
    lookback = cfg.lookback_hours

    # The hour count uses the untruncated intime; only bin edges are truncated
    return con.sql(f"""
        WITH co_stg AS (
            FROM stays_rel s
            SELECT
                s.stay_id
                , s.admission_id
                , s.intime
                , s.outtime
                , intime_hr: date_trunc('hour', s.intime)
                , hr: UNNEST(generate_series(
                    -{lookback}::BIGINT
                    , CEIL(epoch(s.outtime - s.intime) / 3600.0)::BIGINT
                ))
        )
        FROM co_stg
        SELECT
            stay_id
            , admission_id
            , intime
            , outtime
            , hr
            , starttime: intime_hr + to_hours(hr - 1)
            , endtime: intime_hr + to_hours(hr)
    """)
