"""Renal subscore.

Scoring (creatinine in mg/dL, urine output in mL over the trailing window):
- Creatinine >= 5.0: 4 points
- Trailing urine output < 200: 4 points
- Creatinine 3.5-4.9: 3 points
- Trailing urine output < 500: 3 points
- Creatinine 2.0-3.4: 2 points
- Creatinine 1.2-1.9: 1 point

The urine criterion reads ``uo_24hr``, the trailing sum produced by
:func:`hourlysofa.sofa._window._trailing_urine_output`, which therefore has
to run before this scorer.
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation


def _calculate_renal_subscore(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """
    Parameters
    ----------
    bins_rel : DuckDBPyRelation
        Bin aggregates carrying creatinine_max and uo_24hr.

    Returns
    -------
    DuckDBPyRelation
        Columns: [stay_id, hr, renal]. NULL when both creatinine and the
        trailing urine sum are unknown.
    """
    return con.sql("""
        FROM bins_rel
        SELECT
            stay_id
            , hr
            , renal: CASE
                WHEN creatinine_max >= 5.0 THEN 4
                WHEN uo_24hr < 200 THEN 4
                WHEN creatinine_max >= 3.5 AND creatinine_max < 5.0 THEN 3
                WHEN uo_24hr < 500 THEN 3
                WHEN creatinine_max >= 2.0 AND creatinine_max < 3.5 THEN 2
                WHEN creatinine_max >= 1.2 AND creatinine_max < 2.0 THEN 1
                WHEN COALESCE(uo_24hr, creatinine_max) IS NULL THEN NULL
                ELSE 0
            END
    """)
