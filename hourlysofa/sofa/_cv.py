"""Cardiovascular subscore.

Scoring (rates in mcg/kg/min, MAP in mmHg):
- Dopamine > 15 or epinephrine > 0.1 or norepinephrine > 0.1: 4 points
- Dopamine > 5 or any epinephrine or norepinephrine (<= 0.1): 3 points
- Any dopamine or dobutamine: 2 points
- MAP < 70 without vasoactive support: 1 point

Conditions within a band are independent ORs; bands are evaluated from the
most severe down and the first match wins.
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation


def _calculate_cv_subscore(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """
    Returns
    -------
    DuckDBPyRelation
        Columns: [stay_id, hr, cardiovascular]. NULL only when MAP and all
        four infusion rates are unknown for the bin.
    """
    return con.sql("""
        FROM bins_rel
        SELECT
            stay_id
            , hr
            , cardiovascular: CASE
                WHEN rate_dopamine > 15 OR rate_epinephrine > 0.1 OR rate_norepinephrine > 0.1 THEN 4
                WHEN rate_dopamine > 5 OR rate_epinephrine <= 0.1 OR rate_norepinephrine <= 0.1 THEN 3
                WHEN rate_dopamine > 0 OR rate_dobutamine > 0 THEN 2
                WHEN meanbp_min < 70 THEN 1
                WHEN COALESCE(meanbp_min, rate_dopamine, rate_dobutamine,
                              rate_epinephrine, rate_norepinephrine) IS NULL THEN NULL
                ELSE 0
            END
    """)
