"""Coagulation subscore.

Scoring (platelets, x10^3/uL):
- < 20: 4 points
- < 50: 3 points
- < 100: 2 points
- < 150: 1 point
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation


def _calculate_coag_subscore(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    return con.sql("""
        FROM bins_rel
        SELECT
            stay_id
            , hr
            , coagulation: CASE
                WHEN platelet_min < 20 THEN 4
                WHEN platelet_min < 50 THEN 3
                WHEN platelet_min < 100 THEN 2
                WHEN platelet_min < 150 THEN 1
                WHEN platelet_min IS NULL THEN NULL
                ELSE 0
            END
    """)
