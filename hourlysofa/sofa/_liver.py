"""Liver subscore.

Scoring (bilirubin, mg/dL):
- >= 12.0: 4 points
- >= 6.0: 3 points
- >= 2.0: 2 points
- >= 1.2: 1 point
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation


def _calculate_liver_subscore(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """
    Returns
    -------
    DuckDBPyRelation
        Columns: [stay_id, hr, liver]. NULL when no bilirubin fell in the bin.
    """
    return con.sql("""
        FROM bins_rel
        SELECT
            stay_id
            , hr
            , liver: CASE
                WHEN bilirubin_max >= 12.0 THEN 4
                WHEN bilirubin_max >= 6.0 THEN 3
                WHEN bilirubin_max >= 2.0 THEN 2
                WHEN bilirubin_max >= 1.2 THEN 1
                WHEN bilirubin_max IS NULL THEN NULL
                ELSE 0
            END
    """)
