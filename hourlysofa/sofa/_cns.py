"""Neurological (GCS) subscore.

Scoring (lowest GCS in the bin):
- 13-14: 1 point
- 10-12: 2 points
- 6-9: 3 points
- < 6: 4 points
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation


def _calculate_cns_subscore(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    return con.sql("""
        FROM bins_rel
        SELECT
            stay_id
            , hr
            , cns: CASE
                WHEN gcs_min >= 13 AND gcs_min <= 14 THEN 1
                WHEN gcs_min >= 10 AND gcs_min <= 12 THEN 2
                WHEN gcs_min >= 6 AND gcs_min <= 9 THEN 3
                WHEN gcs_min < 6 THEN 4
                WHEN gcs_min IS NULL THEN NULL
                ELSE 0
            END
    """)
