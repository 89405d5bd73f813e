"""Respiration subscore.

Scoring (PaO2/FiO2 ratio, mmHg):
- Ventilated PaO2/FiO2 < 100: 4 points
- Ventilated PaO2/FiO2 < 200: 3 points
- Unventilated PaO2/FiO2 < 300: 2 points
- Unventilated PaO2/FiO2 < 400: 1 point

Scores 3 and 4 require ventilation, so a patient whose lowest unventilated
ratio is 68 but whose lowest ventilated ratio is 120 scores 3, not 4.
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation


def _calculate_resp_subscore(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """
    Returns
    -------
    DuckDBPyRelation
        Columns: [stay_id, hr, respiration]. NULL when neither ratio is known.
    """
    return con.sql("""
        FROM bins_rel
        SELECT
            stay_id
            , hr
            , respiration: CASE
                WHEN pao2fio2ratio_vent < 100 THEN 4
                WHEN pao2fio2ratio_vent < 200 THEN 3
                WHEN pao2fio2ratio_novent < 300 THEN 2
                WHEN pao2fio2ratio_novent < 400 THEN 1
                WHEN COALESCE(pao2fio2ratio_vent, pao2fio2ratio_novent) IS NULL THEN NULL
                ELSE 0
            END
    """)
