"""Trailing-window reductions and composite assembly.

Both passes use the same frame: the current bin and the ``window_hours``
bins before it within one stay, ordered by ``hr`` (unique per stay, so the
ordering has no ties). Early bins simply see a shorter window. SQL SUM/MAX
skip NULLs and return NULL for an all-NULL frame, which keeps "no data"
distinct from "normal" until the final COALESCE.
"""

from __future__ import annotations

import duckdb
from duckdb import DuckDBPyRelation

from ._utils import SofaConfig, SUBSCORE_COLUMNS, TRAILING_COLUMNS


def _window_clause(cfg: SofaConfig) -> str:
    return f"""WINDOW w AS (
            PARTITION BY stay_id
            ORDER BY hr
            ROWS BETWEEN {cfg.window_hours} PRECEDING AND CURRENT ROW
        )"""


def _trailing_urine_output(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
    cfg: SofaConfig,
) -> DuckDBPyRelation:
    """
    First pass: add ``uo_24hr``, the trailing sum of hourly urine output.

    Must run over the full grid (pre-admission bins included) and before
    renal scoring, which thresholds on it.
    """
    return con.sql(f"""
        FROM bins_rel
        SELECT
            *
            , uo_24hr: SUM(urineoutput) OVER w
        {_window_clause(cfg)}
    """)


def _apply_trailing_window(
    con: duckdb.DuckDBPyConnection,
    scored_rel: DuckDBPyRelation,
    cfg: SofaConfig,
) -> DuckDBPyRelation:
    """
    Second pass: trailing worst sub-scores, composite and row retention.

    Each ``<subscore>_24hours`` is the window MAX coalesced to 0, and
    ``sofa_24hours`` is their sum. Pre-admission bins (hr < 0) are kept only
    when they carry a lab value; the filter runs after windowing so dropped
    bins still feed the windows of later ones.
    """
    trailing_cols = "\n                , ".join(
        f"{trailing}: COALESCE(MAX({subscore}) OVER w, 0)"
        for subscore, trailing in zip(SUBSCORE_COLUMNS, TRAILING_COLUMNS)
    )
    composite = " + ".join(TRAILING_COLUMNS)

    return con.sql(f"""
        WITH trailing_scores AS (
            FROM scored_rel
            SELECT
                *
                , {trailing_cols}
            {_window_clause(cfg)}
        )
        FROM trailing_scores
        SELECT
            *
            , sofa_24hours: {composite}
        WHERE hr >= 0
            OR COALESCE(bilirubin_max, creatinine_max, platelet_min) IS NOT NULL
    """)
