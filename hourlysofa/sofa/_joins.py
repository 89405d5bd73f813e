"""Interval joins of event feeds onto the hourly grid, and per-bin reductions.

Point-in-time observations (MAP, GCS, urine output, labs, blood gases) snap
to the bin whose ``(starttime, endtime]`` interval contains their charttime.
Infusion rates are intervals themselves and are evaluated at the instant a
bin closes.

Each category is reduced on its own and joined back to the grid, so a busy
category can never multiply the rows of another one. Absent data stays NULL.
"""

from __future__ import annotations

import warnings

import duckdb
from duckdb import DuckDBPyRelation

from ._utils import VASOPRESSOR_DRUGS
from hourlysofa.utils.logging_config import get_logger
from hourlysofa.utils.validator import AmbiguousCategoryConflict

logger = get_logger('sofa.joins')


def _agg_point_events(
    con: duckdb.DuckDBPyConnection,
    grid_rel: DuckDBPyRelation,
    events_rel: DuckDBPyRelation,
    select_sql: str,
    *,
    id_col: str = 'stay_id',
) -> DuckDBPyRelation:
    """
    Reduce charted events per bin using ``starttime < charttime <= endtime``.

    ``id_col`` is ``stay_id`` for stay-level feeds and ``admission_id`` for
    admission-level feeds (labs), which lets a lab drawn before ICU admission
    land in the pre-admission bins of the stay.
    """
    return con.sql(f"""
        FROM grid_rel g
        JOIN events_rel e ON
            e.{id_col} = g.{id_col}
            AND e.charttime > g.starttime
            AND e.charttime <= g.endtime
        SELECT
            g.stay_id
            , g.hr
            , {select_sql}
        GROUP BY g.stay_id, g.hr
    """)


def _agg_meanbp(con, grid_rel, mean_bp_rel) -> DuckDBPyRelation:
    return _agg_point_events(con, grid_rel, mean_bp_rel, "meanbp_min: MIN(e.value)")


def _agg_gcs(con, grid_rel, gcs_rel) -> DuckDBPyRelation:
    return _agg_point_events(con, grid_rel, gcs_rel, "gcs_min: MIN(e.value)")


def _agg_urine_output(con, grid_rel, urine_rel) -> DuckDBPyRelation:
    """Hourly urine volume; irrigant volumes count negatively."""
    return _agg_point_events(
        con, grid_rel, urine_rel,
        "urineoutput: SUM(CASE WHEN e.is_irrigant THEN -e.value ELSE e.value END)",
    )


def _agg_labs(con, grid_rel, labs_rel) -> DuckDBPyRelation:
    """Worst bilirubin/creatinine (max) and platelet count (min) per bin."""
    return _agg_point_events(
        con, grid_rel, labs_rel,
        """bilirubin_max: MAX(e.value) FILTER (WHERE lower(e.lab_category) = 'bilirubin')
            , creatinine_max: MAX(e.value) FILTER (WHERE lower(e.lab_category) = 'creatinine')
            , platelet_min: MIN(e.value) FILTER (WHERE lower(e.lab_category) = 'platelet')""",
        id_col='admission_id',
    )


def _classify_blood_gas(
    con: duckdb.DuckDBPyConnection,
    stays_rel: DuckDBPyRelation,
    blood_gas_rel: DuckDBPyRelation,
    ventilation_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """
    Attach blood-gas samples to stays and split PaO2/FiO2 by ventilation status.

    Samples are charted against the hospital admission, so they are matched
    by admission_id and kept only within the stay's [intime, outtime]. A
    sample is ventilated when a ventilation episode of the stay contains it;
    the two ratio columns are mutually exclusive per sample.

    Returns
    -------
    DuckDBPyRelation
        Columns: [stay_id, charttime, pao2fio2ratio_vent, pao2fio2ratio_novent,
                  n_vent_episodes, pafi_conflict]
        pafi_conflict is true when overlapping episodes both cover the sample.
    """
    samples = con.sql("""
        FROM blood_gas_rel
        SELECT *, sample_id: row_number() OVER ()
    """)

    return con.sql("""
        WITH matched AS (
            FROM stays_rel s
            JOIN samples bg ON
                bg.admission_id = s.admission_id
                AND bg.charttime >= s.intime
                AND bg.charttime <= s.outtime
            LEFT JOIN ventilation_rel vd ON
                vd.stay_id = s.stay_id
                AND bg.charttime >= vd.starttime
                AND bg.charttime <= vd.endtime
            SELECT
                s.stay_id
                , bg.sample_id
                , bg.charttime
                , pao2fio2ratio: ANY_VALUE(bg.pao2fio2ratio)
                , n_vent_episodes: COUNT(vd.stay_id)
            GROUP BY s.stay_id, bg.sample_id, bg.charttime
        )
        FROM matched
        SELECT
            stay_id
            , charttime
            , pao2fio2ratio_vent: CASE WHEN n_vent_episodes > 0 THEN pao2fio2ratio END
            , pao2fio2ratio_novent: CASE WHEN n_vent_episodes = 0 THEN pao2fio2ratio END
            , n_vent_episodes
            , pafi_conflict: n_vent_episodes > 1
    """)


def _report_pafi_conflicts(con: duckdb.DuckDBPyConnection, pafi_rel: DuckDBPyRelation) -> int:
    """Warn about every ambiguous blood-gas sample; return how many there were."""
    conflicts = con.sql("""
        FROM pafi_rel
        SELECT stay_id, charttime, n_vent_episodes
        WHERE pafi_conflict
        ORDER BY stay_id, charttime
    """).fetchall()

    for stay_id, charttime, n_episodes in conflicts:
        message = (
            f"stay {stay_id}: blood gas at {charttime} is covered by {n_episodes} "
            "overlapping ventilation episodes; sample flagged (pafi_conflict)"
        )
        logger.warning(message)
        warnings.warn(message, AmbiguousCategoryConflict, stacklevel=2)

    return len(conflicts)


def _agg_pafi(con, grid_rel, pafi_rel) -> DuckDBPyRelation:
    """Worst (lowest) ratio per ventilation status per bin."""
    return _agg_point_events(
        con, grid_rel, pafi_rel,
        """pao2fio2ratio_vent: MIN(e.pao2fio2ratio_vent)
            , pao2fio2ratio_novent: MIN(e.pao2fio2ratio_novent)
            , pafi_conflict: BOOL_OR(e.pafi_conflict)""",
    )


def _agg_vasopressors(
    con: duckdb.DuckDBPyConnection,
    grid_rel: DuckDBPyRelation,
    vaso_rel: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """
    Infusion rate per drug applicable to each bin.

    A rate interval counts for a bin when the bin closes inside it
    (``starttime < bin endtime <= endtime``). An infusion that starts and
    stops without spanning any bin close is attributed to the bin it ran in.
    When several intervals of one drug apply, the highest rate is kept.
    """
    rate_cols = "\n            , ".join(
        f"rate_{drug}: MAX(v.rate) FILTER (WHERE lower(v.drug) = '{drug}')"
        for drug in VASOPRESSOR_DRUGS
    )

    return con.sql(f"""
        FROM grid_rel g
        JOIN vaso_rel v ON
            v.stay_id = g.stay_id
            AND (
                (v.starttime < g.endtime AND g.endtime <= v.endtime)
                OR (v.starttime >= g.starttime AND v.endtime < g.endtime)
            )
        SELECT
            g.stay_id
            , g.hr
            , {rate_cols}
        GROUP BY g.stay_id, g.hr
    """)


def _assemble_bin_aggregates(
    con: duckdb.DuckDBPyConnection,
    grid_rel: DuckDBPyRelation,
    meanbp_agg: DuckDBPyRelation,
    gcs_agg: DuckDBPyRelation,
    uo_agg: DuckDBPyRelation,
    labs_agg: DuckDBPyRelation,
    pafi_agg: DuckDBPyRelation,
    vaso_agg: DuckDBPyRelation,
) -> DuckDBPyRelation:
    """One row per bin with every reduced scalar (NULL where no data)."""
    return con.sql("""
        FROM grid_rel g
        LEFT JOIN meanbp_agg bp USING (stay_id, hr)
        LEFT JOIN gcs_agg gc USING (stay_id, hr)
        LEFT JOIN uo_agg uo USING (stay_id, hr)
        LEFT JOIN labs_agg la USING (stay_id, hr)
        LEFT JOIN pafi_agg pf USING (stay_id, hr)
        LEFT JOIN vaso_agg va USING (stay_id, hr)
        SELECT
            g.stay_id
            , g.hr
            , g.starttime
            , g.endtime
            , pf.pao2fio2ratio_novent
            , pf.pao2fio2ratio_vent
            , va.rate_epinephrine
            , va.rate_norepinephrine
            , va.rate_dopamine
            , va.rate_dobutamine
            , bp.meanbp_min
            , gc.gcs_min
            , uo.urineoutput
            , la.bilirubin_max
            , la.creatinine_max
            , la.platelet_min
            , pafi_conflict: COALESCE(pf.pafi_conflict, false)
    """)
