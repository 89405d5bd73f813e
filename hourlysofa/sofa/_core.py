"""Core orchestration for hourly SOFA scoring.

This module contains the public entry point:
- calculate_sofa_hourly: Hourly SOFA rows with trailing 24-hour sub-scores

Stays are validated, partitioned into batches and every batch runs the full
pipeline on its own in-memory DuckDB connection. Batches share nothing but
the read-only input frames, so they can be scored on worker threads and
combined once all of them have finished or failed.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed

import duckdb
import pandas as pd
from duckdb import DuckDBPyRelation

from ._utils import (
    FEED_SCHEMAS,
    OPTIONAL_COLUMN_DEFAULTS,
    SCORE_COLUMNS,
    SUBSCORE_COLUMNS,
    TRAILING_COLUMNS,
    SofaConfig,
    SofaInputs,
    _stage_feed,
)
from ._grid import _build_hourly_grid
from ._joins import (
    _agg_meanbp,
    _agg_gcs,
    _agg_urine_output,
    _agg_labs,
    _classify_blood_gas,
    _report_pafi_conflicts,
    _agg_pafi,
    _agg_vasopressors,
    _assemble_bin_aggregates,
)
from ._resp import _calculate_resp_subscore
from ._coag import _calculate_coag_subscore
from ._liver import _calculate_liver_subscore
from ._cv import _calculate_cv_subscore
from ._cns import _calculate_cns_subscore
from ._renal import _calculate_renal_subscore
from ._window import _trailing_urine_output, _apply_trailing_window
from ._perf import StepTimer, NoOpTimer
from hourlysofa.utils.io import _cast_id_cols_to_string, normalize_datetime_columns
from hourlysofa.utils.logging_config import get_logger
from hourlysofa.utils.validator import check_required_columns, validate_stays

logger = get_logger('sofa.core')


def _prepare_feeds(inputs: SofaInputs, cfg: SofaConfig) -> dict:
    """Check feed columns, cast ids to strings and normalize datetimes."""
    feeds = {}
    for feed_name, feed_df in inputs.feeds().items():
        if feed_df is None:
            if feed_name == 'stays':
                raise ValueError("The 'stays' feed is required")
            logger.warning(f"{feed_name} feed not provided; it is treated as having no events.")
            feeds[feed_name] = None
            continue
        if not isinstance(feed_df, pd.DataFrame):
            raise TypeError(
                f"{feed_name} must be a pandas DataFrame, got {type(feed_df).__name__}"
            )

        schema = FEED_SCHEMAS[feed_name]
        optional = OPTIONAL_COLUMN_DEFAULTS.get(feed_name, {})
        check_required_columns(feed_df, [c for c in schema if c not in optional], feed_name)

        feed_df = _cast_id_cols_to_string(feed_df)
        time_cols = [c for c, dtype in schema.items() if dtype == 'TIMESTAMP']
        feeds[feed_name] = normalize_datetime_columns(feed_df, time_cols, cfg.timezone)

    feeds['stays'] = feeds['stays'].reset_index(drop=True)
    return feeds


def _partition_stays(stays: pd.DataFrame, batch_size: int) -> list[pd.DataFrame]:
    return [
        stays.iloc[start:start + batch_size]
        for start in range(0, len(stays), batch_size)
    ]


def _materialize(con: duckdb.DuckDBPyConnection, rel: DuckDBPyRelation, name: str) -> DuckDBPyRelation:
    """Store a relation as a table so downstream joins do not recompute it."""
    rel.to_table(name)
    return con.table(name)


def _join_subscores(
    con: duckdb.DuckDBPyConnection,
    bins_rel: DuckDBPyRelation,
    resp_score: DuckDBPyRelation,
    coag_score: DuckDBPyRelation,
    liver_score: DuckDBPyRelation,
    cv_score: DuckDBPyRelation,
    cns_score: DuckDBPyRelation,
    renal_score: DuckDBPyRelation,
) -> DuckDBPyRelation:
    return con.sql("""
        FROM bins_rel b
        LEFT JOIN resp_score r USING (stay_id, hr)
        LEFT JOIN coag_score co USING (stay_id, hr)
        LEFT JOIN liver_score li USING (stay_id, hr)
        LEFT JOIN cv_score cv USING (stay_id, hr)
        LEFT JOIN cns_score cn USING (stay_id, hr)
        LEFT JOIN renal_score re USING (stay_id, hr)
        SELECT
            b.*
            , r.respiration
            , co.coagulation
            , li.liver
            , cv.cardiovascular
            , cn.cns
            , re.renal
    """)


def _score_batch(
    batch_stays: pd.DataFrame,
    feeds: dict,
    cfg: SofaConfig,
    *,
    dev: bool = False,
) -> pd.DataFrame | tuple[pd.DataFrame, dict]:
    """
    Run the whole pipeline for one batch of stays.

    Order matters: bin aggregates, then the trailing urine sum, then the
    threshold scorers (renal reads the urine sum), then the trailing maxima.
    """
    con = duckdb.connect()
    try:
        staged = {
            feed_name: _stage_feed(con, feed_name, batch_stays if feed_name == 'stays' else feed_df)
            for feed_name, feed_df in feeds.items()
        }
        stays_rel = staged['stays']

        grid = _materialize(con, _build_hourly_grid(con, stays_rel, cfg), 'hourly_grid')

        meanbp_agg = _agg_meanbp(con, grid, staged['mean_bp'])
        gcs_agg = _agg_gcs(con, grid, staged['gcs'])
        uo_agg = _agg_urine_output(con, grid, staged['urine_output'])
        labs_agg = _agg_labs(con, grid, staged['labs'])

        pafi_samples = _materialize(
            con,
            _classify_blood_gas(con, stays_rel, staged['blood_gas'], staged['ventilation']),
            'pafi_samples',
        )
        _report_pafi_conflicts(con, pafi_samples)
        pafi_agg = _agg_pafi(con, grid, pafi_samples)
        vaso_agg = _agg_vasopressors(con, grid, staged['vasopressors'])

        bin_aggregates = _materialize(
            con,
            _assemble_bin_aggregates(
                con, grid, meanbp_agg, gcs_agg, uo_agg, labs_agg, pafi_agg, vaso_agg
            ),
            'bin_aggregates',
        )
        bins = _trailing_urine_output(con, bin_aggregates, cfg)

        resp_score = _calculate_resp_subscore(con, bins)
        coag_score = _calculate_coag_subscore(con, bins)
        liver_score = _calculate_liver_subscore(con, bins)
        cv_score = _calculate_cv_subscore(con, bins)
        cns_score = _calculate_cns_subscore(con, bins)
        renal_score = _calculate_renal_subscore(con, bins)

        scored = _materialize(
            con,
            _join_subscores(
                con, bins, resp_score, coag_score, liver_score, cv_score, cns_score, renal_score
            ),
            'scored_bins',
        )
        final = _apply_trailing_window(con, scored, cfg)

        result = con.sql(f"""
            FROM final
            SELECT {', '.join(SCORE_COLUMNS)}
            ORDER BY stay_id, hr
        """).df()

        if dev:
            intermediates = {
                'grid': grid.df(),
                'meanbp_agg': meanbp_agg.df(),
                'gcs_agg': gcs_agg.df(),
                'uo_agg': uo_agg.df(),
                'labs_agg': labs_agg.df(),
                'pafi_samples': pafi_samples.df(),
                'pafi_agg': pafi_agg.df(),
                'vaso_agg': vaso_agg.df(),
                'bin_aggregates': bin_aggregates.df(),
                'scored_bins': scored.df(),
            }
            return result, intermediates
        return result
    finally:
        con.close()


def _score_batch_isolated(
    batch_stays: pd.DataFrame,
    feeds: dict,
    cfg: SofaConfig,
) -> tuple[list[pd.DataFrame], dict]:
    """
    Score a batch; on failure, retry its stays one at a time.

    Returns
    -------
    tuple
        (list of result frames, {stay_id: error message} for failed stays)
    """
    try:
        return [_score_batch(batch_stays, feeds, cfg)], {}
    except Exception as e:
        stay_ids = batch_stays['stay_id'].tolist()
        if len(stay_ids) == 1:
            logger.error(f"stay {stay_ids[0]}: scoring failed ({type(e).__name__}: {e})")
            return [], {stay_ids[0]: f"{type(e).__name__}: {e}"}

        logger.error(
            f"Batch of {len(stay_ids)} stays failed ({type(e).__name__}: {e}); "
            "retrying stay by stay to isolate the failure"
        )
        frames, failures = [], {}
        for i in range(len(batch_stays)):
            stay_frames, stay_failures = _score_batch_isolated(batch_stays.iloc[[i]], feeds, cfg)
            frames.extend(stay_frames)
            failures.update(stay_failures)
        return frames, failures


def _run_batches(
    batches: list[pd.DataFrame],
    feeds: dict,
    cfg: SofaConfig,
) -> tuple[list[pd.DataFrame], dict]:
    frames, failures = [], {}

    if cfg.n_workers == 1 or len(batches) <= 1:
        for i, batch in enumerate(batches, start=1):
            logger.info(f"Scoring batch {i}/{len(batches)} ({len(batch)} stays)...")
            batch_frames, batch_failures = _score_batch_isolated(batch, feeds, cfg)
            frames.extend(batch_frames)
            failures.update(batch_failures)
        return frames, failures

    logger.info(f"Scoring {len(batches)} batches on {cfg.n_workers} worker threads...")
    with ThreadPoolExecutor(max_workers=cfg.n_workers) as executor:
        future_map = {
            executor.submit(_score_batch_isolated, batch, feeds, cfg): i
            for i, batch in enumerate(batches, start=1)
        }
        for future in as_completed(future_map):
            batch_frames, batch_failures = future.result()
            frames.extend(batch_frames)
            failures.update(batch_failures)
            logger.debug(f"Batch {future_map[future]} finished")
    return frames, failures


def _finalize_scores(frames: list[pd.DataFrame]) -> pd.DataFrame:
    frames = [f for f in frames if len(f)]
    if not frames:
        scores = pd.DataFrame(columns=SCORE_COLUMNS)
    else:
        scores = (
            pd.concat(frames, ignore_index=True)
            .sort_values(['stay_id', 'hr'])
            .reset_index(drop=True)
        )

    # Nullable sub-scores keep "no data" apart from a documented 0
    scores[SUBSCORE_COLUMNS] = scores[SUBSCORE_COLUMNS].astype('Int64')
    scores[TRAILING_COLUMNS + ['sofa_24hours', 'hr']] = (
        scores[TRAILING_COLUMNS + ['sofa_24hours', 'hr']].astype('int64')
    )
    scores['pafi_conflict'] = scores['pafi_conflict'].astype(bool)
    return scores


def _build_summary(
    valid_stays: pd.DataFrame,
    integrity_errors: list,
    failures: dict,
    scores: pd.DataFrame,
) -> pd.DataFrame:
    """One row per input stay id: scored, skipped (integrity) or failed."""
    row_counts = scores.groupby('stay_id').size().to_dict() if len(scores) else {}

    rows = []
    for stay_id in valid_stays['stay_id']:
        if stay_id in failures:
            rows.append({'stay_id': stay_id, 'status': 'failed', 'n_rows': 0,
                         'error': failures[stay_id]})
        else:
            rows.append({'stay_id': stay_id, 'status': 'scored',
                         'n_rows': int(row_counts.get(stay_id, 0)), 'error': None})
    for error in integrity_errors:
        rows.append({'stay_id': error.stay_id, 'status': 'skipped', 'n_rows': 0,
                     'error': error.reason})

    return pd.DataFrame(rows, columns=['stay_id', 'status', 'n_rows', 'error'])


def calculate_sofa_hourly(
    inputs: SofaInputs | dict,
    sofa_config: SofaConfig | None = None,
    *,
    return_summary: bool = False,
    dev: bool = False,
    perf_profile: bool = False,
) -> pd.DataFrame | tuple:
    """
    Calculate hourly SOFA scores with a trailing 24-hour worst-value window.

    Parameters
    ----------
    inputs : SofaInputs | dict
        Pre-cleaned event feeds; a dict is converted with SofaInputs.from_dict.
        See FEED_SCHEMAS for the columns of each feed.
    sofa_config : SofaConfig, optional
        Configuration object with grid, window and batching parameters.
        If None, uses default values.
    return_summary : bool, default False
        If True, also return the per-stay run summary
        (columns: stay_id, status, n_rows, error).
    dev : bool, default False
        If True, score all stays in a single batch and also return a dict of
        materialized intermediate DataFrames (grid, per-category aggregates,
        blood-gas classification, bin aggregates, scored bins). Failure
        isolation is off in this mode: an error in any stay propagates to
        the caller instead of being recorded in the summary.
    perf_profile : bool, default False
        If True, also return the StepTimer with per-step timings.

    Returns
    -------
    pd.DataFrame | tuple
        Score rows, one per retained (stay_id, hr), with columns
        SCORE_COLUMNS:
            - stay_id, hr, starttime, endtime
            - bin aggregates: pao2fio2ratio_novent, pao2fio2ratio_vent,
              rate_epinephrine, rate_norepinephrine, rate_dopamine,
              rate_dobutamine, meanbp_min, gcs_min, urineoutput, uo_24hr,
              bilirubin_max, creatinine_max, platelet_min, pafi_conflict
            - sub-scores (Int64, NULL when no data): respiration, coagulation,
              liver, cardiovascular, cns, renal
            - trailing sub-scores (0-4): <subscore>_24hours
            - sofa_24hours: composite (0-24)
        Extra elements are appended in the order summary, intermediates,
        timer when the corresponding flags are set.

    Notes
    -----
    - Stays failing integrity checks (missing or reversed times, duplicate
      stay_id) are logged, skipped and reported as 'skipped' in the summary.
    - A batch that raises is retried stay by stay; stays that still fail are
      reported as 'failed' and the rest of the run continues.
    """
    cfg = sofa_config or SofaConfig()
    timer = StepTimer() if perf_profile else NoOpTimer()

    if isinstance(inputs, dict):
        inputs = SofaInputs.from_dict(inputs)

    logger.info("Starting hourly SOFA calculation...")
    logger.info(f"Config: {cfg}")

    with timer.step("prepare_feeds"):
        feeds = _prepare_feeds(inputs, cfg)

    with timer.step("validate_stays"):
        valid_stays, integrity_errors = validate_stays(feeds['stays'])
    logger.info(f"{len(valid_stays)} stays passed integrity checks")

    intermediates = None
    with timer.step("score_batches"):
        if dev:
            if len(valid_stays) > cfg.batch_size:
                logger.info("dev=True: scoring all stays in a single batch")
            logger.info("dev=True: failure isolation is off, scoring errors propagate")
            frame, intermediates = _score_batch(valid_stays, feeds, cfg, dev=True)
            frames, failures = [frame], {}
        else:
            batches = _partition_stays(valid_stays, cfg.batch_size)
            frames, failures = _run_batches(batches, feeds, cfg)

    with timer.step("assembly"):
        scores = _finalize_scores(frames)
        summary = _build_summary(valid_stays, integrity_errors, failures, scores)

    logger.info(
        f"Hourly SOFA calculation complete: {len(scores)} rows, "
        f"{(summary['status'] == 'scored').sum()} scored, "
        f"{(summary['status'] == 'skipped').sum()} skipped, "
        f"{(summary['status'] == 'failed').sum()} failed"
    )

    result = [scores]
    if return_summary:
        result.append(summary)
    if dev:
        result.append(intermediates)
    if perf_profile:
        result.append(timer)
    return result[0] if len(result) == 1 else tuple(result)
