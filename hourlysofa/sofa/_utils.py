"""Shared configuration, feed schemas and staging for hourly SOFA scoring.

This module contains:
- SofaConfig: Configuration dataclass for grid, window and batching parameters
- SofaInputs: Container for the pre-cleaned event feeds
- FEED_SCHEMAS: Column/type contract of every feed
- _stage_feed: Typed DuckDB relation for one feed on a batch connection
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Optional

import duckdb
import pandas as pd
from duckdb import DuckDBPyRelation


# Column -> DuckDB type for every input feed. Ids are compared as VARCHAR.
FEED_SCHEMAS = {
    'stays': {
        'stay_id': 'VARCHAR',
        'admission_id': 'VARCHAR',
        'intime': 'TIMESTAMP',
        'outtime': 'TIMESTAMP',
    },
    'mean_bp': {
        'stay_id': 'VARCHAR',
        'charttime': 'TIMESTAMP',
        'value': 'DOUBLE',
    },
    'gcs': {
        'stay_id': 'VARCHAR',
        'charttime': 'TIMESTAMP',
        'value': 'DOUBLE',
    },
    'urine_output': {
        'stay_id': 'VARCHAR',
        'charttime': 'TIMESTAMP',
        'value': 'DOUBLE',
        'is_irrigant': 'BOOLEAN',
    },
    'labs': {
        'admission_id': 'VARCHAR',
        'charttime': 'TIMESTAMP',
        'lab_category': 'VARCHAR',
        'value': 'DOUBLE',
    },
    'blood_gas': {
        'admission_id': 'VARCHAR',
        'charttime': 'TIMESTAMP',
        'pao2fio2ratio': 'DOUBLE',
    },
    'ventilation': {
        'stay_id': 'VARCHAR',
        'starttime': 'TIMESTAMP',
        'endtime': 'TIMESTAMP',
    },
    'vasopressors': {
        'stay_id': 'VARCHAR',
        'drug': 'VARCHAR',
        'starttime': 'TIMESTAMP',
        'endtime': 'TIMESTAMP',
        'rate': 'DOUBLE',
    },
}

# Columns a feed may omit, with the SQL literal used in their place
OPTIONAL_COLUMN_DEFAULTS = {
    'urine_output': {'is_irrigant': 'FALSE'},
}

LAB_CATEGORIES = ['bilirubin', 'creatinine', 'platelet']
VASOPRESSOR_DRUGS = ['epinephrine', 'norepinephrine', 'dopamine', 'dobutamine']

SUBSCORE_COLUMNS = ['respiration', 'coagulation', 'liver', 'cardiovascular', 'cns', 'renal']
TRAILING_COLUMNS = [f'{name}_24hours' for name in SUBSCORE_COLUMNS]

BIN_AGGREGATE_COLUMNS = [
    'pao2fio2ratio_novent',
    'pao2fio2ratio_vent',
    'rate_epinephrine',
    'rate_norepinephrine',
    'rate_dopamine',
    'rate_dobutamine',
    'meanbp_min',
    'gcs_min',
    'urineoutput',
    'uo_24hr',
    'bilirubin_max',
    'creatinine_max',
    'platelet_min',
    'pafi_conflict',
]

SCORE_COLUMNS = (
    ['stay_id', 'hr', 'starttime', 'endtime']
    + BIN_AGGREGATE_COLUMNS
    + SUBSCORE_COLUMNS
    + TRAILING_COLUMNS
    + ['sofa_24hours']
)


@dataclass
class SofaConfig:
    """
    Configuration for hourly SOFA calculation.

    Attributes
    ----------
    lookback_hours : int
        Number of pre-admission bins on the grid; the first bin is
        ``hr = -lookback_hours``. Default 24.
    window_hours : int
        Number of preceding bins in the trailing window (the current bin is
        always included). Default 24.
    batch_size : int
        Stays scored together on one DuckDB connection. Default 500.
    n_workers : int
        Batches scored concurrently. 1 runs batches sequentially. Default 1.
    timezone : str, optional
        Site timezone used to express timezone-aware inputs as wall-clock
        times before hour truncation. Default None (UTC).
    """

    lookback_hours: int = 24
    window_hours: int = 24
    batch_size: int = 500
    n_workers: int = 1
    timezone: Optional[str] = None

    def __post_init__(self):
        for name in ('lookback_hours', 'window_hours', 'batch_size', 'n_workers'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.lookback_hours < 0:
            raise ValueError(f"lookback_hours must be >= 0, got {self.lookback_hours}")
        if self.window_hours < 0:
            raise ValueError(f"window_hours must be >= 0, got {self.window_hours}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")


@dataclass
class SofaInputs:
    """
    Pre-cleaned event feeds consumed by the scoring pipeline.

    Every attribute except ``stays`` may be None, in which case the feed is
    treated as empty. Column contracts are listed in :data:`FEED_SCHEMAS`.
    """

    stays: pd.DataFrame
    mean_bp: Optional[pd.DataFrame] = None
    gcs: Optional[pd.DataFrame] = None
    urine_output: Optional[pd.DataFrame] = None
    labs: Optional[pd.DataFrame] = None
    blood_gas: Optional[pd.DataFrame] = None
    ventilation: Optional[pd.DataFrame] = None
    vasopressors: Optional[pd.DataFrame] = None

    @classmethod
    def from_dict(cls, tables: dict) -> 'SofaInputs':
        """Build from a ``{feed_name: DataFrame}`` mapping."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(tables) - known)
        if unknown:
            raise ValueError(f"Unknown feeds: {unknown}. Supported feeds are: {sorted(known)}")
        if tables.get('stays') is None:
            raise ValueError("The 'stays' feed is required")
        return cls(**tables)

    def feeds(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _stage_feed(
    con: duckdb.DuckDBPyConnection,
    feed_name: str,
    feed_df: Optional[pd.DataFrame],
) -> DuckDBPyRelation:
    """
    Return a typed relation for one feed on ``con``.

    A missing feed becomes an empty relation with the right schema, which
    flows through the LEFT JOINs of the pipeline as all-NULL aggregates.
    """
    schema = FEED_SCHEMAS[feed_name]

    if feed_df is None:
        empty_cols = "\n            , ".join(
            f"NULL::{dtype} AS {col}" for col, dtype in schema.items()
        )
        return con.sql(f"""
            SELECT
                {empty_cols}
            WHERE false
        """)

    defaults = OPTIONAL_COLUMN_DEFAULTS.get(feed_name, {})
    select_cols = []
    for col, dtype in schema.items():
        source = col if col in feed_df.columns else defaults[col]
        select_cols.append(f"CAST({source} AS {dtype}) AS {col}")

    return con.sql(f"""
        FROM feed_df
        SELECT {', '.join(select_cols)}
    """)
