import os
from typing import Dict, List, Optional

import duckdb
import pandas as pd
import pytz

from .logging_config import get_logger

logger = get_logger('utils.io')

SUPPORTED_FILETYPES = ['csv', 'parquet']


def _cast_id_cols_to_string(df: pd.DataFrame) -> pd.DataFrame:
    id_cols = [c for c in df.columns if c.endswith("_id")]
    if id_cols:                                   # no-op if none found
        df = df.copy()
        for col in id_cols:
            # Integer ids widened to float by a null must render as '1', not '1.0'
            if pd.api.types.is_float_dtype(df[col]):
                non_null = df[col].dropna()
                if (non_null == non_null.round()).all():
                    df[col] = df[col].astype("Int64")
        df[id_cols] = df[id_cols].astype("string")
    return df


def normalize_datetime_columns(
    df: pd.DataFrame,
    columns: List[str],
    timezone: Optional[str] = None,
) -> pd.DataFrame:
    """
    Parse datetime columns and express them as naive wall-clock times.

    The scoring grid truncates admission times to the hour, which only makes
    sense on local wall-clock time. Timezone-aware columns are converted to
    ``timezone`` (UTC when not given) and the zone is then dropped; naive
    columns are assumed to already be wall-clock times.

    Parameters
    ----------
    df : pd.DataFrame
        Input DataFrame (not modified).
    columns : list of str
        Datetime columns to normalize. Columns absent from df are ignored.
    timezone : str, optional
        Site timezone, e.g. "America/New_York".

    Returns
    -------
    pd.DataFrame
        Copy of df with normalized datetime columns. Unparseable values
        become NaT.
    """
    site_tz = pytz.timezone(timezone) if timezone else pytz.UTC
    df = df.copy()

    for col in columns:
        if col not in df.columns:
            continue
        null_before = df[col].isna().sum()
        parsed = pd.to_datetime(df[col], errors='coerce')
        if isinstance(parsed.dtype, pd.DatetimeTZDtype):
            parsed = parsed.dt.tz_convert(site_tz).dt.tz_localize(None)
            logger.debug(f"{col}: converted to {site_tz} wall-clock time")
        null_after = parsed.isna().sum()
        if null_after != null_before:
            logger.warning(
                f"{col}: {null_after - null_before} values could not be parsed as datetimes"
            )
        df[col] = parsed

    return df


def _read_table(file_path: str, filetype: str) -> pd.DataFrame:
    con = duckdb.connect()
    try:
        if filetype == 'csv':
            rel = con.read_csv(file_path)
        else:
            rel = con.read_parquet(file_path)
        return rel.df()
    finally:
        con.close()


def load_inputs(
    data_directory: str,
    filetype: str = 'parquet',
    timezone: Optional[str] = None,
):
    """
    Load every scoring feed found in a directory.

    Each feed is read from ``<data_directory>/<feed>.<filetype>``; feed names
    are the keys of :data:`hourlysofa.sofa.FEED_SCHEMAS` (``stays``,
    ``mean_bp``, ``gcs``, ``urine_output``, ``labs``, ``blood_gas``,
    ``ventilation``, ``vasopressors``). Only ``stays`` is mandatory.

    Parameters
    ----------
    data_directory : str
        Directory holding the feed files.
    filetype : str, default 'parquet'
        'csv' or 'parquet'.
    timezone : str, optional
        Site timezone used for timezone-aware datetime columns.

    Returns
    -------
    SofaInputs

    Raises
    ------
    ValueError
        If filetype is not supported
    FileNotFoundError
        If the directory or the stays file does not exist
    """
    from hourlysofa.sofa._utils import FEED_SCHEMAS, SofaInputs

    if filetype not in SUPPORTED_FILETYPES:
        raise ValueError(
            f"Unsupported filetype '{filetype}'. Supported filetypes are: {SUPPORTED_FILETYPES}"
        )
    if not os.path.isdir(data_directory):
        raise FileNotFoundError(f"Data directory does not exist: {data_directory}")

    tables: Dict[str, Optional[pd.DataFrame]] = {}
    for feed_name, schema in FEED_SCHEMAS.items():
        file_path = os.path.join(data_directory, f"{feed_name}.{filetype}")
        if not os.path.exists(file_path):
            if feed_name == 'stays':
                raise FileNotFoundError(f"The file {file_path} does not exist in the specified directory.")
            logger.info(f"{feed_name}: no {os.path.basename(file_path)} found, feed left empty")
            tables[feed_name] = None
            continue

        df = _read_table(file_path, filetype)
        df = _cast_id_cols_to_string(df)
        time_cols = [c for c, dtype in schema.items() if dtype == 'TIMESTAMP']
        df = normalize_datetime_columns(df, time_cols, timezone)
        logger.info(f"{feed_name}: loaded {len(df)} rows from {os.path.basename(file_path)}")
        tables[feed_name] = df

    return SofaInputs(**tables)
