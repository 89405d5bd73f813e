"""
Input integrity checks and the error types of the scoring pipeline.

Per-stay problems never abort a run: offending stays are reported and
skipped so the rest of the batch is still scored.
"""
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from .logging_config import get_logger

_logger = get_logger('utils.validator')


class HourlySofaError(Exception):
    """Base class for errors raised by hourlysofa."""


class DataIntegrityError(HourlySofaError):
    """A stay record that cannot be placed on an hourly grid."""

    def __init__(self, stay_id, reason: str):
        self.stay_id = stay_id
        self.reason = reason
        super().__init__(f"stay {stay_id}: {reason}")


class AmbiguousCategoryConflict(UserWarning):
    """A blood-gas sample covered by more than one ventilation episode."""


def check_required_columns(
    df: pd.DataFrame,
    required_columns: Iterable[str],
    table_name: str,
) -> None:
    """
    Raise if any required column is missing from a feed.

    Raises
    ------
    ValueError
        Listing the missing columns.
    """
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise ValueError(
            f"{table_name} is missing required columns: {missing}. "
            f"Available columns: {list(df.columns)}"
        )


def validate_stays(stays: pd.DataFrame) -> Tuple[pd.DataFrame, List[DataIntegrityError]]:
    """
    Split stays into scoreable records and integrity failures.

    A stay is rejected when its id is missing, when intime or outtime is
    missing, when outtime precedes intime, or when its stay_id occurs more
    than once (every row sharing the id is rejected, none is preferred).

    Parameters
    ----------
    stays : pd.DataFrame
        Columns [stay_id, admission_id, intime, outtime], datetimes parsed.

    Returns
    -------
    tuple
        (valid stays with a fresh index, list of DataIntegrityError)
    """
    errors: List[DataIntegrityError] = []
    reasons: Dict[int, str] = {}

    missing_id = stays['stay_id'].isna()
    duplicated = stays['stay_id'].duplicated(keep=False) & ~missing_id
    missing_time = stays['intime'].isna() | stays['outtime'].isna()
    reversed_time = ~missing_time & (stays['outtime'] < stays['intime'])

    for idx in stays.index[missing_id]:
        reasons[idx] = "missing stay_id"
    for idx in stays.index[duplicated]:
        reasons.setdefault(idx, "duplicate stay_id")
    for idx in stays.index[missing_time]:
        reasons.setdefault(idx, "missing intime or outtime")
    for idx in stays.index[reversed_time]:
        reasons.setdefault(
            idx,
            f"outtime {stays.at[idx, 'outtime']} precedes intime {stays.at[idx, 'intime']}",
        )

    reported = set()
    for idx, reason in reasons.items():
        stay_id = stays.at[idx, 'stay_id']
        stay_id = None if pd.isna(stay_id) else stay_id
        key = (stay_id, reason)
        if key in reported:
            continue
        reported.add(key)
        error = DataIntegrityError(stay_id, reason)
        _logger.warning(f"Skipping {error}")
        errors.append(error)

    valid = stays.drop(index=list(reasons)).reset_index(drop=True)
    if errors:
        _logger.warning(f"{len(errors)} stay records failed integrity checks and were skipped")
    return valid, errors
