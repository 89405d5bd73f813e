"""Hourly SOFA scoring.

Computes one row per (stay, hour) with instantaneous organ sub-scores and a
composite built from their trailing 24-hour worst values.

Public API:
    calculate_sofa_hourly: Score every stay of a set of event feeds
    SofaConfig: Configuration dataclass for grid, window and batching
    SofaInputs: Container for the input feeds
    FEED_SCHEMAS: Column contract of each feed
    SCORE_COLUMNS: Column order of the returned score rows
"""

from ._utils import (
    SofaConfig,
    SofaInputs,
    FEED_SCHEMAS,
    SCORE_COLUMNS,
    SUBSCORE_COLUMNS,
    TRAILING_COLUMNS,
)
from ._core import calculate_sofa_hourly

__all__ = [
    'calculate_sofa_hourly',
    'SofaConfig',
    'SofaInputs',
    'FEED_SCHEMAS',
    'SCORE_COLUMNS',
    'SUBSCORE_COLUMNS',
    'TRAILING_COLUMNS',
]
