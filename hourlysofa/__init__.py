from .sofa import calculate_sofa_hourly, SofaConfig, SofaInputs, FEED_SCHEMAS, SCORE_COLUMNS
from .utils import (
    load_inputs,
    load_sofa_config,
    setup_logging,
    HourlySofaError,
    DataIntegrityError,
    AmbiguousCategoryConflict,
)

# Version info
__version__ = "0.1.0"

# Public API
__all__ = [
    "calculate_sofa_hourly",
    "SofaConfig",
    "SofaInputs",
    "FEED_SCHEMAS",
    "SCORE_COLUMNS",
    "load_inputs",
    "load_sofa_config",
    "setup_logging",
    "HourlySofaError",
    "DataIntegrityError",
    "AmbiguousCategoryConflict",
]
