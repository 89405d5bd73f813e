from .logging_config import get_logger, setup_logging
from .config import load_sofa_config, create_example_config
from .io import load_inputs, normalize_datetime_columns
from .validator import (
    HourlySofaError,
    DataIntegrityError,
    AmbiguousCategoryConflict,
    check_required_columns,
    validate_stays,
)

__all__ = [
    # logging_config
    'get_logger',
    'setup_logging',
    # config
    'load_sofa_config',
    'create_example_config',
    # io
    'load_inputs',
    'normalize_datetime_columns',
    # validator
    'HourlySofaError',
    'DataIntegrityError',
    'AmbiguousCategoryConflict',
    'check_required_columns',
    'validate_stays',
]
