"""
Configuration file for pytest.
This file contains fixtures shared by the hourly SOFA tests.
"""
import os
import sys
from datetime import datetime, timedelta

import duckdb
import pandas as pd
import pytest

# Add the project root to the path so that imports work without installing
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

BASE_TIME = datetime(2024, 1, 1, 8, 0, 0)


@pytest.fixture
def base_time():
    """Admission time of the synthetic stays (on the hour)."""
    return BASE_TIME


@pytest.fixture
def con():
    """Fresh in-memory DuckDB connection."""
    connection = duckdb.connect()
    yield connection
    connection.close()


@pytest.fixture
def single_stay():
    """One 48-hour stay admitted at BASE_TIME."""
    return pd.DataFrame({
        'stay_id': ['S1'],
        'admission_id': ['A1'],
        'intime': [BASE_TIME],
        'outtime': [BASE_TIME + timedelta(hours=48)],
    })


@pytest.fixture
def two_stays():
    """A 48-hour stay and a 5.5-hour stay from different admissions."""
    return pd.DataFrame({
        'stay_id': ['S1', 'S2'],
        'admission_id': ['A1', 'A2'],
        'intime': [BASE_TIME, BASE_TIME + timedelta(hours=2.5)],
        'outtime': [BASE_TIME + timedelta(hours=48), BASE_TIME + timedelta(hours=8)],
    })
