"""Tests for the ``python -m hourlysofa`` entry point."""

from datetime import datetime

import pandas as pd
import pytest

from hourlysofa import __main__ as cli


@pytest.fixture
def feed_dir(tmp_path):
    feeds = tmp_path / 'feeds'
    feeds.mkdir()
    pd.DataFrame({
        'stay_id': ['S1', 'S2'],
        'admission_id': ['A1', 'A2'],
        'intime': [datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 12)],
        'outtime': [datetime(2024, 1, 1, 14), datetime(2024, 1, 1, 10)],
    }).to_csv(feeds / 'stays.csv', index=False)
    pd.DataFrame({
        'admission_id': ['A1'],
        'charttime': [datetime(2024, 1, 1, 10)],
        'lab_category': ['bilirubin'],
        'value': [2.5],
    }).to_csv(feeds / 'labs.csv', index=False)
    return feeds


def test_cli_writes_scores_and_summary(feed_dir, tmp_path, capsys):
    output = tmp_path / 'scores.csv'
    summary_output = tmp_path / 'summary.csv'

    exit_code = cli.main([
        '--data-dir', str(feed_dir),
        '--filetype', 'csv',
        '--output', str(output),
        '--summary-output', str(summary_output),
        '--log-level', 'WARNING',
    ])

    assert exit_code == 0
    scores = pd.read_csv(output)
    assert scores['hr'].tolist() == list(range(0, 7))
    assert scores.loc[scores['hr'] == 2, 'liver'].iloc[0] == 2

    summary = pd.read_csv(summary_output).set_index('stay_id')
    assert summary.loc['S1', 'status'] == 'scored'
    assert summary.loc['S2', 'status'] == 'skipped'
    assert 'scored' in capsys.readouterr().out


def test_cli_with_config(feed_dir, tmp_path):
    config_file = tmp_path / 'run.yaml'
    config_file.write_text('lookback_hours: 4\nbatch_size: 1\n')
    output = tmp_path / 'scores.csv'

    exit_code = cli.main([
        '--data-dir', str(feed_dir),
        '--filetype', 'csv',
        '--config', str(config_file),
        '--output', str(output),
    ])

    assert exit_code == 0
    assert len(pd.read_csv(output)) == 7


def test_cli_requires_data_dir():
    with pytest.raises(SystemExit):
        cli.main([])
