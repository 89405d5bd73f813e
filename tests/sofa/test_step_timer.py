"""Tests for the pipeline step timers."""

from concurrent.futures import ThreadPoolExecutor

from hourlysofa.sofa._perf import NoOpTimer, StepTimer


def test_step_timer_records_steps():
    timer = StepTimer()
    with timer.step('prepare_feeds'):
        pass
    with timer.step('score_batches'):
        pass

    assert [r['step'] for r in timer.results] == ['prepare_feeds', 'score_batches']
    assert timer.total >= 0.0


def test_step_timer_summary_groups_repeated_steps():
    timer = StepTimer()

    def score_one():
        with timer.step('batch'):
            pass

    with ThreadPoolExecutor(max_workers=4) as executor:
        for _ in range(8):
            executor.submit(score_one)
    with timer.step('assembly'):
        pass

    summary = timer.summary()
    assert list(summary) == ['batch', 'assembly']
    assert summary['batch']['calls'] == 8
    assert summary['assembly']['calls'] == 1


def test_step_timer_report():
    timer = StepTimer()
    with timer.step('assembly'):
        pass

    report = timer.report(n_stays=10)
    assert 'assembly' in report
    assert 'ms per stay (10 stays)' in report


def test_noop_timers_do_not_share_results():
    first, second = NoOpTimer(), NoOpTimer()
    first.results.append({'step': 'x', 'elapsed_s': 1.0})

    assert second.results == []
    with second.step('anything'):
        pass
    assert second.total == 0.0
    assert second.summary() == {}
    assert second.report() == ""
