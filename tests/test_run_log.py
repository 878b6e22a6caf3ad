from conftest import NOW, SleepRecorder
from restic_orchestrator.core.models import AggregateResult, Phase
from restic_orchestrator.core.retry import run_with_retry
from restic_orchestrator.core.run_log import RunHistory, RunLogFactory


def _results(*outcomes):
    """Attempt function returning the given results in order"""
    calls = []

    def attempt_fn(n):
        calls.append(n)
        return outcomes[n - 1]

    return attempt_fn, calls


def _failed(retryable=True):
    result = AggregateResult()
    if retryable:
        result.record_error("boom")
    else:
        result.abort("offline")
    return result


def test_retry_stops_at_first_success():
    attempt_fn, calls = _results(_failed(), AggregateResult(), _failed())
    sleep = SleepRecorder()

    outcome = run_with_retry(attempt_fn, 3, 60, sleep=sleep)

    assert outcome.success
    assert outcome.attempts == 2
    assert outcome.failed_attempts == 1
    assert calls == [1, 2]
    assert sleep.calls == [60]


def test_retry_exhausts_without_trailing_sleep():
    attempt_fn, calls = _results(_failed(), _failed())
    sleep = SleepRecorder()

    outcome = run_with_retry(attempt_fn, 2, 60, sleep=sleep)

    assert not outcome.success
    assert outcome.failed_attempts == 2
    assert sleep.calls == [60]


def test_non_retryable_failure_stops_the_phase():
    attempt_fn, calls = _results(_failed(retryable=False), AggregateResult())

    outcome = run_with_retry(attempt_fn, 4, 60, sleep=SleepRecorder())

    assert not outcome.success
    assert calls == [1]
    assert outcome.failed_attempts == 1


def test_recorded_error_fails_result_but_stays_retryable():
    result = AggregateResult()
    result.record_error("prune failed")

    assert not result.success
    assert result.has_errors
    assert result.retryable


def test_attempt_files_are_named_by_time_phase_and_number(tmp_path):
    attempt = RunLogFactory(tmp_path, clock=lambda: NOW).open_attempt(Phase.MAINTENANCE, 2)

    assert attempt.success_log.name == "2026-03-14_02-30-00-maintenance-2.log.txt"
    assert attempt.error_log.name == "2026-03-14_02-30-00-maintenance-2.err.txt"
    assert attempt.success_log.exists() and attempt.error_log.exists()
    assert not attempt.has_errors()


def test_warnings_go_to_success_log_and_errors_to_error_log(attempt):
    attempt.log("started")
    attempt.warning("exclude file missing")
    attempt.error("source gone")

    assert "[WARNING] exclude file missing" in attempt.read_success_log()
    assert "source gone" not in attempt.read_success_log()
    assert "[ERROR] source gone" in attempt.read_error_log()
    assert attempt.has_errors()


def test_history_is_trimmed_and_gives_success_rate(tmp_path, attempt):
    history = RunHistory(tmp_path / "history.jsonl", limit=3)
    failed = AggregateResult(success=False, error_count=1)

    for result in (failed, AggregateResult(), AggregateResult(), failed):
        history.append(attempt, result, NOW)

    assert len(history.entries()) == 3
    assert round(history.success_rate(Phase.BACKUP), 1) == 66.7
    assert history.success_rate(Phase.MAINTENANCE) is None
