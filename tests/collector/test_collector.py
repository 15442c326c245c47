import threading
from contextlib import contextmanager
from dataclasses import replace

import pytest

from ppb.budgets import BudgetConfig
from ppb.collector.collector import OutcomeCollector, run_scenario, run_suite
from ppb.collector.page_session import NotAuthenticatedError
from ppb.collector.sample import QualityScores
from ppb.config import RunConfig
from ppb.report.artifact_writer import ArtifactWriter
from ppb.scenarios import PerformanceScenario


class FakeSession:
    def __init__(self, make_sample, ttfb_by_label=None, fail_on=()):
        self.make_sample = make_sample
        self.ttfb_by_label = ttfb_by_label or {}
        self.fail_on = fail_on
        self.calls = []

    def reset(self, clear_cache):
        self.calls.append(("reset", clear_cache))

    def apply_constrained_profile(self):
        self.calls.append(("constrained",))

    def sample(self, url, run_label):
        self.calls.append(("sample", url, run_label))
        if url in self.fail_on:
            raise NotAuthenticatedError("Not authenticated")
        return self.make_sample(run_label, ttfb=self.ttfb_by_label.get(run_label, 200))

    def cookies(self):
        return [{"name": "sid", "value": "abc"}]


@pytest.fixture()
def config(tmp_path):
    return RunConfig(runs_per_page=2, run_lighthouse=False, output_dir=tmp_path)


@pytest.fixture()
def budgets(thresholds):
    return BudgetConfig(default=thresholds, pages={"performance-b": {"ttfb": 300}})


def _scenarios(count):
    return [
        PerformanceScenario(f"Page {i}", f"https://example.test/{i}", f"performance-{chr(97 + i)}")
        for i in range(count)
    ]


def _factory(session):
    @contextmanager
    def open_session():
        yield session

    return open_session


def test_outcome_collector_returns_outcomes_in_catalogue_order(mocker):
    collector = OutcomeCollector(3)
    first, second, third = mocker.sentinel.first, mocker.sentinel.second, mocker.sentinel.third
    collector.record(2, third)
    collector.record(0, first)
    collector.record(1, second)
    assert collector.outcomes() == [first, second, third]


def test_outcome_collector_when_slot_recorded_twice_raises(mocker):
    collector = OutcomeCollector(1)
    collector.record(0, mocker.sentinel.outcome)
    with pytest.raises(ValueError):
        collector.record(0, mocker.sentinel.outcome)


def test_outcome_collector_accepts_concurrent_records(mocker):
    collector = OutcomeCollector(50)
    threads = [threading.Thread(target=collector.record, args=(i, i)) for i in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert collector.outcomes() == list(range(50))


def test_run_scenario_runs_cold_then_warm_attempts(make_sample, config, budgets):
    session = FakeSession(make_sample)
    scenario = _scenarios(1)[0]
    outcome = run_scenario(session, scenario, budgets, config)

    assert session.calls == [
        ("reset", True),
        ("sample", scenario.url, "Cold start"),
        ("reset", False),
        ("sample", scenario.url, "Warm #1"),
    ]
    assert outcome.label == "performance-a"
    assert outcome.breaches == []


def test_run_scenario_when_constrained_applies_profile_each_attempt(make_sample, config, budgets):
    session = FakeSession(make_sample)
    run_scenario(session, _scenarios(1)[0], budgets, replace(config, constrained=True))
    assert session.calls.count(("constrained",)) == 2


def test_run_scenario_uses_relaxed_ttfb_for_cold_run(make_sample, config, budgets):
    session = FakeSession(make_sample, ttfb_by_label={"Cold start": 700, "Warm #1": 700})
    outcome = run_scenario(session, _scenarios(1)[0], budgets, config)
    assert [(b.run_label, b.metric) for b in outcome.breaches] == [("Warm #1", "ttfb")]


def test_run_scenario_applies_page_budgets(make_sample, config, budgets):
    session = FakeSession(make_sample, ttfb_by_label={"Cold start": 350, "Warm #1": 350})
    outcome = run_scenario(session, _scenarios(2)[1], budgets, config)
    assert outcome.thresholds.ttfb == 300
    assert [b.run_label for b in outcome.breaches] == ["Warm #1"]


def test_run_scenario_attaches_lighthouse_scores_to_last_attempt(mocker, make_sample, config, budgets):
    lighthouse = mocker.MagicMock()
    lighthouse.audit.return_value = QualityScores(60, 95, 90, 100)
    outcome = run_scenario(FakeSession(make_sample), _scenarios(1)[0], budgets, config, lighthouse)

    lighthouse.audit.assert_called_once_with("https://example.test/0", [{"name": "sid", "value": "abc"}])
    assert outcome.summary.score_average("performance") == pytest.approx(60)
    assert [(b.run_label, b.metric) for b in outcome.breaches] == [("Warm #1", "performance")]


def test_run_scenario_writes_report_artifacts(make_sample, config, budgets, tmp_path):
    writer = ArtifactWriter(tmp_path, timestamped=False)
    run_scenario(FakeSession(make_sample), _scenarios(1)[0], budgets, config, writer=writer)
    assert (tmp_path / "performance-a-performance.txt").exists()
    assert (tmp_path / "performance-a-performance.json").exists()


def test_run_suite_writes_suite_summary_in_catalogue_order(make_sample, config, budgets, tmp_path):
    writer = ArtifactWriter(tmp_path, timestamped=False)
    outcomes = run_suite(_scenarios(3), config, budgets, _factory(FakeSession(make_sample)), writer=writer)

    assert [o.label for o in outcomes] == ["performance-a", "performance-b", "performance-c"]
    assert (tmp_path / "overall-performance-summary.txt").exists()
    assert (tmp_path / "overall-performance-summary.csv").exists()


def test_run_suite_with_workers_keeps_catalogue_order(make_sample, config, budgets):
    def factory():
        return _factory(FakeSession(make_sample))()

    outcomes = run_suite(_scenarios(5), replace(config, workers=3), budgets, factory)
    assert [o.name for o in outcomes] == [f"Page {i}" for i in range(5)]


def test_run_suite_when_scenario_not_authenticated_finishes_others_then_raises(
    make_sample, config, budgets, tmp_path
):
    writer = ArtifactWriter(tmp_path, timestamped=False)
    session = FakeSession(make_sample, fail_on={"https://example.test/1"})

    with pytest.raises(NotAuthenticatedError):
        run_suite(_scenarios(3), config, budgets, _factory(session), writer=writer)

    summary = (tmp_path / "overall-performance-summary.txt").read_text(encoding="utf-8")
    assert "Pages: 2" in summary
    assert "Page 1" not in summary
