import pytest

from ppb.budgets import load_budget_config
from ppb.collector.collector import playwright_session_factory, run_scenario
from ppb.collector.lighthouse_client import LighthouseClient
from ppb.config import RunConfig
from ppb.report.artifact_writer import ArtifactWriter
from ppb.scenarios import default_scenarios

CONFIG = RunConfig.from_env()

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        not CONFIG.storage_state.exists(),
        reason=f"authenticated storage state {CONFIG.storage_state} not found",
    ),
]


@pytest.fixture(scope="module")
def writer():
    # One run directory for every page; the suite leaderboard is written by ppb-perf.
    return ArtifactWriter(CONFIG.output_dir)


@pytest.fixture(scope="module")
def budgets():
    return load_budget_config(CONFIG.budgets_path)


@pytest.mark.parametrize("scenario", default_scenarios(CONFIG), ids=lambda s: s.label)
def test_page_performance(scenario, writer, budgets):
    lighthouse = LighthouseClient() if CONFIG.run_lighthouse else None

    with playwright_session_factory(CONFIG, writer)() as session:
        outcome = run_scenario(session, scenario, budgets, CONFIG, lighthouse, writer)

    assert outcome.summary.request_count is not None
    assert writer.path_for(f"{scenario.label}-performance.json").exists()
    if CONFIG.strict:
        assert outcome.breaches == [], "\n".join(b.message for b in outcome.breaches)
