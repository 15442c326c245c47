import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from ppb.analysis.budget import collect_threshold_breaches, has_breaches
from ppb.analysis.statistics import compute_summary
from ppb.budgets import BudgetConfig, BudgetConfigError, load_budget_config
from ppb.collector.lighthouse_client import LighthouseClient
from ppb.collector.page_session import MeasurableSession, NotAuthenticatedError, PlaywrightPageSession
from ppb.collector.sample import PageSample
from ppb.config import RunConfig
from ppb.logging_config import setup_logging
from ppb.report.artifact_writer import ArtifactWriter
from ppb.report.charts import plot_worst_vs_budget
from ppb.report.scenario_report import ReportMeta, build_performance_payload, build_performance_report
from ppb.report.suite_report import ScenarioOutcome, build_suite_csv, build_suite_summary
from ppb.scenarios import PerformanceScenario, default_scenarios, run_label

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[MeasurableSession]]


class OutcomeCollector:
    """
    Gathers one outcome per scenario for the end-of-suite summary.

    Each scenario owns the slot at its catalogue index, so outcomes come back in
    catalogue order whatever order the scenarios finished in.
    """

    def __init__(self, size: int) -> None:
        self._slots: list[ScenarioOutcome | None] = [None] * size
        self._failures: dict[int, Exception] = {}
        self._lock = threading.Lock()

    def record(self, index: int, outcome: ScenarioOutcome) -> None:
        with self._lock:
            if self._slots[index] is not None:
                raise ValueError(f"scenario slot {index} already recorded")
            self._slots[index] = outcome

    def record_failure(self, index: int, error: Exception) -> None:
        with self._lock:
            self._failures[index] = error

    def outcomes(self) -> list[ScenarioOutcome]:
        with self._lock:
            return [outcome for outcome in self._slots if outcome is not None]

    def failures(self) -> list[Exception]:
        with self._lock:
            return [self._failures[index] for index in sorted(self._failures)]


def _report_meta(config: RunConfig, budgets: BudgetConfig, label: str) -> ReportMeta:
    return ReportMeta(
        profile=config.profile_name,
        constrained=config.constrained,
        lighthouse=config.run_lighthouse,
        budget_source=budgets.source.name if budgets.source else "defaults",
        page_override=budgets.has_page_override(label),
    )


def run_scenario(
    session: MeasurableSession,
    scenario: PerformanceScenario,
    budgets: BudgetConfig,
    config: RunConfig,
    lighthouse: LighthouseClient | None = None,
    writer: ArtifactWriter | None = None,
) -> ScenarioOutcome:
    """Measures one page: a cold attempt then warm attempts, strictly in order on one session."""
    thresholds = budgets.resolve(scenario.label, scenario.thresholds)
    cold_thresholds = thresholds.for_cold_run(config.cold_factor, config.cold_ttfb)
    samples: list[PageSample] = []

    for attempt in range(config.runs_per_page):
        label = run_label(attempt)
        session.reset(clear_cache=attempt == 0)
        if config.constrained:
            session.apply_constrained_profile()
        logger.info(f"[{scenario.label}] {label}: loading {scenario.url}")
        samples.append(session.sample(scenario.url, label))

    if lighthouse is not None:
        logger.info(f"Running Lighthouse audit for {scenario.name}...")
        scores = lighthouse.audit(scenario.url, session.cookies())
        if scores is not None:
            samples[-1] = samples[-1].with_lighthouse(scores)

    summary = compute_summary(samples)
    breaches = collect_threshold_breaches(samples, thresholds, cold_thresholds)
    meta = _report_meta(config, budgets, scenario.label)
    report = build_performance_report(scenario, samples, summary, thresholds, breaches, meta)

    logger.info(f"\n{report}")
    for breach in breaches:
        logger.warning(f"[{scenario.label}] {breach.describe()}")

    if writer is not None:
        payload = build_performance_payload(scenario, samples, summary, thresholds, breaches, meta)
        writer.write_scenario(scenario.label, report, payload)

    return ScenarioOutcome(
        name=scenario.name,
        url=scenario.url,
        label=scenario.label,
        summary=summary,
        thresholds=thresholds,
        breaches=breaches,
    )


def _run_batch(
    batch: list[tuple[int, PerformanceScenario]],
    session_factory: SessionFactory,
    collector: OutcomeCollector,
    budgets: BudgetConfig,
    config: RunConfig,
    lighthouse: LighthouseClient | None,
    writer: ArtifactWriter | None,
) -> None:
    with session_factory() as session:
        for index, scenario in batch:
            try:
                outcome = run_scenario(session, scenario, budgets, config, lighthouse, writer)
            except (NotAuthenticatedError, PlaywrightError) as e:
                logger.error(f"[{scenario.label}] scenario aborted: {e}")
                collector.record_failure(index, e)
                continue
            collector.record(index, outcome)


def run_suite(
    scenarios: list[PerformanceScenario],
    config: RunConfig,
    budgets: BudgetConfig,
    session_factory: SessionFactory,
    lighthouse: LighthouseClient | None = None,
    writer: ArtifactWriter | None = None,
) -> list[ScenarioOutcome]:
    """
    Runs every scenario and writes the suite leaderboard.

    With more than one worker, scenarios are dealt round-robin to workers and each
    worker measures its share on its own browser session. An aborted scenario is
    left out of the leaderboard and re-raised once the suite artifacts are written.
    """
    collector = OutcomeCollector(len(scenarios))
    indexed = list(enumerate(scenarios))
    workers = min(config.workers, len(scenarios)) or 1

    if workers == 1:
        _run_batch(indexed, session_factory, collector, budgets, config, lighthouse, writer)
    else:
        batches = [indexed[i::workers] for i in range(workers)]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(
                    _run_batch, batch, session_factory, collector, budgets, config, lighthouse, writer
                )
                for batch in batches
            ]
            for future in futures:
                future.result()

    outcomes = collector.outcomes()
    if outcomes:
        budget_source = budgets.source.name if budgets.source else "defaults"
        summary = build_suite_summary(outcomes, budgets.default, budget_source, config.run_lighthouse)
        logger.info(f"\n{summary}")
        if writer is not None:
            writer.write_suite(summary, build_suite_csv(outcomes))
            plot_worst_vs_budget(outcomes, writer.path_for("overall-performance-summary.png"))

    failures = collector.failures()
    if failures:
        logger.error(f"{len(failures)} scenario(s) aborted")
        raise failures[0]

    return outcomes


def playwright_session_factory(config: RunConfig, writer: ArtifactWriter | None = None) -> SessionFactory:
    """Each call opens a fresh Playwright chromium session with the stored authentication state."""

    @contextmanager
    def open_session() -> Iterator[MeasurableSession]:
        if not config.storage_state.exists():
            logger.warning(f"Storage state {config.storage_state} not found; pages may redirect to login")
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=config.headless)
            try:
                context = browser.new_context(
                    storage_state=str(config.storage_state) if config.storage_state.exists() else None
                )
                page = context.new_page()
                yield PlaywrightPageSession(
                    page,
                    browser_name="chromium",
                    settle_timeout_ms=config.settle_timeout_ms,
                    diagnostics_dir=writer.diagnostics_dir("login") if writer else None,
                )
            finally:
                browser.close()

    return open_session


def main() -> int:
    setup_logging("performance", log_file="performance.log")
    config = RunConfig.from_env()

    try:
        budgets = load_budget_config(config.budgets_path)
    except BudgetConfigError as e:
        logger.error(f"Invalid budget configuration: {e}")
        return 2

    writer = ArtifactWriter(config.output_dir)
    lighthouse = LighthouseClient() if config.run_lighthouse else None
    scenarios = default_scenarios(config)
    logger.info(
        f"Measuring {len(scenarios)} pages, {config.runs_per_page} run(s) each, profile {config.profile_name}"
    )

    outcomes = run_suite(
        scenarios, config, budgets, playwright_session_factory(config, writer), lighthouse, writer
    )

    breached = [outcome for outcome in outcomes if has_breaches(outcome.breaches)]
    logger.info(f"Performance run ended: {len(breached)}/{len(outcomes)} page(s) over budget")
    if breached and config.strict:
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
