import csv
import io

import pytest

from ppb.analysis.statistics import compute_summary
from ppb.collector.sample import QualityScores
from ppb.report.suite_report import (
    ScenarioOutcome,
    build_suite_csv,
    build_suite_rows,
    build_suite_summary,
    pass_rates,
    within_budget,
    worst_offenders,
)


@pytest.fixture()
def outcomes(make_sample, thresholds):
    fast = [make_sample(largest_contentful_paint=1200, lighthouse=QualityScores(90, 95, 90, 100))]
    slow = [
        make_sample(largest_contentful_paint=2400, total_blocking_time=None),
        make_sample("Warm #1", largest_contentful_paint=3100, total_blocking_time=None),
    ]
    return [
        ScenarioOutcome("Dashboard", "https://example.test/a", "performance-a", compute_summary(fast), thresholds),
        ScenarioOutcome("Library", "https://example.test/b", "performance-b", compute_summary(slow), thresholds),
    ]


def test_build_suite_rows_takes_worst_run_per_page(outcomes):
    rows = build_suite_rows(outcomes)
    assert rows["page"].tolist() == ["Dashboard", "Library"]
    assert rows["lcp"].tolist() == [1200, 3100]
    assert rows["lcp_budget"].tolist() == [2500, 2500]
    assert rows["tbt"].isna().tolist() == [False, True]


def test_within_budget_when_metric_missing_is_not_available(outcomes):
    rows = build_suite_rows(outcomes)
    within = within_budget(rows, "tbt")
    assert bool(within[0]) is True
    assert within.isna().tolist() == [False, True]


def test_pass_rates_count_only_pages_that_reported_the_metric(outcomes, thresholds):
    rates = {rate.label: rate for rate in pass_rates(build_suite_rows(outcomes), thresholds)}
    assert (rates["LCP"].passed, rates["LCP"].total, rates["LCP"].pct) == (1, 2, 50)
    assert (rates["TBT"].passed, rates["TBT"].total) == (1, 1)


def test_worst_offenders_lists_pages_over_budget(outcomes):
    offenders = worst_offenders(build_suite_rows(outcomes), "lcp")
    assert offenders == [("Library", 3100.0, 600.0, 2500.0)]


def test_build_suite_summary_reports_pass_rates_and_offenders(outcomes, thresholds):
    summary = build_suite_summary(outcomes, thresholds, "performance-budgets.yaml", lighthouse=True)
    assert "Pages: 2" in summary
    assert "LCP       50%  (1/2)  budget ≤ 2500" in summary
    assert "Library → 3.10 s (+600 ms over 2.50 s)" in summary
    assert "Performance ..... 90 ✅" in summary
    assert "None — all within budget ✅" in summary


def test_build_suite_summary_adds_sanity_note_for_tiny_pages(make_sample, thresholds):
    tiny = compute_summary([make_sample(request_count=10, transfer_size=100_000)])
    outcome = ScenarioOutcome("Login", "https://example.test/c", "performance-c", tiny, thresholds)
    summary = build_suite_summary([outcome], thresholds, "performance-budgets.yaml", lighthouse=False)
    assert "Sanity note" in summary


def test_build_suite_summary_without_lighthouse_has_no_score_section(outcomes, thresholds):
    summary = build_suite_summary(outcomes, thresholds, "performance-budgets.yaml", lighthouse=False)
    assert "Lighthouse Scores" not in summary
    assert "Sanity note" not in summary


def test_build_suite_csv_writes_one_row_per_page(outcomes):
    rows = list(csv.reader(io.StringIO(build_suite_csv(outcomes))))
    header, dashboard, library = rows
    assert header[:4] == ["Page", "URL", "Worst_LCP_ms", "Budget_LCP_ms"]
    assert header[-6:] == [
        "Within_LCP",
        "Within_CLS",
        "Within_TBT",
        "Within_TTFB",
        "Within_Bytes",
        "Within_Requests",
    ]
    record = dict(zip(header, library))
    assert record["Worst_LCP_ms"] == "3100"
    assert record["Budget_Bytes"] == "3145728"
    assert record["Worst_TBT_ms"] == ""
    assert record["Within_LCP"] == "false"
    assert record["Within_TBT"] == ""
    assert record["Lighthouse_Perf"] == ""
    assert dict(zip(header, dashboard))["Lighthouse_Perf"] == "90"
