import csv
import io
import math
from dataclasses import dataclass, field
from typing import Callable

import pandas as pd

from ppb.analysis.budget import Breach
from ppb.analysis.statistics import Summary
from ppb.budgets import Thresholds
from ppb.report.formatting import (
    flag,
    format_bytes,
    format_float,
    format_ms,
    format_number,
    round_half_up,
    status_icon,
)

RULE = "═" * 55
WORST_PAGES = 5
LOW_TRAFFIC_REQUESTS = 30
LOW_TRAFFIC_BYTES = 1_000_000


@dataclass(frozen=True)
class ScenarioOutcome:
    name: str
    url: str
    label: str
    summary: Summary
    thresholds: Thresholds
    breaches: list[Breach] = field(default_factory=list)


@dataclass(frozen=True)
class SuiteMetric:
    column: str
    label: str
    summary_key: str
    budget: Callable[[Thresholds], float]
    formatter: Callable[[float | None], str]
    csv_name: str


SUITE_METRICS: tuple[SuiteMetric, ...] = (
    SuiteMetric("lcp", "LCP", "largest_contentful_paint", lambda t: t.largest_contentful_paint, format_ms, "LCP_ms"),
    SuiteMetric("cls", "CLS", "cls", lambda t: t.cumulative_layout_shift, format_float, "CLS"),
    SuiteMetric("tbt", "TBT", "total_blocking_time", lambda t: t.total_blocking_time, format_ms, "TBT_ms"),
    SuiteMetric("ttfb", "TTFB", "ttfb", lambda t: t.ttfb, format_ms, "TTFB_ms"),
    SuiteMetric("bytes", "Bytes", "transfer_size", lambda t: t.transfer_size, format_bytes, "Bytes"),
    SuiteMetric("reqs", "Requests", "request_count", lambda t: t.request_count, format_number, "Requests"),
)
SUITE_METRICS_BY_COLUMN = {metric.column: metric for metric in SUITE_METRICS}


@dataclass(frozen=True)
class PassRate:
    label: str
    passed: int
    total: int
    pct: int
    limit: float


def _value(raw: object) -> float | None:
    """NaN (pandas' missing marker) back to None."""
    if raw is None:
        return None
    number = float(raw)
    return None if math.isnan(number) else number


def _plain(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _budget_cell(row: pd.Series, column: str, ok: object) -> str:
    metric = SUITE_METRICS_BY_COLUMN[column]
    return (
        f"{metric.label} {metric.formatter(_value(row[column]))} "
        f"{flag(None if pd.isna(ok) else bool(ok))} "
        f"(≤ {metric.formatter(_value(row[f'{column}_budget']))})"
    )


def build_suite_rows(outcomes: list[ScenarioOutcome]) -> pd.DataFrame:
    """One row per page: worst observed value and budget per tracked metric, plus Lighthouse averages."""
    records = []
    for outcome in outcomes:
        record: dict[str, object] = {"page": outcome.name, "url": outcome.url}
        for metric in SUITE_METRICS:
            record[metric.column] = outcome.summary.worst(metric.summary_key)
            record[f"{metric.column}_budget"] = metric.budget(outcome.thresholds)
        record["lighthouse_perf"] = outcome.summary.score_average("performance")
        record["lighthouse_a11y"] = outcome.summary.score_average("accessibility")
        records.append(record)

    columns = ["page", "url"]
    for metric in SUITE_METRICS:
        columns += [metric.column, f"{metric.column}_budget"]
    columns += ["lighthouse_perf", "lighthouse_a11y"]

    rows = pd.DataFrame.from_records(records, columns=columns)
    numeric = [c for c in columns if c not in ("page", "url")]
    rows[numeric] = rows[numeric].apply(pd.to_numeric, errors="coerce")
    return rows


def within_budget(rows: pd.DataFrame, column: str) -> pd.Series:
    """Nullable boolean series: NA where the page never reported the metric."""
    within = (rows[column] <= rows[f"{column}_budget"]).astype("boolean")
    within[rows[column].isna()] = pd.NA
    return within


def pass_rates(rows: pd.DataFrame, thresholds: Thresholds) -> list[PassRate]:
    rates = []
    for metric in SUITE_METRICS:
        within = within_budget(rows, metric.column).dropna()
        total = int(len(within))
        passed = int(within.sum())
        pct = round_half_up(passed / total * 100) if total else 0
        rates.append(PassRate(metric.label, passed, total, pct, metric.budget(thresholds)))
    return rates


def worst_offenders(rows: pd.DataFrame, column: str, n: int = WORST_PAGES) -> list[tuple[str, float, float, float]]:
    """Pages over budget for column, largest overshoot first, as (page, value, over, budget)."""
    over = rows[column] - rows[f"{column}_budget"]
    offenders = rows.assign(over=over)
    offenders = offenders[offenders["over"] > 0].sort_values("over", ascending=False, kind="stable")
    return [
        (
            str(row.page),
            float(getattr(row, column)),
            float(row.over),
            float(getattr(row, f"{column}_budget")),
        )
        for row in offenders.head(n).itertuples(index=False)
    ]


def build_suite_summary(
    outcomes: list[ScenarioOutcome], thresholds: Thresholds, budget_source: str, lighthouse: bool
) -> str:
    """Cross-scenario leaderboard: pass rates, per-page worst vs budget and worst offenders."""
    rows = build_suite_rows(outcomes)

    lines = [
        RULE,
        " Performance — Overall Summary (worst run per page)",
        f" Pages: {len(rows)}",
        f" Budget Source: {budget_source}",
    ]
    if lighthouse:
        lines.append(" Lighthouse: Enabled")
    lines += [RULE, "", " Suite pass-rate by budget:"]

    for rate in pass_rates(rows, thresholds):
        lines.append(
            f"  • {rate.label:<8} {rate.pct:>3}%  ({rate.passed}/{rate.total})  budget ≤ {_plain(rate.limit)}"
        )

    if lighthouse:
        perf_scores = rows["lighthouse_perf"].dropna()
        a11y_scores = rows["lighthouse_a11y"].dropna()
        if len(perf_scores) > 0:
            avg_perf = round_half_up(float(perf_scores.mean()))
            lines += [
                "",
                " Lighthouse Scores (site average):",
                f"  • Performance ..... {avg_perf} "
                f"{status_icon(avg_perf, thresholds.lighthouse.performance, 'gte')}",
            ]
            if len(a11y_scores) > 0:
                avg_a11y = round_half_up(float(a11y_scores.mean()))
                lines.append(
                    f"  • Accessibility ... {avg_a11y} "
                    f"{status_icon(avg_a11y, thresholds.lighthouse.accessibility, 'gte')}"
                )

    lines += ["", " Per-page worst vs budget (✅ within | ⚠️ over):"]
    within = {column: within_budget(rows, column) for column in ("lcp", "cls", "tbt", "bytes")}
    for index, row in rows.iterrows():
        lcp, cls, tbt, size = (
            _budget_cell(row, column, within[column][index]) for column in ("lcp", "cls", "tbt", "bytes")
        )
        lines += [f"  - {row['page']}", f"     {lcp} | {cls}", f"     {tbt} | {size}"]
        perf = _value(row["lighthouse_perf"])
        if perf is not None:
            floor = thresholds.lighthouse.performance
            lines.append(
                f"     Lighthouse Perf {round_half_up(perf)} {status_icon(perf, floor, 'gte')} (≥ {_plain(floor)})"
            )

    for column in ("lcp", "tbt", "bytes"):
        metric = SUITE_METRICS_BY_COLUMN[column]
        lines += ["", f" Worst pages by {metric.label} (over budget):"]
        offenders = worst_offenders(rows, column)
        if not offenders:
            lines.append("   None — all within budget ✅")
            continue
        for page, value, over, budget in offenders:
            lines.append(
                f"   - {page} → {metric.formatter(value)} "
                f"(+{metric.formatter(over)} over {metric.formatter(budget)})"
            )

    if len(rows):
        avg_requests = float(rows["reqs"].fillna(0).mean())
        avg_bytes = float(rows["bytes"].fillna(0).mean())
        if avg_requests < LOW_TRAFFIC_REQUESTS and avg_bytes < LOW_TRAFFIC_BYTES:
            lines += [
                "",
                " ℹ️ Sanity note: very low requests/bytes on average. If this seems off, "
                "confirm pages are authenticated and assets are not blocked.",
            ]

    lines.append(RULE)
    return "\n".join(lines)


def _csv_number(value: float | None) -> str:
    return "" if value is None else _plain(value)


def _csv_flag(ok: object) -> str:
    if ok is None or pd.isna(ok):
        return ""
    return "true" if bool(ok) else "false"


def build_suite_csv(outcomes: list[ScenarioOutcome]) -> str:
    """One row per page with worst value, budget and pass/fail for every tracked metric."""
    rows = build_suite_rows(outcomes)
    within = {metric.column: within_budget(rows, metric.column) for metric in SUITE_METRICS}

    header = ["Page", "URL"]
    for metric in SUITE_METRICS:
        header += [f"Worst_{metric.csv_name}", f"Budget_{metric.csv_name}"]
    header += ["Lighthouse_Perf", "Lighthouse_A11y"]
    header += [f"Within_{metric.csv_name.removesuffix('_ms')}" for metric in SUITE_METRICS]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for index, row in rows.iterrows():
        line = [row["page"], row["url"]]
        for metric in SUITE_METRICS:
            line += [
                _csv_number(_value(row[metric.column])),
                _csv_number(_value(row[f"{metric.column}_budget"])),
            ]
        for column in ("lighthouse_perf", "lighthouse_a11y"):
            score = _value(row[column])
            line.append("" if score is None else str(round_half_up(score)))
        line += [_csv_flag(within[metric.column][index]) for metric in SUITE_METRICS]
        writer.writerow(line)
    return buffer.getvalue()
