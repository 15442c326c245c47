from dataclasses import dataclass
from typing import Any, Callable

from ppb.analysis.budget import Breach
from ppb.analysis.statistics import NumericSummary, Summary
from ppb.budgets import Thresholds
from ppb.collector.sample import PageSample
from ppb.report.formatting import (
    format_bytes,
    format_float,
    format_ms,
    format_number,
    status_icon,
)
from ppb.scenarios import PerformanceScenario

RULE = "═" * 55
PER_RUN_SLOW_RESOURCES = 3


@dataclass(frozen=True)
class ReportMeta:
    profile: str = "Default"
    constrained: bool = False
    lighthouse: bool = False
    budget_source: str = "performance-budgets.yaml"
    page_override: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile,
            "constrained": self.constrained,
            "lighthouse": self.lighthouse,
            "budgetSource": self.budget_source,
            "pageOverride": self.page_override,
        }


def _run_block(sample: PageSample, thresholds: Thresholds) -> list[str]:
    t = sample.timings
    lines = [
        "",
        f" {sample.run_label}",
        f"   • TTFB .................. {format_ms(t.ttfb)} {status_icon(t.ttfb, thresholds.ttfb)}",
        f"   • DOM Content Loaded ..... {format_ms(t.dom_content_loaded)} "
        f"{status_icon(t.dom_content_loaded, thresholds.dom_content_loaded)}",
        f"   • First Contentful Paint .. {format_ms(t.first_contentful_paint)} "
        f"{status_icon(t.first_contentful_paint, thresholds.first_contentful_paint)}",
        f"   • Largest Contentful Paint  {format_ms(t.largest_contentful_paint)} "
        f"{status_icon(t.largest_contentful_paint, thresholds.largest_contentful_paint)}",
        f"   • Load Complete ........... {format_ms(t.load_event_end)} "
        f"{status_icon(t.load_event_end, thresholds.load_event_end)}",
        f"   • Cumulative Layout Shift . {format_float(sample.cls)} "
        f"{status_icon(sample.cls, thresholds.cumulative_layout_shift)}",
        f"   • Total Blocking Time ..... {format_ms(sample.total_blocking_time)} "
        f"{status_icon(sample.total_blocking_time, thresholds.total_blocking_time)}",
        f"   • Requests ................ {format_number(sample.request_count)} "
        f"{status_icon(sample.request_count, thresholds.request_count)}",
        f"   • Transfer Size (total) ... {format_bytes(sample.transfer_size)} "
        f"{status_icon(sample.transfer_size, thresholds.transfer_size)}",
    ]

    if sample.lighthouse:
        scores = sample.lighthouse
        floors = thresholds.lighthouse
        lines += [
            "   • Lighthouse Scores:",
            f"       Performance ....... {scores.performance} "
            f"{status_icon(scores.performance, floors.performance, 'gte')}",
            f"       Accessibility ..... {scores.accessibility} "
            f"{status_icon(scores.accessibility, floors.accessibility, 'gte')}",
            f"       Best Practices .... {scores.best_practices} "
            f"{status_icon(scores.best_practices, floors.best_practices, 'gte')}",
            f"       SEO ............... {scores.seo} {status_icon(scores.seo, floors.seo, 'gte')}",
        ]

    slow = sample.slowest_resources[:PER_RUN_SLOW_RESOURCES]
    if slow:
        lines.append("   • Slow resources (>300ms):")
        for resource in slow:
            lines.append(
                f"       - {format_ms(resource.duration)} {resource.initiator_type:<8} {resource.name}"
            )
    return lines


def _aggregate_line(
    label: str, stat: NumericSummary | None, fmt: Callable[[float | None], str], threshold: float
) -> str:
    if stat is None:
        return f"   • {label:<24} n/a"
    return (
        f"   • {label:<24} avg {fmt(stat.average)} | worst {fmt(stat.max)} "
        f"{status_icon(stat.max, threshold)}"
    )


def build_performance_report(
    scenario: PerformanceScenario,
    samples: list[PageSample],
    summary: Summary,
    thresholds: Thresholds,
    breaches: list[Breach],
    meta: ReportMeta,
) -> str:
    """Plain-text report for one scenario. Same inputs always give the same text."""
    lines = [
        RULE,
        f" Performance Report — {scenario.name}",
        f" URL: {scenario.url}",
        f" Runs: {len(samples)} ({', '.join(s.run_label for s in samples)})",
        f" Profile: {meta.profile}",
    ]
    if meta.lighthouse:
        lines.append(" Lighthouse: Enabled")
    lines.append(RULE)

    for sample in samples:
        lines += _run_block(sample, thresholds)

    lines += ["", " Aggregate view (average | worst)"]
    lines += [
        _aggregate_line("TTFB", summary.timings["ttfb"], format_ms, thresholds.ttfb),
        _aggregate_line(
            "DOM Content Loaded",
            summary.timings["dom_content_loaded"],
            format_ms,
            thresholds.dom_content_loaded,
        ),
        _aggregate_line(
            "First Contentful Paint",
            summary.timings["first_contentful_paint"],
            format_ms,
            thresholds.first_contentful_paint,
        ),
        _aggregate_line(
            "Largest Contentful Paint",
            summary.timings["largest_contentful_paint"],
            format_ms,
            thresholds.largest_contentful_paint,
        ),
        _aggregate_line(
            "Load Complete", summary.timings["load_event_end"], format_ms, thresholds.load_event_end
        ),
        _aggregate_line(
            "Total Blocking Time", summary.total_blocking_time, format_ms, thresholds.total_blocking_time
        ),
        _aggregate_line("Requests", summary.request_count, format_number, thresholds.request_count),
        _aggregate_line("Transfer Size", summary.transfer_size, format_bytes, thresholds.transfer_size),
        _aggregate_line(
            "Cumulative Layout Shift", summary.cls, format_float, thresholds.cumulative_layout_shift
        ),
    ]

    if summary.lighthouse:
        floors = thresholds.lighthouse
        lines += ["", " Lighthouse Scores (average)"]
        for label, category, floor in (
            ("Performance .........", "performance", floors.performance),
            ("Accessibility .......", "accessibility", floors.accessibility),
            ("Best Practices ......", "best_practices", floors.best_practices),
            ("SEO .................", "seo", floors.seo),
        ):
            average = summary.score_average(category)
            if average is not None:
                lines.append(
                    f"   • {label} {format_number(average)} {status_icon(average, floor, 'gte')}"
                )

    lines.append("")
    if summary.slowest_resources:
        lines.append(" Global slow resources (top 5)")
        for resource in summary.slowest_resources:
            lines.append(
                f"   - {format_ms(resource.duration)} {resource.initiator_type:<8} "
                f"{resource.name} ({resource.run_label})"
            )
    else:
        lines.append(" No resources above 300ms detected.")

    lines.append("")
    if breaches:
        lines.append(" Alerts / exceeds budget")
        lines += [f"   ⚠️  {breach.message}" for breach in breaches]
    else:
        lines.append(" All tracked metrics are within budgets ✅")

    lines += ["", " Budget Configuration", f"   Source: {meta.budget_source}"]
    if meta.page_override:
        lines.append(f"   Page-specific budgets applied for: {scenario.label}")

    lines += [
        "",
        " INP note: This suite validates load; measure INP via RUM or add a synthetic "
        "interaction step if needed.",
        RULE,
    ]
    return "\n".join(lines)


def build_performance_payload(
    scenario: PerformanceScenario,
    samples: list[PageSample],
    summary: Summary,
    thresholds: Thresholds,
    breaches: list[Breach],
    meta: ReportMeta,
) -> dict[str, Any]:
    """The JSON artifact: scenario metadata, budgets, raw attempts, summary and breaches."""
    return {
        "scenario": scenario.to_dict(),
        "thresholds": thresholds.to_dict(),
        "runs": [sample.to_dict() for sample in samples],
        "summary": summary.to_dict(),
        "breaches": [breach.to_dict() for breach in breaches],
        "meta": meta.to_dict(),
    }
