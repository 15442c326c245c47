import logging
from dataclasses import dataclass
from typing import Callable, Literal

from ppb.budgets import Thresholds
from ppb.collector.sample import PageSample
from ppb.report.formatting import format_bytes, format_float, format_ms, format_number

logger = logging.getLogger(__name__)

Direction = Literal["above", "below"]


@dataclass(frozen=True)
class MetricSpec:
    key: str
    label: str
    value: Callable[[PageSample], float | None]
    threshold: Callable[[Thresholds], float]
    formatter: Callable[[float | None], str]
    higher_is_better: bool = False

    @property
    def direction(self) -> Direction:
        return "below" if self.higher_is_better else "above"

    def breached(self, value: float, threshold: float) -> bool:
        return value < threshold if self.higher_is_better else value > threshold


def _score(category: str) -> Callable[[PageSample], float | None]:
    def read(sample: PageSample) -> float | None:
        return getattr(sample.lighthouse, category) if sample.lighthouse else None

    return read


METRICS: tuple[MetricSpec, ...] = (
    MetricSpec("ttfb", "TTFB", lambda s: s.timings.ttfb, lambda t: t.ttfb, format_ms),
    MetricSpec(
        "dom_content_loaded",
        "DOM Content Loaded",
        lambda s: s.timings.dom_content_loaded,
        lambda t: t.dom_content_loaded,
        format_ms,
    ),
    MetricSpec(
        "first_contentful_paint",
        "First Contentful Paint",
        lambda s: s.timings.first_contentful_paint,
        lambda t: t.first_contentful_paint,
        format_ms,
    ),
    MetricSpec(
        "largest_contentful_paint",
        "Largest Contentful Paint",
        lambda s: s.timings.largest_contentful_paint,
        lambda t: t.largest_contentful_paint,
        format_ms,
    ),
    MetricSpec(
        "load_event_end",
        "Load Complete",
        lambda s: s.timings.load_event_end,
        lambda t: t.load_event_end,
        format_ms,
    ),
    MetricSpec(
        "cls", "Cumulative Layout Shift", lambda s: s.cls, lambda t: t.cumulative_layout_shift, format_float
    ),
    MetricSpec(
        "total_blocking_time",
        "Total Blocking Time",
        lambda s: s.total_blocking_time,
        lambda t: t.total_blocking_time,
        format_ms,
    ),
    MetricSpec(
        "request_count", "Request Count", lambda s: s.request_count, lambda t: t.request_count, format_number
    ),
    MetricSpec(
        "transfer_size", "Transfer Size", lambda s: s.transfer_size, lambda t: t.transfer_size, format_bytes
    ),
    MetricSpec(
        "performance",
        "Lighthouse Performance",
        _score("performance"),
        lambda t: t.lighthouse.performance,
        format_number,
        higher_is_better=True,
    ),
    MetricSpec(
        "accessibility",
        "Lighthouse Accessibility",
        _score("accessibility"),
        lambda t: t.lighthouse.accessibility,
        format_number,
        higher_is_better=True,
    ),
    MetricSpec(
        "best_practices",
        "Lighthouse Best Practices",
        _score("best_practices"),
        lambda t: t.lighthouse.best_practices,
        format_number,
        higher_is_better=True,
    ),
    MetricSpec(
        "seo", "Lighthouse SEO", _score("seo"), lambda t: t.lighthouse.seo, format_number, higher_is_better=True
    ),
)

METRICS_BY_KEY = {spec.key: spec for spec in METRICS}


@dataclass(frozen=True)
class Breach:
    run_label: str
    metric: str
    label: str
    value: float
    threshold: float
    direction: Direction

    @property
    def amount(self) -> float:
        return abs(self.value - self.threshold)

    @property
    def message(self) -> str:
        spec = METRICS_BY_KEY[self.metric]
        operator = "≥" if self.direction == "below" else "≤"
        return (
            f"{self.run_label}: {self.label} {spec.formatter(self.value)} "
            f"(target {operator} {spec.formatter(self.threshold)})"
        )

    def describe(self) -> str:
        spec = METRICS_BY_KEY[self.metric]
        return f"{self.message}, {self.direction} budget by {spec.formatter(self.amount)}"

    def to_dict(self) -> dict[str, object]:
        return {
            "runLabel": self.run_label,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "direction": self.direction,
            "amount": self.amount,
            "message": self.message,
        }


def evaluate_sample(sample: PageSample, thresholds: Thresholds) -> list[Breach]:
    """Breaches of one attempt, in METRICS order. Absent metrics are never breaches."""
    breaches = []
    for spec in METRICS:
        value = spec.value(sample)
        if value is None:
            continue
        threshold = spec.threshold(thresholds)
        if spec.breached(value, threshold):
            breaches.append(
                Breach(
                    run_label=sample.run_label,
                    metric=spec.key,
                    label=spec.label,
                    value=value,
                    threshold=threshold,
                    direction=spec.direction,
                )
            )
    return breaches


def collect_threshold_breaches(
    samples: list[PageSample],
    thresholds: Thresholds,
    cold_thresholds: Thresholds | None = None,
) -> list[Breach]:
    """
    Checks every attempt independently, in sample-then-metric order.

    The first attempt is the cold run; it is checked against cold_thresholds when given.
    """
    breaches: list[Breach] = []
    for index, sample in enumerate(samples):
        applied = cold_thresholds if index == 0 and cold_thresholds is not None else thresholds
        found = evaluate_sample(sample, applied)
        for breach in found:
            logger.debug(f"budget breach: {breach.describe()}")
        breaches.extend(found)
    return breaches


def has_breaches(breaches: list[Breach]) -> bool:
    return len(breaches) > 0
