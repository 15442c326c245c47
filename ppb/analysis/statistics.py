import math
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np

from ppb.collector.sample import PageSample, SlowResource

GLOBAL_SLOW_RESOURCES = 5

TIMING_METRICS = (
    "ttfb",
    "dom_content_loaded",
    "first_contentful_paint",
    "largest_contentful_paint",
    "load_event_end",
)
SCORE_CATEGORIES = ("performance", "accessibility", "best_practices", "seo")


@dataclass(frozen=True)
class NumericSummary:
    average: float
    median: float
    min: float
    max: float
    standard_deviation: float

    def to_dict(self) -> dict[str, float]:
        return {
            "average": self.average,
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "standardDeviation": self.standard_deviation,
        }


def summarise_numbers(values: Iterable[float | None]) -> NumericSummary | None:
    """
    Average, median, min, max and population standard deviation of the available values.

    None and non-finite values are dropped first; with nothing left the result is None, never zero.
    """
    present = [
        float(v) for v in values if v is not None and not isinstance(v, bool) and math.isfinite(v)
    ]
    if not present:
        return None

    data = np.asarray(present, dtype=np.float64)
    return NumericSummary(
        average=float(data.mean()),
        median=float(np.median(data)),
        min=float(data.min()),
        max=float(data.max()),
        standard_deviation=float(data.std(ddof=0)),
    )


@dataclass(frozen=True)
class Summary:
    timings: dict[str, NumericSummary | None]
    cls: NumericSummary | None
    total_blocking_time: NumericSummary | None
    request_count: NumericSummary | None
    transfer_size: NumericSummary | None
    slowest_resources: tuple[SlowResource, ...]
    lighthouse: dict[str, NumericSummary | None] | None = None

    def metric(self, key: str) -> NumericSummary | None:
        if key in self.timings:
            return self.timings[key]
        return getattr(self, key)

    def worst(self, key: str) -> float | None:
        stat = self.metric(key)
        return stat.max if stat else None

    def score_average(self, category: str) -> float | None:
        if not self.lighthouse:
            return None
        stat = self.lighthouse.get(category)
        return stat.average if stat else None

    def to_dict(self) -> dict[str, Any]:
        def dump(stat: NumericSummary | None) -> dict[str, float] | None:
            return stat.to_dict() if stat else None

        return {
            "timings": {key: dump(stat) for key, stat in self.timings.items()},
            "cls": dump(self.cls),
            "totalBlockingTime": dump(self.total_blocking_time),
            "requestCount": dump(self.request_count),
            "transferSize": dump(self.transfer_size),
            "slowestResources": [r.to_dict() for r in self.slowest_resources],
            "lighthouse": (
                {key: dump(stat) for key, stat in self.lighthouse.items()} if self.lighthouse else None
            ),
        }


def compute_slow_resources(samples: list[PageSample]) -> tuple[SlowResource, ...]:
    """Top slowest sub-resources across every attempt, each tagged with its attempt."""
    resources = [
        SlowResource.from_entry(resource, sample.run_label)
        for sample in samples
        for resource in sample.slowest_resources
    ]
    resources.sort(key=lambda resource: resource.duration, reverse=True)
    return tuple(resources[:GLOBAL_SLOW_RESOURCES])


def compute_summary(samples: list[PageSample]) -> Summary:
    """Reduces the attempts of one scenario into per-metric statistics."""
    timings = {
        key: summarise_numbers(getattr(sample.timings, key) for sample in samples)
        for key in TIMING_METRICS
    }

    scores = [sample.lighthouse for sample in samples if sample.lighthouse is not None]
    lighthouse = None
    if scores:
        lighthouse = {
            category: summarise_numbers(getattr(s, category) for s in scores)
            for category in SCORE_CATEGORIES
        }

    return Summary(
        timings=timings,
        cls=summarise_numbers(sample.cls for sample in samples),
        total_blocking_time=summarise_numbers(sample.total_blocking_time for sample in samples),
        request_count=summarise_numbers(sample.request_count for sample in samples),
        transfer_size=summarise_numbers(sample.transfer_size for sample in samples),
        slowest_resources=compute_slow_resources(samples),
        lighthouse=lighthouse,
    )
