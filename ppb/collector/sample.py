from dataclasses import dataclass, field, replace
from typing import Any

SLOW_RESOURCE_MS = 300
SLOW_RESOURCES_PER_RUN = 5
LONG_TASK_BLOCKING_MS = 50


@dataclass(frozen=True)
class ResourceEntry:
    name: str
    initiator_type: str
    transfer_size: float
    encoded_body_size: float
    decoded_body_size: float
    duration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "initiatorType": self.initiator_type,
            "transferSize": self.transfer_size,
            "encodedBodySize": self.encoded_body_size,
            "decodedBodySize": self.decoded_body_size,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class SlowResource(ResourceEntry):
    run_label: str = ""

    @classmethod
    def from_entry(cls, entry: ResourceEntry, run_label: str) -> "SlowResource":
        return cls(
            name=entry.name,
            initiator_type=entry.initiator_type,
            transfer_size=entry.transfer_size,
            encoded_body_size=entry.encoded_body_size,
            decoded_body_size=entry.decoded_body_size,
            duration=entry.duration,
            run_label=run_label,
        )

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "runLabel": self.run_label}


@dataclass(frozen=True)
class ResourceSummary:
    count: int
    transfer_size: float
    max_duration: float


@dataclass(frozen=True)
class ServerTimingEntry:
    name: str
    duration: float
    description: str | None = None


@dataclass(frozen=True)
class QualityScores:
    """Lighthouse category scores, each an integer between 0 and 100."""

    performance: int
    accessibility: int
    best_practices: int
    seo: int

    def to_dict(self) -> dict[str, int]:
        return {
            "performance": self.performance,
            "accessibility": self.accessibility,
            "bestPractices": self.best_practices,
            "seo": self.seo,
        }


@dataclass(frozen=True)
class MetricTimings:
    """Navigation and paint timings in milliseconds. None means the browser never reported it."""

    ttfb: float | None
    dom_content_loaded: float | None
    first_contentful_paint: float | None
    largest_contentful_paint: float | None
    load_event_end: float | None

    def to_dict(self) -> dict[str, float | None]:
        return {
            "ttfb": self.ttfb,
            "domContentLoaded": self.dom_content_loaded,
            "firstContentfulPaint": self.first_contentful_paint,
            "largestContentfulPaint": self.largest_contentful_paint,
            "loadEventEnd": self.load_event_end,
        }


@dataclass(frozen=True)
class PageSample:
    """One page-load measurement. Immutable once built."""

    run_label: str
    timings: MetricTimings
    cls: float | None
    total_blocking_time: float | None
    request_count: int
    transfer_size: float
    encoded_body_size: float = 0
    decoded_body_size: float = 0
    resource_breakdown: dict[str, ResourceSummary] = field(default_factory=dict)
    resource_entries: tuple[ResourceEntry, ...] = ()
    slowest_resources: tuple[SlowResource, ...] = ()
    server_timing: tuple[ServerTimingEntry, ...] = ()
    lighthouse: QualityScores | None = None

    def with_lighthouse(self, scores: QualityScores) -> "PageSample":
        return replace(self, lighthouse=scores)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runLabel": self.run_label,
            "timings": self.timings.to_dict(),
            "cls": self.cls,
            "totalBlockingTime": self.total_blocking_time,
            "requestCount": self.request_count,
            "transferSize": self.transfer_size,
            "encodedBodySize": self.encoded_body_size,
            "decodedBodySize": self.decoded_body_size,
            "resourceBreakdown": {
                initiator: {
                    "count": summary.count,
                    "transferSize": summary.transfer_size,
                    "maxDuration": summary.max_duration,
                }
                for initiator, summary in self.resource_breakdown.items()
            },
            "resourceEntries": [entry.to_dict() for entry in self.resource_entries],
            "slowestResources": [resource.to_dict() for resource in self.slowest_resources],
            "serverTiming": [
                {"name": e.name, "description": e.description, "duration": e.duration}
                for e in self.server_timing
            ],
            "lighthouse": self.lighthouse.to_dict() if self.lighthouse else None,
        }
