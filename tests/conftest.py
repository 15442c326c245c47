import pytest

from ppb.budgets import QualityThresholds, Thresholds
from ppb.collector.sample import MetricTimings, PageSample, QualityScores


def _sample(
    run_label="Cold start",
    ttfb=200.0,
    dom_content_loaded=800.0,
    first_contentful_paint=900.0,
    largest_contentful_paint=1500.0,
    load_event_end=2000.0,
    cls=0.01,
    total_blocking_time=50.0,
    request_count=40,
    transfer_size=500_000,
    lighthouse=None,
    slowest_resources=(),
):
    return PageSample(
        run_label=run_label,
        timings=MetricTimings(
            ttfb=ttfb,
            dom_content_loaded=dom_content_loaded,
            first_contentful_paint=first_contentful_paint,
            largest_contentful_paint=largest_contentful_paint,
            load_event_end=load_event_end,
        ),
        cls=cls,
        total_blocking_time=total_blocking_time,
        request_count=request_count,
        transfer_size=transfer_size,
        slowest_resources=slowest_resources,
        lighthouse=lighthouse,
    )


@pytest.fixture()
def make_sample():
    return _sample


@pytest.fixture()
def thresholds():
    return Thresholds(
        ttfb=600,
        dom_content_loaded=2500,
        first_contentful_paint=1800,
        largest_contentful_paint=2500,
        load_event_end=4000,
        cumulative_layout_shift=0.1,
        total_blocking_time=200,
        request_count=120,
        transfer_size=3_145_728,
        lighthouse=QualityThresholds(performance=75, accessibility=90, best_practices=80, seo=90),
    )


@pytest.fixture()
def good_scores():
    return QualityScores(performance=90, accessibility=95, best_practices=92, seo=100)
