from dataclasses import replace
from pathlib import Path

import pytest

from ppb.budgets import BudgetConfigError, load_budget_config, parse_budget_document

DEFAULT_SECTION = {
    "ttfb": 600,
    "domContentLoaded": 2500,
    "firstContentfulPaint": 1800,
    "largestContentfulPaint": 2500,
    "loadEventEnd": 4000,
    "cumulativeLayoutShift": 0.1,
    "totalBlockingTime": 200,
    "requestCount": 120,
    "transferSize": 3145728,
    "lighthouse": {"performance": 75, "accessibility": 90, "bestPractices": 80, "seo": 90},
}


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "budgets.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_load_budget_config_reads_repository_budgets():
    config = load_budget_config(Path(__file__).parent.parent / "performance-budgets.yaml")
    assert config.default.ttfb == 600
    assert config.has_page_override("performance-document-library")
    assert config.resolve("performance-document-library").largest_contentful_paint == 3500


def test_load_budget_config_when_file_missing_raises(tmp_path):
    with pytest.raises(BudgetConfigError, match="not found"):
        load_budget_config(tmp_path / "missing.yaml")


def test_load_budget_config_when_yaml_is_malformed_raises(tmp_path):
    path = _write(tmp_path, "default: [unclosed\n")
    with pytest.raises(BudgetConfigError, match="Unable to parse"):
        load_budget_config(path)


def test_load_budget_config_accepts_json(tmp_path):
    path = _write(tmp_path, '{"default": {"ttfb": 500, "domContentLoaded": 1, "firstContentfulPaint": 1, '
                            '"largestContentfulPaint": 1, "loadEventEnd": 1, "cumulativeLayoutShift": 0.1, '
                            '"totalBlockingTime": 1, "requestCount": 1, "transferSize": 1}}')
    assert load_budget_config(path).default.ttfb == 500


def test_parse_budget_document_when_default_missing_raises():
    with pytest.raises(BudgetConfigError, match="default"):
        parse_budget_document({"pages": {}})


def test_parse_budget_document_when_ceiling_missing_raises():
    section = {k: v for k, v in DEFAULT_SECTION.items() if k != "ttfb"}
    with pytest.raises(BudgetConfigError, match="ttfb"):
        parse_budget_document({"default": section})


def test_parse_budget_document_when_unknown_metric_raises():
    with pytest.raises(BudgetConfigError, match="Unknown budget metric"):
        parse_budget_document({"default": {**DEFAULT_SECTION, "firstInputDelay": 100}})


def test_parse_budget_document_when_value_not_a_number_raises():
    with pytest.raises(BudgetConfigError, match="must be a number"):
        parse_budget_document({"default": {**DEFAULT_SECTION, "ttfb": "fast"}})


def test_parse_budget_document_without_lighthouse_uses_default_floors():
    section = {k: v for k, v in DEFAULT_SECTION.items() if k != "lighthouse"}
    config = parse_budget_document({"default": section})
    assert config.default.lighthouse.performance == 75
    assert config.default.lighthouse.seo == 90


def test_resolve_overlays_page_section_then_scenario_overrides():
    config = parse_budget_document(
        {
            "default": DEFAULT_SECTION,
            "pages": {"performance-x": {"ttfb": 800, "lighthouse": {"performance": 60}}},
        }
    )
    resolved = config.resolve("performance-x", {"ttfb": 900})
    assert resolved.ttfb == 900
    assert resolved.lighthouse.performance == 60
    assert resolved.lighthouse.accessibility == 90
    assert resolved.largest_contentful_paint == 2500


def test_resolve_when_label_unknown_returns_defaults():
    config = parse_budget_document({"default": DEFAULT_SECTION})
    assert config.resolve("performance-unknown") == config.default
    assert not config.has_page_override("performance-unknown")


def test_for_cold_run_scales_only_ttfb(thresholds):
    cold = thresholds.for_cold_run(1.25)
    assert cold.ttfb == 750
    assert cold.largest_contentful_paint == thresholds.largest_contentful_paint


def test_for_cold_run_with_explicit_ceiling_ignores_factor(thresholds):
    assert thresholds.for_cold_run(1.25, cold_ttfb=1000).ttfb == 1000


def test_thresholds_to_dict_uses_document_keys(thresholds):
    document = thresholds.to_dict()
    assert document["largestContentfulPaint"] == 2500
    assert document["lighthouse"]["bestPractices"] == 80


def test_for_cold_run_rounds_half_ceiling_up(thresholds):
    assert thresholds.for_cold_run(1.25).ttfb == 750
    assert replace(thresholds, ttfb=602).for_cold_run(1.25).ttfb == 753
