import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from ppb.report.formatting import round_half_up

logger = logging.getLogger(__name__)

# Document key -> Thresholds attribute. The document keeps the camelCase names
# used by the budget files shared with the rest of the test suite.
CEILING_KEYS = {
    "ttfb": "ttfb",
    "domContentLoaded": "dom_content_loaded",
    "firstContentfulPaint": "first_contentful_paint",
    "largestContentfulPaint": "largest_contentful_paint",
    "loadEventEnd": "load_event_end",
    "cumulativeLayoutShift": "cumulative_layout_shift",
    "totalBlockingTime": "total_blocking_time",
    "requestCount": "request_count",
    "transferSize": "transfer_size",
}
FLOOR_KEYS = {
    "performance": "performance",
    "accessibility": "accessibility",
    "bestPractices": "best_practices",
    "seo": "seo",
}


class BudgetConfigError(ValueError):
    """The budget document is missing, unreadable or malformed."""


@dataclass(frozen=True)
class QualityThresholds:
    """Lower bounds for Lighthouse category scores (higher is better)."""

    performance: float = 75
    accessibility: float = 90
    best_practices: float = 80
    seo: float = 90


@dataclass(frozen=True)
class Thresholds:
    """Upper bounds for lower-is-better metrics plus the Lighthouse floors."""

    ttfb: float
    dom_content_loaded: float
    first_contentful_paint: float
    largest_contentful_paint: float
    load_event_end: float
    cumulative_layout_shift: float
    total_blocking_time: float
    request_count: float
    transfer_size: float
    lighthouse: QualityThresholds = field(default_factory=QualityThresholds)

    def for_cold_run(self, cold_factor: float, cold_ttfb: float | None = None) -> "Thresholds":
        """Relaxes the TTFB ceiling for the first attempt, which runs against an empty cache."""
        ttfb = cold_ttfb if cold_ttfb is not None else round_half_up(self.ttfb * cold_factor)
        return replace(self, ttfb=ttfb)

    def to_dict(self) -> dict[str, Any]:
        values = asdict(self)
        document = {key: values[attr] for key, attr in CEILING_KEYS.items()}
        document["lighthouse"] = {key: values["lighthouse"][attr] for key, attr in FLOOR_KEYS.items()}
        return document


def _as_number(section: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BudgetConfigError(f"Budget '{section}.{key}' must be a number, got {value!r}")
    return value


def _parse_overrides(section: str, raw: dict[str, Any]) -> dict[str, Any]:
    """Validates one section and converts it to Thresholds keyword arguments."""
    overrides: dict[str, Any] = {}
    for key, value in raw.items():
        if key == "lighthouse":
            if not isinstance(value, dict):
                raise BudgetConfigError(f"Budget '{section}.lighthouse' must be a mapping")
            floors = {}
            for score_key, score in value.items():
                if score_key not in FLOOR_KEYS:
                    raise BudgetConfigError(f"Unknown Lighthouse budget '{section}.lighthouse.{score_key}'")
                floors[FLOOR_KEYS[score_key]] = _as_number(section, score_key, score)
            overrides["lighthouse"] = floors
        elif key in CEILING_KEYS:
            overrides[CEILING_KEYS[key]] = _as_number(section, key, value)
        else:
            raise BudgetConfigError(f"Unknown budget metric '{section}.{key}'")
    return overrides


def _overlay(base: Thresholds, overrides: dict[str, Any]) -> Thresholds:
    floors = overrides.get("lighthouse")
    ceilings = {key: value for key, value in overrides.items() if key != "lighthouse"}
    resolved = replace(base, **ceilings)
    if floors:
        resolved = replace(resolved, lighthouse=replace(resolved.lighthouse, **floors))
    return resolved


@dataclass(frozen=True)
class BudgetConfig:
    default: Thresholds
    pages: dict[str, dict[str, Any]]
    source: Path | None = None

    def has_page_override(self, label: str) -> bool:
        return label in self.pages

    def resolve(self, label: str, overrides: dict[str, Any] | None = None) -> Thresholds:
        """Default budgets, overlaid by the page section for label, then by scenario overrides."""
        resolved = _overlay(self.default, self.pages.get(label, {}))
        if overrides:
            resolved = _overlay(resolved, _parse_overrides(f"scenario.{label}", overrides))
        return resolved


def parse_budget_document(raw: Any, source: Path | None = None) -> BudgetConfig:
    if not isinstance(raw, dict) or not isinstance(raw.get("default"), dict):
        raise BudgetConfigError('Performance budgets document must have a "default" section')

    default_overrides = _parse_overrides("default", raw["default"])
    missing = [key for key, attr in CEILING_KEYS.items() if attr not in default_overrides]
    if missing:
        raise BudgetConfigError(f"Default budgets are missing: {missing}")

    default = _overlay(
        Thresholds(**{attr: default_overrides[attr] for attr in CEILING_KEYS.values()}),
        {"lighthouse": default_overrides.get("lighthouse", {})},
    )

    pages_raw = raw.get("pages") or {}
    if not isinstance(pages_raw, dict):
        raise BudgetConfigError('"pages" must map scenario labels to budget overrides')
    pages = {}
    for label, section in pages_raw.items():
        if not isinstance(section, dict):
            raise BudgetConfigError(f"Budget overrides for '{label}' must be a mapping")
        pages[label] = _parse_overrides(f"pages.{label}", section)

    return BudgetConfig(default=default, pages=pages, source=source)


def load_budget_config(path: Path) -> BudgetConfig:
    """Loads the budget document (YAML or JSON). Any problem here is fatal for the run."""
    if not path.exists():
        raise BudgetConfigError(f"Performance budgets file not found at: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise BudgetConfigError(f"Unable to parse budgets file {path}: {e}") from e

    config = parse_budget_document(raw, source=path)
    logger.info(f"Loaded budgets from {path} ({len(config.pages)} page-specific configs)")
    return config
