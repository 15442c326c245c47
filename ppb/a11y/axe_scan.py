import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from playwright.sync_api import Page

from ppb.a11y.axe_report import DEFAULT_SCOPE, build_stakeholder_report
from ppb.report.artifact_writer import ArtifactWriter

logger = logging.getLogger(__name__)

AXE_CDN = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.9.1/axe.min.js"
WCAG_TAGS = ("wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "best-practice")

RUN_AXE_SCRIPT = """
async ({ context, options }) => await axe.run(context, options)
"""


class AccessibilityViolationError(AssertionError):
    """Blocking accessibility violations were found on a page."""

    def __init__(self, label: str, violations: list[dict[str, Any]]) -> None:
        rules = ", ".join(violation.get("id", "?") for violation in violations)
        super().__init__(f"Accessibility issues @ {label}: {rules}")
        self.label = label
        self.violations = violations


@dataclass(frozen=True)
class ScanOptions:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    fail_on_impacts: tuple[str, ...] = ("serious", "critical")
    soft_fail: bool = False
    screenshot: bool = True
    rules: tuple[str, ...] = ()


@dataclass
class ScanResult:
    label: str
    url: str
    timestamp: str
    results: dict[str, Any]
    blocking: list[dict[str, Any]] = field(default_factory=list)
    report: str = ""

    @property
    def passed(self) -> bool:
        return not self.blocking


def filter_blocking(violations: list[dict[str, Any]], fail_on: tuple[str, ...]) -> list[dict[str, Any]]:
    """Violations whose impact is listed in fail_on. A violation without an impact always blocks."""
    return [v for v in violations if not v.get("impact") or v["impact"] in fail_on]


def _instances(violation: dict[str, Any]) -> int:
    return len(violation.get("nodes") or [])


class AxeScanner:
    """Runs axe-core inside a Playwright page and stores the findings as JSON and Markdown."""

    def __init__(self, page: Page, axe_source_url: str = AXE_CDN) -> None:
        self.page = page
        self.axe_source_url = axe_source_url

    def _axe_arguments(self, options: ScanOptions) -> dict[str, Any]:
        include = options.include or (DEFAULT_SCOPE,)
        context: dict[str, Any] = {"include": [[selector] for selector in include]}
        if options.exclude:
            context["exclude"] = [[selector] for selector in options.exclude]

        # Explicit rule ids replace the tag selection.
        if options.rules:
            run_only = {"type": "rule", "values": list(options.rules)}
        else:
            run_only = {"type": "tag", "values": list(WCAG_TAGS)}
        return {"context": context, "options": {"runOnly": run_only}}

    def run(self, options: ScanOptions) -> dict[str, Any]:
        self.page.add_script_tag(url=self.axe_source_url)
        return self.page.evaluate(RUN_AXE_SCRIPT, self._axe_arguments(options))

    def scan(
        self, label: str, options: ScanOptions | None = None, writer: ArtifactWriter | None = None
    ) -> ScanResult:
        options = options or ScanOptions()
        results = self.run(options)

        url = results.get("url") or self.page.url
        timestamp = datetime.now(timezone.utc).isoformat()
        blocking = filter_blocking(results.get("violations") or [], options.fail_on_impacts)
        report = build_stakeholder_report(label, url, timestamp, results, blocking, options)
        result = ScanResult(label, url, timestamp, results, blocking, report)

        if writer is not None:
            if blocking and options.screenshot:
                writer.write_bytes(f"{label}-screenshot.png", self.page.screenshot(full_page=True))
            writer.write_text(f"a11y-{label}.json", json.dumps(results, indent=2))
            writer.write_text(f"a11y-{label}.md", report)

        if not blocking:
            logger.info(f"No blocking accessibility violations @ {label}")
            return result

        if not options.soft_fail:
            raise AccessibilityViolationError(label, blocking)

        logger.warning(f"Accessibility violations @ {label}:")
        for violation in blocking:
            impact = (violation.get("impact") or "unknown").upper()
            logger.warning(
                f"  {impact}: {violation.get('description', '')} ({_instances(violation)} instance(s))"
            )
        logger.warning(f"  Total: {sum(_instances(v) for v in blocking)} violation(s), soft fail")
        return result
