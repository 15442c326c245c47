import logging
import math
import re
from pathlib import Path
from typing import Any, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from ppb.collector.sample import (
    LONG_TASK_BLOCKING_MS,
    SLOW_RESOURCE_MS,
    SLOW_RESOURCES_PER_RUN,
    MetricTimings,
    PageSample,
    ResourceEntry,
    ResourceSummary,
    ServerTimingEntry,
    SlowResource,
)

logger = logging.getLogger(__name__)

POST_SETTLE_WAIT_MS = 500
LOGIN_URL_PATTERN = re.compile(r"/s/login", re.IGNORECASE)
LOGIN_TEXT_PATTERN = re.compile(r"sign in|log in|enter your email|verify", re.IGNORECASE)

# observe() only warns for an unknown entry type, so support is checked through
# supportedEntryTypes. cls and longTasks stay null where it is missing.
OBSERVERS_SCRIPT = """
(() => {
  if (window.__ppbObserversInstalled) return;
  window.__ppbObserversInstalled = true;
  const supported = (type) =>
    (PerformanceObserver.supportedEntryTypes || []).includes(type);
  const store = { lcp: null, cls: null, longTasks: null };
  window.__ppbPerformance = store;

  if (supported('largest-contentful-paint')) {
    try {
      new PerformanceObserver((list) => {
        const last = list.getEntries().at(-1);
        if (last) store.lcp = last.renderTime || last.loadTime || last.startTime || null;
      }).observe({ type: 'largest-contentful-paint', buffered: true });
    } catch (e) {}
  }

  if (supported('layout-shift')) {
    store.cls = 0;
    try {
      new PerformanceObserver((list) => {
        for (const entry of list.getEntries()) {
          if (!entry.hadRecentInput && typeof entry.value === 'number') store.cls += entry.value;
        }
      }).observe({ type: 'layout-shift', buffered: true });
    } catch (e) {
      store.cls = null;
    }
  }

  if (supported('longtask')) {
    store.longTasks = [];
    try {
      new PerformanceObserver((list) => {
        for (const entry of list.getEntries()) store.longTasks.push(entry.duration);
      }).observe({ type: 'longtask', buffered: true });
    } catch (e) {
      store.longTasks = null;
    }
  }
})();
"""

COLLECT_SCRIPT = """
() => {
  const [navigation] = performance.getEntriesByType('navigation');
  const fcp = performance.getEntriesByName('first-contentful-paint')[0];
  const lcpEntries = performance.getEntriesByType('largest-contentful-paint');
  const resources = performance.getEntriesByType('resource');
  const store = window.__ppbPerformance || null;

  performance.clearResourceTimings();

  return {
    navigation: navigation ? {
      domContentLoadedEventEnd: navigation.domContentLoadedEventEnd,
      loadEventEnd: navigation.loadEventEnd,
      responseStart: navigation.responseStart,
      requestStart: navigation.requestStart,
      transferSize: navigation.transferSize,
      encodedBodySize: navigation.encodedBodySize,
      decodedBodySize: navigation.decodedBodySize,
      serverTiming: (navigation.serverTiming || []).map((e) => ({
        name: e.name, description: e.description, duration: e.duration,
      })),
    } : null,
    paints: {
      firstContentfulPaint: fcp ? fcp.startTime : null,
    },
    largestContentfulPaint: lcpEntries.length ? lcpEntries[lcpEntries.length - 1].startTime : null,
    store: store ? { lcp: store.lcp, cls: store.cls, longTasks: store.longTasks } : null,
    resourceEntries: resources.map((entry) => ({
      name: entry.name,
      initiatorType: entry.initiatorType || 'other',
      transferSize: entry.transferSize || 0,
      encodedBodySize: entry.encodedBodySize || 0,
      decodedBodySize: entry.decodedBodySize || 0,
      duration: entry.duration || 0,
    })),
  };
}
"""


class NotAuthenticatedError(RuntimeError):
    """The page rendered a login shell instead of the application."""


class MeasurableSession(Protocol):
    """A browser session that can load a URL and report one PageSample for it."""

    def sample(self, url: str, run_label: str) -> PageSample: ...

    def reset(self, clear_cache: bool) -> None: ...

    def apply_constrained_profile(self) -> None: ...

    def cookies(self) -> list[dict[str, Any]]: ...


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def total_blocking_time(long_tasks: list[float] | None) -> float | None:
    """Sum of the time each long task spent beyond the 50ms blocking allowance."""
    if long_tasks is None:
        return None
    return float(sum(max(0.0, duration - LONG_TASK_BLOCKING_MS) for duration in long_tasks))


def _resource_entries(raw_entries: list[dict[str, Any]]) -> list[ResourceEntry]:
    return [
        ResourceEntry(
            name=str(entry.get("name", "")),
            initiator_type=entry.get("initiatorType") or "other",
            transfer_size=_number(entry.get("transferSize")) or 0,
            encoded_body_size=_number(entry.get("encodedBodySize")) or 0,
            decoded_body_size=_number(entry.get("decodedBodySize")) or 0,
            duration=_number(entry.get("duration")) or 0,
        )
        for entry in raw_entries
    ]


def _resource_breakdown(entries: list[ResourceEntry]) -> dict[str, ResourceSummary]:
    breakdown: dict[str, ResourceSummary] = {}
    for entry in entries:
        current = breakdown.get(entry.initiator_type, ResourceSummary(0, 0, 0))
        breakdown[entry.initiator_type] = ResourceSummary(
            count=current.count + 1,
            transfer_size=current.transfer_size + entry.transfer_size,
            max_duration=max(current.max_duration, entry.duration),
        )
    return breakdown


def _slowest_resources(entries: list[ResourceEntry], run_label: str) -> tuple[SlowResource, ...]:
    slow = sorted(
        (entry for entry in entries if entry.duration >= SLOW_RESOURCE_MS),
        key=lambda entry: entry.duration,
        reverse=True,
    )
    return tuple(SlowResource.from_entry(entry, run_label) for entry in slow[:SLOW_RESOURCES_PER_RUN])


def build_sample(raw: dict[str, Any], run_label: str) -> PageSample:
    """
    Turns the raw payload read from the browser into a PageSample.

    Metrics whose browser API never reported anything come out as None.
    """
    navigation = raw.get("navigation") or None
    paints = raw.get("paints") or {}
    store = raw.get("store") or {}

    ttfb = None
    if navigation is not None:
        response_start = _number(navigation.get("responseStart"))
        request_start = _number(navigation.get("requestStart"))
        if response_start is not None and request_start is not None:
            ttfb = response_start - request_start

    lcp = _number(raw.get("largestContentfulPaint"))
    if lcp is None:
        lcp = _number(store.get("lcp"))

    timings = MetricTimings(
        ttfb=ttfb,
        dom_content_loaded=_number(navigation.get("domContentLoadedEventEnd")) if navigation else None,
        first_contentful_paint=_number(paints.get("firstContentfulPaint")),
        largest_contentful_paint=lcp,
        load_event_end=_number(navigation.get("loadEventEnd")) if navigation else None,
    )

    entries = _resource_entries(raw.get("resourceEntries") or [])
    navigation_transfer = (_number(navigation.get("transferSize")) or 0) if navigation else 0
    server_timing = tuple(
        ServerTimingEntry(
            name=str(item.get("name", "")),
            duration=_number(item.get("duration")) or 0,
            description=item.get("description") or None,
        )
        for item in ((navigation or {}).get("serverTiming") or [])
    )

    return PageSample(
        run_label=run_label,
        timings=timings,
        cls=_number(store.get("cls")),
        total_blocking_time=total_blocking_time(store.get("longTasks")),
        request_count=len(entries) + (1 if navigation else 0),
        transfer_size=navigation_transfer + sum(entry.transfer_size for entry in entries),
        encoded_body_size=(_number(navigation.get("encodedBodySize")) or 0) if navigation else 0,
        decoded_body_size=(_number(navigation.get("decodedBodySize")) or 0) if navigation else 0,
        resource_breakdown=_resource_breakdown(entries),
        resource_entries=tuple(entries),
        slowest_resources=_slowest_resources(entries, run_label),
        server_timing=server_timing,
    )


def looks_like_login(url: str, body_text: str) -> bool:
    return bool(LOGIN_URL_PATTERN.search(url) or LOGIN_TEXT_PATTERN.search(body_text))


class PlaywrightPageSession:
    """Adapter that measures pages through a Playwright sync Page."""

    page: Page
    browser_name: str

    def __init__(
        self,
        page: Page,
        browser_name: str = "chromium",
        settle_timeout_ms: int = 60_000,
        diagnostics_dir: Path | None = None,
    ) -> None:
        self.page = page
        self.browser_name = browser_name
        self.settle_timeout_ms = settle_timeout_ms
        self.diagnostics_dir = diagnostics_dir
        self._observers_installed = False

    @property
    def is_chromium(self) -> bool:
        return self.browser_name == "chromium"

    def install_observers(self) -> None:
        if self._observers_installed:
            return
        self.page.add_init_script(script=OBSERVERS_SCRIPT)
        self._observers_installed = True

    def sample(self, url: str, run_label: str) -> PageSample:
        self.install_observers()
        self.page.goto(url, wait_until="domcontentloaded", timeout=self.settle_timeout_ms)
        self.page.wait_for_load_state("networkidle", timeout=self.settle_timeout_ms)
        self.assert_logged_in()
        self.page.wait_for_timeout(POST_SETTLE_WAIT_MS)

        raw = self.page.evaluate(COLLECT_SCRIPT)
        logger.debug(f"[{run_label}] raw performance payload for {url}: {raw}")
        if not (raw.get("store") or {}):
            logger.warning(f"[{run_label}] performance observers were not installed on {url}")
        return build_sample(raw, run_label)

    def reset(self, clear_cache: bool) -> None:
        self.page.goto("about:blank")
        self.page.wait_for_load_state("load")

        if not self.is_chromium or not clear_cache:
            return

        try:
            session = self.page.context.new_cdp_session(self.page)
            session.send("Network.clearBrowserCache")
            session.detach()
        except PlaywrightError as e:
            logger.warning(f"Unable to clear browser cache for cold run: {e}")

    def apply_constrained_profile(self) -> None:
        if not self.is_chromium:
            logger.warning(f"Constrained profile needs chromium, got {self.browser_name}")
            return

        try:
            session = self.page.context.new_cdp_session(self.page)
            session.send("Emulation.setCPUThrottlingRate", {"rate": 4})
            session.send(
                "Network.emulateNetworkConditions",
                {
                    "offline": False,
                    "latency": 150,
                    "downloadThroughput": 1_600_000,
                    "uploadThroughput": 750_000,
                },
            )
            session.detach()
        except PlaywrightError as e:
            logger.warning(f"Constrained profile not applied: {e}")

    def cookies(self) -> list[dict[str, Any]]:
        return [dict(cookie) for cookie in self.page.context.cookies()]

    def assert_logged_in(self) -> None:
        href = self.page.url
        body = self.page.evaluate(
            "() => (document.body && document.body.innerText || '').slice(0, 1000)"
        )
        if not looks_like_login(href, body or ""):
            return

        if self.diagnostics_dir is not None:
            self.diagnostics_dir.mkdir(parents=True, exist_ok=True)
            (self.diagnostics_dir / "not-logged-in-url.txt").write_text(href, encoding="utf-8")
            (self.diagnostics_dir / "not-logged-in-dom.html").write_text(
                self.page.content(), encoding="utf-8"
            )
            logger.error(f"Login shell diagnostics saved under {self.diagnostics_dir}")

        raise NotAuthenticatedError(
            "Not authenticated: redirected to login/unauthorised shell. "
            "Check FRONTEND_STATE or rebuild auth state."
        )
