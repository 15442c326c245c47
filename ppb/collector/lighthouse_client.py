import json
import logging
import subprocess
from typing import Any

from ppb.collector.sample import QualityScores
from ppb.report.formatting import round_half_up

logger = logging.getLogger(__name__)

CATEGORIES = ("performance", "accessibility", "best-practices", "seo")
DEFAULT_TIMEOUT_SECONDS = 180


class LighthouseClient:
    """Adapter over the Lighthouse CLI. Scores are optional, so every failure yields None."""

    binary: str
    timeout_seconds: int

    def __init__(self, binary: str = "lighthouse", timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def audit(self, url: str, cookies: list[dict[str, Any]]) -> QualityScores | None:
        """Runs a headless audit of url, reusing the browser cookies so the page is authenticated."""
        command = self._build_command(url, cookies)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Lighthouse audit failed for {url}: {e}")
            return None

        try:
            report = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            logger.warning(f"Lighthouse returned malformed JSON for {url}: {e}")
            return None

        return self._extract_scores(report)

    def _build_command(self, url: str, cookies: list[dict[str, Any]]) -> list[str]:
        cookie_header = "; ".join(f"{c['name']}={c['value']}" for c in cookies)
        return [
            self.binary,
            url,
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            f"--only-categories={','.join(CATEGORIES)}",
            "--chrome-flags=--headless --disable-gpu",
            f"--extra-headers={json.dumps({'Cookie': cookie_header})}",
        ]

    def _extract_scores(self, report: Any) -> QualityScores | None:
        categories = report.get("categories") if isinstance(report, dict) else None
        if not categories:
            logger.warning("Lighthouse report has no categories")
            return None

        def score(key: str) -> int:
            raw = (categories.get(key) or {}).get("score")
            return round_half_up((raw or 0) * 100)

        return QualityScores(
            performance=score("performance"),
            accessibility=score("accessibility"),
            best_practices=score("best-practices"),
            seo=score("seo"),
        )
