import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_REPO_ROOT = Path(__file__).parent.parent

DEFAULT_BASE_URL = "https://cogcg--autotests.sandbox.my.site.com/cciaf"
DEFAULT_ASSESSMENT_ID = "a01dw0000087pCZAAY"
DEFAULT_PRACTICE_AREA_ID = "a08dw000005TM8sAAG"
DEFAULT_CRITERIA_ID = "a04dw000000DXF9AAO"
DEFAULT_STORAGE_STATE = "playwright/.auth/govuk-frontend.json"


def _flag(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable run configuration, read from the process environment (and .env).
    """

    runs_per_page: int = 2
    run_lighthouse: bool = True
    constrained: bool = False
    strict: bool = False
    cold_factor: float = 1.25
    cold_ttfb: float | None = None
    budgets_path: Path = _REPO_ROOT / "performance-budgets.yaml"
    storage_state: Path = Path(DEFAULT_STORAGE_STATE)
    base_url: str = DEFAULT_BASE_URL
    assessment_id: str = DEFAULT_ASSESSMENT_ID
    practice_area_id: str = DEFAULT_PRACTICE_AREA_ID
    criteria_id: str = DEFAULT_CRITERIA_ID
    output_dir: Path = Path("test-results/performance")
    workers: int = 1
    headless: bool = True
    settle_timeout_ms: int = 60_000

    @classmethod
    def from_env(cls) -> "RunConfig":
        return cls(
            runs_per_page=max(1, int(_flag("PERF_RUNS", "2"))),
            run_lighthouse=_flag("PERF_LIGHTHOUSE", "1") != "0",
            constrained=_flag("PERF_CONSTRAINED", "0") == "1",
            strict=_flag("PERF_STRICT", "0") == "1",
            cold_factor=float(_flag("PERF_COLD_FACTOR", "1.25")),
            cold_ttfb=_optional_float("PERF_TTFB_COLD"),
            budgets_path=Path(
                os.getenv("PERF_BUDGETS", str(_REPO_ROOT / "performance-budgets.yaml"))
            ),
            storage_state=Path(os.getenv("FRONTEND_STATE", DEFAULT_STORAGE_STATE)),
            base_url=os.getenv("PERF_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            assessment_id=os.getenv("PERF_ASSESSMENT_ID", DEFAULT_ASSESSMENT_ID),
            practice_area_id=os.getenv("PERF_PRACTICE_AREA_ID", DEFAULT_PRACTICE_AREA_ID),
            criteria_id=os.getenv("PERF_CRITERIA_ID", DEFAULT_CRITERIA_ID),
            output_dir=Path(os.getenv("PERF_OUTPUT_DIR", "test-results/performance")),
            workers=max(1, int(_flag("PERF_WORKERS", "1"))),
            headless=_flag("PERF_HEADED", "0") != "1",
            settle_timeout_ms=int(_flag("PERF_SETTLE_TIMEOUT_MS", "60000")),
        )

    @property
    def profile_name(self) -> str:
        return "Constrained (Slow 4G + 4× CPU)" if self.constrained else "Default"
