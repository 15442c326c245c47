import json
import logging
import threading
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_OUTPUT_DIR = Path("test-results") / "performance"


class ArtifactWriter:
    """Stores report attachments under a timestamped run directory."""

    run_dir: Path

    def __init__(self, output_dir: Path = _DEFAULT_OUTPUT_DIR, timestamped: bool = True) -> None:
        """Creates the run directory, named after the start time unless timestamped is False."""
        self.run_dir = output_dir / f"run_{time.strftime('%Y%m%d-%H%M%S')}" if timestamped else output_dir
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, name: str) -> Path:
        return self.run_dir / name

    def diagnostics_dir(self, label: str) -> Path:
        return self.run_dir / "diagnostics" / label

    def write_text(self, name: str, body: str) -> Path:
        path = self.path_for(name)
        with self._lock, open(path, mode="w", encoding="utf-8", newline="") as f:
            f.write(body)
        logger.info(f"wrote {path}")
        return path

    def write_json(self, name: str, payload: Any) -> Path:
        return self.write_text(name, json.dumps(payload, indent=2, ensure_ascii=False))

    def write_bytes(self, name: str, data: bytes) -> Path:
        path = self.path_for(name)
        with self._lock:
            path.write_bytes(data)
        logger.info(f"wrote {path}")
        return path

    def write_scenario(self, label: str, report: str, payload: dict[str, Any]) -> tuple[Path, Path]:
        return (
            self.write_text(f"{label}-performance.txt", report),
            self.write_json(f"{label}-performance.json", payload),
        )

    def write_suite(self, summary: str, csv_body: str) -> tuple[Path, Path]:
        return (
            self.write_text("overall-performance-summary.txt", summary),
            self.write_text("overall-performance-summary.csv", csv_body),
        )
