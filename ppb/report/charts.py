import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from ppb.report.suite_report import SUITE_METRICS_BY_COLUMN, ScenarioOutcome, build_suite_rows  # noqa: E402

logger = logging.getLogger(__name__)

CHART_METRICS = ("lcp", "tbt", "ttfb")


def plot_worst_vs_budget(outcomes: list[ScenarioOutcome], path: Path) -> Path | None:
    """
    Bar chart of each page's worst LCP, TBT and TTFB, with its budget drawn as a marker.

    Returns None when there is nothing to plot.
    """
    rows = build_suite_rows(outcomes)
    if rows.empty:
        logger.warning("No scenario outcomes to plot")
        return None

    pages = rows["page"].tolist()
    x = np.arange(len(pages))
    _, axes = plt.subplots(len(CHART_METRICS), 1, figsize=(12, 3.5 * len(CHART_METRICS)), sharex=True)

    for ax, column in zip(axes, CHART_METRICS):
        metric = SUITE_METRICS_BY_COLUMN[column]
        worst = rows[column].to_numpy(dtype=float)
        budget = rows[f"{column}_budget"].to_numpy(dtype=float)
        over = np.nan_to_num(worst, nan=0.0) > budget
        colors = np.where(over, "tab:red", "tab:green")

        ax.bar(x, np.nan_to_num(worst, nan=0.0), color=colors, alpha=0.8, label="Worst run")
        ax.scatter(x, budget, color="black", marker="_", s=600, linewidths=2, label="Budget", zorder=3)
        ax.set_title(f"{metric.label} - worst run vs budget")
        ax.set_ylabel("ms")
        ax.grid(True, axis="y", alpha=0.3)
        ax.legend()

    plt.xticks(x, pages, rotation=30, ha="right")
    plt.tight_layout()

    path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(path)
    plt.close()

    logger.info(f"Saved budget chart at {path}")
    return path
