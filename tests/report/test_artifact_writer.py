import json

import pytest

from ppb.analysis.statistics import compute_summary
from ppb.report.artifact_writer import ArtifactWriter
from ppb.report.charts import plot_worst_vs_budget
from ppb.report.suite_report import ScenarioOutcome


@pytest.fixture()
def writer(tmp_path):
    return ArtifactWriter(output_dir=tmp_path, timestamped=False)


def test_artifact_writer_when_timestamped_creates_run_directory(tmp_path):
    writer = ArtifactWriter(output_dir=tmp_path)
    assert writer.run_dir.parent == tmp_path
    assert writer.run_dir.name.startswith("run_")
    assert writer.run_dir.is_dir()


def test_write_scenario_writes_text_and_json(writer):
    text_path, json_path = writer.write_scenario("performance-a", "report body", {"breaches": []})
    assert text_path.name == "performance-a-performance.txt"
    assert text_path.read_text(encoding="utf-8") == "report body"
    assert json.loads(json_path.read_text(encoding="utf-8")) == {"breaches": []}


def test_write_suite_writes_summary_and_csv(writer):
    summary_path, csv_path = writer.write_suite("summary", "Page,URL\n")
    assert summary_path.name == "overall-performance-summary.txt"
    assert csv_path.read_text(encoding="utf-8") == "Page,URL\n"


def test_write_bytes_keeps_binary_content(writer):
    path = writer.write_bytes("shot.png", b"\x89PNG")
    assert path.read_bytes() == b"\x89PNG"


def test_plot_worst_vs_budget_saves_chart(make_sample, thresholds, writer):
    outcome = ScenarioOutcome(
        "Dashboard", "https://example.test/a", "performance-a", compute_summary([make_sample()]), thresholds
    )
    path = plot_worst_vs_budget([outcome], writer.path_for("chart.png"))
    assert path is not None
    assert path.exists()


def test_plot_worst_vs_budget_when_no_outcomes_returns_none(writer):
    assert plot_worst_vs_budget([], writer.path_for("chart.png")) is None
