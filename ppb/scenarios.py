from dataclasses import dataclass
from typing import Any

from ppb.config import RunConfig


@dataclass(frozen=True)
class PerformanceScenario:
    name: str
    url: str
    label: str
    thresholds: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "label": self.label, "thresholds": self.thresholds}


def default_scenarios(config: RunConfig) -> list[PerformanceScenario]:
    """The critical pages of the assessment journey, in the order they are reported."""
    base = config.base_url
    assessment = config.assessment_id
    practice_area = config.practice_area_id
    criteria = config.criteria_id

    return [
        PerformanceScenario(
            "Dashboard (Assessment List)", f"{base}/CCIAFAssessPrevious", "performance-dashboard"
        ),
        PerformanceScenario(
            "Assessment Overview",
            f"{base}/CCIAFAssessment?id={assessment}",
            "performance-assessment-overview",
        ),
        PerformanceScenario(
            "Cover Sheet (Read)",
            f"{base}/CCIAFAssessCoverSheet?id={assessment}",
            "performance-coversheet-read",
        ),
        PerformanceScenario(
            "Cover Sheet (Edit)",
            f"{base}/CCIAFAssessCoverSheetEdit?id={assessment}&pg=ratings",
            "performance-coversheet-edit",
        ),
        PerformanceScenario(
            "Document Library",
            f"{base}/CCIAFAssessLibrary?id={assessment}",
            "performance-document-library",
        ),
        PerformanceScenario(
            "Add Document Form",
            f"{base}/CCIAFAssessLibraryAddDocument?id={assessment}",
            "performance-add-document",
        ),
        PerformanceScenario(
            "Practice Area",
            f"{base}/CCIAFAssessPracticeArea?id={assessment}&practiceArea={practice_area}",
            "performance-practice-area",
        ),
        PerformanceScenario(
            "Indicator / Criteria",
            f"{base}/CCIAFAssessIndicator?id={assessment}&practiceArea={practice_area}&criteria={criteria}",
            "performance-indicator",
        ),
    ]


def run_label(attempt: int) -> str:
    return "Cold start" if attempt == 0 else f"Warm #{attempt}"
