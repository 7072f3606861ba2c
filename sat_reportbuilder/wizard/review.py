"""
Report review: completion of each wizard step, a summary of the stored
data and the issues that block a submission.
"""

from typing import Any, Dict, List, Optional

from .steps import REVIEW_STEP_NAMES, WIZARD_STEPS


def _percent(value: float) -> int:
    # half up, 12.5 gives 13
    return int(value + 0.5)


def _is_filled(value: Any) -> bool:
    if isinstance(value, list):
        return any(
            isinstance(row, dict)
            and any(item not in ("", None) for item in row.values())
            for row in value
        )
    return value not in ("", None)


def step_completion(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Share of the top level keys that hold a value, as a rounded percentage"""
    if not data:
        return {"complete": False, "percentage": 0}
    filled = sum(1 for value in data.values() if _is_filled(value))
    percentage = _percent(filled * 100 / len(data))
    return {"complete": percentage == 100, "percentage": percentage}


def data_summary(data: Optional[Dict[str, Any]]) -> str:
    """Human readable count of fields, table rows and sections"""
    if not data:
        return "No data"
    tables = [value for value in data.values() if isinstance(value, list)]
    sections = [value for value in data.values() if isinstance(value, dict)]
    primitives = len(data) - len(tables) - len(sections)
    summary = []
    if primitives:
        summary.append(f"{primitives} fields")
    if tables:
        rows = sum(len(table) for table in tables)
        summary.append(f"{rows} items in {len(tables)} tables")
    if sections:
        summary.append(f"{len(sections)} sections")
    return ", ".join(summary) or "No data"


def submission_issues(
    steps_data: Dict[str, Dict[str, Any]], header: Optional[Dict[str, Any]] = None
) -> List[str]:
    """
    Problems with the document information that prevent a submission.
    Values of the report header, when given, win over the stored step.
    """
    doc_info = dict(steps_data.get("document_info") or {})
    if header:
        doc_info.update({key: value for key, value in header.items() if value})
    issues = []
    if not doc_info.get("title"):
        issues.append("Report title is required")
    if not doc_info.get("projectRef"):
        issues.append("Project reference is required")
    if not doc_info.get("documentRef"):
        issues.append("Document reference is required")
    if not doc_info.get("revision"):
        issues.append("Revision is required")
    if not doc_info.get("tmId"):
        issues.append("Technical Manager must be assigned")
    return issues


def build_review(
    steps_data: Dict[str, Dict[str, Any]], header: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Review of a report's wizard data.

    :param steps_data: step documents keyed by step name
    :param header: report header fields in the document_info keys
    """
    steps = []
    for name in REVIEW_STEP_NAMES:
        data = steps_data.get(name)
        completion = step_completion(data)
        steps.append(
            {
                "stepName": name,
                "title": WIZARD_STEPS[name].title,
                "description": WIZARD_STEPS[name].description,
                "complete": completion["complete"],
                "percentage": completion["percentage"],
                "summary": data_summary(data),
            }
        )
    percentages = [step["percentage"] for step in steps]
    issues = submission_issues(steps_data, header)
    return {
        "steps": steps,
        "overall": {
            "complete": all(step["complete"] for step in steps),
            "percentage": _percent(sum(percentages) / len(percentages)),
        },
        "submissionIssues": issues,
        "canSubmit": not issues,
    }
