import json
import logging
from typing import Any, Optional, TypeVar

from errors import MalformedResponseError
from models import LogAnalysisResult, OperationalIssue, SecurityThreat
from risk import IssueType, Severity

logger = logging.getLogger(__name__)

E = TypeVar("E", Severity, IssueType)


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object embedded in a model reply.

    Scans from the first ``{`` to its matching ``}``, skipping braces inside
    strings; falls back to the last ``}`` when the braces never balance.
    """
    if not text:
        raise MalformedResponseError("Empty model response")
    start = text.find("{")
    if start == -1:
        raise MalformedResponseError("No JSON object found in model response")

    end = _matching_brace(text, start)
    if end is None:
        end = text.rfind("}")
        if end <= start:
            raise MalformedResponseError("No JSON object found in model response")

    try:
        parsed = json.loads(text[start:end + 1])
    except ValueError as exc:
        raise MalformedResponseError(f"Model response is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Model response JSON is not an object")
    return parsed


def _matching_brace(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return pos
    return None


def coerce_enum(value: Any, enum_cls: type[E], default: E) -> E:
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted:
                return member
    return default


def coerce_text(value: Any, default: str) -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    text = str(value).strip()
    return text or default


def coerce_risk_score(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return 0
    if number != number:  # NaN
        return 0
    return int(max(0, min(100, number)))


def _entries(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    raw = data.get(key)
    if not isinstance(raw, list):
        if raw is not None:
            logger.debug("Ignoring non-list %s in model response", key)
        return []
    return [item for item in raw if isinstance(item, dict)]


def validate_analysis(data: dict[str, Any]) -> LogAnalysisResult:
    """Repair a parsed model reply into a LogAnalysisResult.

    Unknown enum values fall back to Medium severity and Info type, missing
    texts get placeholders, timestamps default to "N/A". Any totals or risk
    level the model reported are ignored and recomputed.
    """
    threats = [
        SecurityThreat(
            severity=coerce_enum(item.get("severity"), Severity, Severity.MEDIUM),
            description=coerce_text(item.get("description"), "Security threat detected"),
            recommendation=coerce_text(item.get("recommendation"), "Further investigation required"),
            timestamp=coerce_text(item.get("timestamp"), "N/A"),
            category=coerce_text(item.get("category"), "General"),
            risk_score=coerce_risk_score(item.get("riskScore")),
        )
        for item in _entries(data, "securityThreats")
    ]
    issues = [
        OperationalIssue(
            type=coerce_enum(item.get("type"), IssueType, IssueType.INFO),
            description=coerce_text(item.get("description"), "Operational issue detected"),
            recommendation=coerce_text(item.get("recommendation"), "Review and address issue"),
            timestamp=coerce_text(item.get("timestamp"), "N/A"),
            category=coerce_text(item.get("category"), "General"),
            impact=coerce_text(item.get("impact"), "Unknown impact"),
        )
        for item in _entries(data, "operationalIssues")
    ]
    return LogAnalysisResult(
        summary=coerce_text(data.get("summary"), "Analysis completed"),
        security_threats=threats,
        operational_issues=issues,
    )


def parse_analysis(text: str) -> LogAnalysisResult:
    return validate_analysis(extract_json_object(text))
