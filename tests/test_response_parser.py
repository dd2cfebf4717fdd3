import json

import pytest

from errors import MalformedResponseError
from models import LogAnalysisResult
from response_parser import coerce_risk_score, extract_json_object, parse_analysis, validate_analysis
from risk import IssueType, RiskLevel, Severity


def test_extracts_object_surrounded_by_prose():
    text = 'Sure! Here is the report:\n{"summary": "fine", "nested": {"a": 1}}\nLet me know if {more} helps.'
    assert extract_json_object(text) == {"summary": "fine", "nested": {"a": 1}}


def test_braces_inside_strings_do_not_end_the_object():
    text = '```json\n{"summary": "saw } and { in \\"quotes\\"", "securityThreats": []}\n```'
    assert extract_json_object(text)["summary"] == 'saw } and { in "quotes"'


@pytest.mark.parametrize("text", [
    "",
    "no json here at all",
    "{ this is not json }",
    '["a", "list"]',
    '{"summary": "unterminated"',
])
def test_malformed_replies(text):
    with pytest.raises(MalformedResponseError):
        extract_json_object(text)


def test_enum_values_are_coerced_with_documented_defaults():
    result = validate_analysis({
        "summary": "s",
        "securityThreats": [
            {"severity": "critical", "description": "d", "recommendation": "r"},
            {"severity": "apocalyptic", "description": "d", "recommendation": "r"},
            {"description": "d", "recommendation": "r"},
        ],
        "operationalIssues": [
            {"type": " warning ", "description": "d", "recommendation": "r"},
            {"type": "Disaster", "description": "d", "recommendation": "r"},
        ],
    })
    assert [t.severity for t in result.security_threats] == [Severity.CRITICAL, Severity.MEDIUM, Severity.MEDIUM]
    assert [i.type for i in result.operational_issues] == [IssueType.WARNING, IssueType.INFO]


def test_missing_texts_get_placeholders():
    result = validate_analysis({"securityThreats": [{}], "operationalIssues": [{"timestamp": ""}]})
    threat = result.security_threats[0]
    issue = result.operational_issues[0]
    assert result.summary == "Analysis completed"
    assert threat.description == "Security threat detected"
    assert threat.recommendation == "Further investigation required"
    assert threat.timestamp == "N/A"
    assert threat.category == "General"
    assert threat.risk_score == 0
    assert issue.description == "Operational issue detected"
    assert issue.recommendation == "Review and address issue"
    assert issue.timestamp == "N/A"
    assert issue.impact == "Unknown impact"


@pytest.mark.parametrize("value, expected", [
    (42, 42), (150, 100), (-5, 0), ("85", 85), (72.9, 72), ("high", 0), (None, 0), (True, 0),
    (float("inf"), 100), (float("nan"), 0),
])
def test_risk_score_clamped(value, expected):
    assert coerce_risk_score(value) == expected


def test_upstream_totals_and_risk_are_ignored():
    reply = json.dumps({
        "summary": "one critical",
        "securityThreats": [{"severity": "Critical", "description": "root shell", "recommendation": "isolate",
                             "timestamp": "2024-01-01T00:00:00Z"}],
        "operationalIssues": [],
        "totalThreats": 7,
        "totalIssues": 3,
        "overallRiskLevel": "Low",
    })
    result = parse_analysis(reply)
    assert result.total_threats == 1
    assert result.total_issues == 0
    assert result.overall_risk_level is RiskLevel.CRITICAL
    dumped = result.model_dump(by_alias=True, mode="json")
    assert dumped["totalThreats"] == 1
    assert dumped["overallRiskLevel"] == "Critical"


def test_non_list_sections_and_non_object_entries_are_dropped():
    result = validate_analysis({
        "summary": "x",
        "securityThreats": "none",
        "operationalIssues": ["oops", {"type": "Error", "description": "d", "recommendation": "r"}],
    })
    assert result.security_threats == ()
    assert len(result.operational_issues) == 1
    assert result.overall_risk_level is RiskLevel.MEDIUM


def test_result_is_immutable():
    result = validate_analysis({"summary": "x"})
    assert isinstance(result, LogAnalysisResult)
    with pytest.raises(Exception):
        result.summary = "changed"
