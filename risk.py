from enum import Enum
from typing import Iterable


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFORMATIONAL = "Informational"


class IssueType(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"
    PERFORMANCE = "Performance"
    INFO = "Info"


class RiskLevel(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def classify_risk(threats: Iterable, issues: Iterable) -> RiskLevel:
    """Derive the overall risk level from threats (``.severity``) and issues (``.type``).

    Rules are checked in order and the first match wins:
    any Critical threat -> Critical; any High threat, more than 5 Error issues
    or more than 3 Medium threats -> High; any Medium threat, any Error issue
    or more than 3 issues -> Medium; otherwise Low.
    """
    severities = [t.severity for t in threats]
    issue_types = [i.type for i in issues]

    if Severity.CRITICAL in severities:
        return RiskLevel.CRITICAL

    high = severities.count(Severity.HIGH)
    medium = severities.count(Severity.MEDIUM)
    errors = issue_types.count(IssueType.ERROR)

    if high > 0 or errors > 5 or medium > 3:
        return RiskLevel.HIGH
    if medium > 0 or errors > 0 or len(issue_types) > 3:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
