import re

from models import LogAnalysisResult, OperationalIssue, SecurityThreat
from risk import IssueType, Severity

EXCERPT_CHARS = 100


class KeywordFallbackAnalyzer:
    """Deterministic keyword scan used when the AI path is unavailable.

    Produces the same LogAnalysisResult shape as the AI path; the summary
    always starts with "Fallback analysis" so degraded results are visible.
    """

    def __init__(self, max_errors: int = 3, max_warnings: int = 2, max_security: int = 3):
        self.keyword_rules = {
            "error": re.compile(r"error|fail|exception|crash|abort", re.I),
            "warning": re.compile(r"warn|caution", re.I),
            "security": re.compile(r"login|auth|unauthorized|forbidden|attack|breach|hack|intrusion", re.I),
        }
        self.max_errors = max_errors
        self.max_warnings = max_warnings
        self.max_security = max_security

    def analyze(self, log_text: str) -> LogAnalysisResult:
        lines = log_text.split("\n")
        matches = {name: [line for line in lines if pattern.search(line)]
                   for name, pattern in self.keyword_rules.items()}
        errors, warnings, security = matches["error"], matches["warning"], matches["security"]

        threats = [
            SecurityThreat(
                severity=Severity.MEDIUM,
                description=f"Potential security event detected: {_excerpt(line)}",
                recommendation="Review this log entry for potential security implications",
                timestamp="N/A",
                category="Security Event",
                risk_score=50,
            )
            for line in security[:self.max_security]
        ]
        issues = [
            OperationalIssue(
                type=IssueType.ERROR,
                description=f"Error detected: {_excerpt(line)}",
                recommendation="Investigate and resolve this error",
                timestamp="N/A",
                category="System Error",
                impact="May affect system functionality",
            )
            for line in errors[:self.max_errors]
        ]
        issues += [
            OperationalIssue(
                type=IssueType.WARNING,
                description=f"Warning detected: {_excerpt(line)}",
                recommendation="Monitor this warning for potential issues",
                timestamp="N/A",
                category="System Warning",
                impact="Potential performance impact",
            )
            for line in warnings[:self.max_warnings]
        ]

        summary = (
            "Fallback analysis completed (AI analysis unavailable). "
            f"Found {len(errors)} errors, {len(warnings)} warnings, and {len(security)} "
            f"potential security events in {len(lines)} log lines."
        )
        return LogAnalysisResult(summary=summary, security_threats=threats, operational_issues=issues)


def _excerpt(line: str) -> str:
    if len(line) <= EXCERPT_CHARS:
        return line
    return line[:EXCERPT_CHARS] + "..."
