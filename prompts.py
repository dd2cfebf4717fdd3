import json
from typing import Any, NamedTuple

from risk import IssueType, RiskLevel, Severity

SYSTEM_INSTRUCTION = (
    "You are an expert cybersecurity analyst and IT operations specialist named 'LOG SLEUTH'. "
    "Your task is to analyze system logs to identify security threats, operational issues, "
    "and anomalies. Provide a clear, concise, and actionable report as a single JSON object. "
    "If no issues are found in a category, return an empty array for it."
)

_TIMESTAMP_HINT = "The approximate timestamp from the log where the event occurred. If not available, use 'N/A'."

LOG_ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["summary", "securityThreats", "operationalIssues"],
    "properties": {
        "summary": {
            "type": "string",
            "description": "A brief, one-paragraph summary of the key findings in the logs.",
        },
        "securityThreats": {
            "type": "array",
            "description": "A list of identified security threats.",
            "items": {
                "type": "object",
                "required": ["severity", "description", "recommendation", "timestamp"],
                "properties": {
                    "severity": {"type": "string", "enum": [s.value for s in Severity]},
                    "description": {"type": "string", "description": "A detailed description of the threat."},
                    "recommendation": {
                        "type": "string",
                        "description": "An actionable recommendation to mitigate the threat.",
                    },
                    "timestamp": {"type": "string", "description": _TIMESTAMP_HINT},
                    "category": {"type": "string", "description": "Type of security threat."},
                    "riskScore": {"type": "integer", "minimum": 0, "maximum": 100},
                },
            },
        },
        "operationalIssues": {
            "type": "array",
            "description": "A list of identified operational or performance issues.",
            "items": {
                "type": "object",
                "required": ["type", "description", "recommendation", "timestamp"],
                "properties": {
                    "type": {"type": "string", "enum": [t.value for t in IssueType]},
                    "description": {"type": "string", "description": "A detailed description of the issue."},
                    "recommendation": {
                        "type": "string",
                        "description": "An actionable recommendation to resolve the issue.",
                    },
                    "timestamp": {"type": "string", "description": _TIMESTAMP_HINT},
                    "category": {"type": "string", "description": "Type of operational issue."},
                    "impact": {"type": "string", "description": "Impact of the issue."},
                },
            },
        },
        "overallRiskLevel": {"type": "string", "enum": [r.value for r in RiskLevel]},
    },
}


class PromptPayload(NamedTuple):
    system_instruction: str
    user_content: str
    output_schema: dict[str, Any]


def build_prompt(log_text: str) -> PromptPayload:
    """Render normalized log text into the request sent to the model."""
    schema_text = json.dumps(LOG_ANALYSIS_SCHEMA, indent=2, sort_keys=True)
    user_content = (
        "Analyze the following system logs and provide a report.\n\n"
        "Logs:\n---\n"
        f"{log_text}\n"
        "---\n\n"
        "Focus on security threats (failed logins, suspicious activity, potential attacks), "
        "operational issues (errors, warnings, performance problems), patterns and anomalies.\n"
        "Respond with one JSON object that conforms to this JSON Schema:\n"
        f"{schema_text}"
    )
    return PromptPayload(SYSTEM_INSTRUCTION, user_content, LOG_ANALYSIS_SCHEMA)
