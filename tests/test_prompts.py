import json

from prompts import LOG_ANALYSIS_SCHEMA, SYSTEM_INSTRUCTION, build_prompt


def test_payload_is_deterministic():
    assert build_prompt("ERROR boom") == build_prompt("ERROR boom")


def test_log_is_embedded_between_delimiters():
    payload = build_prompt("line one\nline two")
    assert payload.system_instruction == SYSTEM_INSTRUCTION
    assert "---\nline one\nline two\n---" in payload.user_content


def test_schema_lists_enums():
    threat = LOG_ANALYSIS_SCHEMA["properties"]["securityThreats"]["items"]["properties"]
    issue = LOG_ANALYSIS_SCHEMA["properties"]["operationalIssues"]["items"]["properties"]
    assert threat["severity"]["enum"] == ["Critical", "High", "Medium", "Low", "Informational"]
    assert issue["type"]["enum"] == ["Error", "Warning", "Performance", "Info"]


def test_schema_is_serialized_into_user_content():
    payload = build_prompt("x")
    assert json.dumps(LOG_ANALYSIS_SCHEMA, indent=2, sort_keys=True) in payload.user_content
    assert payload.output_schema is LOG_ANALYSIS_SCHEMA
