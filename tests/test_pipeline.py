import asyncio

import pytest

from config import AnalysisConfig
from conftest import HangingGenerator, ScriptedGenerator, ai_reply
from errors import EmptyInputError, TransportError
from pipeline import LogAnalysisPipeline
from risk import RiskLevel, classify_risk

SAMPLE_LOG = "2024-01-01 10:00:00 ERROR db: connection refused\n2024-01-01 10:00:01 sshd: login failed for root"


def run(pipeline, text):
    return asyncio.run(pipeline.run(text))


def test_ai_result_is_returned_with_recomputed_fields(fast_config):
    reply = ai_reply(
        securityThreats=[{"severity": "Critical", "description": "rootkit", "recommendation": "rebuild host",
                          "timestamp": "10:00:01"}],
        overallRiskLevel="Low",
        totalThreats=0,
    )
    report = run(LogAnalysisPipeline(fast_config, ScriptedGenerator(reply)), SAMPLE_LOG)

    assert report.metadata.mode == "ai"
    assert report.metadata.attempts == 1
    assert report.result.summary == "Two findings."
    assert report.result.total_threats == 1
    assert report.result.overall_risk_level is RiskLevel.CRITICAL


def test_prompt_carries_normalized_text(fast_config):
    generator = ScriptedGenerator(ai_reply())
    run(LogAnalysisPipeline(fast_config, generator), "  alpha  \n\n  beta ")
    assert "---\nalpha\nbeta\n---" in generator.prompts[0].user_content


def test_empty_input_never_reaches_the_model(fast_config):
    generator = ScriptedGenerator(ai_reply())
    with pytest.raises(EmptyInputError):
        run(LogAnalysisPipeline(fast_config, generator), " \n\t\n")
    assert generator.prompts == []


def test_timeouts_exhaust_retries_then_fall_back(fast_config):
    generator = HangingGenerator()
    report = run(LogAnalysisPipeline(fast_config, generator), SAMPLE_LOG)

    assert generator.calls == 2
    assert report.metadata.mode == "fallback"
    assert report.metadata.attempts == 2
    assert "Fallback" in report.result.summary


def test_non_json_reply_is_retried_then_falls_back(fast_config):
    generator = ScriptedGenerator("I cannot help with that.")
    report = run(LogAnalysisPipeline(fast_config, generator), SAMPLE_LOG)

    assert len(generator.prompts) == 2
    assert report.metadata.mode == "fallback"
    assert report.result.total_issues == 2
    assert report.result.total_threats == 1


def test_recovers_on_second_attempt(fast_config):
    generator = ScriptedGenerator(TransportError("502"), ai_reply(summary="recovered"))
    report = run(LogAnalysisPipeline(fast_config, generator), SAMPLE_LOG)
    assert report.metadata.mode == "ai"
    assert report.metadata.attempts == 2
    assert report.result.summary == "recovered"


def test_backoff_uses_base_delay():
    delays = []

    async def sleep(delay):
        delays.append(delay)

    config = AnalysisConfig(timeout=1, max_retries=3, base_delay=2.0)
    pipeline = LogAnalysisPipeline(config, ScriptedGenerator(TransportError("down")), sleep=sleep)
    run(pipeline, SAMPLE_LOG)
    assert delays == [2.0, 4.0]


def test_without_generator_uses_fallback_directly(fast_config):
    report = run(LogAnalysisPipeline(fast_config), SAMPLE_LOG)
    assert report.metadata.mode == "fallback"
    assert report.metadata.attempts == 0


def test_metadata_describes_input(fast_config):
    raw = "a\n\nb\nc\n"
    report = run(LogAnalysisPipeline(fast_config), raw)
    assert report.metadata.log_size == len(raw)
    assert report.metadata.lines_analyzed == 3
    assert report.metadata.processing_time >= 0


@pytest.mark.parametrize("reply", [
    ai_reply(),
    ai_reply(operationalIssues=[{"type": "Error"}] * 6),
    ai_reply(securityThreats=[{"severity": "Medium"}] * 4, operationalIssues=[{"type": "Info"}] * 2),
    "not json",
])
def test_totals_and_risk_always_match_lists(fast_config, reply):
    result = asyncio.run(LogAnalysisPipeline(fast_config, ScriptedGenerator(reply)).analyze(SAMPLE_LOG))
    assert result.total_threats == len(result.security_threats)
    assert result.total_issues == len(result.operational_issues)
    assert result.overall_risk_level is classify_risk(result.security_threats, result.operational_issues)


@pytest.mark.parametrize("error", [ConnectionResetError("peer reset"), OSError("network down"), KeyError("choices")])
def test_foreign_generator_errors_fall_back(fast_config, error):
    generator = ScriptedGenerator(error)
    report = run(LogAnalysisPipeline(fast_config, generator), "ERROR db down")

    assert len(generator.prompts) == 2
    assert report.metadata.mode == "fallback"
    assert report.metadata.attempts == 2
    assert report.result.summary.startswith("Fallback analysis")


def test_foreign_error_then_success_recovers(fast_config):
    generator = ScriptedGenerator(OSError("reset"), ai_reply(summary="second try"))
    report = run(LogAnalysisPipeline(fast_config, generator), SAMPLE_LOG)
    assert report.metadata.mode == "ai"
    assert report.result.summary == "second try"
