import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol

from config import AnalysisConfig
from fallback import KeywordFallbackAnalyzer
from llm_client import BoundedInvoker
from models import AnalysisMetadata, AnalysisReport, LogAnalysisResult
from preprocess import normalize_log_text
from prompts import PromptPayload, build_prompt
from response_parser import parse_analysis

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: PromptPayload) -> str: ...


class LogAnalysisPipeline:
    """Normalize -> prompt -> bounded AI call -> validate, or keyword fallback.

    Holds no per-request state, so one instance can serve concurrent analyses.
    Only EmptyInputError escapes ``run``/``analyze``; any AI failure degrades to
    the fallback result.
    """

    def __init__(self, config: AnalysisConfig, generator: Optional[TextGenerator] = None,
                 fallback: Optional[KeywordFallbackAnalyzer] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config
        self.generator = generator
        self.fallback = fallback or KeywordFallbackAnalyzer()
        self.invoker = BoundedInvoker(
            timeout=config.timeout,
            max_attempts=config.max_retries,
            base_delay=config.base_delay,
            sleep=sleep,
        )

    async def analyze(self, raw_text: str) -> LogAnalysisResult:
        report = await self.run(raw_text)
        return report.result

    async def run(self, raw_text: str) -> AnalysisReport:
        start = time.perf_counter()
        text = normalize_log_text(raw_text, self.config.max_chars)

        attempts = 0
        result: Optional[LogAnalysisResult] = None
        if self.generator is None:
            logger.warning("AI analysis disabled (no API key); using keyword fallback")
        else:
            prompt = build_prompt(text)

            async def attempt_once(attempt: int) -> LogAnalysisResult:
                nonlocal attempts
                attempts = attempt
                reply = await self.generator.generate(prompt)
                return parse_analysis(reply)

            try:
                result = await self.invoker.invoke(attempt_once)
            except Exception as exc:
                logger.warning("AI analysis failed after %d attempt(s), using keyword fallback: %s",
                               attempts, exc)

        mode = "ai"
        if result is None:
            mode = "fallback"
            result = self.fallback.analyze(text)

        metadata = AnalysisMetadata(
            processing_time=round((time.perf_counter() - start) * 1000, 2),
            log_size=len(raw_text),
            lines_analyzed=text.count("\n") + 1,
            mode=mode,
            attempts=attempts,
        )
        return AnalysisReport(result=result, metadata=metadata)
