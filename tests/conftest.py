import asyncio
import json

import pytest

from config import AnalysisConfig


class ScriptedGenerator:
    """Returns (or raises) scripted replies in order; the last one repeats."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies[min(len(self.prompts), len(self.replies)) - 1]
        if isinstance(reply, BaseException):
            raise reply
        return reply


class HangingGenerator:
    def __init__(self):
        self.calls = 0

    async def generate(self, prompt):
        self.calls += 1
        await asyncio.sleep(10)
        return "{}"


def ai_reply(**fields):
    body = {"summary": "Two findings.", "securityThreats": [], "operationalIssues": []}
    body.update(fields)
    return json.dumps(body)


@pytest.fixture
def fast_config():
    return AnalysisConfig(max_chars=50_000, timeout=0.05, max_retries=2, base_delay=0)
