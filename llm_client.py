import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from config import LLMSettings
from errors import AIInvocationError, InvocationTimeoutError, MalformedResponseError, TransportError
from prompts import PromptPayload

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LLMClient:
    """Chat completions client for any OpenAI-compatible endpoint.

    One call per ``generate``; retries and deadlines belong to BoundedInvoker.
    """

    def __init__(self, settings: LLMSettings, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.timeout = timeout
        self.transport = transport

    @property
    def model(self) -> str:
        return self.settings.model

    def _payload(self, prompt: PromptPayload) -> dict:
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": prompt.system_instruction},
                {"role": "user", "content": prompt.user_content},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "response_format": {"type": "json_object"},
        }

    async def generate(self, prompt: PromptPayload) -> str:
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, base_url=self.settings.base_url,
                                         transport=self.transport) as client:
                resp = await client.post("/chat/completions", json=self._payload(prompt), headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            raise InvocationTimeoutError(f"LLM request timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"LLM endpoint returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"LLM request failed: {exc}") from exc
        except ValueError as exc:
            raise MalformedResponseError("LLM endpoint returned a non-JSON body") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError("LLM response has no completion content") from exc
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("LLM returned an empty completion")
        return content


class BoundedInvoker:
    """Runs an async call under a per-attempt deadline, retrying with linear backoff."""

    def __init__(self, timeout: float, max_attempts: int, base_delay: float,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    async def invoke(self, call: Callable[[int], Awaitable[T]]) -> T:
        """Await ``call(attempt)`` until it succeeds or attempts run out.

        ``attempt`` is 1-based. Any exception counts as a failed attempt
        (deadline expiry becomes InvocationTimeoutError); after the final
        attempt the last error is raised. Cancellation is never retried.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(call(attempt), timeout=self.timeout)
            except AIInvocationError as exc:
                last_error = exc
            except asyncio.TimeoutError:
                last_error = InvocationTimeoutError(f"AI call exceeded {self.timeout:.1f}s")
            except Exception as exc:
                last_error = exc

            if attempt < self.max_attempts:
                delay = self.base_delay * attempt
                logger.warning("AI call failed (attempt %d/%d), retrying in %.1fs: %s",
                               attempt, self.max_attempts, delay, last_error)
                await self.sleep(delay)
            else:
                logger.warning("AI call failed (attempt %d/%d), giving up: %s",
                               attempt, self.max_attempts, last_error)

        raise last_error
