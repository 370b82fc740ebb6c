"""Completion gateway: one Gemini call with per-attempt timeout and bounded retries.

Distinguishes transient errors (timeouts, connection problems, 429/5xx,
empty answers) from permanent ones (invalid key, malformed request) so
that only the former are retried. Backoff starts at DELAY_BETWEEN_RETRIES
seconds and doubles per retry.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from doughcalc.utils.errors import ConfigurationError, EmptyResponse, UpstreamError
from doughcalc.utils.logger import logger


TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}
TRANSIENT_KEYWORDS = ["timeout", "connection", "429", "500", "503", "502", "retryable", "unavailable"]


def is_transient_error(error: Exception) -> bool:
    """Whether a failed completion call is worth retrying."""
    if isinstance(error, (asyncio.TimeoutError, EmptyResponse)):
        return True
    if isinstance(error, genai_errors.APIError):
        return error.code in TRANSIENT_STATUS_CODES
    error_str = str(error).lower()
    return any(keyword in error_str for keyword in TRANSIENT_KEYWORDS)


class CompletionGateway:
    """Wraps the external completion call.

    Args:
        api_key: Gemini API key. Required unless ``client`` is given.
        model: Gemini model id.
        temperature: Sampling temperature.
        max_output_tokens: Response length cap.
        max_retries: Total attempts, including the first one.
        initial_delay: Seconds before the first retry, doubled afterwards.
        attempt_timeout: Seconds allowed for a single attempt.
        client: Pre-built ``genai.Client`` (tests inject a mock).
        sleep: Awaitable sleep used between attempts (tests inject a no-op).
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
        max_retries: int = 2,
        initial_delay: float = 1,
        attempt_timeout: float = 20,
        client: Optional[genai.Client] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.attempt_timeout = attempt_timeout
        self._client = client
        self._sleep = sleep

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _call_once(self, prompt: str, system_instruction: str) -> str:
        """Single attempt, no retries.

        Raises:
            EmptyResponse: The model returned no text.
            asyncio.TimeoutError: The attempt exceeded ``attempt_timeout``.
        """
        generation_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
        )
        # The sync client runs in a worker thread so other requests keep flowing
        response = await asyncio.wait_for(
            asyncio.to_thread(
                self.client.models.generate_content,
                model=self.model,
                contents=prompt,
                config=generation_config,
            ),
            timeout=self.attempt_timeout,
        )
        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise EmptyResponse("Completion service returned no content")
        return text

    async def complete(self, prompt: str, system_instruction: str) -> str:
        """Call the completion service with exponential backoff retry logic.

        Args:
            prompt: User prompt.
            system_instruction: System instruction.

        Returns:
            Raw response text (not yet parsed or repaired).

        Raises:
            ConfigurationError: No API key configured.
            EmptyResponse: Every attempt came back empty.
            UpstreamError: Permanent failure, or transient failures exhausted all attempts.
        """
        # Fail before the loop so a missing key is never retried
        client = self.client
        logger.debug(f"Calling {self.model} (max {self.max_retries} attempts) via {type(client).__name__}")

        attempt = 0
        delay_seconds = self.initial_delay

        while True:
            attempt += 1
            try:
                text = await self._call_once(prompt, system_instruction)
                logger.info(f"✓ Completion received on attempt {attempt}/{self.max_retries} ({len(text)} chars)")
                return text
            except Exception as e:
                transient = is_transient_error(e)
                if transient and attempt < self.max_retries:
                    logger.warning(
                        f"Transient completion error, retrying (attempt {attempt + 1}/{self.max_retries}) "
                        f"after {delay_seconds}s: {type(e).__name__}: {e}"
                    )
                    await self._sleep(delay_seconds)
                    delay_seconds *= 2
                    continue

                # Permanent failure or last retry exhausted
                logger.warning(f"Completion failed after {attempt} attempt(s): {type(e).__name__}: {e}")
                if isinstance(e, UpstreamError):
                    raise
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
                raise UpstreamError(f"Completion service error: {reason}") from e
