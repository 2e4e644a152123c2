"""
Thin async wrapper around the OpenAI chat completions API.

Briefs, client answers and review grading all go through here. Failures
of any kind come out as ProviderFailure so callers only ever handle one
error type from the AI service.
"""

import json
import math
import logging
import re
import time
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from config.settings import config_manager
from .error_handler import error_handler, ProviderFailure, RetryConfig

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


JSON_INSTRUCTION = "\n\nResponse must be valid JSON only. No markdown formatting."
_CODE_FENCE = re.compile(r"```(?:json)?\n?|\n?```")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _CODE_FENCE.sub("", text).strip()


def is_finite_number(value: Any) -> bool:
    """Whether a decoded JSON value is a real number other than NaN or infinity."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not isinstance(value, float) or math.isfinite(value)


class OpenAIChatClient:
    """
    Sends single-prompt chat requests and returns text or parsed JSON.
    """

    def __init__(self, api_key: str, model_name: Optional[str] = None,
                 temperature: Optional[float] = None, timeout: Optional[float] = None,
                 retry_config: Optional[RetryConfig] = None, client: Optional[AsyncOpenAI] = None):
        """
        Initialize the chat client.

        Args:
            api_key: OpenAI API key
            model_name: Model to use; defaults to the configured model
            temperature: Sampling temperature; defaults to the configured value
            timeout: Per-request timeout in seconds
            retry_config: Retry policy for transient failures
            client: Pre-built AsyncOpenAI client (for testing)
        """
        config = config_manager.load_config()
        self.model_name = model_name or config.model_name
        self.temperature = config.temperature if temperature is None else temperature
        self.timeout = timeout or config.request_timeout_seconds
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0)
        self.client = client or AsyncOpenAI(api_key=api_key)
        logger.info(f"OpenAI chat client ready (model {self.model_name})")

    async def complete_text(self, prompt: str, context: str = "text completion") -> str:
        """
        Request a free-text reply.

        Raises:
            ProviderFailure: If the call fails or the reply is empty
        """
        content = await self._request(prompt, json_mode=False, context=context)
        text = content.strip()
        if not text:
            raise ProviderFailure(f"Empty reply in {context}")
        return text

    async def complete_json(self, prompt: str, context: str = "json completion") -> Dict[str, Any]:
        """
        Request a JSON object reply.

        Raises:
            ProviderFailure: If the call fails or the reply is not a JSON object
        """
        content = await self._request(prompt + JSON_INSTRUCTION, json_mode=True, context=context)
        cleaned = strip_code_fences(content)

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON reply in {context}: {cleaned[:500]}...")
            raise ProviderFailure(f"Invalid JSON reply in {context}: {str(e)}")

        if not isinstance(parsed, dict):
            raise ProviderFailure(f"Reply in {context} is not a JSON object")

        return parsed

    async def _request(self, prompt: str, json_mode: bool, context: str) -> str:
        async def call_openai():
            return await self._call_openai_api(prompt, json_mode)

        start_time = time.time()
        success, content, error_info = await error_handler.retry_with_backoff(
            call_openai, self.retry_config, context
        )

        if not success:
            error_handler.log_error(error_info, context)
            raise ProviderFailure(error_info.message, error_info=error_info,
                                  retry_possible=error_info.retry_possible)

        logger.info(f"OpenAI call for {context} finished in {time.time() - start_time:.2f}s")
        return content

    async def _call_openai_api(self, prompt: str, json_mode: bool) -> str:
        kwargs = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "timeout": self.timeout,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)

        if not response.choices:
            raise ValueError("OpenAI returned empty response")

        content = response.choices[0].message.content
        if not content:
            raise ValueError("OpenAI returned empty content")

        return content
