"""Claude Agent SDK wrapper with classified errors."""

import asyncio
import logging
import os
import re
from typing import Optional

from claude_agent_sdk import (
    query,
    ClaudeAgentOptions,
    ResultMessage,
    AssistantMessage,
)

from config.settings import Settings
from config.exceptions import (
    LLMError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMServerError,
    LLMTimeoutError,
)
from tools.json_parsing import parse_json_array, parse_json_response

logger = logging.getLogger(__name__)

# Allow launching Agent SDK even when running inside a Claude Code session.
# The SDK checks for this env var and refuses to start if set.
os.environ.pop("CLAUDECODE", None)

_RATE_LIMIT_RE = re.compile(r"\b429\b|rate[ _-]?limit|too many requests", re.IGNORECASE)
_SERVER_ERROR_RE = re.compile(r"\b(5\d\d)\b|overloaded|server[ _]error|bad gateway|unavailable", re.IGNORECASE)


def classify_error(text: str) -> LLMError:
    """Map an error description to the matching LLMError subclass.

    Unrecognized descriptions yield a bare (unclassified) LLMError.
    """
    if _RATE_LIMIT_RE.search(text):
        return LLMRateLimitError(text[:200])
    match = _SERVER_ERROR_RE.search(text)
    if match:
        status = int(match.group(1)) if match.group(1) else None
        return LLMServerError(text[:200], status_code=status)
    return LLMError(text[:200])


def _classify_assistant_error(code: str) -> LLMError:
    if code == "rate_limit":
        return LLMRateLimitError(f"Assistant error: {code}")
    if code == "server_error":
        return LLMServerError(f"Assistant error: {code}")
    return LLMError(f"Assistant error: {code}")


class AgentSDKClient:
    """Claude Agent SDK wrapper used by every generation collaborator.

    Uses claude_agent_sdk.query() for all LLM interactions and converts
    failures into the classified LLMError subclasses.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
    ) -> str:
        """Send a request and return the text result.

        Args:
            system_prompt: System message guiding the model's behavior.
            user_prompt: User message content.
            model: Model name override. Defaults to writing model.

        Returns:
            The model's text response.

        Raises:
            LLMRateLimitError, LLMServerError: Classified service faults.
            LLMTimeoutError: No result within settings.request_timeout.
            LLMResponseParseError: Empty response body.
            LLMError: Any other failure.
        """
        model = model or self.settings.llm_model_writing
        logger.debug("AgentSDK call: model=%s", model)

        result_text = ""
        assistant_error: Optional[str] = None
        result_error: Optional[str] = None
        try:
            async with asyncio.timeout(self.settings.request_timeout):
                # Exhaust the generator fully: leaving the async for early trips
                # the SDK's internal cancel scopes.
                async for message in query(
                    prompt=user_prompt,
                    options=ClaudeAgentOptions(
                        system_prompt=system_prompt,
                        model=model,
                        max_turns=1,
                    ),
                ):
                    if isinstance(message, ResultMessage):
                        if message.is_error:
                            result_error = message.result or message.subtype or "error result"
                            continue
                        result_text = message.result or ""
                        logger.debug(
                            "AgentSDK result: %d chars, cost=$%s",
                            len(result_text),
                            message.total_cost_usd,
                        )
                    elif isinstance(message, AssistantMessage):
                        code = getattr(message, "error", None)
                        if code:
                            assistant_error = code
                            continue
                        for block in message.content:
                            text = getattr(block, "text", None)
                            if text and not result_text:
                                result_text = text
        except TimeoutError as e:
            raise LLMTimeoutError(
                f"No response within {self.settings.request_timeout:.0f}s"
            ) from e
        except Exception as e:
            raise classify_error(f"Agent SDK query failed: {e}") from e

        if result_error:
            raise classify_error(result_error)

        if assistant_error and not result_text:
            raise _classify_assistant_error(assistant_error)

        if not result_text.strip():
            logger.warning("AgentSDK returned no content")
            raise LLMResponseParseError("Empty response body")

        return result_text

    async def chat_json(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
    ) -> dict:
        """Send a request and parse the response as a JSON object.

        Raises:
            LLMResponseParseError: If response cannot be parsed as JSON.
        """
        text = await self.chat(system_prompt, user_prompt, model)
        try:
            return parse_json_response(text)
        except ValueError as e:
            raise LLMResponseParseError(str(e), raw_response=text) from e

    async def chat_json_list(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        key: str = "",
    ) -> list:
        """Send a request and parse the response as a JSON array.

        Raises:
            LLMResponseParseError: If response cannot be parsed as a JSON array.
        """
        text = await self.chat(system_prompt, user_prompt, model)
        try:
            return parse_json_array(text, key=key)
        except ValueError as e:
            raise LLMResponseParseError(str(e), raw_response=text) from e

