"""
LLM Client with Retry Logic & Error Handling
Provides resilient model execution with exponential backoff.
"""
import asyncio
import random
import time
from typing import Any, Callable, TypeVar
from loguru import logger
from pydantic_ai import Agent
from src.config import Settings, get_settings
from src.utils.observability import log_llm_call

# Type variable for generic agent output
T = TypeVar('T')


class LLMError(Exception):
    """Recoverable LLM errors that should trigger retries."""
    pass


class LLMCriticalError(Exception):
    """Non-recoverable errors (auth failure, invalid prompt, etc.)."""
    pass


def _classify(error: Exception) -> str:
    """Bucket an agent exception by its message."""
    error_msg = str(error).lower()

    if "authentication" in error_msg or "api key" in error_msg or "401" in error_msg:
        return "auth"
    if "invalid" in error_msg and "request" in error_msg:
        return "invalid_request"
    if ("rate" in error_msg and "limit" in error_msg) or "429" in error_msg:
        return "rate_limit"
    if "overloaded" in error_msg or "529" in error_msg:
        return "overloaded"
    if "timeout" in error_msg or "timed out" in error_msg:
        return "timeout"
    if any(code in error_msg for code in ["500", "502", "503", "504"]):
        return "server_error"
    return "unknown"


async def run_agent_with_retry(
    agent: Agent,
    prompt: str,
    deps: Any = None,
    max_retries: int | None = None,
    sleep: Callable[[float], Any] = asyncio.sleep,
    settings: Settings | None = None,
) -> T:
    """
    Executes an agent with exponential backoff retry logic.

    Args:
        agent: The PydanticAI agent to run
        prompt: The prompt to send to the agent
        deps: Optional dependencies for the agent
        max_retries: Override default retry count from settings
        sleep: Awaitable used between attempts (tests pass a no-op)
        settings: Retry budget and model name; the cached process settings when omitted

    Returns:
        The agent's output (typed based on agent's output_type)

    Raises:
        LLMCriticalError: For non-recoverable failures
        LLMError: After max retries exhausted

    Example:
        >>> agent = build_analysis_agent(settings)
        >>> reply = await run_agent_with_retry(agent, "Score this idea")
    """
    settings = settings or get_settings()
    max_attempts = max_retries or settings.max_retries
    min_wait = settings.retry_min_wait_seconds
    max_wait = settings.retry_max_wait_seconds
    model_name = settings.analysis_model

    last_error = None

    for attempt in range(1, max_attempts + 1):
        started = time.perf_counter()
        try:
            logger.debug(f"LLM attempt {attempt}/{max_attempts}")

            if deps is not None:
                result = await agent.run(prompt, deps=deps)
            else:
                result = await agent.run(prompt)

            log_llm_call(
                model_name,
                (time.perf_counter() - started) * 1000,
                attempt=attempt,
                prompt_chars=len(prompt),
            )
            return result.output

        except Exception as e:
            last_error = e
            error_type = _classify(e)
            log_llm_call(
                model_name,
                (time.perf_counter() - started) * 1000,
                success=False,
                error=str(e),
                attempt=attempt,
                error_type=error_type,
            )

            if error_type == "auth":
                logger.error(f"🚨 Authentication failure: {e}")
                raise LLMCriticalError(f"Authentication failed: {e}") from e

            if error_type == "invalid_request":
                logger.error(f"🚨 Invalid request: {e}")
                raise LLMCriticalError(f"Invalid request: {e}") from e

            if attempt == max_attempts:
                logger.error(f"❌ Max retries ({max_attempts}) exhausted. Last error: {e}")
                raise LLMError(f"Failed after {max_attempts} attempts: {e}") from e

            # Exponential backoff with 20% jitter
            wait_time = min(min_wait * (2 ** (attempt - 1)), max_wait)
            wait_time = wait_time * (0.8 + 0.4 * random.random())

            logger.info(f"⏳ Retrying in {wait_time:.1f}s... (error: {error_type})")
            await sleep(wait_time)

    raise LLMError(f"Unexpected retry loop exit. Last error: {last_error}")
