"""
Oracle Retry Utility with Exponential Backoff

The oracle is non-deterministic and occasionally returns malformed structured
output, so every oracle call goes through ``call_with_retry``.
``prompt_json_with_retry`` additionally treats JSON-parse and validation
failures as retryable and reports exhaustion as ``ClassificationFailed``.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from config.settings import Settings
from src.clients.oracle import ClassificationFailed, OperationAborted
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar('T')


class RetryPolicy(BaseModel):
    """Backoff parameters. Delays are in seconds."""
    max_attempts: int = Field(3, ge=1)
    initial_delay: float = Field(0.1, ge=0.0)
    max_delay: float = Field(2.0, ge=0.0)
    backoff_multiplier: float = Field(2.0, ge=1.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY_MS / 1000.0,
            max_delay=settings.RETRY_MAX_DELAY_MS / 1000.0,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
    backoff_multiplier: float = 2.0,
    operation_name: str = "Oracle call"
) -> T:
    """
    Call async function with exponential backoff retry.

    Args:
        func: Async function to call (should be a lambda or callable)
        max_attempts: Total number of attempts (default: 3)
        initial_delay: Delay before the first retry in seconds (default: 0.1)
        max_delay: Upper bound for the delay in seconds (default: 2.0)
        backoff_multiplier: Factor applied to the delay after each retry (default: 2)
        operation_name: Description of operation for logging

    Returns:
        Result from successful function call

    Raises:
        OperationAborted: Immediately, never retried
        Exception: The last error once all attempts are exhausted
    """
    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            result = await func()

            if attempt > 1:
                logger.info(f"✅ {operation_name} succeeded on attempt {attempt}/{max_attempts}")

            return result

        except OperationAborted:
            raise

        except Exception as e:
            if attempt >= max_attempts:
                logger.error(f"❌ {operation_name} failed after {max_attempts} attempts: {e}")
                raise

            logger.warning(
                f"⚠️  {operation_name} failed (attempt {attempt}/{max_attempts}): {e}. "
                f"Retrying in {delay * 1000:.0f}ms..."
            )

            await asyncio.sleep(delay)
            delay = min(delay * backoff_multiplier, max_delay)

    raise RuntimeError(f"{operation_name}: max_attempts must be at least 1")


def parse_json_response(raw: str) -> Any:
    """Parse an oracle reply, keeping a prefix of bad output in the error."""
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        preview = (raw or "")[:100]
        raise ValueError(f"Failed to parse JSON response: {preview}") from e


async def prompt_json_with_retry(
    prompt_fn: Callable[[], Awaitable[str]],
    validate: Optional[Callable[[Any], T]] = None,
    policy: Optional[RetryPolicy] = None,
    operation_name: str = "Oracle prompt"
) -> T:
    """
    Prompt the oracle, parse the reply as JSON and validate it, with retries.

    Args:
        prompt_fn: Issues one prompt and returns the raw reply
        validate: Converts parsed JSON into the caller's type; raising retries
        policy: Backoff parameters (defaults to RetryPolicy())
        operation_name: Description of operation for logging

    Returns:
        Validated result

    Raises:
        OperationAborted: If the shared abort signal fired
        ClassificationFailed: If all attempts failed
    """
    policy = policy or RetryPolicy()

    async def attempt():
        parsed = parse_json_response(await prompt_fn())
        return validate(parsed) if validate else parsed

    try:
        return await call_with_retry(
            attempt,
            max_attempts=policy.max_attempts,
            initial_delay=policy.initial_delay,
            max_delay=policy.max_delay,
            backoff_multiplier=policy.backoff_multiplier,
            operation_name=operation_name,
        )
    except OperationAborted:
        raise
    except Exception as e:
        raise ClassificationFailed(operation_name, e) from e
