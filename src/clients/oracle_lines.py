"""
Oracle line registry.

Holds one base session per ``OracleLine`` behind a single adapter. Callers
pick a line by tag; each prompt runs on a fresh clone of that line's base
session, wrapped in the retry policy.
"""

from typing import Any, Callable, Dict, Optional, TypeVar

from src.clients.oracle import (
    AbortSignal,
    EngineNotInitialized,
    LanguageModelSession,
    OracleAdapter,
    OracleLine,
    SessionConfig,
)
from src.utils.oracle_retry import RetryPolicy, prompt_json_with_retry
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar('T')


class OracleLines:
    """Base sessions for every line, keyed by line tag."""

    def __init__(
        self,
        adapter: OracleAdapter,
        retry_policy: Optional[RetryPolicy] = None,
        signal: Optional[AbortSignal] = None
    ):
        self.adapter = adapter
        self.retry_policy = retry_policy or RetryPolicy()
        self.signal = signal
        self._sessions: Dict[OracleLine, LanguageModelSession] = {}

    def is_open(self, line: OracleLine) -> bool:
        return line in self._sessions

    async def open(self, config: SessionConfig) -> None:
        """Create the base session for ``config.line`` (no-op if already open)."""
        if config.line in self._sessions:
            return
        self._sessions[config.line] = await self.adapter.create_session(config, self.signal)
        logger.debug(f"Opened oracle line: {config.line.value}")

    async def prompt_json(
        self,
        line: OracleLine,
        text: str,
        schema: Dict[str, Any],
        validate: Optional[Callable[[Any], T]] = None,
        operation_name: Optional[str] = None
    ) -> T:
        """
        Prompt one line on a fresh clone and return the validated JSON reply.

        Raises:
            EngineNotInitialized: If the line was never opened
            ClassificationFailed: If all retry attempts failed
            OperationAborted: If the shared abort signal fired
        """
        base = self._sessions.get(line)
        if base is None:
            raise EngineNotInitialized(f"Oracle line '{line.value}' is not open")

        async def prompt_on_clone() -> str:
            session = await base.clone()
            try:
                return await session.prompt_constrained(text, schema)
            finally:
                session.destroy()

        return await prompt_json_with_retry(
            prompt_on_clone,
            validate=validate,
            policy=self.retry_policy,
            operation_name=operation_name or f"{line.value} prompt",
        )

    def destroy(self) -> None:
        for session in self._sessions.values():
            session.destroy()
        self._sessions.clear()
