"""
Oracle Port

Contract over an external, non-deterministic text-generation service.

A session is created from a ``SessionConfig`` (system prompt plus few-shot
examples) and prompted with a JSON-Schema response constraint; it returns a
string that should parse as JSON matching that schema. Sessions are cheap to
clone, and every per-utterance call runs on a fresh clone so that no
conversational history accumulates on a line.

Concrete adapters live in ``src.clients.pydantic_ai_oracle``; tests provide
scripted adapters.
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Errors
# ============================================================================

class OracleError(Exception):
    """Base class for oracle failures."""


class ClassificationFailed(OracleError):
    """Retries exhausted, or the oracle kept returning unusable output."""

    def __init__(self, operation: str, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"{operation} failed{detail}")


class SessionDestroyedError(OracleError):
    """Prompted a session handle after ``destroy()``."""


class OperationAborted(OracleError):
    """The shared abort signal fired while a call was pending."""


class EngineNotInitialized(RuntimeError):
    """An engine or generator was used before ``initialize()``."""


# ============================================================================
# Session configuration
# ============================================================================

class OracleLine(str, Enum):
    """Independent session lines, one per classification or generation purpose."""
    PAUSED = "paused"
    RUNNING = "running"
    DIAGRAM = "diagram"
    SUBJECT_CHANGE_INTENT = "subject_change_intent"
    SUBJECT_TITLE = "subject_title"
    DIAGRAM_TITLE = "diagram_title"
    SINGLE_BULLET_POINT = "single_bullet_point"
    MULTIPLE_BULLET_POINTS = "multiple_bullet_points"
    DIAGRAM_EXTRACTION = "diagram_extraction"


class PromptExample(BaseModel):
    """One few-shot user/assistant exchange seeded into a base session."""
    user: str = Field(..., description="Example user prompt")
    assistant: str = Field(..., description="Expected JSON reply")


class SessionConfig(BaseModel):
    """Everything needed to create a base session for one line."""
    line: OracleLine
    system_prompt: str
    examples: List[PromptExample] = Field(default_factory=list)
    temperature: Optional[float] = Field(None, description="None uses the model default")


# ============================================================================
# Cancellation
# ============================================================================

class AbortSignal:
    """
    Shared cancellation signal for every in-flight oracle call of one session.

    Fired once when the owning session is torn down (e.g. recording stopped).
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = "aborted") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise OperationAborted(self.reason or "aborted")


# ============================================================================
# Session and adapter contracts
# ============================================================================

class LanguageModelSession(ABC):
    """
    Handle to one oracle session.

    Subclasses implement ``_prompt`` and ``clone``. ``prompt_constrained``
    layers the destroyed-state check and abort handling on top.
    """

    def __init__(self, config: SessionConfig, signal: Optional[AbortSignal] = None):
        self.config = config
        self.signal = signal
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def prompt_constrained(self, text: str, schema: Dict[str, Any]) -> str:
        """
        Prompt the session and return its raw reply.

        Args:
            text: User prompt
            schema: JSON-Schema the reply must conform to

        Returns:
            Raw reply string (expected to parse as JSON matching ``schema``)

        Raises:
            SessionDestroyedError: If the session was destroyed
            OperationAborted: If the abort signal fires before the reply arrives
        """
        if self._destroyed:
            raise SessionDestroyedError(f"Session for line '{self.config.line.value}' was destroyed")

        if self.signal is None:
            return await self._prompt(text, schema)

        self.signal.raise_if_aborted()

        prompt_task = asyncio.ensure_future(self._prompt(text, schema))
        abort_task = asyncio.ensure_future(self.signal.wait())
        try:
            done, _ = await asyncio.wait(
                {prompt_task, abort_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if prompt_task in done:
                return prompt_task.result()
            raise OperationAborted(self.signal.reason or "aborted")
        finally:
            for task in (prompt_task, abort_task):
                if not task.done():
                    task.cancel()

    @abstractmethod
    async def _prompt(self, text: str, schema: Dict[str, Any]) -> str:
        """Send one prompt to the underlying service."""

    @abstractmethod
    async def clone(self) -> "LanguageModelSession":
        """Return a fresh session seeded with the same configuration."""

    def destroy(self) -> None:
        self._destroyed = True


class OracleAdapter(ABC):
    """Creates base sessions for oracle lines."""

    @abstractmethod
    async def create_session(
        self,
        config: SessionConfig,
        signal: Optional[AbortSignal] = None
    ) -> LanguageModelSession:
        """Create a base session for one line."""
