"""
Shared fakes for the test scripts.

FakeOracle hands out sessions whose replies are scripted per oracle line, so
the engine, orchestrator and WebSocket handler can run without a model.
"""

import asyncio
import inspect
import json
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from config.settings import Settings
from src.clients.oracle import (
    AbortSignal,
    LanguageModelSession,
    OracleAdapter,
    OracleLine,
    SessionConfig,
)
from src.clients.translation import TranslationPort


def make_settings(**overrides) -> Settings:
    """Settings with instant retries and translation disabled unless overridden."""
    values = {
        "RETRY_INITIAL_DELAY_MS": 0,
        "RETRY_MAX_DELAY_MS": 0,
        "SPEAKER_LANGUAGE": "english",
        "OTHER_PARTY_LANGUAGE": "english",
        "LOGFIRE_TOKEN": None,
    }
    values.update(overrides)
    return Settings(**values)


class Hang:
    """Scripted reply that never resolves (until the session is aborted)."""

    async def __call__(self, text: str) -> str:
        await asyncio.Event().wait()
        return "{}"


class FakeSession(LanguageModelSession):
    def __init__(self, oracle: "FakeOracle", config: SessionConfig, signal: Optional[AbortSignal] = None):
        super().__init__(config, signal)
        self.oracle = oracle

    async def _prompt(self, text: str, schema: Dict[str, Any]) -> str:
        return await self.oracle.respond(self.config.line, text, schema)

    async def clone(self) -> "FakeSession":
        session = FakeSession(self.oracle, self.config, self.signal)
        self.oracle.clones.append(session)
        return session


class FakeOracle(OracleAdapter):
    """
    Oracle adapter with replies scripted per line.

    Replies are consumed in order; once a line's queue is empty its default
    (if any) is used. A reply may be a dict (sent as JSON), a raw string, an
    exception instance (raised) or a callable taking the prompt text.

    Usage:
        oracle = FakeOracle()
        oracle.script(OracleLine.PAUSED, {"action": "resumePresentation"})
    """

    def __init__(self):
        self.replies: Dict[OracleLine, List[Any]] = defaultdict(list)
        self.defaults: Dict[OracleLine, Any] = {}
        self.prompts: List[Tuple[OracleLine, str]] = []
        self.schemas: List[Tuple[OracleLine, Dict[str, Any]]] = []
        self.configs: List[SessionConfig] = []
        self.clones: List[FakeSession] = []

    def script(self, line: OracleLine, *replies) -> "FakeOracle":
        self.replies[line].extend(replies)
        return self

    def default(self, line: OracleLine, reply) -> "FakeOracle":
        self.defaults[line] = reply
        return self

    def prompts_for(self, line: OracleLine) -> List[str]:
        return [text for prompt_line, text in self.prompts if prompt_line == line]

    def schema_for(self, line: OracleLine) -> Optional[Dict[str, Any]]:
        for prompt_line, schema in reversed(self.schemas):
            if prompt_line == line:
                return schema
        return None

    async def create_session(self, config: SessionConfig, signal: Optional[AbortSignal] = None) -> FakeSession:
        self.configs.append(config)
        return FakeSession(self, config, signal)

    async def respond(self, line: OracleLine, text: str, schema: Dict[str, Any]) -> str:
        self.prompts.append((line, text))
        self.schemas.append((line, schema))

        if self.replies[line]:
            reply = self.replies[line].pop(0)
        elif line in self.defaults:
            reply = self.defaults[line]
        else:
            raise RuntimeError(f"No scripted reply for line '{line.value}'")

        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(text)
            if inspect.isawaitable(reply):
                reply = await reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return reply


class FakeTranslator(TranslationPort):
    """Streams ``<prefix><text>`` word by word; optionally waits on a gate first."""

    def __init__(self, prefix: str = "fr: ", gate: Optional[asyncio.Event] = None):
        self.prefix = prefix
        self.gate = gate
        self.calls: List[str] = []

    async def translate_streaming(self, text: str) -> AsyncIterator[str]:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        words = f"{self.prefix}{text}".split(" ")
        for index, word in enumerate(words):
            yield word if index == 0 else f" {word}"


def running_oracle(**lines) -> FakeOracle:
    """FakeOracle with every classifier line defaulting to noOperation."""
    oracle = FakeOracle()
    oracle.default(OracleLine.PAUSED, {"action": "noOperation"})
    oracle.default(OracleLine.RUNNING, {"action": "noOperation"})
    oracle.default(OracleLine.DIAGRAM, {"action": "noOperation"})
    oracle.default(OracleLine.SUBJECT_CHANGE_INTENT, {"hasSubjectChangeIntent": False})
    for name, reply in lines.items():
        oracle.default(OracleLine[name.upper()], reply)
    return oracle
