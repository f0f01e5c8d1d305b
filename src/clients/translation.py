"""
Translation collaborator.

``translate_streaming`` produces a lazy, finite, non-restartable sequence of
text deltas. Callers accumulate them with ``collect_stream``; a translation is
only final once the stream is exhausted.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from pydantic_ai import Agent

from config.settings import Settings
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


class TranslationPort(ABC):
    """Streams a translation of one piece of text."""

    @abstractmethod
    def translate_streaming(self, text: str) -> AsyncIterator[str]:
        """Yield translated text deltas."""


async def collect_stream(chunks: AsyncIterator[str]) -> str:
    """Accumulate a delta stream into the final text."""
    parts = []
    async for chunk in chunks:
        parts.append(chunk)
    return "".join(parts).strip()


class LLMTranslator(TranslationPort):
    """Translates via a plain-text Pydantic-AI agent, streaming deltas."""

    def __init__(self, model_name: str, source_language: str, target_language: str):
        self.source_language = source_language
        self.target_language = target_language
        self.agent = Agent(
            model=model_name,
            output_type=str,
            system_prompt=(
                f"You translate short live-meeting notes from {source_language} "
                f"to {target_language}. Reply with the translation only, "
                "no quotes, no explanations."
            ),
        )
        logger.info(f"LLMTranslator initialized: {source_language} -> {target_language}")

    async def translate_streaming(self, text: str) -> AsyncIterator[str]:
        async with self.agent.run_stream(text) as result:
            async for delta in result.stream_text(delta=True):
                yield delta


def create_translator(settings: Settings) -> Optional[TranslationPort]:
    """Build the translator for these settings, or None when both sides share a language."""
    if not settings.translation_enabled:
        return None
    return LLMTranslator(
        model_name=settings.ORACLE_MODEL,
        source_language=settings.SPEAKER_LANGUAGE,
        target_language=settings.OTHER_PARTY_LANGUAGE,
    )
