"""
Bullet Point Generator

Condenses an utterance into one bullet point, or several when the speaker
listed distinct facts. Output is trimmed; when the oracle returns nothing
usable the raw utterance is kept instead.
"""

from typing import Any, List, Optional

from src.clients.oracle import OracleLine, PromptExample, SessionConfig
from src.clients.oracle_lines import OracleLines
from src.models.schemas import BULLET_POINT_SCHEMA, MULTIPLE_BULLET_POINTS_SCHEMA

SINGLE_SYSTEM_PROMPT = """You turn one spoken sentence from a live meeting into a concise slide bullet point.

Rules:
- Keep every fact, number and name
- Remove filler words, hesitations and repetitions
- At most about 12 words, no trailing period

Respond with JSON: {"text": "<bullet point>"}"""

MULTIPLE_SYSTEM_PROMPT = """You turn one spoken passage from a live meeting into several concise slide bullet points.

Rules:
- One bullet per distinct fact, decision or item
- Keep every number and name
- Remove filler words, hesitations and repetitions
- At most about 12 words per bullet, no trailing periods

Respond with JSON: {"bulletPoints": [{"text": "<bullet point>"}, ...]}"""

SINGLE_EXAMPLES = [
    PromptExample(
        user='Create a bullet point from: "So, um, the launch is, uh, planned for the middle of March"',
        assistant='{"text":"Launch planned for mid-March"}',
    ),
    PromptExample(
        user='Create a bullet point from: "We grew revenue by twelve percent last quarter which is great"',
        assistant='{"text":"Revenue grew 12% last quarter"}',
    ),
    PromptExample(
        user='Create a bullet point from: "Basically the team decided to drop support for the old API"',
        assistant='{"text":"Team decided to drop old API support"}',
    ),
]

MULTIPLE_EXAMPLES = [
    PromptExample(
        user='Create multiple bullet points from: "We need more designers, the budget is approved, and we start in June"',
        assistant='{"bulletPoints":[{"text":"Need more designers"},{"text":"Budget approved"},{"text":"Start in June"}]}',
    ),
    PromptExample(
        user='Create multiple bullet points from: "Churn went down to three percent and NPS went up to forty"',
        assistant='{"bulletPoints":[{"text":"Churn down to 3%"},{"text":"NPS up to 40"}]}',
    ),
    PromptExample(
        user='Create multiple bullet points from: "Um, Paris office opens in May, uh, London in September"',
        assistant='{"bulletPoints":[{"text":"Paris office opens in May"},{"text":"London office opens in September"}]}',
    ),
]


def _read_text(parsed: Any) -> str:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("text"), str):
        raise ValueError(f"Missing string text: {parsed!r}")
    return parsed["text"].strip()


def _read_items(parsed: Any) -> List[str]:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("bulletPoints"), list):
        raise ValueError(f"Missing bulletPoints list: {parsed!r}")
    items = []
    for item in parsed["bulletPoints"]:
        if isinstance(item, dict) and isinstance(item.get("text"), str) and item["text"].strip():
            items.append(item["text"].strip())
    return items


class BulletPointGenerator:
    """Single and multiple bullet point generation."""

    def __init__(self, lines: OracleLines, temperature: Optional[float] = None):
        self.lines = lines
        self.temperature = temperature

    def session_configs(self):
        return [
            SessionConfig(
                line=OracleLine.SINGLE_BULLET_POINT,
                system_prompt=SINGLE_SYSTEM_PROMPT,
                examples=SINGLE_EXAMPLES,
                temperature=self.temperature,
            ),
            SessionConfig(
                line=OracleLine.MULTIPLE_BULLET_POINTS,
                system_prompt=MULTIPLE_SYSTEM_PROMPT,
                examples=MULTIPLE_EXAMPLES,
                temperature=self.temperature,
            ),
        ]

    async def initialize(self) -> None:
        for config in self.session_configs():
            await self.lines.open(config)

    async def generate_single(self, text: str) -> str:
        bullet = await self.lines.prompt_json(
            OracleLine.SINGLE_BULLET_POINT,
            f'Create a bullet point from: "{text}"',
            BULLET_POINT_SCHEMA,
            validate=_read_text,
            operation_name="Single bullet point generation",
        )
        return bullet or text.strip()

    async def generate_multiple(self, text: str) -> List[str]:
        items = await self.lines.prompt_json(
            OracleLine.MULTIPLE_BULLET_POINTS,
            f'Create multiple bullet points from: "{text}"',
            MULTIPLE_BULLET_POINTS_SCHEMA,
            validate=_read_items,
            operation_name="Multiple bullet points generation",
        )
        return items or [text.strip()]
