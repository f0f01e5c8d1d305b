"""
Title Generator

Stateless title generation for new subjects, diagrams, and the subject that is
bootstrapped when content arrives before any topic exists. Titles come back
trimmed; empty titles are replaced by fixed fallbacks.
"""

from typing import Any, Optional

from src.clients.oracle import OracleLine, PromptExample, SessionConfig
from src.clients.oracle_lines import OracleLines
from src.models.schemas import TITLE_SCHEMA
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_SUBJECT_TITLE = "General Discussion"
DEFAULT_DIAGRAM_TITLE = "Untitled Diagram"

SUBJECT_TITLE_SYSTEM_PROMPT = """You write short slide titles for topics raised in a live meeting.

Rules:
- 2 to 6 words, Title Case
- Name the topic, not the speaker's intent ("Marketing Strategy", not "Let's Talk Marketing")
- Drop filler words and hesitations
- No quotes, no trailing punctuation

Respond with JSON: {"title": "<title>"}"""

DIAGRAM_TITLE_SYSTEM_PROMPT = """You write short titles for diagrams a speaker is about to draw.

Rules:
- 2 to 6 words, Title Case
- Describe what the diagram shows ("Checkout Flow", "Service Architecture")
- No quotes, no trailing punctuation

Respond with JSON: {"title": "<title>"}"""

SUBJECT_TITLE_EXAMPLES = [
    PromptExample(
        user='Create a title for this new topic: "Okay so next, um, let\'s talk about our marketing plan for Q3"',
        assistant='{"title":"Q3 Marketing Plan"}',
    ),
    PromptExample(
        user='Create a title for this new topic: "Moving on to the hiring situation in the Berlin office"',
        assistant='{"title":"Berlin Office Hiring"}',
    ),
    PromptExample(
        user='Create a title for this conversation topic based on the first message: "We need to cut cloud costs by twenty percent"',
        assistant='{"title":"Cloud Cost Reduction"}',
    ),
]

DIAGRAM_TITLE_EXAMPLES = [
    PromptExample(
        user='Create a diagram title from: "Let me draw how a user signs up"',
        assistant='{"title":"User Signup Flow"}',
    ),
    PromptExample(
        user='Create a diagram title from: "I\'ll sketch the architecture of the payment system"',
        assistant='{"title":"Payment System Architecture"}',
    ),
    PromptExample(
        user='Create a diagram title from: "Let\'s make a diagram"',
        assistant='{"title":"Diagram"}',
    ),
]


def _read_title(parsed: Any) -> str:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("title"), str):
        raise ValueError(f"Missing string title: {parsed!r}")
    return parsed["title"].strip()


def is_placeholder_title(title: Optional[str]) -> bool:
    """True for titles that carry no topic (empty or the fallback label)."""
    return not title or not title.strip() or title.strip() == DEFAULT_SUBJECT_TITLE


class TitleGenerator:
    """Generates subject, diagram and bootstrap titles."""

    def __init__(self, lines: OracleLines, temperature: Optional[float] = None):
        self.lines = lines
        self.temperature = temperature

    def session_configs(self):
        return [
            SessionConfig(
                line=OracleLine.SUBJECT_TITLE,
                system_prompt=SUBJECT_TITLE_SYSTEM_PROMPT,
                examples=SUBJECT_TITLE_EXAMPLES,
                temperature=self.temperature,
            ),
            SessionConfig(
                line=OracleLine.DIAGRAM_TITLE,
                system_prompt=DIAGRAM_TITLE_SYSTEM_PROMPT,
                examples=DIAGRAM_TITLE_EXAMPLES,
                temperature=self.temperature,
            ),
        ]

    async def initialize(self) -> None:
        for config in self.session_configs():
            await self.lines.open(config)

    async def generate_subject_title(self, text: str) -> str:
        title = await self.lines.prompt_json(
            OracleLine.SUBJECT_TITLE,
            f'Create a title for this new topic: "{text}"',
            TITLE_SCHEMA,
            validate=_read_title,
            operation_name="Subject title generation",
        )
        return title or DEFAULT_SUBJECT_TITLE

    async def generate_diagram_title(self, text: str) -> str:
        title = await self.lines.prompt_json(
            OracleLine.DIAGRAM_TITLE,
            f'Create a diagram title from: "{text}"',
            TITLE_SCHEMA,
            validate=_read_title,
            operation_name="Diagram title generation",
        )
        return title or DEFAULT_DIAGRAM_TITLE

    async def generate_bootstrap_title(self, text: str) -> str:
        """Title for the subject created when content arrives before any topic."""
        title = await self.lines.prompt_json(
            OracleLine.SUBJECT_TITLE,
            f'Create a title for this conversation topic based on the first message: "{text}"',
            TITLE_SCHEMA,
            validate=_read_title,
            operation_name="Bootstrap title generation",
        )
        logger.info(f"🆕 Bootstrap title: {title or DEFAULT_SUBJECT_TITLE}")
        return title or DEFAULT_SUBJECT_TITLE
