"""
Action Classifier

Selects one action token per utterance from a state-dependent vocabulary:

- Paused:  resumePresentation | noOperation
- Running: pausePresentation | changeSubject | addSingleBulletPoint |
           addMultipleBulletPoints | beginDiagram | noOperation
- Diagram: diagramAction | endDiagram | noOperation

Each state has its own oracle line so conversational context never leaks
between vocabularies. A fourth line answers the yes/no subject-change-intent
question asked when a diagram is closed.
"""

from typing import Any, Dict, List, Optional

from src.clients.oracle import OracleLine, PromptExample, SessionConfig
from src.clients.oracle_lines import OracleLines
from src.models.actions import ActionType
from src.models.schemas import (
    DIAGRAM_ACTION_SCHEMA,
    DIAGRAM_ACTIONS,
    PAUSED_ACTION_SCHEMA,
    PAUSED_ACTIONS,
    RUNNING_ACTION_SCHEMA,
    RUNNING_ACTIONS,
    RUNNING_ACTIONS_NO_DIAGRAM,
    RUNNING_NO_DIAGRAM_ACTION_SCHEMA,
    SUBJECT_CHANGE_INTENT_SCHEMA,
)
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


PAUSED_SYSTEM_PROMPT = """You watch a live meeting while the presentation is PAUSED.

Decide whether the speaker is explicitly asking to start or resume the presentation.

Actions:
- resumePresentation: the speaker clearly asks to start, resume or continue the presentation
  ("let's start the presentation", "resume", "okay, back to the slides")
- noOperation: anything else, including normal discussion about the topic

Only an explicit request resumes. When in doubt, answer noOperation.
Respond with JSON: {"action": "<action>"}"""

RUNNING_SYSTEM_PROMPT = """You turn a live meeting into presentation slides while the presentation is RUNNING.

You receive recent context and one new transcription. Classify the NEW transcription only.

Actions:
- pausePresentation: the speaker explicitly asks to pause or stop the presentation
- beginDiagram: the speaker explicitly asks to draw, sketch or start a diagram or flowchart
- changeSubject: a clear transition to a new topic ("next, let's talk about pricing")
- addSingleBulletPoint: one concrete fact, decision or point worth noting
- addMultipleBulletPoints: several distinct facts in one transcription
- noOperation: small talk, filler, greetings, incomplete thoughts

Prefer noOperation for filler. Prefer addSingleBulletPoint over addMultipleBulletPoints
unless the facts are clearly separate.
Respond with JSON: {"action": "<action>"}"""

DIAGRAM_SYSTEM_PROMPT = """You help edit a diagram by voice during a live meeting.

Actions:
- endDiagram: the speaker says the diagram is done or finished, or wants to stop editing it
- diagramAction: any description of boxes, steps, components or how they connect
  (adding, renaming, removing or connecting things)
- noOperation: small talk unrelated to the diagram

Respond with JSON: {"action": "<action>"}"""

SUBJECT_CHANGE_INTENT_SYSTEM_PROMPT = """A speaker just finished editing a diagram.

Decide whether the same sentence ALSO introduces a new topic to present next.
- true: the speaker names or starts a new topic ("diagram's done, now let's talk about costs")
- false: the speaker only closes the diagram ("okay, the diagram is finished")

Respond with JSON: {"hasSubjectChangeIntent": true|false}"""


def _transcription_prompt(text: str) -> str:
    return f'Transcription: "{text}"'


def _running_prompt(text: str, context: str) -> str:
    return f'Context (recent transcriptions): {context}\n\nNew transcription: "{text}"'


PAUSED_EXAMPLES = [
    PromptExample(
        user=_transcription_prompt("Hey computer, let's start the presentation"),
        assistant='{"action":"resumePresentation"}',
    ),
    PromptExample(
        user=_transcription_prompt("So I was thinking we could grab lunch after this"),
        assistant='{"action":"noOperation"}',
    ),
    PromptExample(
        user=_transcription_prompt("Okay, let's continue with the slides"),
        assistant='{"action":"resumePresentation"}',
    ),
]

RUNNING_EXAMPLES = [
    PromptExample(
        user=_running_prompt(
            "Now let's move on to our marketing strategy for next year",
            "Sales grew twelve percent | Now let's move on to our marketing strategy for next year",
        ),
        assistant='{"action":"changeSubject"}',
    ),
    PromptExample(
        user=_running_prompt(
            "The launch is scheduled for March",
            "We talked about the roadmap | The launch is scheduled for March",
        ),
        assistant='{"action":"addSingleBulletPoint"}',
    ),
    PromptExample(
        user=_running_prompt(
            "Um, yeah, you know, so anyway",
            "The launch is scheduled for March | Um, yeah, you know, so anyway",
        ),
        assistant='{"action":"noOperation"}',
    ),
]

DIAGRAM_EXAMPLES = [
    PromptExample(
        user=_transcription_prompt("Then the request goes from the gateway to the auth service"),
        assistant='{"action":"diagramAction"}',
    ),
    PromptExample(
        user=_transcription_prompt("Alright, I think that diagram is finished"),
        assistant='{"action":"endDiagram"}',
    ),
    PromptExample(
        user=_transcription_prompt("Can everyone hear me okay?"),
        assistant='{"action":"noOperation"}',
    ),
]

SUBJECT_CHANGE_INTENT_EXAMPLES = [
    PromptExample(
        user=_transcription_prompt("Alright, I think that diagram is finished"),
        assistant='{"hasSubjectChangeIntent":false}',
    ),
    PromptExample(
        user=_transcription_prompt("Diagram done, now let's discuss the hiring plan"),
        assistant='{"hasSubjectChangeIntent":true}',
    ),
    PromptExample(
        user=_transcription_prompt("Okay that's the whole flow, we can stop drawing"),
        assistant='{"hasSubjectChangeIntent":false}',
    ),
]


def _action_validator(allowed: List[ActionType]):
    """Build a validator accepting only ``{"action": <allowed token>}``."""
    allowed_values = {action.value for action in allowed}

    def validate(parsed: Any) -> ActionType:
        if not isinstance(parsed, dict) or parsed.get("action") not in allowed_values:
            raise ValueError(f"Action outside vocabulary {sorted(allowed_values)}: {parsed!r}")
        return ActionType(parsed["action"])

    return validate


def _validate_intent(parsed: Any) -> bool:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("hasSubjectChangeIntent"), bool):
        raise ValueError(f"Missing boolean hasSubjectChangeIntent: {parsed!r}")
    return parsed["hasSubjectChangeIntent"]


class ActionClassifier:
    """Schema-constrained action classification over the classifier lines."""

    def __init__(self, lines: OracleLines, temperature: Optional[float] = 0.3):
        self.lines = lines
        self.temperature = temperature

    def session_configs(self) -> List[SessionConfig]:
        def config(line, prompt, examples):
            return SessionConfig(
                line=line,
                system_prompt=prompt,
                examples=examples,
                temperature=self.temperature,
            )

        return [
            config(OracleLine.PAUSED, PAUSED_SYSTEM_PROMPT, PAUSED_EXAMPLES),
            config(OracleLine.RUNNING, RUNNING_SYSTEM_PROMPT, RUNNING_EXAMPLES),
            config(OracleLine.DIAGRAM, DIAGRAM_SYSTEM_PROMPT, DIAGRAM_EXAMPLES),
            config(
                OracleLine.SUBJECT_CHANGE_INTENT,
                SUBJECT_CHANGE_INTENT_SYSTEM_PROMPT,
                SUBJECT_CHANGE_INTENT_EXAMPLES,
            ),
        ]

    async def initialize(self) -> None:
        for config in self.session_configs():
            await self.lines.open(config)

    async def classify_paused(self, text: str) -> ActionType:
        action = await self.lines.prompt_json(
            OracleLine.PAUSED,
            _transcription_prompt(text),
            PAUSED_ACTION_SCHEMA,
            validate=_action_validator(PAUSED_ACTIONS),
            operation_name="Paused classification",
        )
        logger.info(f"⏸️  Paused classification: {action.value}")
        return action

    async def classify_running(
        self,
        text: str,
        context: str,
        diagram_mode_enabled: bool = True
    ) -> ActionType:
        """
        Classify an utterance while the presentation is running.

        Args:
            text: The new utterance
            context: Recent utterances joined with " | " (including this one)
            diagram_mode_enabled: When False, beginDiagram is not in the vocabulary
        """
        if diagram_mode_enabled:
            schema, allowed = RUNNING_ACTION_SCHEMA, RUNNING_ACTIONS
        else:
            schema, allowed = RUNNING_NO_DIAGRAM_ACTION_SCHEMA, RUNNING_ACTIONS_NO_DIAGRAM

        action = await self.lines.prompt_json(
            OracleLine.RUNNING,
            _running_prompt(text, context),
            schema,
            validate=_action_validator(allowed),
            operation_name="Running classification",
        )
        logger.info(f"🎯 Running classification: {action.value}")
        return action

    async def classify_diagram(self, text: str) -> ActionType:
        action = await self.lines.prompt_json(
            OracleLine.DIAGRAM,
            _transcription_prompt(text),
            DIAGRAM_ACTION_SCHEMA,
            validate=_action_validator(DIAGRAM_ACTIONS),
            operation_name="Diagram classification",
        )
        logger.info(f"📊 Diagram classification: {action.value}")
        return action

    async def detect_subject_change_intent(self, text: str) -> bool:
        """Whether an utterance that closes a diagram also opens a new topic."""
        has_intent = await self.lines.prompt_json(
            OracleLine.SUBJECT_CHANGE_INTENT,
            _transcription_prompt(text),
            SUBJECT_CHANGE_INTENT_SCHEMA,
            validate=_validate_intent,
            operation_name="Subject change intent",
        )
        logger.info(f"🔀 Subject change intent: {has_intent}")
        return has_intent
