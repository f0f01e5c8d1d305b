"""
Presentation Control Engine

Turns one completed utterance into one presentation action.

The engine owns the PresentationState (paused/running) and DiagramMode flags
and a rolling history of recent utterances. The flags select which classifier
line and vocabulary are used:

    Paused                  -> resumePresentation | noOperation
    Running                 -> pause | changeSubject | bullets | beginDiagram | noOperation
    Running + DiagramMode   -> diagramAction | endDiagram | noOperation

Classified intents are then filled in by the title, bullet point and diagram
generators. ``analyze`` never raises for oracle failures: any error becomes a
low-confidence noOperation, and an aborted call becomes a zero-confidence one.
"""

import asyncio
from collections import deque
from typing import Deque, Optional

from config.settings import Settings, get_settings
from src.agents.action_classifier import ActionClassifier
from src.agents.bullet_point_generator import BulletPointGenerator
from src.agents.diagram_extractor import DiagramExtractor
from src.agents.title_generator import DEFAULT_SUBJECT_TITLE, TitleGenerator, is_placeholder_title
from src.clients.oracle import (
    AbortSignal,
    EngineNotInitialized,
    OperationAborted,
    OracleAdapter,
)
from src.clients.oracle_lines import OracleLines
from src.models.actions import (
    ActionType,
    AddMultipleBulletPoints,
    AddSingleBulletPoint,
    AnalysisResult,
    BeginDiagram,
    BulletPointText,
    ChangeSubject,
    DiagramAction,
    EndDiagram,
    NoOperation,
    PausePresentation,
    ResumePresentation,
)
from src.models.presentation import DiagramGraph, PresentationState
from src.utils.oracle_retry import RetryPolicy
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

CONFIDENCE_HIGH = 0.9
CONFIDENCE_CONTENT = 0.8
CONFIDENCE_FALLBACK = 0.3
CONFIDENCE_ABORTED = 0.0


class PresentationControlEngine:
    """
    State machine that classifies utterances into presentation actions.

    Usage:
        engine = PresentationControlEngine(PydanticAIOracle(settings.ORACLE_MODEL))
        await engine.initialize()
        result = await engine.analyze("Let's start the presentation", has_subject=False)
    """

    def __init__(
        self,
        adapter: OracleAdapter,
        settings: Optional[Settings] = None,
        signal: Optional[AbortSignal] = None
    ):
        """
        Initialize the engine.

        Args:
            adapter: Oracle adapter used to create every session line
            settings: Application settings (loaded from environment if None)
            signal: Shared abort signal for in-flight oracle calls
        """
        self.settings = settings or get_settings()
        self.signal = signal

        self.lines = OracleLines(
            adapter,
            retry_policy=RetryPolicy.from_settings(self.settings),
            signal=signal,
        )
        self.classifier = ActionClassifier(self.lines, temperature=self.settings.CLASSIFIER_TEMPERATURE)
        self.title_generator = TitleGenerator(self.lines, temperature=self.settings.GENERATOR_TEMPERATURE)
        self.bullet_generator = BulletPointGenerator(self.lines, temperature=self.settings.GENERATOR_TEMPERATURE)
        self.diagram_extractor = DiagramExtractor(
            self.lines,
            node_match_threshold=self.settings.NODE_MATCH_THRESHOLD,
            temperature=self.settings.GENERATOR_TEMPERATURE,
        )

        self._state = PresentationState.PAUSED
        self._diagram_mode = False
        self._history: Deque[str] = deque(maxlen=self.settings.TRANSCRIPTION_HISTORY_SIZE)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Create the base session of every line. Safe to call concurrently."""
        async with self._init_lock:
            if self._initialized:
                return
            await self.classifier.initialize()
            await self.title_generator.initialize()
            await self.bullet_generator.initialize()
            await self.diagram_extractor.initialize()
            self._initialized = True
            logger.info("🎬 PresentationControlEngine initialized")

    def destroy(self) -> None:
        self.lines.destroy()
        self._history.clear()
        self._initialized = False
        logger.info("PresentationControlEngine destroyed")

    # ------------------------------------------------------------------
    # State flags
    # ------------------------------------------------------------------

    def set_presentation_state(self, paused: bool) -> None:
        self._state = PresentationState.PAUSED if paused else PresentationState.RUNNING

    def get_presentation_state(self) -> PresentationState:
        return self._state

    def set_diagram_mode(self, enabled: bool) -> None:
        self._diagram_mode = enabled

    def get_diagram_mode(self) -> bool:
        return self._diagram_mode

    @property
    def is_paused(self) -> bool:
        return self._state == PresentationState.PAUSED

    def clear_history(self) -> None:
        self._history.clear()

    @property
    def history_size(self) -> int:
        return len(self._history)

    def recent_context(self) -> str:
        """Last few utterances (the current one included) joined with " | "."""
        window = list(self._history)[-self.settings.CLASSIFIER_CONTEXT_WINDOW:]
        return " | ".join(window)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(
        self,
        text: str,
        has_subject: bool,
        current_diagram_graph: Optional[DiagramGraph] = None,
        diagram_mode_enabled: Optional[bool] = None
    ) -> AnalysisResult:
        """
        Classify one utterance and build the resulting action.

        Args:
            text: Utterance text
            has_subject: Whether the history already has a current subject
            current_diagram_graph: Graph of the current diagram subject, if any
            diagram_mode_enabled: Whether beginDiagram is allowed (settings default if None)

        Returns:
            AnalysisResult with the action and a confidence in [0, 1]

        Raises:
            EngineNotInitialized: If ``initialize()`` was not awaited first
        """
        if not self._initialized:
            raise EngineNotInitialized("PresentationControlEngine.initialize() must be awaited before analyze()")

        if diagram_mode_enabled is None:
            diagram_mode_enabled = self.settings.DIAGRAM_MODE_ENABLED

        self._history.append(text)

        try:
            if self.is_paused:
                return await self._analyze_paused(text)
            if self._diagram_mode:
                return await self._analyze_diagram(text, current_diagram_graph)
            return await self._analyze_running(text, has_subject, diagram_mode_enabled)

        except OperationAborted:
            logger.info(f"Analysis aborted for: {text[:50]}")
            return AnalysisResult(action=NoOperation(), confidence=CONFIDENCE_ABORTED)

        except Exception as e:
            logger.error(f"Failed to analyze transcription, falling back to noOperation: {e}")
            return AnalysisResult(action=NoOperation(), confidence=CONFIDENCE_FALLBACK)

    async def _analyze_paused(self, text: str) -> AnalysisResult:
        action = await self.classifier.classify_paused(text)
        if action == ActionType.RESUME_PRESENTATION:
            self.set_presentation_state(paused=False)
            logger.info("▶️  Detected: RESUME PRESENTATION")
            return AnalysisResult(action=ResumePresentation(), confidence=CONFIDENCE_HIGH)
        return AnalysisResult(action=NoOperation(), confidence=CONFIDENCE_HIGH)

    async def _analyze_diagram(self, text: str, graph: Optional[DiagramGraph]) -> AnalysisResult:
        action = await self.classifier.classify_diagram(text)

        if action == ActionType.END_DIAGRAM:
            new_title = None
            if await self.detect_subject_change_intent(text):
                try:
                    new_title = await self.generate_bootstrap_title(text)
                except OperationAborted:
                    raise
                except Exception as e:
                    logger.error(f"New subject title generation failed, using default: {e}")
                    new_title = DEFAULT_SUBJECT_TITLE
            self.set_diagram_mode(False)
            logger.info(f"🏁 Detected: END DIAGRAM (new subject: {new_title})")
            return AnalysisResult(action=EndDiagram(new_subject_title=new_title), confidence=CONFIDENCE_HIGH)

        if action == ActionType.DIAGRAM_ACTION:
            ops = await self.diagram_extractor.extract(text, graph)
            return AnalysisResult(action=DiagramAction(ops=ops), confidence=CONFIDENCE_CONTENT)

        return AnalysisResult(action=NoOperation(), confidence=CONFIDENCE_HIGH)

    async def _analyze_running(
        self,
        text: str,
        has_subject: bool,
        diagram_mode_enabled: bool
    ) -> AnalysisResult:
        action = await self.classifier.classify_running(
            text,
            self.recent_context(),
            diagram_mode_enabled=diagram_mode_enabled,
        )

        if not has_subject:
            logger.info(f"🆕 No subject yet, first content action: {action.value}")

        if action == ActionType.PAUSE_PRESENTATION:
            self.set_presentation_state(paused=True)
            logger.info("⏸️  Detected: PAUSE PRESENTATION")
            return AnalysisResult(action=PausePresentation(), confidence=CONFIDENCE_HIGH)

        if action == ActionType.NO_OPERATION:
            return AnalysisResult(action=NoOperation(), confidence=CONFIDENCE_HIGH)

        if action == ActionType.BEGIN_DIAGRAM and diagram_mode_enabled:
            title = await self.title_generator.generate_diagram_title(text)
            self.set_diagram_mode(True)
            logger.info(f"📊 Detected: BEGIN DIAGRAM - {title}")
            return AnalysisResult(action=BeginDiagram(title=title), confidence=CONFIDENCE_HIGH)

        if action == ActionType.CHANGE_SUBJECT:
            title = await self.title_generator.generate_subject_title(text)
            if not is_placeholder_title(title):
                logger.info(f"🔄 Detected: CHANGE SUBJECT - {title}")
                return AnalysisResult(action=ChangeSubject(title=title), confidence=CONFIDENCE_HIGH)
            logger.warning("⚠️  Placeholder title generated, falling back to single bullet point")
            return await self._single_bullet(text)

        if action == ActionType.ADD_MULTIPLE_BULLET_POINTS:
            items = await self.bullet_generator.generate_multiple(text)
            if len(items) == 1:
                return AnalysisResult(action=AddSingleBulletPoint(text=items[0]), confidence=CONFIDENCE_CONTENT)
            logger.info(f"📌 Detected: ADD MULTIPLE BULLET POINTS - {len(items)} points")
            return AnalysisResult(
                action=AddMultipleBulletPoints(items=[BulletPointText(text=item) for item in items]),
                confidence=CONFIDENCE_CONTENT,
            )

        # addSingleBulletPoint, and the fallback for anything unexpected
        return await self._single_bullet(text)

    async def _single_bullet(self, text: str) -> AnalysisResult:
        bullet = await self.bullet_generator.generate_single(text)
        logger.info(f"📌 Detected: ADD SINGLE BULLET POINT - {bullet}")
        return AnalysisResult(action=AddSingleBulletPoint(text=bullet), confidence=CONFIDENCE_CONTENT)

    # ------------------------------------------------------------------
    # Helpers used by the orchestrator
    # ------------------------------------------------------------------

    async def generate_bootstrap_title(self, text: str) -> str:
        return await self.title_generator.generate_bootstrap_title(text)

    async def detect_subject_change_intent(self, text: str) -> bool:
        """
        Whether an utterance closing a diagram also opens a new topic.

        Failures count as "no intent" so that closing a diagram always works.
        """
        try:
            return await self.classifier.detect_subject_change_intent(text)
        except OperationAborted:
            raise
        except Exception as e:
            logger.error(f"Subject change intent check failed: {e}")
            return False
