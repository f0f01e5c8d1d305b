"""
History Orchestrator

Sole owner of the subject history. Receives completed utterances, runs them
through the Presentation Control Engine one at a time, and applies the
resulting action: append a subject, append bullet points, mutate the current
diagram, pause/resume, or navigate.

Delivery guarantees:
- An utterance already being analyzed (same id and text prefix) is dropped.
- An utterance id that already completed is dropped.
- Completions are serialized by a lock, so history order follows delivery order.

Translations of titles, bullet points and node labels run as background tasks.
Each task captures its target (and, for nodes, the label it translated) at
dispatch time and only writes back if that target still matches.
"""

import asyncio
import inspect
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from config.settings import Settings, get_settings
from src.agents.presentation_engine import CONFIDENCE_ABORTED, PresentationControlEngine
from src.agents.title_generator import DEFAULT_SUBJECT_TITLE
from src.clients.oracle import AbortSignal, OperationAborted
from src.clients.translation import TranslationPort, collect_stream
from src.core.diagram_graph import DiagramMutationResult, apply_diagram_ops
from src.core.markdown_export import export_markdown
from src.core.subject_history import SubjectHistory
from src.core.utterance_bus import UtteranceBus
from src.models.actions import (
    Action,
    AddMultipleBulletPoints,
    AddNodeOp,
    AddSingleBulletPoint,
    AnalysisResult,
    BeginDiagram,
    ChangeSubject,
    DiagramAction,
    DiagramOp,
    EditNodeOp,
    EndDiagram,
    NoOperation,
    PausePresentation,
    ResumePresentation,
)
from src.models.presentation import (
    BulletPoint,
    DiagramSubject,
    PresentationState,
    SlideSubject,
    Subject,
    SubjectHistoryEntry,
    Utterance,
)
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

ChangeListener = Callable[["HistoryOrchestrator", Optional[AnalysisResult]], Union[Awaitable[None], None]]


class HistoryOrchestrator:
    """
    Applies engine actions to the subject history.

    Usage:
        orchestrator = HistoryOrchestrator(engine, translator=translator)
        orchestrator.attach(bus)
        await bus.publish(Utterance(id="u1", text="Let's start the presentation"))
    """

    def __init__(
        self,
        engine: PresentationControlEngine,
        translator: Optional[TranslationPort] = None,
        settings: Optional[Settings] = None,
        signal: Optional[AbortSignal] = None,
        on_change: Optional[ChangeListener] = None
    ):
        """
        Args:
            engine: Initialized (or about to be) Presentation Control Engine
            translator: Translation collaborator; None disables translations
            settings: Application settings (loaded from environment if None)
            signal: Abort signal shared with the engine, fired by ``close()``
            on_change: Called after every history change (e.g. to push a snapshot)
        """
        self.engine = engine
        self.translator = translator
        self.settings = settings or get_settings()
        self.signal = signal or engine.signal
        self.on_change = on_change

        self.history = SubjectHistory()
        self._state = PresentationState.PAUSED
        self._diagram_mode = False

        self._in_flight: Set[str] = set()
        self._completed: "OrderedDict[str, None]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._translation_tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._sync_engine()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def subject_history(self) -> List[SubjectHistoryEntry]:
        return self.history.entries

    @property
    def current_index(self) -> int:
        return self.history.current_index

    @property
    def current_entry(self) -> Optional[SubjectHistoryEntry]:
        return self.history.current

    @property
    def presentation_state(self) -> PresentationState:
        return self._state

    @property
    def is_paused(self) -> bool:
        return self._state == PresentationState.PAUSED

    @property
    def diagram_mode(self) -> bool:
        return self._diagram_mode

    def can_navigate_previous(self) -> bool:
        return self.history.can_navigate_previous()

    def can_navigate_next(self) -> bool:
        return self.history.can_navigate_next()

    def export_markdown(self) -> str:
        return export_markdown(self.history.entries)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the whole history and flags."""
        return {
            "entries": [entry.model_dump(mode="json", by_alias=True) for entry in self.history.entries],
            "current_index": self.history.current_index,
            "state": self._state.value,
            "diagram_mode": self._diagram_mode,
            "can_navigate_previous": self.can_navigate_previous(),
            "can_navigate_next": self.can_navigate_next(),
        }

    # ------------------------------------------------------------------
    # Utterance intake
    # ------------------------------------------------------------------

    def job_key(self, utterance: Utterance) -> str:
        prefix = utterance.text[:self.settings.DEDUP_KEY_PREFIX_LENGTH]
        return f"analysis-{utterance.id}-{prefix}"

    def attach(self, bus: UtteranceBus) -> None:
        self.detach()
        self._unsubscribe = bus.on_utterance_complete(self.handle_utterance)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_utterance(self, utterance: Utterance) -> Optional[AnalysisResult]:
        """
        Analyze one utterance and apply the resulting action.

        Returns:
            The analysis result, or None if the utterance was a duplicate
        """
        if not utterance.text.strip():
            return None

        key = self.job_key(utterance)
        if key in self._in_flight or utterance.id in self._completed:
            logger.debug(f"Dropping duplicate utterance {utterance.id}")
            return None

        self._in_flight.add(key)
        try:
            async with self._lock:
                if utterance.id in self._completed:
                    logger.debug(f"Dropping duplicate utterance {utterance.id}")
                    return None

                entry = self.history.current
                graph = entry.subject.graph if entry is not None and entry.is_diagram else None

                result = await self.engine.analyze(
                    utterance.text,
                    has_subject=self.history.has_subject,
                    current_diagram_graph=graph,
                    diagram_mode_enabled=self.settings.DIAGRAM_MODE_ENABLED,
                )
                logger.info(
                    f"🧠 {utterance.id}: {result.action.action} (confidence {result.confidence:.1f})"
                )

                try:
                    await self.apply_action(result.action, utterance.text)
                except OperationAborted:
                    logger.info(f"Applying {result.action.action} aborted for {utterance.id}")
                    result = AnalysisResult(action=NoOperation(), confidence=CONFIDENCE_ABORTED)
                finally:
                    # Engine flags always follow the orchestrator's
                    self._sync_engine()
                self._mark_completed(utterance.id)

            await self._notify(result)
            return result
        finally:
            self._in_flight.discard(key)

    def _mark_completed(self, utterance_id: str) -> None:
        self._completed[utterance_id] = None
        while len(self._completed) > self.settings.COMPLETED_UTTERANCE_LEDGER_SIZE:
            self._completed.popitem(last=False)

    # ------------------------------------------------------------------
    # Applying actions
    # ------------------------------------------------------------------

    async def apply_action(self, action: Action, utterance_text: str = "") -> None:
        """Apply one engine action to the history."""
        if isinstance(action, ResumePresentation):
            self.resume()

        elif isinstance(action, PausePresentation):
            self.pause()

        elif isinstance(action, ChangeSubject):
            self.change_subject(SlideSubject(title=action.title))

        elif isinstance(action, AddSingleBulletPoint):
            await self.add_bullet_points([action.text], utterance_text)

        elif isinstance(action, AddMultipleBulletPoints):
            await self.add_bullet_points([item.text for item in action.items], utterance_text)

        elif isinstance(action, BeginDiagram):
            self.change_subject(DiagramSubject(title=action.title))

        elif isinstance(action, DiagramAction):
            self.mutate_diagram(action.ops)

        elif isinstance(action, EndDiagram):
            self.exit_diagram_mode()
            if action.new_subject_title:
                self.change_subject(SlideSubject(title=action.new_subject_title))

    def change_subject(self, subject: Subject, translation: Optional[str] = None) -> SubjectHistoryEntry:
        """Append a subject at the end of history and make it current."""
        entry = self.history.append_subject(subject, translation)
        self._diagram_mode = isinstance(subject, DiagramSubject)
        self._sync_engine()
        logger.info(f"🔄 Subject #{len(self.history) - 1}: {subject.title} ({subject.type})")

        if translation is None:
            self._dispatch_title_translation(entry)
        return entry

    def _dispatch_title_translation(self, entry: SubjectHistoryEntry) -> None:
        title = entry.subject.title

        def apply(translated: str) -> bool:
            # The title may have been renamed while the translation was in flight
            if entry.subject.title != title:
                return False
            return self.history.set_subject_translation(entry, translated)

        self._dispatch_translation(title, apply, f"subject '{title}'")

    async def add_bullet_points(self, texts: List[str], utterance_text: str = "") -> List[BulletPoint]:
        """
        Append bullet points to the current subject.

        When there is no subject yet, one slide subject is bootstrapped first
        from the utterance.
        """
        if not self.history.has_subject:
            await self._bootstrap_subject(utterance_text or " ".join(texts))

        added = []
        for text in texts:
            bullet_point = BulletPoint(text=text)
            self.history.append_bullet_point(bullet_point)
            added.append(bullet_point)
            self._dispatch_translation(
                text,
                lambda translated, bp=bullet_point: self.history.set_bullet_point_translation(bp, translated),
                f"bullet point '{text[:30]}'",
            )

        logger.info(f"📌 Added {len(added)} bullet point(s) to '{self.history.current.subject.title}'")
        return added

    async def _bootstrap_subject(self, text: str) -> SubjectHistoryEntry:
        try:
            title = await self.engine.generate_bootstrap_title(text)
        except OperationAborted:
            raise
        except Exception as e:
            logger.error(f"Bootstrap title generation failed, using default: {e}")
            title = DEFAULT_SUBJECT_TITLE
        return self.change_subject(SlideSubject(title=title))

    def mutate_diagram(self, ops: List[DiagramOp]) -> Optional[DiagramMutationResult]:
        """Apply diagram operations to the current subject, if it is a diagram."""
        entry = self.history.current
        if entry is None or not isinstance(entry.subject, DiagramSubject):
            logger.warning("⚠️  Ignoring diagram operations: current subject is not a diagram")
            return None

        subject = entry.subject
        result = apply_diagram_ops(subject.graph, ops)
        subject.graph = result.graph
        if result.title and result.title != subject.title:
            subject.title = result.title
            entry.subject_translation = None
            self._dispatch_title_translation(entry)

        for applied in result.applied:
            if isinstance(applied, (AddNodeOp, EditNodeOp)):
                self._dispatch_node_translation(entry, applied.id, applied.label)

        logger.info(
            f"📊 Diagram '{subject.title}': {len(subject.graph.nodes)} nodes, {len(subject.graph.edges)} edges"
        )
        return result

    # ------------------------------------------------------------------
    # Navigation and flags
    # ------------------------------------------------------------------

    def navigate(self, index: int) -> bool:
        """Move the cursor within range; out-of-range requests are ignored."""
        moved = self.history.navigate(index)
        if moved:
            self.exit_diagram_mode()
        return moved

    def navigate_previous(self) -> bool:
        return self.can_navigate_previous() and self.navigate(self.history.current_index - 1)

    def navigate_next(self) -> bool:
        return self.can_navigate_next() and self.navigate(self.history.current_index + 1)

    def pause(self) -> None:
        self._state = PresentationState.PAUSED
        self._sync_engine()

    def resume(self) -> None:
        self._state = PresentationState.RUNNING
        self._sync_engine()

    def toggle_pause(self) -> PresentationState:
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self._state

    def exit_diagram_mode(self) -> None:
        self._diagram_mode = False
        self._sync_engine()

    def _sync_engine(self) -> None:
        self.engine.set_presentation_state(paused=self.is_paused)
        self.engine.set_diagram_mode(self._diagram_mode)

    def reset(self) -> None:
        """Drop all subjects and return to the paused, empty state."""
        self.history.reset()
        self._state = PresentationState.PAUSED
        self._diagram_mode = False
        self.engine.clear_history()
        self._sync_engine()

    # ------------------------------------------------------------------
    # Translations
    # ------------------------------------------------------------------

    def update_subject_translation(self, entry_index: int, translation: str) -> bool:
        if not 0 <= entry_index < len(self.history):
            return False
        return self.history.set_subject_translation(self.history.entries[entry_index], translation)

    def update_bullet_point_translation(self, entry_index: int, bullet_point_id: str, translation: str) -> bool:
        if not 0 <= entry_index < len(self.history):
            return False
        bullet_point = self.history.entries[entry_index].find_bullet_point(bullet_point_id)
        if bullet_point is None:
            return False
        return self.history.set_bullet_point_translation(bullet_point, translation)

    def _dispatch_node_translation(self, entry: SubjectHistoryEntry, node_id: str, label: str) -> None:
        def apply(translated: str) -> bool:
            subject = entry.subject
            if not isinstance(subject, DiagramSubject):
                return False
            node = subject.graph.get_node(node_id)
            # The label may have been edited while the translation was in flight
            if node is None or node.label != label:
                return False
            node.translation = translated
            return True

        self._dispatch_translation(label, apply, f"node '{node_id}'")

    def _dispatch_translation(self, text: str, apply: Callable[[str], bool], what: str) -> None:
        if self.translator is None or not text.strip():
            return
        task = asyncio.create_task(self._translate(text, apply, what))
        self._translation_tasks.add(task)
        task.add_done_callback(self._translation_tasks.discard)

    async def _translate(self, text: str, apply: Callable[[str], bool], what: str) -> None:
        try:
            translated = await collect_stream(self.translator.translate_streaming(text))
        except Exception as e:
            logger.warning(f"⚠️  Translation failed for {what}: {e}")
            return

        if not translated or translated == text.strip():
            return
        if apply(translated):
            logger.debug(f"Translated {what}")
            await self._notify(None)

    async def drain_translations(self) -> None:
        """Wait for every pending translation task."""
        while self._translation_tasks:
            await asyncio.gather(*list(self._translation_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Notifications and teardown
    # ------------------------------------------------------------------

    async def _notify(self, result: Optional[AnalysisResult]) -> None:
        if self.on_change is None:
            return
        try:
            outcome = self.on_change(self, result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"History change listener failed: {e}")

    async def close(self) -> None:
        """Abort in-flight oracle calls, cancel translations and release the engine."""
        self.detach()
        if self.signal is not None:
            self.signal.abort("session closed")

        tasks = list(self._translation_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        # Let in-flight analyses resolve to their aborted noOperation
        async with self._lock:
            self.engine.destroy()
        logger.info("HistoryOrchestrator closed")
