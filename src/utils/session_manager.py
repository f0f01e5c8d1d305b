"""
Session Management for the live presenter.

Keeps one live presentation session per session id in memory. A session owns
its utterance bus, engine, orchestrator and abort signal; closing it aborts
in-flight oracle calls and releases the engine.
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, List, Optional

from config.settings import Settings, get_settings
from src.agents.presentation_engine import PresentationControlEngine
from src.clients.oracle import AbortSignal, OracleAdapter
from src.clients.translation import TranslationPort
from src.core.orchestrator import HistoryOrchestrator
from src.core.utterance_bus import UtteranceBus
from src.models.presentation import utc_now
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

AdapterFactory = Callable[[], OracleAdapter]
TranslatorFactory = Callable[[], Optional[TranslationPort]]


class LiveSession:
    """Everything one presentation session owns."""

    def __init__(
        self,
        session_id: str,
        bus: UtteranceBus,
        engine: PresentationControlEngine,
        orchestrator: HistoryOrchestrator,
        signal: AbortSignal
    ):
        self.session_id = session_id
        self.bus = bus
        self.engine = engine
        self.orchestrator = orchestrator
        self.signal = signal
        self.created_at: datetime = utc_now()
        self.pending: set = set()

    @property
    def closed(self) -> bool:
        return self.signal.aborted

    def track(self, task: asyncio.Task) -> asyncio.Task:
        """Keep a reference to a background utterance task until it finishes."""
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
        return task


class PresentationSessionManager:
    """
    In-memory registry of live presentation sessions.

    Usage:
        manager = PresentationSessionManager(lambda: PydanticAIOracle(settings.ORACLE_MODEL))
        session = await manager.get_or_create("abc")
        await session.bus.publish(Utterance(id="u1", text="Let's start"))
    """

    def __init__(
        self,
        adapter_factory: AdapterFactory,
        translator_factory: Optional[TranslatorFactory] = None,
        settings: Optional[Settings] = None
    ):
        """
        Args:
            adapter_factory: Builds the oracle adapter for a new session
            translator_factory: Builds the translator for a new session (None disables translation)
            settings: Application settings (loaded from environment if None)
        """
        self.adapter_factory = adapter_factory
        self.translator_factory = translator_factory
        self.settings = settings or get_settings()
        self.cache: Dict[str, LiveSession] = {}
        self._lock = asyncio.Lock()

        logger.info("PresentationSessionManager initialized")

    def get(self, session_id: str) -> Optional[LiveSession]:
        return self.cache.get(session_id)

    def session_ids(self) -> List[str]:
        return list(self.cache.keys())

    async def get_or_create(self, session_id: str) -> LiveSession:
        """
        Get the live session for ``session_id``, creating and initializing it if needed.

        Raises:
            OracleError: If the engine cannot open its oracle sessions
        """
        async with self._lock:
            session = self.cache.get(session_id)
            if session is not None and not session.closed:
                logger.debug(f"Cache hit for session {session_id}")
                return session

            session = await self._create(session_id)
            self.cache[session_id] = session
            logger.info(f"Created live session {session_id}")
            return session

    async def _create(self, session_id: str) -> LiveSession:
        signal = AbortSignal()
        engine = PresentationControlEngine(self.adapter_factory(), settings=self.settings, signal=signal)
        await engine.initialize()

        translator = self.translator_factory() if self.translator_factory else None
        orchestrator = HistoryOrchestrator(engine, translator=translator, settings=self.settings, signal=signal)

        bus = UtteranceBus()
        orchestrator.attach(bus)
        return LiveSession(session_id, bus, engine, orchestrator, signal)

    async def close(self, session_id: str) -> bool:
        """Tear down a session. Returns False if it did not exist."""
        async with self._lock:
            session = self.cache.pop(session_id, None)
        if session is None:
            return False

        await session.orchestrator.close()
        pending = list(session.pending)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"Closed live session {session_id}")
        return True

    async def close_all(self) -> None:
        for session_id in self.session_ids():
            await self.close(session_id)
