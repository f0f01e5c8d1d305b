"""
WebSocket Handler for the live presenter.

One connection per session id: the transcription/UI client sends completed
utterances and control messages, the handler publishes utterances on the
session's bus and pushes every history change back as a snapshot.
"""

import json
import asyncio
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from config.settings import Settings, get_settings
from src.core.orchestrator import HistoryOrchestrator
from src.models.actions import AnalysisResult
from src.models.presentation import Utterance, utc_now
from src.models.websocket_messages import (
    ExportMessage,
    NavigateMessage,
    PauseMessage,
    PingMessage,
    ResetMessage,
    ResumeMessage,
    ServerMessage,
    StatusLevel,
    StopMessage,
    UtteranceMessage,
    create_action_detected,
    create_history_update,
    create_markdown_export,
    create_pong,
    create_status_update,
    parse_client_message,
)
from src.utils.logger import setup_logger
from src.utils.session_manager import LiveSession, PresentationSessionManager

logger = setup_logger(__name__)


def status_for(orchestrator: HistoryOrchestrator) -> StatusLevel:
    if orchestrator.is_paused:
        return StatusLevel.PAUSED
    if orchestrator.diagram_mode:
        return StatusLevel.DIAGRAM
    return StatusLevel.RUNNING


STATUS_TEXT = {
    StatusLevel.PAUSED: "Presentation paused - say \"let's start\" to begin",
    StatusLevel.RUNNING: "Listening for new subjects and bullet points",
    StatusLevel.DIAGRAM: "Building diagram",
    StatusLevel.IDLE: "Session closed",
}


class WebSocketHandler:
    """
    Drives live presentation sessions over WebSocket.

    Message protocol (client -> server):
        {"type": "utterance", "data": {"id": "u1", "text": "..."}}
        {"type": "navigate", "data": {"index": 0}}
        {"type": "pause"} / {"type": "resume"} / {"type": "export"}
        {"type": "reset"} / {"type": "stop"} / {"type": "ping"}
    """

    def __init__(self, session_manager: PresentationSessionManager, settings: Optional[Settings] = None):
        """Initialize handler components."""
        self.settings = settings or get_settings()
        self.session_manager = session_manager

        # Connection tracking
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_lock = asyncio.Lock()

        logger.info("WebSocketHandler initialized")

    async def handle_connection(self, websocket: WebSocket, session_id: str):
        """
        Handle a WebSocket connection.

        Args:
            websocket: FastAPI WebSocket
            session_id: Session identifier
        """
        # Handle duplicate connections
        async with self.connection_lock:
            existing = self.active_connections.get(session_id)
            if existing and existing.client_state == WebSocketState.CONNECTED:
                logger.warning(f"Duplicate connection for session {session_id}, closing old")
                try:
                    await existing.close(code=4000, reason="New connection opened")
                except Exception as e:
                    logger.warning(f"Error closing old connection: {e}")

            self.active_connections[session_id] = websocket

        await websocket.accept()
        logger.info(f"🔌 Connected: session={session_id}")

        session = await self._bind_session(websocket, session_id)

        try:
            while True:
                raw_data = await websocket.receive_text()

                # Plain-text keepalive
                if raw_data.strip() == "ping":
                    await websocket.send_text("pong")
                    continue

                try:
                    data = json.loads(raw_data)
                except ValueError:
                    await self._send_error(websocket, session_id, "Malformed JSON message")
                    continue

                if session.closed:
                    session = await self._bind_session(websocket, session_id)
                await self._process_message(websocket, session, data)

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected by client: session={session_id}")

        except Exception as e:
            logger.error(f"WebSocket error for session {session_id}: {e}")

        finally:
            # Cleanup
            async with self.connection_lock:
                if self.active_connections.get(session_id) is websocket:
                    del self.active_connections[session_id]
                    session.orchestrator.on_change = None
            logger.info(f"WebSocket disconnected: session={session_id}")

    async def _bind_session(self, websocket: WebSocket, session_id: str) -> LiveSession:
        """Get or create the live session and route its changes to this socket."""
        session = await self.session_manager.get_or_create(session_id)

        async def on_change(orchestrator: HistoryOrchestrator, result: Optional[AnalysisResult]):
            await self._on_history_change(websocket, session_id, orchestrator, result)

        session.orchestrator.on_change = on_change
        await self._send_history(websocket, session)
        await self._send_status(websocket, session)
        return session

    async def _process_message(self, websocket: WebSocket, session: LiveSession, data: Dict[str, Any]):
        """Validate and dispatch one inbound message."""
        try:
            message = parse_client_message(data)
        except ValidationError as e:
            logger.warning(f"Rejected message for session {session.session_id}: {e.error_count()} error(s)")
            await self._send_error(websocket, session.session_id, f"Invalid message: {data.get('type')!r}")
            return

        orchestrator = session.orchestrator

        if isinstance(message, UtteranceMessage):
            utterance = Utterance(
                id=message.data.id,
                text=message.data.text,
                timestamp=message.data.timestamp or utc_now(),
            )
            preview = utterance.text[:80] + '...' if len(utterance.text) > 80 else utterance.text
            logger.info(f"🎤 Utterance {utterance.id}: '{preview}'")
            # Analysis runs in the background so control messages stay responsive
            session.track(asyncio.create_task(session.bus.publish(utterance)))

        elif isinstance(message, NavigateMessage):
            orchestrator.navigate(message.data.index)
            await self._send_history(websocket, session)
            await self._send_status(websocket, session)

        elif isinstance(message, PauseMessage):
            orchestrator.pause()
            await self._send_history(websocket, session)
            await self._send_status(websocket, session)

        elif isinstance(message, ResumeMessage):
            orchestrator.resume()
            await self._send_history(websocket, session)
            await self._send_status(websocket, session)

        elif isinstance(message, ExportMessage):
            await self._send(websocket, create_markdown_export(
                session.session_id,
                orchestrator.export_markdown(),
                len(orchestrator.subject_history),
            ))

        elif isinstance(message, ResetMessage):
            orchestrator.reset()
            await self._send_history(websocket, session)
            await self._send_status(websocket, session)

        elif isinstance(message, StopMessage):
            await self.session_manager.close(session.session_id)
            await self._send(websocket, create_status_update(
                session.session_id, StatusLevel.IDLE, STATUS_TEXT[StatusLevel.IDLE]
            ))

        elif isinstance(message, PingMessage):
            await self._send(websocket, create_pong(session.session_id))

    async def _on_history_change(
        self,
        websocket: WebSocket,
        session_id: str,
        orchestrator: HistoryOrchestrator,
        result: Optional[AnalysisResult]
    ):
        if result is not None:
            await self._send(websocket, create_action_detected(
                session_id,
                result.action.model_dump(mode="json", by_alias=True),
                result.confidence,
            ))
        await self._send(websocket, create_history_update(session_id, orchestrator.snapshot()))
        if result is not None:
            await self._send_status_for(websocket, session_id, orchestrator)

    async def _send(self, websocket: WebSocket, message: ServerMessage):
        if websocket.client_state != WebSocketState.CONNECTED:
            logger.debug(f"Skipping {message.type.value}: socket no longer connected")
            return
        await websocket.send_json(message.model_dump(mode='json'))

    async def _send_history(self, websocket: WebSocket, session: LiveSession):
        """Send a full history snapshot."""
        await self._send(websocket, create_history_update(session.session_id, session.orchestrator.snapshot()))

    async def _send_status(self, websocket: WebSocket, session: LiveSession):
        """Send status update."""
        await self._send_status_for(websocket, session.session_id, session.orchestrator)

    async def _send_status_for(self, websocket: WebSocket, session_id: str, orchestrator: HistoryOrchestrator):
        level = status_for(orchestrator)
        await self._send(websocket, create_status_update(session_id, level, STATUS_TEXT[level]))

    async def _send_error(self, websocket: WebSocket, session_id: str, error: str):
        """Send error status."""
        await self._send(websocket, create_status_update(session_id, StatusLevel.ERROR, error))
