"""
WebSocket Message Protocol Models

Inbound messages come from the transcription/UI client (utterances, navigation,
pause/resume, export). Outbound messages carry analysis results, history
snapshots, status changes and markdown exports. Every message has a ``type``
discriminator; outbound messages share an envelope with id, session id and
UTC timestamp.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_serializer

from src.models.presentation import utc_now


def format_timestamp(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 with 'Z' suffix for UTC.

    Frontend JavaScript requires 'Z' suffix to correctly parse as UTC.
    """
    if dt.tzinfo is None:
        return dt.isoformat() + 'Z'
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:8]}"


# ============================================================================
# Inbound (client -> server)
# ============================================================================

class ClientMessageType(str, Enum):
    UTTERANCE = "utterance"
    NAVIGATE = "navigate"
    PAUSE = "pause"
    RESUME = "resume"
    EXPORT = "export"
    RESET = "reset"
    STOP = "stop"
    PING = "ping"


class UtteranceData(BaseModel):
    id: str = Field(default_factory=lambda: f"utt_{uuid.uuid4().hex[:8]}")
    text: str
    timestamp: Optional[datetime] = None


class UtteranceMessage(BaseModel):
    type: Literal["utterance"] = "utterance"
    data: UtteranceData


class NavigateData(BaseModel):
    index: int


class NavigateMessage(BaseModel):
    type: Literal["navigate"] = "navigate"
    data: NavigateData


class PauseMessage(BaseModel):
    type: Literal["pause"] = "pause"


class ResumeMessage(BaseModel):
    type: Literal["resume"] = "resume"


class ExportMessage(BaseModel):
    type: Literal["export"] = "export"


class ResetMessage(BaseModel):
    type: Literal["reset"] = "reset"


class StopMessage(BaseModel):
    """Recording stopped: abort in-flight analysis and release the session."""
    type: Literal["stop"] = "stop"


class PingMessage(BaseModel):
    type: Literal["ping"] = "ping"


ClientMessage = Annotated[
    Union[
        UtteranceMessage,
        NavigateMessage,
        PauseMessage,
        ResumeMessage,
        ExportMessage,
        ResetMessage,
        StopMessage,
        PingMessage,
    ],
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: Dict[str, Any]) -> ClientMessage:
    """Validate a raw inbound JSON object (raises pydantic.ValidationError)."""
    return _client_message_adapter.validate_python(data)


# ============================================================================
# Outbound (server -> client)
# ============================================================================

class MessageType(str, Enum):
    """Enum for all outbound message types"""
    HISTORY_UPDATE = "history_update"
    ACTION_DETECTED = "action_detected"
    STATUS_UPDATE = "status_update"
    MARKDOWN_EXPORT = "markdown_export"
    PONG = "pong"


class StatusLevel(str, Enum):
    """Status levels for status updates"""
    IDLE = "idle"
    PAUSED = "paused"
    RUNNING = "running"
    DIAGRAM = "diagram"
    ERROR = "error"


class HistoryUpdatePayload(BaseModel):
    """Full snapshot of the subject history"""
    entries: List[Dict[str, Any]] = Field(..., description="Subject history entries, oldest first")
    current_index: int = Field(..., description="Cursor position (-1 when empty)")
    state: str = Field(..., description="paused or running")
    diagram_mode: bool = Field(False, description="Whether utterances edit the current diagram")
    can_navigate_previous: bool = False
    can_navigate_next: bool = False


class ActionDetectedPayload(BaseModel):
    """Result of analyzing one utterance"""
    utterance_id: Optional[str] = Field(None, description="Utterance that produced the action")
    action: Dict[str, Any] = Field(..., description="Action object, discriminated on 'action'")
    confidence: float = Field(..., ge=0.0, le=1.0)


class StatusPayload(BaseModel):
    """Payload for status update messages"""
    status: StatusLevel = Field(..., description="Current status level")
    text: str = Field(..., description="Status message text")


class MarkdownExportPayload(BaseModel):
    markdown: str
    entry_count: int


class BaseMessage(BaseModel):
    """Base message envelope for all outbound message types"""
    message_id: str = Field(default_factory=new_message_id, description="Unique message identifier")
    session_id: str = Field(..., description="Session identifier")
    timestamp: datetime = Field(default_factory=utc_now, description="Message timestamp (UTC)")
    type: MessageType = Field(..., description="Message type discriminator")

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)


class HistoryUpdate(BaseMessage):
    type: Literal[MessageType.HISTORY_UPDATE] = MessageType.HISTORY_UPDATE
    payload: HistoryUpdatePayload


class ActionDetected(BaseMessage):
    type: Literal[MessageType.ACTION_DETECTED] = MessageType.ACTION_DETECTED
    payload: ActionDetectedPayload


class StatusUpdate(BaseMessage):
    type: Literal[MessageType.STATUS_UPDATE] = MessageType.STATUS_UPDATE
    payload: StatusPayload


class MarkdownExport(BaseMessage):
    type: Literal[MessageType.MARKDOWN_EXPORT] = MessageType.MARKDOWN_EXPORT
    payload: MarkdownExportPayload


class Pong(BaseMessage):
    type: Literal[MessageType.PONG] = MessageType.PONG
    payload: Dict[str, Any] = Field(default_factory=dict)


ServerMessage = Union[HistoryUpdate, ActionDetected, StatusUpdate, MarkdownExport, Pong]


def create_history_update(session_id: str, snapshot: Dict[str, Any]) -> HistoryUpdate:
    """Helper function to wrap an orchestrator snapshot."""
    return HistoryUpdate(session_id=session_id, payload=HistoryUpdatePayload(**snapshot))


def create_action_detected(
    session_id: str,
    action: Dict[str, Any],
    confidence: float,
    utterance_id: Optional[str] = None
) -> ActionDetected:
    return ActionDetected(
        session_id=session_id,
        payload=ActionDetectedPayload(utterance_id=utterance_id, action=action, confidence=confidence),
    )


def create_status_update(session_id: str, status: StatusLevel, text: str) -> StatusUpdate:
    return StatusUpdate(session_id=session_id, payload=StatusPayload(status=status, text=text))


def create_markdown_export(session_id: str, markdown: str, entry_count: int) -> MarkdownExport:
    return MarkdownExport(
        session_id=session_id,
        payload=MarkdownExportPayload(markdown=markdown, entry_count=entry_count),
    )


def create_pong(session_id: str) -> Pong:
    return Pong(session_id=session_id)
