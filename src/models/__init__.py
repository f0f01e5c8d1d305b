"""
Models Package for the Live Presenter

Pydantic models for the subject history, engine actions and the WebSocket protocol.
"""

from .presentation import (
    PresentationState,
    Utterance,
    DiagramNode,
    DiagramEdge,
    DiagramGraph,
    SlideSubject,
    DiagramSubject,
    Subject,
    BulletPoint,
    SubjectHistoryEntry
)

from .actions import (
    ActionType,
    DiagramOpType,
    Action,
    DiagramOp,
    AnalysisResult
)

from .websocket_messages import (
    ClientMessage,
    HistoryUpdate,
    ActionDetected,
    StatusUpdate,
    MarkdownExport,
    Pong
)

__all__ = [
    # History models
    'PresentationState',
    'Utterance',
    'DiagramNode',
    'DiagramEdge',
    'DiagramGraph',
    'SlideSubject',
    'DiagramSubject',
    'Subject',
    'BulletPoint',
    'SubjectHistoryEntry',

    # Engine actions
    'ActionType',
    'DiagramOpType',
    'Action',
    'DiagramOp',
    'AnalysisResult',

    # WebSocket messages
    'ClientMessage',
    'HistoryUpdate',
    'ActionDetected',
    'StatusUpdate',
    'MarkdownExport',
    'Pong'
]
