"""
Presentation Models

Defines the persistent-within-session state of a live presentation:
subjects (slides and diagrams), their bullet points, the diagram graph,
and the append-only subject history entries that own them.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Generate a short random identifier, e.g. ``subject_1a2b3c4d``."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


class PresentationState(str, Enum):
    """Whether utterances are being turned into presentation content."""
    PAUSED = "paused"
    RUNNING = "running"


class Utterance(BaseModel):
    """A completed transcription delivered by the transcription collaborator."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique utterance identifier")
    text: str = Field(..., description="Transcribed text")
    timestamp: datetime = Field(default_factory=utc_now, description="When the utterance completed")


class DiagramNode(BaseModel):
    """A box in a voice-edited diagram."""
    id: str = Field(..., description="Stable node id derived from its label")
    label: str = Field(..., description="Display label")
    translation: Optional[str] = Field(None, description="Translated label, if any")


class DiagramEdge(BaseModel):
    """A directed connection between two node ids."""
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from", description="Source node id")
    to: str = Field(..., description="Target node id")

    @property
    def key(self):
        return (self.from_, self.to)


class DiagramGraph(BaseModel):
    """Nodes and edges of a diagram subject."""
    nodes: List[DiagramNode] = Field(default_factory=list)
    edges: List[DiagramEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[DiagramNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def has_edge(self, from_id: str, to_id: str) -> bool:
        return any(edge.key == (from_id, to_id) for edge in self.edges)

    @property
    def is_empty(self) -> bool:
        return not self.nodes


class SlideSubject(BaseModel):
    """A topic slide that accumulates bullet points."""
    type: Literal["slide"] = "slide"
    id: str = Field(default_factory=lambda: new_id("subject"))
    title: str


class DiagramSubject(BaseModel):
    """A diagram built up node by node from spoken descriptions."""
    type: Literal["diagram"] = "diagram"
    id: str = Field(default_factory=lambda: new_id("diagram"))
    title: str
    graph: DiagramGraph = Field(default_factory=DiagramGraph)


Subject = Annotated[Union[SlideSubject, DiagramSubject], Field(discriminator="type")]


class BulletPoint(BaseModel):
    """A single point appended to the current subject."""
    id: str = Field(default_factory=lambda: new_id("bp"))
    text: str
    timestamp: datetime = Field(default_factory=utc_now)
    translation: Optional[str] = Field(None, description="Single-write translation of the text")


class SubjectHistoryEntry(BaseModel):
    """One subject plus everything said while it was current."""
    subject: Subject
    bullet_points: List[BulletPoint] = Field(default_factory=list)
    subject_translation: Optional[str] = Field(None, description="Single-write translation of the title")

    @property
    def is_diagram(self) -> bool:
        return isinstance(self.subject, DiagramSubject)

    def find_bullet_point(self, bullet_point_id: str) -> Optional[BulletPoint]:
        for bullet_point in self.bullet_points:
            if bullet_point.id == bullet_point_id:
                return bullet_point
        return None
