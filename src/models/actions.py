"""
Action Models

Defines the actions the Presentation Control Engine emits for each utterance,
and the diagram operations carried by a ``diagramAction``.

Both are tagged unions: ``Action`` is discriminated on ``action`` and
``DiagramOp`` on ``type``, matching the JSON the oracle produces.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ActionType(str, Enum):
    """Action tokens the classifier lines may return."""
    RESUME_PRESENTATION = "resumePresentation"
    PAUSE_PRESENTATION = "pausePresentation"
    CHANGE_SUBJECT = "changeSubject"
    ADD_SINGLE_BULLET_POINT = "addSingleBulletPoint"
    ADD_MULTIPLE_BULLET_POINTS = "addMultipleBulletPoints"
    BEGIN_DIAGRAM = "beginDiagram"
    DIAGRAM_ACTION = "diagramAction"
    END_DIAGRAM = "endDiagram"
    NO_OPERATION = "noOperation"


class DiagramOpType(str, Enum):
    """Diagram operation tokens."""
    UPDATE_DIAGRAM_TITLE = "updateDiagramTitle"
    ADD_NODE = "addNode"
    EDIT_NODE = "editNode"
    REMOVE_NODE = "removeNode"
    ADD_EDGE = "addEdge"
    REMOVE_EDGE = "removeEdge"
    NO_OPERATION = "noOperation"


# ============================================================================
# Diagram operations
# ============================================================================

class UpdateDiagramTitleOp(BaseModel):
    type: Literal["updateDiagramTitle"] = "updateDiagramTitle"
    title: str


class AddNodeOp(BaseModel):
    type: Literal["addNode"] = "addNode"
    id: str
    label: str


class EditNodeOp(BaseModel):
    type: Literal["editNode"] = "editNode"
    id: str
    label: str


class RemoveNodeOp(BaseModel):
    type: Literal["removeNode"] = "removeNode"
    id: str


class AddEdgeOp(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["addEdge"] = "addEdge"
    from_: str = Field(..., alias="from")
    to: str


class RemoveEdgeOp(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["removeEdge"] = "removeEdge"
    from_: str = Field(..., alias="from")
    to: str


class NoOperationOp(BaseModel):
    type: Literal["noOperation"] = "noOperation"


DiagramOp = Annotated[
    Union[
        UpdateDiagramTitleOp,
        AddNodeOp,
        EditNodeOp,
        RemoveNodeOp,
        AddEdgeOp,
        RemoveEdgeOp,
        NoOperationOp,
    ],
    Field(discriminator="type"),
]

_diagram_op_adapter = TypeAdapter(DiagramOp)


def parse_diagram_op(raw: Dict[str, Any]) -> DiagramOp:
    """Validate one raw oracle dict into a typed diagram operation."""
    return _diagram_op_adapter.validate_python(raw)


# ============================================================================
# Actions
# ============================================================================

class BulletPointText(BaseModel):
    """Text of a bullet point before it is placed in history."""
    text: str


class ResumePresentation(BaseModel):
    action: Literal["resumePresentation"] = "resumePresentation"


class PausePresentation(BaseModel):
    action: Literal["pausePresentation"] = "pausePresentation"


class ChangeSubject(BaseModel):
    action: Literal["changeSubject"] = "changeSubject"
    title: str


class AddSingleBulletPoint(BaseModel):
    action: Literal["addSingleBulletPoint"] = "addSingleBulletPoint"
    text: str


class AddMultipleBulletPoints(BaseModel):
    action: Literal["addMultipleBulletPoints"] = "addMultipleBulletPoints"
    items: List[BulletPointText] = Field(..., min_length=1)


class BeginDiagram(BaseModel):
    action: Literal["beginDiagram"] = "beginDiagram"
    title: str


class DiagramAction(BaseModel):
    action: Literal["diagramAction"] = "diagramAction"
    ops: List[DiagramOp] = Field(..., min_length=1)


class EndDiagram(BaseModel):
    """
    Leave diagram mode.

    ``new_subject_title`` is set when the closing utterance also opened a new
    topic; the orchestrator then appends a slide with that title.
    """
    action: Literal["endDiagram"] = "endDiagram"
    new_subject_title: Optional[str] = None


class NoOperation(BaseModel):
    action: Literal["noOperation"] = "noOperation"


Action = Annotated[
    Union[
        ResumePresentation,
        PausePresentation,
        ChangeSubject,
        AddSingleBulletPoint,
        AddMultipleBulletPoints,
        BeginDiagram,
        DiagramAction,
        EndDiagram,
        NoOperation,
    ],
    Field(discriminator="action"),
]


class AnalysisResult(BaseModel):
    """What ``engine.analyze`` returns for one utterance."""
    action: Action
    confidence: float = Field(..., ge=0.0, le=1.0)

    @property
    def action_type(self) -> ActionType:
        return ActionType(self.action.action)
