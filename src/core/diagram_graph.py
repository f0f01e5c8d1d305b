"""
Diagram graph mutation.

Applies diagram operations to a graph in list order while keeping its
invariants: node ids are unique, every edge references existing nodes,
removing a node removes its edges, and duplicate nodes or edges are no-ops.
Operations that change nothing come back as ``noOperation`` so callers can
tell what actually happened.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from src.models.actions import (
    AddEdgeOp,
    AddNodeOp,
    DiagramOp,
    EditNodeOp,
    NoOperationOp,
    RemoveEdgeOp,
    RemoveNodeOp,
    UpdateDiagramTitleOp,
)
from src.models.presentation import DiagramEdge, DiagramGraph, DiagramNode
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


class DiagramMutationResult(BaseModel):
    """Outcome of applying a batch of operations."""
    graph: DiagramGraph
    applied: List[DiagramOp] = Field(default_factory=list)
    title: Optional[str] = Field(None, description="New diagram title, if the batch renamed it")

    @property
    def changed(self) -> bool:
        return any(not isinstance(op, NoOperationOp) for op in self.applied)


def apply_diagram_op(graph: DiagramGraph, op: DiagramOp) -> DiagramOp:
    """
    Apply one operation to ``graph`` in place.

    Returns:
        The operation if it changed something, otherwise NoOperationOp
    """
    if isinstance(op, AddNodeOp):
        node_id = op.id.strip()
        if not node_id or graph.has_node(node_id):
            return NoOperationOp()
        graph.nodes.append(DiagramNode(id=node_id, label=op.label.strip() or node_id))
        return AddNodeOp(id=node_id, label=op.label.strip() or node_id)

    if isinstance(op, EditNodeOp):
        node = graph.get_node(op.id)
        label = op.label.strip()
        if node is None or not label or node.label == label:
            return NoOperationOp()
        node.label = label
        # The old translation described the old label
        node.translation = None
        return EditNodeOp(id=node.id, label=label)

    if isinstance(op, RemoveNodeOp):
        if not graph.has_node(op.id):
            return NoOperationOp()
        graph.nodes = [node for node in graph.nodes if node.id != op.id]
        graph.edges = [edge for edge in graph.edges if op.id not in edge.key]
        return op

    if isinstance(op, AddEdgeOp):
        if not graph.has_node(op.from_) or not graph.has_node(op.to):
            logger.warning(f"⚠️  Rejected edge {op.from_} -> {op.to}: endpoint does not exist")
            return NoOperationOp()
        if graph.has_edge(op.from_, op.to):
            return NoOperationOp()
        graph.edges.append(DiagramEdge(from_=op.from_, to=op.to))
        return op

    if isinstance(op, RemoveEdgeOp):
        if not graph.has_edge(op.from_, op.to):
            return NoOperationOp()
        graph.edges = [edge for edge in graph.edges if edge.key != (op.from_, op.to)]
        return op

    if isinstance(op, UpdateDiagramTitleOp):
        title = op.title.strip()
        return UpdateDiagramTitleOp(title=title) if title else NoOperationOp()

    return NoOperationOp()


def apply_diagram_ops(graph: DiagramGraph, ops: List[DiagramOp]) -> DiagramMutationResult:
    """
    Apply operations in order to a copy of ``graph``.

    Later operations see the effects of earlier ones, so an edge may
    reference a node added earlier in the same batch.
    """
    working = graph.model_copy(deep=True)
    applied: List[DiagramOp] = []
    title: Optional[str] = None

    for op in ops:
        outcome = apply_diagram_op(working, op)
        if isinstance(outcome, UpdateDiagramTitleOp):
            title = outcome.title
        applied.append(outcome)

    return DiagramMutationResult(graph=working, applied=applied, title=title)
