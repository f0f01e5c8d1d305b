"""
Diagram Mutation Extractor

Turns a spoken description into an ordered list of diagram operations for the
current graph. The oracle proposes the operations; a deterministic pass then
canonicalizes them against the graph:

- new node ids are derived from labels (``"Setup Phase" -> "setup_phase"``)
- nodes that already exist under a synonymous label are reused, not duplicated
- references to renamed or reused nodes are redirected
- edges whose endpoints do not exist after earlier operations become noOperation
- an empty result becomes a single noOperation
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.clients.oracle import (
    ClassificationFailed,
    OperationAborted,
    OracleLine,
    PromptExample,
    SessionConfig,
)
from src.clients.oracle_lines import OracleLines
from src.core.diagram_graph import apply_diagram_op
from src.core.node_matching import NodeMatcher, derive_node_id
from src.models.actions import (
    AddEdgeOp,
    AddNodeOp,
    DiagramOp,
    EditNodeOp,
    NoOperationOp,
    RemoveEdgeOp,
    RemoveNodeOp,
    UpdateDiagramTitleOp,
    parse_diagram_op,
)
from src.models.presentation import DiagramGraph
from src.models.schemas import DIAGRAM_ACTIONS_SCHEMA
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


DIAGRAM_EXTRACTION_SYSTEM_PROMPT = """You turn spoken descriptions into edits of a simple box-and-arrow diagram.

Operation types:
- addNode {id, label}: add a box for a concept, step or component
- editNode {id, label}: rename an existing box
- removeNode {id}: delete a box (its arrows go with it)
- addEdge {from, to}: connect two boxes
- removeEdge {from, to}: delete a connection
- updateDiagramTitle {title}: rename the diagram
- noOperation: nothing to extract

Nodes:
- Every noun, concept, step or component the speaker introduces gets an addNode
  ("we have X", "then comes Y", "A, B and C")
- Before adding a node, check the current diagram state. If a node with the same or an
  overlapping meaning exists ("database" vs "MySQL database", "backend" vs "server" or
  "API server", "frontend" vs "UI" or "client"), reuse its id instead of adding a node
- New ids: lowercase label, spaces become underscores, no punctuation
  ("Setup Phase" -> "setup_phase", "API" -> "api")

Edges:
- Only when a connection is stated ("from X to Y", "X talks to Y", "after X comes Y")
- Use the exact ids from the current diagram state, or ids you added earlier in the same reply

Respond with JSON: {"actions": [...]}"""

DIAGRAM_EXTRACTION_EXAMPLES = [
    PromptExample(
        user='Extract diagram editing instructions from: "So, um, we have initialization at the start, you know, where everything begins"',
        assistant='{"actions":[{"type":"addNode","id":"initialization","label":"initialization"}]}',
    ),
    PromptExample(
        user='Extract diagram editing instructions from: "Then there is parsing, checking, and, uh, output at the end"',
        assistant='{"actions":[{"type":"addNode","id":"parsing","label":"parsing"},{"type":"addNode","id":"checking","label":"checking"},{"type":"addNode","id":"output","label":"output"}]}',
    ),
    PromptExample(
        user=(
            'Extract diagram editing instructions from: "And the web app sends everything to the server"'
            '\n\nCurrent diagram state:\nNodes: "web_app" (label: "web app"), "api_server" (label: "API server")'
            '\nEdges: none\n\nWhen referencing nodes for edges, use the exact IDs listed above.'
        ),
        assistant='{"actions":[{"type":"addEdge","from":"web_app","to":"api_server"}]}',
    ),
]


def describe_graph(graph: Optional[DiagramGraph]) -> str:
    """Render the current graph as the state block appended to extraction prompts."""
    if graph is None or graph.is_empty:
        return ""

    nodes = ", ".join(f'"{node.id}" (label: "{node.label}")' for node in graph.nodes)
    if graph.edges:
        edges = ", ".join(f'"{edge.from_}" -> "{edge.to}"' for edge in graph.edges)
    else:
        edges = "none"

    return (
        f"\n\nCurrent diagram state:\nNodes: {nodes}\nEdges: {edges}"
        "\n\nWhen referencing nodes for edges, use the exact IDs listed above."
    )


def _read_raw_ops(parsed: Any) -> List[Dict[str, Any]]:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("actions"), list):
        raise ValueError(f"Missing actions list: {parsed!r}")
    return [item for item in parsed["actions"] if isinstance(item, dict)]


class DiagramOpCanonicalizer:
    """
    Deterministic post-processing of one batch of oracle-proposed operations.

    Works on a private copy of the graph so every operation is checked against
    the state produced by the operations before it.
    """

    def __init__(self, graph: Optional[DiagramGraph], matcher: NodeMatcher):
        self.working = graph.model_copy(deep=True) if graph else DiagramGraph()
        self.matcher = matcher
        self.renames: Dict[str, str] = {}

    def resolve(self, reference: str) -> Optional[str]:
        """Map a node reference from the oracle to an id in the working graph."""
        reference = (reference or "").strip()
        if not reference:
            return None
        if reference in self.renames and self.working.has_node(self.renames[reference]):
            return self.renames[reference]
        if self.working.has_node(reference):
            return reference
        derived = derive_node_id(reference)
        if self.working.has_node(derived):
            return derived
        return self.matcher.match(reference, self.working.nodes)

    def canonicalize(self, op: DiagramOp) -> DiagramOp:
        if isinstance(op, AddNodeOp):
            return self._add_node(op)

        if isinstance(op, EditNodeOp):
            node_id = self.resolve(op.id)
            if node_id is None:
                return NoOperationOp()
            return EditNodeOp(id=node_id, label=op.label)

        if isinstance(op, RemoveNodeOp):
            node_id = self.resolve(op.id)
            if node_id is None:
                return NoOperationOp()
            return RemoveNodeOp(id=node_id)

        if isinstance(op, (AddEdgeOp, RemoveEdgeOp)):
            from_id, to_id = self.resolve(op.from_), self.resolve(op.to)
            if from_id is None or to_id is None:
                logger.warning(f"⚠️  Dropping {op.type} {op.from_} -> {op.to}: unknown endpoint")
                return NoOperationOp()
            return type(op)(from_=from_id, to=to_id)

        if isinstance(op, UpdateDiagramTitleOp):
            return op

        return NoOperationOp()

    def _add_node(self, op: AddNodeOp) -> DiagramOp:
        label = op.label.strip() or op.id.strip()
        node_id = derive_node_id(label) or derive_node_id(op.id)
        if not node_id:
            return NoOperationOp()

        existing = self.working.get_node(node_id)
        if existing is None:
            existing_id = self.matcher.match(label, self.working.nodes, new_node=True)
        else:
            existing_id = existing.id

        if existing_id is not None:
            logger.debug(f"Reusing node '{existing_id}' for '{label}'")
            self.renames[op.id] = existing_id
            self.renames[node_id] = existing_id
            return NoOperationOp()

        self.renames[op.id] = node_id
        return AddNodeOp(id=node_id, label=label)

    def process(self, ops: List[DiagramOp]) -> List[DiagramOp]:
        """Canonicalize and apply to the working graph; keep what changed it."""
        result: List[DiagramOp] = []
        for op in ops:
            canonical = self.canonicalize(op)
            if isinstance(canonical, NoOperationOp):
                # Rejected edges stay visible as noOperation
                if isinstance(op, AddEdgeOp):
                    result.append(canonical)
                continue

            applied = apply_diagram_op(self.working, canonical)
            if not isinstance(applied, NoOperationOp):
                result.append(applied)
        return result or [NoOperationOp()]


class DiagramExtractor:
    """Extracts diagram operations from an utterance."""

    def __init__(
        self,
        lines: OracleLines,
        node_match_threshold: float = 0.9,
        temperature: Optional[float] = None
    ):
        self.lines = lines
        self.matcher = NodeMatcher(threshold=node_match_threshold)
        self.temperature = temperature

    def session_configs(self):
        return [
            SessionConfig(
                line=OracleLine.DIAGRAM_EXTRACTION,
                system_prompt=DIAGRAM_EXTRACTION_SYSTEM_PROMPT,
                examples=DIAGRAM_EXTRACTION_EXAMPLES,
                temperature=self.temperature,
            )
        ]

    async def initialize(self) -> None:
        for config in self.session_configs():
            await self.lines.open(config)

    def parse_ops(self, raw_ops: List[Dict[str, Any]]) -> List[DiagramOp]:
        ops: List[DiagramOp] = []
        for raw in raw_ops:
            try:
                ops.append(parse_diagram_op(raw))
            except ValidationError as e:
                logger.warning(f"⚠️  Skipping malformed diagram op {raw!r}: {e.error_count()} errors")
        return ops

    def postprocess(self, ops: List[DiagramOp], graph: Optional[DiagramGraph]) -> List[DiagramOp]:
        return DiagramOpCanonicalizer(graph, self.matcher).process(ops)

    async def extract(self, text: str, graph: Optional[DiagramGraph] = None) -> List[DiagramOp]:
        """
        Extract diagram operations for ``text`` against ``graph``.

        Returns:
            Non-empty list of operations; ``[noOperation]`` when nothing is
            extractable or extraction failed

        Raises:
            OperationAborted: If the shared abort signal fired
        """
        prompt = f'Extract diagram editing instructions from: "{text}"{describe_graph(graph)}'
        try:
            raw_ops = await self.lines.prompt_json(
                OracleLine.DIAGRAM_EXTRACTION,
                prompt,
                DIAGRAM_ACTIONS_SCHEMA,
                validate=_read_raw_ops,
                operation_name="Diagram extraction",
            )
        except OperationAborted:
            raise
        except ClassificationFailed as e:
            logger.error(f"Diagram extraction failed: {e}")
            return [NoOperationOp()]

        ops = self.postprocess(self.parse_ops(raw_ops), graph)
        logger.info(f"📊 Extracted {len(ops)} diagram ops: {[op.type for op in ops]}")
        return ops
