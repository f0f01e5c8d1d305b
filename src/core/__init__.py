"""
Core Module for the Live Presenter

Deterministic building blocks: diagram graph mutation, node matching, the
subject history, the utterance bus and markdown export. The history
orchestrator lives in ``src.core.orchestrator``.
"""

from .diagram_graph import DiagramMutationResult, apply_diagram_op, apply_diagram_ops
from .node_matching import NodeMatcher, derive_node_id
from .subject_history import SubjectHistory
from .utterance_bus import UtteranceBus
from .markdown_export import export_markdown

__all__ = [
    'DiagramMutationResult',
    'apply_diagram_op',
    'apply_diagram_ops',
    'NodeMatcher',
    'derive_node_id',
    'SubjectHistory',
    'UtteranceBus',
    'export_markdown',
]
