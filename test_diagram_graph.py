#!/usr/bin/env python3
"""
Test Suite for diagram graphs

Tests:
1. Applying operations keeps graph invariants (unique ids, valid edges, cascades)
2. Batches apply in order on a copy
3. Node id derivation
4. Synonym-aware node matching

Usage:
    python test_diagram_graph.py
    pytest test_diagram_graph.py
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from src.core.diagram_graph import apply_diagram_op, apply_diagram_ops
from src.core.node_matching import NodeMatcher, derive_node_id, normalize_label
from src.models.actions import (
    AddEdgeOp,
    AddNodeOp,
    EditNodeOp,
    NoOperationOp,
    RemoveEdgeOp,
    RemoveNodeOp,
    UpdateDiagramTitleOp,
)
from src.models.presentation import DiagramEdge, DiagramGraph, DiagramNode


def sample_graph() -> DiagramGraph:
    return DiagramGraph(
        nodes=[
            DiagramNode(id="frontend", label="Frontend"),
            DiagramNode(id="backend", label="Backend", translation="Serveur"),
            DiagramNode(id="database", label="Database"),
        ],
        edges=[
            DiagramEdge(from_="frontend", to="backend"),
            DiagramEdge(from_="backend", to="database"),
        ],
    )


def test_single_operations():
    """Test 1: Each operation type respects the graph invariants."""
    print("\n[TEST 1] Single operations")
    print("-" * 50)

    graph = sample_graph()

    assert isinstance(apply_diagram_op(graph, AddNodeOp(id="backend", label="Backend")), NoOperationOp)
    assert len(graph.nodes) == 3, "Duplicate node id must not be added"
    print("  ✓ Duplicate addNode is a no-op")

    applied = apply_diagram_op(graph, AddNodeOp(id="cache", label="  Cache  "))
    assert isinstance(applied, AddNodeOp) and applied.label == "Cache"
    assert graph.get_node("cache").label == "Cache"
    print("  ✓ addNode trims the label")

    rejected = apply_diagram_op(graph, AddEdgeOp(from_="cache", to="queue"))
    assert isinstance(rejected, NoOperationOp)
    assert not graph.has_edge("cache", "queue")
    print("  ✓ Edge to a missing node is rejected")

    assert isinstance(apply_diagram_op(graph, AddEdgeOp(from_="frontend", to="backend")), NoOperationOp)
    assert len(graph.edges) == 2, "Duplicate edge must not be added"
    print("  ✓ Duplicate addEdge is a no-op")

    edited = apply_diagram_op(graph, EditNodeOp(id="backend", label="API Server"))
    assert isinstance(edited, EditNodeOp)
    node = graph.get_node("backend")
    assert node.label == "API Server" and node.translation is None, "Editing a label drops its stale translation"
    assert isinstance(apply_diagram_op(graph, EditNodeOp(id="backend", label="API Server")), NoOperationOp)
    assert isinstance(apply_diagram_op(graph, EditNodeOp(id="missing", label="X")), NoOperationOp)
    print("  ✓ editNode relabels in place, keeps the id")

    removed = apply_diagram_op(graph, RemoveNodeOp(id="backend"))
    assert isinstance(removed, RemoveNodeOp)
    assert not graph.has_node("backend")
    assert graph.edges == [], f"Edges touching the removed node must go, got {graph.edges}"
    print("  ✓ removeNode cascades to its edges")

    apply_diagram_op(graph, AddEdgeOp(from_="frontend", to="database"))
    assert isinstance(apply_diagram_op(graph, RemoveEdgeOp(from_="frontend", to="database")), RemoveEdgeOp)
    assert isinstance(apply_diagram_op(graph, RemoveEdgeOp(from_="frontend", to="database")), NoOperationOp)
    print("  ✓ removeEdge removes once")

    assert isinstance(apply_diagram_op(graph, UpdateDiagramTitleOp(title="   ")), NoOperationOp)
    titled = apply_diagram_op(graph, UpdateDiagramTitleOp(title=" System Overview "))
    assert titled.title == "System Overview"
    print("  ✓ updateDiagramTitle trims and ignores blanks")
    print("  ✓ TEST 1 PASSED!")


def test_batch_on_copy():
    """Test 2: Later operations see earlier ones; the input graph is untouched."""
    print("\n[TEST 2] Batches")
    print("-" * 50)

    original = DiagramGraph()
    result = apply_diagram_ops(original, [
        AddNodeOp(id="web_app", label="Web App"),
        AddNodeOp(id="api_server", label="API Server"),
        AddEdgeOp(from_="web_app", to="api_server"),
        UpdateDiagramTitleOp(title="Request Flow"),
    ])

    assert original.is_empty, "apply_diagram_ops must not mutate its input"
    assert [node.id for node in result.graph.nodes] == ["web_app", "api_server"]
    assert result.graph.has_edge("web_app", "api_server")
    assert result.title == "Request Flow"
    assert result.changed
    print("  ✓ Edge may reference a node added earlier in the batch")

    unchanged = apply_diagram_ops(result.graph, [AddNodeOp(id="web_app", label="Web App")])
    assert not unchanged.changed
    assert unchanged.title is None
    print("  ✓ A batch of no-ops reports no change")

    for edge in result.graph.edges:
        assert result.graph.has_node(edge.from_) and result.graph.has_node(edge.to)
    print("  ✓ Every edge references existing nodes")
    print("  ✓ TEST 2 PASSED!")


def test_derive_node_id():
    """Test 3: Node ids are stable, readable and label-derived."""
    print("\n[TEST 3] derive_node_id")
    print("-" * 50)

    cases = {
        "Setup Phase": "setup_phase",
        "API!": "api",
        "  Web   App ": "web_app",
        "Authentication Service": "authentication_service",
    }
    for label, expected in cases.items():
        actual = derive_node_id(label)
        assert actual == expected, f"derive_node_id({label!r}) = {actual!r}, expected {expected!r}"
        print(f"  ✓ {label!r} -> {actual!r}")

    assert normalize_label("The_API Server!") == "api server"
    print("  ✓ normalize_label drops articles, underscores and punctuation")
    print("  ✓ TEST 3 PASSED!")


def test_node_matching():
    """Test 4: New labels resolve to existing nodes only when they mean the same thing."""
    print("\n[TEST 4] NodeMatcher")
    print("-" * 50)

    matcher = NodeMatcher(threshold=0.9)
    nodes = sample_graph().nodes + [
        DiagramNode(id="branch_a", label="Branch A"),
    ]

    cases = [
        ("the frontend", "frontend", "exact after normalization"),
        ("MySQL database", "database", "head-noun containment"),
        ("API server", "backend", "synonym table"),
        ("DB", "database", "synonym table"),
        ("Databse", "database", "transcription typo"),
        ("Branch B", None, "sibling labels stay distinct"),
        ("Payment Service", None, "unrelated label"),
        ("", None, "empty label"),
    ]
    for label, expected, why in cases:
        actual = matcher.match(label, nodes)
        assert actual == expected, f"match({label!r}) = {actual!r}, expected {expected!r} ({why})"
        print(f"  ✓ {label!r} -> {actual!r} ({why})")

    nodes = [
        DiagramNode(id="server", label="Server"),
        DiagramNode(id="user", label="User"),
        DiagramNode(id="mysql_database", label="MySQL Database"),
    ]
    new_node_cases = [
        ("Mail Server", None, "a qualified label is a new component"),
        ("Admin User", None, "a qualified label is a new component"),
        ("Database", "mysql_database", "a less specific label still reuses"),
        ("the server", "server", "exact after normalization"),
    ]
    for label, expected, why in new_node_cases:
        actual = matcher.match(label, nodes, new_node=True)
        assert actual == expected, f"match({label!r}, new_node=True) = {actual!r}, expected {expected!r} ({why})"
        print(f"  ✓ new {label!r} -> {actual!r} ({why})")

    assert matcher.match("Mail Server", nodes) == "server", "References may still be more qualified"
    print("  ✓ TEST 4 PASSED!")


def main():
    """Run all tests."""
    print("=" * 60)
    print("DIAGRAM GRAPH - TEST SUITE")
    print("=" * 60)

    tests = [test_single_operations, test_batch_on_copy, test_derive_node_id, test_node_matching]
    results = []
    for test in tests:
        try:
            test()
            results.append(True)
        except Exception as e:
            print(f"  ✗ {test.__name__} FAILED: {e}")
            results.append(False)

    print("\n" + "=" * 60)
    print(f"RESULTS: {sum(results)}/{len(results)} tests passed")
    print("=" * 60)
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
