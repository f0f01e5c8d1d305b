#!/usr/bin/env python3
"""
Test Suite for the subject history, utterance bus and markdown export

Tests:
1. Appends always land at the end; navigation never deletes entries
2. Single-write translations
3. Utterance bus delivery, unsubscribe and listener isolation
4. Markdown export of slides and diagrams

Usage:
    python test_subject_history.py
    pytest test_subject_history.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from src.core.markdown_export import EMPTY_ENTRY, ENTRY_SEPARATOR, export_markdown
from src.core.subject_history import SubjectHistory
from src.core.utterance_bus import UtteranceBus
from src.models.presentation import (
    BulletPoint,
    DiagramEdge,
    DiagramGraph,
    DiagramNode,
    DiagramSubject,
    SlideSubject,
    Utterance,
)


def test_append_and_navigate():
    """Test 1: Cursor follows appends; navigating back keeps forward entries."""
    print("\n[TEST 1] Append and navigate")
    print("-" * 50)

    history = SubjectHistory()
    assert history.current_index == -1 and history.current is None
    assert not history.has_subject

    try:
        history.append_bullet_point(BulletPoint(text="orphan"))
        raise AssertionError("Expected LookupError without a subject")
    except LookupError:
        pass
    print("  ✓ Empty history has no current subject")

    for title in ["Intro", "Budget", "Hiring"]:
        history.append_subject(SlideSubject(title=title))
    assert len(history) == 3 and history.current_index == 2

    assert history.navigate(0)
    assert history.current.subject.title == "Intro"
    assert not history.can_navigate_previous() and history.can_navigate_next()

    history.append_subject(SlideSubject(title="Roadmap"))
    titles = [entry.subject.title for entry in history.entries]
    assert titles == ["Intro", "Budget", "Hiring", "Roadmap"], f"Forward entries must survive, got {titles}"
    assert history.current_index == 3
    print("  ✓ New subjects go to the end even after navigating back")

    assert not history.navigate(10) and not history.navigate(-1)
    assert history.current_index == 3
    print("  ✓ Out-of-range navigation is ignored")

    assert history.navigate_previous() and history.current_index == 2
    assert history.navigate_next() and history.current_index == 3
    assert not history.navigate_next()

    history.append_bullet_point(BulletPoint(text="Q3 launch"))
    assert [bp.text for bp in history.current.bullet_points] == ["Q3 launch"]
    print("  ✓ Bullet points attach to the current entry")

    history.reset()
    assert len(history) == 0 and history.current_index == -1
    print("  ✓ TEST 1 PASSED!")


def test_single_write_translations():
    """Test 2: A translation is written at most once."""
    print("\n[TEST 2] Single-write translations")
    print("-" * 50)

    history = SubjectHistory()
    entry = history.append_subject(SlideSubject(title="Budget"))
    assert history.set_subject_translation(entry, "Budget (fr)")
    assert not history.set_subject_translation(entry, "Other")
    assert entry.subject_translation == "Budget (fr)"
    print("  ✓ Subject translation is single-write")

    stranger = SubjectHistory().append_subject(SlideSubject(title="Elsewhere"))
    assert not history.set_subject_translation(stranger, "x"), "Entries from other histories are ignored"

    bullet_point = BulletPoint(text="Costs are down")
    history.append_bullet_point(bullet_point)
    assert history.set_bullet_point_translation(bullet_point, "Les coûts baissent")
    assert not history.set_bullet_point_translation(bullet_point, "Other")
    assert bullet_point.translation == "Les coûts baissent"
    print("  ✓ Bullet point translation is single-write")
    print("  ✓ TEST 2 PASSED!")


def test_utterance_bus():
    """Test 3: Listeners run in order; failures are isolated; unsubscribe works."""
    print("\n[TEST 3] Utterance bus")
    print("-" * 50)

    async def scenario():
        bus = UtteranceBus()
        received = []

        def failing(utterance):
            raise RuntimeError("listener bug")

        async def async_listener(utterance):
            received.append(("async", utterance.id))

        unsubscribe_failing = bus.on_utterance_complete(failing)
        unsubscribe_sync = bus.on_utterance_complete(lambda u: received.append(("sync", u.id)))
        bus.on_utterance_complete(async_listener)
        assert bus.listener_count == 3

        await bus.publish(Utterance(id="u1", text="hello"))
        assert received == [("sync", "u1"), ("async", "u1")], f"Unexpected delivery: {received}"
        print("  ✓ A failing listener does not stop the others")

        unsubscribe_sync()
        unsubscribe_sync()
        unsubscribe_failing()
        assert bus.listener_count == 1
        await bus.publish(Utterance(id="u2", text="again"))
        assert received[-1] == ("async", "u2") and len(received) == 3
        print("  ✓ Unsubscribe is idempotent")

    asyncio.run(scenario())
    print("  ✓ TEST 3 PASSED!")


def test_markdown_export():
    """Test 4: Entries render as title, translation and bullets separated by rules."""
    print("\n[TEST 4] Markdown export")
    print("-" * 50)

    history = SubjectHistory()
    entry = history.append_subject(SlideSubject(title="Budget"))
    history.set_subject_translation(entry, "Le budget")
    bullet_point = BulletPoint(text="Costs are down")
    history.append_bullet_point(bullet_point)
    history.set_bullet_point_translation(bullet_point, "Les coûts baissent")

    history.append_subject(SlideSubject(title="Hiring"))

    graph = DiagramGraph(
        nodes=[DiagramNode(id="web", label="Web", translation="Toile"), DiagramNode(id="api", label="API")],
        edges=[DiagramEdge(from_="web", to="api")],
    )
    history.append_subject(DiagramSubject(title="Architecture", graph=graph))
    history.append_subject(DiagramSubject(title="Blank"))

    markdown = export_markdown(history.entries)
    sections = markdown.split(ENTRY_SEPARATOR)
    assert len(sections) == 4, f"Expected 4 sections, got {len(sections)}"

    assert sections[0] == "# Budget\n## Le budget\n\n- Costs are down\n  - Les coûts baissent"
    print("  ✓ Slide with translations")

    assert sections[1] == f"# Hiring\n\n{EMPTY_ENTRY}"
    print("  ✓ Slide without bullet points")

    assert sections[2] == "# Architecture\n\n- Web (Toile)\n- API\n- Web → API"
    print("  ✓ Diagram lists nodes then edges by label")

    assert sections[3] == "# Blank\n\n_Empty diagram_"
    assert export_markdown([]) == ""
    print("  ✓ TEST 4 PASSED!")


def main():
    """Run all tests."""
    print("=" * 60)
    print("SUBJECT HISTORY - TEST SUITE")
    print("=" * 60)

    tests = [test_append_and_navigate, test_single_write_translations, test_utterance_bus, test_markdown_export]
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
