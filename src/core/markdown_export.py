"""
Markdown export of the subject history.
"""

from typing import List

from src.models.presentation import DiagramSubject, SubjectHistoryEntry

ENTRY_SEPARATOR = "\n\n---\n\n"
EMPTY_ENTRY = "_No bullet points yet_"


def _diagram_lines(subject: DiagramSubject) -> List[str]:
    graph = subject.graph
    if graph.is_empty:
        return ["_Empty diagram_"]

    labels = {node.id: node.label for node in graph.nodes}
    lines = []
    for node in graph.nodes:
        suffix = f" ({node.translation})" if node.translation else ""
        lines.append(f"- {node.label}{suffix}")
    for edge in graph.edges:
        lines.append(f"- {labels.get(edge.from_, edge.from_)} → {labels.get(edge.to, edge.to)}")
    return lines


def entry_to_markdown(entry: SubjectHistoryEntry) -> str:
    lines = [f"# {entry.subject.title}"]
    if entry.subject_translation:
        lines.append(f"## {entry.subject_translation}")
    lines.append("")

    if isinstance(entry.subject, DiagramSubject):
        lines.extend(_diagram_lines(entry.subject))
        if entry.bullet_points:
            lines.append("")
    elif not entry.bullet_points:
        lines.append(EMPTY_ENTRY)

    for bullet_point in entry.bullet_points:
        lines.append(f"- {bullet_point.text}")
        if bullet_point.translation:
            lines.append(f"  - {bullet_point.translation}")
    return "\n".join(lines)


def export_markdown(entries: List[SubjectHistoryEntry]) -> str:
    """Render every entry, in history order, separated by horizontal rules."""
    return ENTRY_SEPARATOR.join(entry_to_markdown(entry) for entry in entries)
