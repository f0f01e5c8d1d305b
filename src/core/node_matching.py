"""
Node id derivation and synonym-aware node matching.

The oracle is prompted to reuse existing nodes, but its judgment is not
reliable, so new node labels are also checked against the current graph:

1. same normalized label or same derived id
2. head-noun containment ("database" vs "MySQL database"); a node being added
   with a more qualified label ("Mail Server" next to "Server") stays separate
3. a small synonym table ("backend" vs "API server")
4. word-by-word difflib similarity above a threshold
"""

import re
from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Optional

from src.models.presentation import DiagramNode

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_LEADING_ARTICLES = ("the ", "a ", "an ", "our ", "my ")

SYNONYM_GROUPS: List[List[str]] = [
    ["backend", "back end", "server", "api server", "api", "backend server"],
    ["frontend", "front end", "ui", "user interface", "client", "web client"],
    ["database", "db", "datastore", "data store"],
    ["user", "end user", "customer"],
    ["cache", "caching layer"],
    ["queue", "message queue", "message broker"],
]

_CANONICAL: Dict[str, str] = {
    term: group[0] for group in SYNONYM_GROUPS for term in group
}


def derive_node_id(label: str) -> str:
    """
    Derive a stable, human-readable node id from a label.

    Lowercases, strips punctuation and replaces whitespace with underscores:
    ``"Setup Phase" -> "setup_phase"``, ``"API!" -> "api"``.
    """
    text = _PUNCTUATION.sub("", label.lower())
    return _WHITESPACE.sub("_", text.strip())


def normalize_label(label: str) -> str:
    """Lowercase words without punctuation, underscores or leading articles."""
    text = _PUNCTUATION.sub(" ", label.lower().replace("_", " "))
    text = _WHITESPACE.sub(" ", text).strip()
    for article in _LEADING_ARTICLES:
        if text.startswith(article):
            text = text[len(article):]
    return text


def _canonical(label: str) -> Optional[str]:
    return _CANONICAL.get(label)


def _head_contained(smaller: List[str], bigger: List[str]) -> bool:
    """All of ``smaller``'s words appear in ``bigger`` and both end on the same word."""
    if not smaller or len(smaller) >= len(bigger):
        return False
    return set(smaller) <= set(bigger) and smaller[-1] == bigger[-1]


def _wordwise_similarity(left: List[str], right: List[str]) -> float:
    """
    Lowest per-word similarity of two equally long labels.

    Comparing word by word keeps "branch a" and "branch b" apart while still
    tolerating transcription typos such as "databse".
    """
    if not left or len(left) != len(right):
        return 0.0
    return min(SequenceMatcher(None, a, b).ratio() for a, b in zip(left, right))


class NodeMatcher:
    """Finds an existing node that a new label most likely refers to."""

    def __init__(self, threshold: float = 0.9):
        self.threshold = threshold

    def match(self, label: str, nodes: Iterable[DiagramNode], new_node: bool = False) -> Optional[str]:
        """
        Return the id of the existing node ``label`` refers to, or None.

        Args:
            label: Label (or id) of the node the speaker mentioned
            nodes: Current nodes to match against
            new_node: ``label`` names a node to add. A more qualified label
                ("Mail Server" next to "Server") is then a new component,
                not a reference to the existing one.
        """
        candidate = normalize_label(label)
        if not candidate:
            return None

        nodes = list(nodes)
        candidate_id = derive_node_id(candidate)
        candidate_words = candidate.split()

        for node in nodes:
            if node.id == candidate_id or normalize_label(node.label) == candidate:
                return node.id

        for node in nodes:
            existing_words = normalize_label(node.label).split()
            if _head_contained(candidate_words, existing_words):
                return node.id
            if not new_node and _head_contained(existing_words, candidate_words):
                return node.id

        candidate_canonical = _canonical(candidate)
        if candidate_canonical:
            for node in nodes:
                if _canonical(normalize_label(node.label)) == candidate_canonical:
                    return node.id

        best_id, best_ratio = None, 0.0
        for node in nodes:
            ratio = _wordwise_similarity(candidate_words, normalize_label(node.label).split())
            if ratio > best_ratio:
                best_id, best_ratio = node.id, ratio

        if best_ratio >= self.threshold:
            return best_id
        return None
