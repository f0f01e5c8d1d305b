"""
Agents Package for the Live Presenter

Oracle-backed classifiers and generators, and the Presentation Control Engine
that routes utterances through them.
"""

from .presentation_engine import PresentationControlEngine
from .action_classifier import ActionClassifier
from .title_generator import TitleGenerator
from .bullet_point_generator import BulletPointGenerator
from .diagram_extractor import DiagramExtractor

__all__ = [
    'PresentationControlEngine',
    'ActionClassifier',
    'TitleGenerator',
    'BulletPointGenerator',
    'DiagramExtractor'
]
