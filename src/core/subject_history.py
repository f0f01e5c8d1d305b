"""
Subject history.

Append-only ordered list of subject entries plus a navigation cursor.
New subjects always go to the true end of the list, whatever the cursor
points at; navigating back never deletes forward entries.
"""

from typing import List, Optional

from src.models.presentation import BulletPoint, Subject, SubjectHistoryEntry
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


class SubjectHistory:
    """Ordered subject entries with a cursor over them."""

    def __init__(self):
        self._entries: List[SubjectHistoryEntry] = []
        self._current_index: int = -1

    @property
    def entries(self) -> List[SubjectHistoryEntry]:
        return self._entries

    @property
    def current_index(self) -> int:
        """Cursor position, or -1 while the history is empty."""
        return self._current_index

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def current(self) -> Optional[SubjectHistoryEntry]:
        if 0 <= self._current_index < len(self._entries):
            return self._entries[self._current_index]
        return None

    @property
    def has_subject(self) -> bool:
        return self.current is not None

    def append_subject(self, subject: Subject, translation: Optional[str] = None) -> SubjectHistoryEntry:
        """Append a new entry at the end and move the cursor onto it."""
        entry = SubjectHistoryEntry(subject=subject, subject_translation=translation)
        self._entries.append(entry)
        self._current_index = len(self._entries) - 1
        return entry

    def append_bullet_point(self, bullet_point: BulletPoint) -> SubjectHistoryEntry:
        """
        Append a bullet point to the current entry.

        Raises:
            LookupError: If there is no current subject
        """
        entry = self.current
        if entry is None:
            raise LookupError("No current subject to add a bullet point to")
        entry.bullet_points.append(bullet_point)
        return entry

    def navigate(self, index: int) -> bool:
        """Move the cursor; out-of-range requests are ignored."""
        if 0 <= index < len(self._entries):
            self._current_index = index
            return True
        logger.debug(f"Ignoring navigation to {index} (history has {len(self._entries)} entries)")
        return False

    def can_navigate_previous(self) -> bool:
        return self._current_index > 0

    def can_navigate_next(self) -> bool:
        return 0 <= self._current_index < len(self._entries) - 1

    def navigate_previous(self) -> bool:
        return self.can_navigate_previous() and self.navigate(self._current_index - 1)

    def navigate_next(self) -> bool:
        return self.can_navigate_next() and self.navigate(self._current_index + 1)

    def set_subject_translation(self, entry: SubjectHistoryEntry, translation: str) -> bool:
        """Set an entry's title translation once; later writes are ignored."""
        if entry.subject_translation is not None or not any(e is entry for e in self._entries):
            return False
        entry.subject_translation = translation
        return True

    def set_bullet_point_translation(self, bullet_point: BulletPoint, translation: str) -> bool:
        """Set a bullet point's translation once; later writes are ignored."""
        if bullet_point.translation is not None:
            return False
        bullet_point.translation = translation
        return True

    def reset(self) -> None:
        self._entries = []
        self._current_index = -1
