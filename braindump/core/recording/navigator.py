"""Question navigation for a journaling session."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Sequence

from ...data.models import Question


class QuestionNavigator:
    """Tracks the current question and moves between neighbours."""

    def __init__(
        self,
        questions: Sequence[Question],
        index: int = 0,
        on_change: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._questions: List[Question] = list(questions)
        self._index = max(0, min(index, len(self._questions) - 1)) if self._questions else 0
        self._on_change = on_change
        self._lock = threading.Lock()

    @property
    def index(self) -> int:
        return self._index

    @property
    def total(self) -> int:
        return len(self._questions)

    @property
    def current(self) -> Optional[Question]:
        if not self._questions:
            return None
        return self._questions[self._index]

    @property
    def has_previous(self) -> bool:
        return self._index > 0

    @property
    def has_next(self) -> bool:
        return self._index < len(self._questions) - 1

    @property
    def is_last(self) -> bool:
        return not self.has_next

    def update(self, questions: Sequence[Question]) -> None:
        """Replace the question list, keeping the index in range."""

        with self._lock:
            self._questions = list(questions)
            if self._index >= len(self._questions):
                self._index = max(len(self._questions) - 1, 0)

    def go_to(self, index: int) -> bool:
        with self._lock:
            if not 0 <= index < len(self._questions) or index == self._index:
                return False
            self._index = index
        if self._on_change is not None:
            self._on_change(index)
        return True

    def previous(self) -> bool:
        return self.go_to(self._index - 1)

    def next(self) -> bool:
        return self.go_to(self._index + 1)


__all__ = ["QuestionNavigator"]
