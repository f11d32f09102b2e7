"""Realtime view of a single session built on the store's change feed."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional

from ..logging import get_logger
from .models import Question, Session
from .storage import DocumentPath, SessionStore, questions_path, responses_path

LOGGER = get_logger(__name__)


class LiveSession:
    """Keep an up to date :class:`Session` snapshot while subscribed.

    Every change to the question collection tears down all response-level
    subscriptions and re-establishes them against the current question set,
    so listeners for deleted or reordered questions never linger.
    """

    def __init__(
        self,
        store: SessionStore,
        user_id: str,
        session_id: str,
        on_change: Optional[Callable[[Session], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._session_id = session_id
        self._on_change = on_change
        self._on_error = on_error
        self._lock = threading.RLock()
        self._session: Optional[Session] = None
        self._questions_unsubscribe: Optional[Callable[[], None]] = None
        self._response_unsubscribers: List[Callable[[], None]] = []
        self.error: Optional[str] = None

    @property
    def session(self) -> Optional[Session]:
        with self._lock:
            return self._session.model_copy(deep=True) if self._session else None

    @property
    def response_subscription_count(self) -> int:
        with self._lock:
            return len(self._response_unsubscribers)

    def start(self) -> "LiveSession":
        with self._lock:
            if self._questions_unsubscribe is not None:
                return self
            self._questions_unsubscribe = self._store.feed.subscribe(
                questions_path(self._user_id, self._session_id),
                self._handle_questions_change,
            )
        self._reload()
        return self

    def close(self) -> None:
        with self._lock:
            if self._questions_unsubscribe is not None:
                self._questions_unsubscribe()
                self._questions_unsubscribe = None
            self._clear_response_subscriptions()

    def __enter__(self) -> "LiveSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _clear_response_subscriptions(self) -> None:
        for unsubscribe in self._response_unsubscribers:
            unsubscribe()
        self._response_unsubscribers = []

    def _handle_questions_change(self, _path: DocumentPath) -> None:
        self._reload()

    def _reload(self) -> None:
        with self._lock:
            if self._questions_unsubscribe is None:
                return
            self._clear_response_subscriptions()

            session = self._store.fetch_session(self._user_id, self._session_id)
            if session is None:
                self._session = None
                self.error = "Session not found"
                LOGGER.warning("Live session %s no longer exists", self._session_id)
                if self._on_error is not None:
                    self._on_error(self.error)
                return

            self.error = None
            self._session = session
            for index, question in enumerate(session.questions):
                self._response_unsubscribers.append(
                    self._store.feed.subscribe(
                        responses_path(self._user_id, self._session_id, question.id),
                        self._response_listener(index, question),
                    )
                )
            snapshot = self._session.model_copy(deep=True)
        self._emit(snapshot)

    def _response_listener(self, index: int, question: Question) -> Callable[[DocumentPath], None]:
        def listener(_path: DocumentPath) -> None:
            responses = self._store.fetch_responses(self._user_id, self._session_id, question.id)
            with self._lock:
                if self._session is None or index >= len(self._session.questions):
                    return
                if self._session.questions[index].id != question.id:
                    return
                self._session.questions[index].responses = responses
                snapshot = self._session.model_copy(deep=True)
            self._emit(snapshot)

        return listener

    def _emit(self, snapshot: Session) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(snapshot)
        except Exception:  # pragma: no cover - callbacks should not break the feed
            LOGGER.exception("Live session callback raised an exception")


__all__ = ["LiveSession"]
