"""SQLite storage for sessions, questions, responses, and drafts.

Rows are addressed the way a hierarchical document store addresses them:
``users/{uid}/sessions/{sid}/questions/{qid}/responses/{rid}``. There is no
foreign key cascade; deletes walk the hierarchy explicitly. Every committed
write is published on a :class:`ChangeFeed` so realtime readers can react.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..logging import get_logger
from .models import (
    AdvancedSettings,
    ContentFormat,
    Draft,
    LLMProvider,
    Question,
    QuestionResponse,
    QuestionStub,
    Response,
    Session,
    SessionSummary,
)

LOGGER = get_logger(__name__)

DocumentPath = Tuple[str, ...]
ChangeCallback = Callable[[DocumentPath], None]


class RecordNotFoundError(LookupError):
    """Raised when a document does not exist under the given owner."""


class InvalidSessionDataError(ValueError):
    """Raised when a session cannot be created from the supplied questions."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def session_path(user_id: str, session_id: str) -> DocumentPath:
    return ("users", user_id, "sessions", session_id)


def questions_path(user_id: str, session_id: str) -> DocumentPath:
    return session_path(user_id, session_id) + ("questions",)


def responses_path(user_id: str, session_id: str, question_id: str) -> DocumentPath:
    return questions_path(user_id, session_id) + (question_id, "responses")


class ChangeFeed:
    """In-process pub/sub keyed by collection path.

    A subscriber registered on a collection is notified for writes to
    documents directly inside that collection, not for deeper descendants.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Tuple[DocumentPath, ChangeCallback]] = {}
        self._next_token = 0

    def subscribe(self, collection: Sequence[str], callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (tuple(collection), callback)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, document: DocumentPath) -> None:
        collection = document[:-1]
        with self._lock:
            targets = [cb for path, cb in self._subscribers.values() if path == collection]
        for callback in targets:
            try:
                callback(document)
            except Exception:  # pragma: no cover - subscribers should not break writers
                LOGGER.exception("Change subscriber raised an exception")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


class SessionStore:
    """Persistent storage built on SQLite."""

    def __init__(self, path: Path, feed: Optional[ChangeFeed] = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.feed = feed or ChangeFeed()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS questions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    ord INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS responses (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    question_id TEXT NOT NULL,
                    transcription TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS drafts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    format TEXT NOT NULL,
                    custom_format TEXT,
                    settings TEXT,
                    content TEXT NOT NULL,
                    prompt TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def create_session(
        self,
        user_id: str,
        questions: Sequence[Union[QuestionStub, str]],
        title: str,
    ) -> Session:
        """Create a session and its questions as one unit.

        If any question write fails, the session row and any questions
        already written are deleted before the error propagates.
        """

        if not user_id or not questions:
            raise InvalidSessionDataError("Invalid session data")

        texts: List[str] = []
        for index, question in enumerate(questions):
            text = question.text if isinstance(question, QuestionStub) else question
            if not isinstance(text, str) or not text.strip():
                raise InvalidSessionDataError(f"Invalid question text at index {index}")
            texts.append(text.strip())

        session_id = _new_id()
        created = _now()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (id, user_id, title, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (session_id, user_id, title, created.isoformat(), created.isoformat()),
            )
            conn.commit()

        written: List[str] = []
        try:
            for index, text in enumerate(texts):
                written.append(self._insert_question(user_id, session_id, text, index))
        except Exception:
            LOGGER.warning("Question write failed; removing partial session %s", session_id)
            with self._connect() as conn:
                conn.executemany("DELETE FROM questions WHERE id = ?", [(qid,) for qid in written])
                conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
                conn.commit()
            raise

        LOGGER.info("Created session %s with %d question(s)", session_id, len(written))
        self.feed.publish(session_path(user_id, session_id))
        for question_id in written:
            self.feed.publish(questions_path(user_id, session_id) + (question_id,))
        session = self.fetch_session(user_id, session_id)
        assert session is not None
        return session

    def _insert_question(self, user_id: str, session_id: str, text: str, order: int) -> str:
        question_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO questions (id, user_id, session_id, text, ord) VALUES (?, ?, ?, ?, ?)",
                (question_id, user_id, session_id, text, order),
            )
            conn.commit()
        return question_id

    def fetch_session(self, user_id: str, session_id: str) -> Optional[Session]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, title, created_at, updated_at FROM sessions WHERE id = ? AND user_id = ?",
                (session_id, user_id),
            ).fetchone()
        if not row:
            return None
        questions = self.fetch_questions(user_id, session_id)
        for question in questions:
            question.responses = self.fetch_responses(user_id, session_id, question.id)
        return Session(
            id=row[0],
            user_id=row[1],
            title=row[2],
            created_at=_parse_time(row[3]),
            updated_at=_parse_time(row[4]),
            questions=questions,
        )

    def fetch_questions(self, user_id: str, session_id: str) -> List[Question]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, text, ord FROM questions WHERE user_id = ? AND session_id = ? ORDER BY ord",
                (user_id, session_id),
            ).fetchall()
        return [Question(id=qid, text=text, order=order) for qid, text, order in rows]

    def fetch_responses(self, user_id: str, session_id: str, question_id: str) -> List[Response]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, transcription, created_at FROM responses
                WHERE user_id = ? AND session_id = ? AND question_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (user_id, session_id, question_id),
            ).fetchall()
        return [
            Response(id=rid, transcription=text, created_at=_parse_time(created))
            for rid, text, created in rows
        ]

    def list_sessions(self, user_id: str) -> List[SessionSummary]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, title, created_at, updated_at FROM sessions WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        return [
            SessionSummary(
                id=sid,
                title=title,
                created_at=_parse_time(created),
                updated_at=_parse_time(updated),
            )
            for sid, title, created, updated in rows
        ]

    def most_recent_session(self, user_id: str) -> Optional[str]:
        sessions = self.list_sessions(user_id)
        return sessions[0].id if sessions else None

    def delete_session(self, user_id: str, session_id: str) -> None:
        """Delete every response and question beneath the session, then the session."""

        if not user_id or not session_id:
            raise ValueError("Invalid userId or sessionId")

        removed: List[DocumentPath] = []
        with self._connect() as conn:
            question_ids = [
                row[0]
                for row in conn.execute(
                    "SELECT id FROM questions WHERE user_id = ? AND session_id = ?",
                    (user_id, session_id),
                ).fetchall()
            ]
            for question_id in question_ids:
                response_ids = [
                    row[0]
                    for row in conn.execute(
                        "SELECT id FROM responses WHERE user_id = ? AND session_id = ? AND question_id = ?",
                        (user_id, session_id, question_id),
                    ).fetchall()
                ]
                for response_id in response_ids:
                    conn.execute("DELETE FROM responses WHERE id = ?", (response_id,))
                    removed.append(responses_path(user_id, session_id, question_id) + (response_id,))
                conn.execute("DELETE FROM questions WHERE id = ?", (question_id,))
                removed.append(questions_path(user_id, session_id) + (question_id,))
            conn.execute(
                "DELETE FROM sessions WHERE id = ? AND user_id = ?",
                (session_id, user_id),
            )
            conn.commit()
        removed.append(session_path(user_id, session_id))

        LOGGER.info("Deleted session %s", session_id)
        for path in removed:
            self.feed.publish(path)

    def _touch_session(self, conn: sqlite3.Connection, user_id: str, session_id: str) -> None:
        conn.execute(
            "UPDATE sessions SET updated_at = ? WHERE id = ? AND user_id = ?",
            (_now().isoformat(), session_id, user_id),
        )

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------
    def _require_question(self, conn: sqlite3.Connection, user_id: str, session_id: str, question_id: str) -> None:
        row = conn.execute(
            "SELECT 1 FROM questions WHERE id = ? AND user_id = ? AND session_id = ?",
            (question_id, user_id, session_id),
        ).fetchone()
        if not row:
            raise RecordNotFoundError(f"Question {question_id} not found in session {session_id}")

    def delete_question(self, user_id: str, session_id: str, question_id: str) -> None:
        """Delete a question with its responses and renumber the remaining ones."""

        with self._connect() as conn:
            self._require_question(conn, user_id, session_id, question_id)
            conn.execute(
                "DELETE FROM responses WHERE user_id = ? AND session_id = ? AND question_id = ?",
                (user_id, session_id, question_id),
            )
            conn.execute("DELETE FROM questions WHERE id = ?", (question_id,))
            remaining = conn.execute(
                "SELECT id FROM questions WHERE user_id = ? AND session_id = ? ORDER BY ord",
                (user_id, session_id),
            ).fetchall()
            conn.executemany(
                "UPDATE questions SET ord = ? WHERE id = ?",
                [(index, row[0]) for index, row in enumerate(remaining)],
            )
            self._touch_session(conn, user_id, session_id)
            conn.commit()
        self.feed.publish(questions_path(user_id, session_id) + (question_id,))

    def reorder_questions(self, user_id: str, session_id: str, ordered_ids: Sequence[str]) -> List[Question]:
        """Assign contiguous orders following ``ordered_ids``."""

        current = {question.id for question in self.fetch_questions(user_id, session_id)}
        if set(ordered_ids) != current or len(ordered_ids) != len(current):
            raise ValueError("Reorder must list every question of the session exactly once")

        with self._connect() as conn:
            conn.executemany(
                "UPDATE questions SET ord = ? WHERE id = ?",
                [(index, question_id) for index, question_id in enumerate(ordered_ids)],
            )
            self._touch_session(conn, user_id, session_id)
            conn.commit()
        for question_id in ordered_ids:
            self.feed.publish(questions_path(user_id, session_id) + (question_id,))
        return self.fetch_questions(user_id, session_id)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------
    def add_response(self, user_id: str, session_id: str, question_id: str, transcription: str) -> Response:
        response = Response(id=_new_id(), transcription=transcription, created_at=_now())
        with self._connect() as conn:
            self._require_question(conn, user_id, session_id, question_id)
            conn.execute(
                """
                INSERT INTO responses (id, user_id, session_id, question_id, transcription, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    response.id,
                    user_id,
                    session_id,
                    question_id,
                    response.transcription,
                    response.created_at.isoformat(),
                ),
            )
            self._touch_session(conn, user_id, session_id)
            conn.commit()
        self.feed.publish(responses_path(user_id, session_id, question_id) + (response.id,))
        return response

    def delete_response(self, user_id: str, session_id: str, question_id: str, response_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                DELETE FROM responses
                WHERE id = ? AND user_id = ? AND session_id = ? AND question_id = ?
                """,
                (response_id, user_id, session_id, question_id),
            )
            conn.commit()
        self.feed.publish(responses_path(user_id, session_id, question_id) + (response_id,))

    def latest_responses(self, user_id: str, session_id: str) -> List[QuestionResponse]:
        """Return question text with its newest transcription, in question order."""

        session = self.fetch_session(user_id, session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {session_id} not found")
        pairs: List[QuestionResponse] = []
        for question in session.questions:
            latest = question.latest_response
            if latest is not None:
                pairs.append(QuestionResponse(question_text=question.text, transcription=latest.transcription))
        return pairs

    def export_text(self, user_id: str, session_id: str) -> str:
        session = self.fetch_session(user_id, session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {session_id} not found")
        blocks = []
        for question in session.questions:
            latest = question.latest_response
            answer = latest.transcription if latest is not None else "No response"
            blocks.append(f"Q: {question.text}\nA: {answer}\n")
        return "\n".join(blocks)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------
    def save_draft(
        self,
        user_id: str,
        session_id: str,
        provider: LLMProvider,
        format: ContentFormat,
        content: str,
        prompt: str,
        settings: Optional[AdvancedSettings] = None,
        custom_format: Optional[str] = None,
    ) -> Draft:
        now = _now()
        draft = Draft(
            id=_new_id(),
            user_id=user_id,
            session_id=session_id,
            provider=provider,
            format=format,
            custom_format=custom_format,
            settings=settings or AdvancedSettings(),
            content=content,
            prompt=prompt,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO drafts (
                    id, user_id, session_id, provider, format, custom_format, settings,
                    content, prompt, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    draft.id,
                    user_id,
                    session_id,
                    draft.provider.value,
                    draft.format.value,
                    custom_format,
                    json.dumps(draft.settings.model_dump(exclude_none=True)),
                    content,
                    prompt,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            conn.commit()
        self.feed.publish(("users", user_id, "essays", draft.id))
        return draft

    def _draft_from_row(self, row: Iterable) -> Draft:
        (
            draft_id,
            user_id,
            session_id,
            provider,
            format_value,
            custom_format,
            settings_json,
            content,
            prompt,
            created,
            updated,
        ) = row
        settings = AdvancedSettings(**json.loads(settings_json)) if settings_json else AdvancedSettings()
        return Draft(
            id=draft_id,
            user_id=user_id,
            session_id=session_id,
            provider=LLMProvider(provider),
            format=ContentFormat(format_value),
            custom_format=custom_format,
            settings=settings,
            content=content,
            prompt=prompt,
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
        )

    _DRAFT_COLUMNS = (
        "id, user_id, session_id, provider, format, custom_format, settings, "
        "content, prompt, created_at, updated_at"
    )

    def get_draft(self, user_id: str, draft_id: str) -> Optional[Draft]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {self._DRAFT_COLUMNS} FROM drafts WHERE id = ? AND user_id = ?",
                (draft_id, user_id),
            ).fetchone()
        return self._draft_from_row(row) if row else None

    def list_session_drafts(self, user_id: str, session_id: str) -> List[Draft]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {self._DRAFT_COLUMNS} FROM drafts WHERE user_id = ? AND session_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (user_id, session_id),
            ).fetchall()
        return [self._draft_from_row(row) for row in rows]

    def list_user_drafts(self, user_id: str) -> List[Draft]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {self._DRAFT_COLUMNS} FROM drafts WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [self._draft_from_row(row) for row in rows]


__all__ = [
    "ChangeFeed",
    "InvalidSessionDataError",
    "RecordNotFoundError",
    "SessionStore",
    "questions_path",
    "responses_path",
    "session_path",
]
