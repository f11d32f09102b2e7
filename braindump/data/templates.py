"""Template storage and the built-in journaling questions."""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from ..logging import get_logger
from .models import QuestionStub, Template
from .storage import RecordNotFoundError

LOGGER = get_logger(__name__)

PUBLIC_OWNER = "__public__"

DEFAULT_QUESTIONS: List[str] = [
    "What are you most grateful for today?",
    "What's been challenging you lately and how are you handling it?",
    "What are your current goals and what steps are you taking to achieve them?",
    "What's something you've learned about yourself recently?",
    "What would make today a great day for you?",
    "What's one thing you could do differently tomorrow to improve your life?",
    "What relationships in your life need more attention?",
    "What are you looking forward to in the near future?",
    "What's one thing you're proud of accomplishing recently?",
    "How are you taking care of your mental and physical health?",
]


def default_question_stubs() -> List[QuestionStub]:
    return [QuestionStub(id=f"q{index + 1}", text=text, order=index) for index, text in enumerate(DEFAULT_QUESTIONS)]


def _normalise_stubs(questions: Sequence[QuestionStub]) -> List[QuestionStub]:
    ordered = sorted(questions, key=lambda stub: stub.order)
    return [QuestionStub(id=stub.id, text=stub.text.strip(), order=index) for index, stub in enumerate(ordered)]


class TemplateStore:
    """Templates live beside sessions in the same SQLite file.

    User templates belong to ``users/{uid}/templates``; public templates form
    a separate top-level collection and are stored under :data:`PUBLIC_OWNER`.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS templates (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL,
                    is_public INTEGER NOT NULL,
                    questions TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def create_template(
        self,
        user_id: str,
        name: str,
        questions: Sequence[QuestionStub],
        description: str = "",
        is_public: bool = False,
    ) -> Template:
        if not name.strip():
            raise ValueError("Template name is required")
        if not questions or any(not stub.text.strip() for stub in questions):
            raise ValueError("Templates need at least one non-empty question")

        now = datetime.now(timezone.utc)
        template = Template(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name.strip(),
            description=description,
            is_public=is_public,
            questions=_normalise_stubs(questions),
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO templates (id, user_id, name, description, is_public, questions, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    template.id,
                    user_id,
                    template.name,
                    template.description,
                    int(template.is_public),
                    json.dumps([stub.model_dump() for stub in template.questions]),
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            conn.commit()
        LOGGER.info("Created template %s for %s", template.id, user_id)
        return template

    def update_template(
        self,
        user_id: str,
        template_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_public: Optional[bool] = None,
        questions: Optional[Sequence[QuestionStub]] = None,
    ) -> Template:
        current = self.get_template(user_id, template_id)
        if current is None:
            raise RecordNotFoundError(f"Template {template_id} not found")

        updated = current.model_copy(
            update={
                "name": name.strip() if name is not None else current.name,
                "description": description if description is not None else current.description,
                "is_public": is_public if is_public is not None else current.is_public,
                "questions": _normalise_stubs(questions) if questions is not None else current.questions,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE templates SET name = ?, description = ?, is_public = ?, questions = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    updated.name,
                    updated.description,
                    int(updated.is_public),
                    json.dumps([stub.model_dump() for stub in updated.questions]),
                    updated.updated_at.isoformat(),
                    template_id,
                    user_id,
                ),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Template {template_id} is not owned by {user_id}")
        return updated

    def delete_template(self, user_id: str, template_id: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM templates WHERE id = ? AND user_id = ?", (template_id, user_id))
            conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Template {template_id} not found")
        LOGGER.info("Deleted template %s for %s", template_id, user_id)

    def get_template(self, user_id: str, template_id: str) -> Optional[Template]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, name, description, is_public, questions, created_at, updated_at "
                "FROM templates WHERE id = ? AND (user_id = ? OR user_id = ?)",
                (template_id, user_id, PUBLIC_OWNER),
            ).fetchone()
        return self._from_row(row) if row else None

    def list_user_templates(self, user_id: str) -> List[Template]:
        return self._query("WHERE user_id = ?", (user_id,))

    def list_public_templates(self) -> List[Template]:
        return self._query("WHERE user_id = ? AND is_public = 1", (PUBLIC_OWNER,))

    def _query(self, clause: str, params: tuple) -> List[Template]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, user_id, name, description, is_public, questions, created_at, updated_at "
                f"FROM templates {clause} ORDER BY updated_at DESC",
                params,
            ).fetchall()
        return [self._from_row(row) for row in rows]

    @staticmethod
    def _from_row(row) -> Template:
        template_id, user_id, name, description, is_public, questions_json, created, updated = row
        return Template(
            id=template_id,
            user_id=user_id,
            name=name,
            description=description,
            is_public=bool(is_public),
            questions=[QuestionStub(**stub) for stub in json.loads(questions_json)],
            created_at=datetime.fromisoformat(created),
            updated_at=datetime.fromisoformat(updated),
        )


__all__ = ["DEFAULT_QUESTIONS", "PUBLIC_OWNER", "TemplateStore", "default_question_stubs"]
