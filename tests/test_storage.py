import sqlite3

import pytest

from braindump.data.models import AdvancedSettings, ContentFormat, LLMProvider, QuestionStub
from braindump.data.storage import (
    ChangeFeed,
    InvalidSessionDataError,
    RecordNotFoundError,
    SessionStore,
    questions_path,
    responses_path,
)


@pytest.fixture
def store(tmp_path):
    store = SessionStore(tmp_path / "braindump.db")
    store.initialize()
    return store


def _count(store, table, **where):
    clause = " AND ".join(f"{column} = ?" for column in where)
    with sqlite3.connect(store.path) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {clause}", tuple(where.values())).fetchone()[0]


def test_create_session_orders_questions(store):
    session = store.create_session("user-1", ["First?", QuestionStub(text=" Second? "), "Third?"], "Morning")

    assert session.title == "Morning"
    assert [q.text for q in session.questions] == ["First?", "Second?", "Third?"]
    assert [q.order for q in session.questions] == [0, 1, 2]
    assert store.most_recent_session("user-1") == session.id


@pytest.mark.parametrize("questions", [[], ["ok", "   "]])
def test_create_session_rejects_invalid_questions(store, questions):
    with pytest.raises(InvalidSessionDataError):
        store.create_session("user-1", questions, "Title")

    assert store.list_sessions("user-1") == []


def test_create_session_removes_partial_writes(store, monkeypatch):
    original = store._insert_question
    calls = []

    def flaky_insert(user_id, session_id, text, order):
        calls.append(text)
        if len(calls) == 2:
            raise sqlite3.OperationalError("disk full")
        return original(user_id, session_id, text, order)

    monkeypatch.setattr(store, "_insert_question", flaky_insert)

    with pytest.raises(sqlite3.OperationalError):
        store.create_session("user-1", ["One", "Two", "Three"], "Broken")

    assert store.list_sessions("user-1") == []
    assert _count(store, "questions", user_id="user-1") == 0


def test_responses_are_newest_first(store):
    session = store.create_session("user-1", ["Q1"], "T")
    question_id = session.questions[0].id

    store.add_response("user-1", session.id, question_id, "first take")
    store.add_response("user-1", session.id, question_id, "second take")

    fetched = store.fetch_session("user-1", session.id)
    assert [r.transcription for r in fetched.questions[0].responses] == ["second take", "first take"]
    assert fetched.questions[0].latest_response.transcription == "second take"


def test_add_response_requires_existing_question(store):
    session = store.create_session("user-1", ["Q1"], "T")

    with pytest.raises(RecordNotFoundError):
        store.add_response("user-1", session.id, "missing", "text")


def test_delete_session_only_touches_that_session(store):
    keep = store.create_session("user-1", ["Keep?"], "Keep")
    drop = store.create_session("user-1", ["Drop 1?", "Drop 2?"], "Drop")
    store.add_response("user-1", keep.id, keep.questions[0].id, "kept answer")
    for question in drop.questions:
        store.add_response("user-1", drop.id, question.id, "dropped answer")

    store.delete_session("user-1", drop.id)

    assert store.fetch_session("user-1", drop.id) is None
    assert _count(store, "questions", session_id=drop.id) == 0
    assert _count(store, "responses", session_id=drop.id) == 0
    remaining = store.fetch_session("user-1", keep.id)
    assert remaining.questions[0].latest_response.transcription == "kept answer"


def test_delete_session_is_scoped_to_owner(store):
    session = store.create_session("user-1", ["Mine?"], "Mine")

    store.delete_session("user-2", session.id)

    assert store.fetch_session("user-1", session.id) is not None


def test_delete_question_renumbers_remaining(store):
    session = store.create_session("user-1", ["A", "B", "C"], "T")
    middle = session.questions[1]
    store.add_response("user-1", session.id, middle.id, "gone")

    store.delete_question("user-1", session.id, middle.id)

    questions = store.fetch_questions("user-1", session.id)
    assert [q.text for q in questions] == ["A", "C"]
    assert [q.order for q in questions] == [0, 1]
    assert _count(store, "responses", question_id=middle.id) == 0


def test_reorder_questions(store):
    session = store.create_session("user-1", ["A", "B", "C"], "T")
    ids = [q.id for q in session.questions]

    reordered = store.reorder_questions("user-1", session.id, [ids[2], ids[0], ids[1]])

    assert [q.text for q in reordered] == ["C", "A", "B"]
    assert [q.order for q in reordered] == [0, 1, 2]
    with pytest.raises(ValueError):
        store.reorder_questions("user-1", session.id, ids[:2])


def test_latest_responses_and_export_text(store):
    session = store.create_session("user-1", ["How was today?", "What next?"], "T")
    first = session.questions[0]
    store.add_response("user-1", session.id, first.id, "old")
    store.add_response("user-1", session.id, first.id, "Pretty good")

    pairs = store.latest_responses("user-1", session.id)
    assert [(p.question_text, p.transcription) for p in pairs] == [("How was today?", "Pretty good")]

    text = store.export_text("user-1", session.id)
    assert text == "Q: How was today?\nA: Pretty good\n\nQ: What next?\nA: No response\n"


def test_save_and_list_drafts(store):
    session = store.create_session("user-1", ["Q"], "T")
    settings = AdvancedSettings(length=300, tone="warm", custom_instructions="Be brief")

    draft = store.save_draft(
        "user-1", session.id, LLMProvider.GEMINI, ContentFormat.CUSTOM, "Body", "Prompt",
        settings=settings, custom_format="a haiku",
    )

    fetched = store.get_draft("user-1", draft.id)
    assert fetched.content == "Body"
    assert fetched.provider == LLMProvider.GEMINI
    assert fetched.custom_format == "a haiku"
    assert fetched.settings.custom_instructions == "Be brief"
    assert [d.id for d in store.list_session_drafts("user-1", session.id)] == [draft.id]
    assert store.get_draft("user-2", draft.id) is None


def test_list_user_drafts_spans_sessions_newest_first(store):
    first = store.create_session("user-1", ["Q"], "Monday")
    second = store.create_session("user-1", ["Q"], "Tuesday")
    older = store.save_draft("user-1", first.id, LLMProvider.CLAUDE, ContentFormat.BLOG, "Older", "P")
    newer = store.save_draft("user-1", second.id, LLMProvider.CLAUDE, ContentFormat.PERSONAL, "Newer", "P")
    store.save_draft("user-2", second.id, LLMProvider.GEMINI, ContentFormat.BLOG, "Other user", "P")

    assert [d.id for d in store.list_user_drafts("user-1")] == [newer.id, older.id]
    assert [d.id for d in store.list_session_drafts("user-1", first.id)] == [older.id]


def test_change_feed_notifies_direct_children_only():
    feed = ChangeFeed()
    seen = []
    unsubscribe = feed.subscribe(questions_path("u", "s"), seen.append)

    feed.publish(questions_path("u", "s") + ("q1",))
    feed.publish(responses_path("u", "s", "q1") + ("r1",))
    unsubscribe()
    feed.publish(questions_path("u", "s") + ("q2",))

    assert seen == [questions_path("u", "s") + ("q1",)]
    assert feed.subscriber_count == 0
