from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from braindump.services import clients
from braindump.services.questions import (
    QuestionGenerationError,
    QuestionGenerator,
    fallback_title,
    is_title_request,
    parse_json_payload,
    title_prompt,
)


def _fake_openai(monkeypatch, content=None, error=None):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    monkeypatch.setattr(
        clients,
        "make_openai_client",
        lambda api_key: SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))),
    )
    return calls


def test_parse_json_payload_strips_fences():
    assert parse_json_payload('```json\n{"title": "Morning Pages"}\n```') == {"title": "Morning Pages"}

    with pytest.raises(QuestionGenerationError):
        parse_json_payload("not json")
    with pytest.raises(QuestionGenerationError):
        parse_json_payload('["a list"]')


def test_title_prompt_lists_questions():
    prompt = title_prompt(["How are you?", "What next?"])

    assert prompt.endswith("Questions: How are you?, What next?")
    assert is_title_request(prompt)
    assert not is_title_request("Questions about career change")


def test_generate_title_uses_json_mode(monkeypatch):
    calls = _fake_openai(monkeypatch, '{"title": "Gratitude and Goals"}')

    assert QuestionGenerator(model="gpt-test").generate_title(["Q1"], "sk-key") == "Gratitude and Goals"
    assert calls[0]["model"] == "gpt-test"
    assert calls[0]["response_format"] == {"type": "json_object"}
    assert calls[0]["messages"][0]["role"] == "system"


def test_generate_title_truncates(monkeypatch):
    _fake_openai(monkeypatch, '{"title": "%s"}' % ("x" * 80))

    assert len(QuestionGenerator().generate_title(["Q1"], "sk-key")) == 50


def test_generate_title_falls_back_to_date(monkeypatch):
    calls = _fake_openai(monkeypatch, error=RuntimeError("down"))

    assert QuestionGenerator().generate_title(["Q1"], None) == fallback_title()
    assert calls == []
    assert QuestionGenerator().generate_title(["Q1"], "sk-key") == fallback_title()


def test_fallback_title_uses_locale_date():
    assert fallback_title(date(2024, 3, 9)) == date(2024, 3, 9).strftime("%x")


def test_generate_questions(monkeypatch):
    _fake_openai(monkeypatch, '{"questions": ["What drives you?", " Who inspires you? "]}')

    stubs = QuestionGenerator().generate_questions("career reflection", "sk-key")

    assert [stub.text for stub in stubs] == ["What drives you?", "Who inspires you?"]
    assert [stub.order for stub in stubs] == [0, 1]
    assert all(stub.id for stub in stubs)
    assert stubs[0].id != stubs[1].id


@pytest.mark.parametrize("content", ['{"questions": "nope"}', '{"questions": ["ok", 3]}', None])
def test_generate_questions_rejects_bad_payloads(monkeypatch, content):
    _fake_openai(monkeypatch, content)

    with pytest.raises(QuestionGenerationError):
        QuestionGenerator().generate_questions("topic", "sk-key")
