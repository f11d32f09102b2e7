"""Tests for the HTTP relay."""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from braindump.api import create_app
from braindump.api.routes import ApiServices
from braindump.data.models import LLMProvider, QuestionStub
from braindump.services.drafts.base import DraftProvider
from braindump.services.drafts.generator import DraftGenerator
from braindump.services.keys import KeyFormatError, Provider
from braindump.services.questions import QuestionGenerationError
from braindump.services.transcription.dispatcher import TranscriptionDispatcher
from braindump.services.transcription.dummy import DummyTranscriptionService

SECRET = "sk-live-abcdefghijklmnop"


class ScriptedProvider(DraftProvider):
    def __init__(self, provider, result="Draft text", error=None) -> None:
        self.provider = provider
        self.result = result
        self.error = error
        self.keys = []

    def generate(self, prompt, api_key, max_tokens=None):
        self.keys.append(api_key)
        if self.error is not None:
            raise self.error
        return self.result


class FakeQuestions:
    def __init__(self, error=None) -> None:
        self.error = error

    def request_title(self, prompt, api_key):
        if self.error is not None:
            raise self.error
        return "Evening Reflection"

    def generate_questions(self, prompt, api_key):
        if self.error is not None:
            raise self.error
        return [QuestionStub(id="a", text="What mattered today?", order=0)]


def _validator(api_key):
    if not api_key.startswith("sk-"):
        raise KeyFormatError("Invalid API key format")
    return api_key == SECRET


def _client(claude_error=None, questions_error=None):
    claude = ScriptedProvider(LLMProvider.CLAUDE, error=claude_error)
    services = ApiServices(
        dispatcher=TranscriptionDispatcher(DummyTranscriptionService("Transcribed words")),
        drafts=DraftGenerator({LLMProvider.CLAUDE: claude, LLMProvider.GEMINI: ScriptedProvider(LLMProvider.GEMINI)}),
        questions=FakeQuestions(questions_error),
        validators={provider: _validator for provider in Provider},
    )
    return TestClient(create_app(services)), claude


def _draft_body(**overrides):
    body = {
        "apiKey": SECRET,
        "model": "claude",
        "responses": [{"questionText": "How was today?", "transcription": "Busy but good"}],
        "format": "blog",
        "settings": {"length": 200, "customInstructions": "Keep it short"},
    }
    body.update(overrides)
    return body


def test_status_route():
    client, _ = _client()

    response = client.get("/api/v1/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_transcribe_returns_transcript():
    client, _ = _client()

    response = client.post(
        "/api/transcribe",
        files={"audio": ("audio.wav", b"RIFF0000WAVE", "audio/wav")},
        data={"apiKey": SECRET},
    )

    assert response.status_code == 200
    assert response.json() == {"transcript": "Transcribed words"}


@pytest.mark.parametrize(
    "files, data, message",
    [
        (None, {"apiKey": SECRET}, "No audio file provided"),
        ({"audio": ("audio.wav", b"RIFF", "audio/wav")}, {}, "OpenAI API key not provided"),
    ],
)
def test_transcribe_missing_input(files, data, message):
    client, _ = _client()

    response = client.post("/api/transcribe", files=files, data=data)

    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_generate_draft_success(caplog):
    client, claude = _client()

    with caplog.at_level(logging.DEBUG):
        response = client.post("/api/generate-draft", json=_draft_body())

    payload = response.json()
    assert response.status_code == 200
    assert payload["content"] == "Draft text"
    assert "Question: How was today?\nResponse: Busy but good" in payload["prompt"]
    assert "Keep it short" in payload["prompt"]
    assert claude.keys == [SECRET]
    assert SECRET not in caplog.text


@pytest.mark.parametrize("missing", ["apiKey", "model", "responses", "format"])
def test_generate_draft_missing_fields(missing):
    client, claude = _client()
    body = _draft_body()
    del body[missing]

    response = client.post("/api/generate-draft", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}
    assert claude.keys == []


@pytest.mark.parametrize(
    "message, status, error",
    [
        ("invalid_api_key", 401, "Invalid API key. Please check your API key and try again."),
        ("rate_limit", 429, "Rate limit exceeded. Please try again later."),
        ("not_found_error", 400, "Invalid model name or API configuration. Please check your API key and try again."),
        ("socket closed", 500, "Failed to generate draft with claude. Please try again."),
    ],
)
def test_generate_draft_error_taxonomy(message, status, error):
    client, _ = _client(claude_error=RuntimeError(message))

    response = client.post("/api/generate-draft", json=_draft_body())

    assert response.status_code == status
    assert response.json() == {"error": error}


def test_generate_questions_title_and_list():
    client, _ = _client()

    title = client.post("/api/generate-questions", json={"prompt": "Generate a title", "apiKey": SECRET})
    questions = client.post("/api/generate-questions", json={"prompt": "career growth", "apiKey": SECRET})

    assert title.json() == {"title": "Evening Reflection"}
    assert questions.json()["questions"][0]["text"] == "What mattered today?"


def test_generate_questions_failure():
    client, _ = _client(questions_error=QuestionGenerationError("bad json"))

    response = client.post("/api/generate-questions", json={"prompt": "anything", "apiKey": SECRET})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to generate content"}


@pytest.mark.parametrize("route", ["/api/test-openai-key", "/api/test-anthropic-key", "/api/test-gemini-key"])
def test_key_checks(route):
    client, _ = _client()

    assert client.post(route, json={"apiKey": SECRET}).json() == {"success": True}

    rejected = client.post(route, json={"apiKey": "sk-wrong"})
    assert rejected.status_code == 401
    assert rejected.json() == {"error": "Invalid API key"}

    malformed = client.post(route, json={"apiKey": "nope"})
    assert malformed.status_code == 400
    assert malformed.json() == {"error": "Invalid API key format"}
