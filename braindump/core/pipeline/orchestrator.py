"""Journal orchestrator coordinating sessions, recording and drafting."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from ...config import Settings, get_settings
from ...data.models import (
    AdvancedSettings,
    ContentFormat,
    Draft,
    LLMProvider,
    QuestionStub,
    Session,
)
from ...data.storage import RecordNotFoundError, SessionStore
from ...data.templates import TemplateStore, default_question_stubs
from ...logging import get_logger
from ...services.drafts.generator import DraftGenerator, require_custom_format
from ...services.factory import resolve_draft_providers, resolve_transcription_backend
from ...services.keys import KeyStore, Provider
from ...services.questions import QuestionGenerator
from ...services.transcription.base import MissingInput
from ...services.transcription.dispatcher import TranscriptionDispatcher
from ..recording.controller import CaptureFactory, Notification, RecordingController
from ..recording.navigator import QuestionNavigator
from ..recording.scheduler import Scheduler
from ..recording.state import RecordingSnapshot

LOGGER = get_logger(__name__)

DRAFT_KEY_PROVIDERS: Dict[LLMProvider, Provider] = {
    LLMProvider.CLAUDE: Provider.ANTHROPIC,
    LLMProvider.GEMINI: Provider.GEMINI,
}


@dataclass
class DraftRequest:
    session_id: str
    provider: LLMProvider = LLMProvider.CLAUDE
    format: ContentFormat = ContentFormat.BLOG
    custom_format: Optional[str] = None
    settings: Optional[AdvancedSettings] = None


class JournalOrchestrator:
    """High-level coordinator for a user's journaling sessions."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        templates: Optional[TemplateStore] = None,
        keys: Optional[KeyStore] = None,
        questions: Optional[QuestionGenerator] = None,
        drafts: Optional[DraftGenerator] = None,
        dispatcher: Optional[TranscriptionDispatcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_id = self.settings.user_id
        database = self.settings.resolved_database_path
        self.store = store or SessionStore(database)
        self.store.initialize()
        self.templates = templates or TemplateStore(database)
        self.templates.initialize()
        self.keys = keys or KeyStore()
        self.questions = questions or QuestionGenerator()
        self._drafts = drafts
        self._dispatcher = dispatcher
        self._generating = threading.Lock()

    @property
    def drafts(self) -> DraftGenerator:
        if self._drafts is None:
            self._drafts = DraftGenerator(resolve_draft_providers(self.settings.draft_backend))
        return self._drafts

    @property
    def dispatcher(self) -> TranscriptionDispatcher:
        if self._dispatcher is None:
            backend = resolve_transcription_backend(self.settings.transcription_backend)
            self._dispatcher = TranscriptionDispatcher(backend)
        return self._dispatcher

    @property
    def is_generating(self) -> bool:
        return self._generating.locked()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def resolve_questions(
        self,
        template_id: Optional[str] = None,
        questions: Optional[Sequence[Union[QuestionStub, str]]] = None,
    ) -> List[QuestionStub]:
        """Return the question stubs for a new session.

        Explicit questions win over a template; with neither, the built-in
        journaling questions are used.
        """

        if questions:
            return [
                q if isinstance(q, QuestionStub) else QuestionStub(text=q, order=index)
                for index, q in enumerate(questions)
            ]
        if template_id:
            template = self.templates.get_template(self.user_id, template_id)
            if template is None:
                raise RecordNotFoundError(f"Template {template_id} not found")
            return sorted(template.questions, key=lambda stub: stub.order)
        return default_question_stubs()

    def create_session(
        self,
        template_id: Optional[str] = None,
        questions: Optional[Sequence[Union[QuestionStub, str]]] = None,
        title: Optional[str] = None,
    ) -> Session:
        stubs = self.resolve_questions(template_id, questions)
        if title is None:
            title = self.questions.generate_title(
                [stub.text for stub in stubs], self.keys.get(Provider.OPENAI)
            )
        session = self.store.create_session(self.user_id, stubs, title)
        LOGGER.info("Started journaling session %s (%s)", session.id, session.title)
        return session

    def open_session(self, session_id: Optional[str] = None) -> Session:
        session_id = session_id or self.store.most_recent_session(self.user_id)
        if session_id is None:
            raise RecordNotFoundError("No sessions recorded yet")
        session = self.store.fetch_session(self.user_id, session_id)
        if session is None:
            raise RecordNotFoundError("Session not found")
        return session

    def export(self, session_id: str) -> str:
        self.open_session(session_id)
        return self.store.export_text(self.user_id, session_id)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def recording_controller(
        self,
        session: Session,
        navigator: QuestionNavigator,
        capture_factory: CaptureFactory,
        notify: Optional[Callable[[Notification], None]] = None,
        on_update: Optional[Callable[[RecordingSnapshot], None]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> RecordingController:
        return RecordingController(
            store=self.store,
            dispatcher=self.dispatcher,
            navigator=navigator,
            user_id=self.user_id,
            session_id=session.id,
            capture_factory=capture_factory,
            api_key=lambda: self.keys.get(Provider.OPENAI),
            auto_advance=lambda: self.keys.auto_advance,
            scheduler=scheduler,
            notify=notify,
            on_update=on_update,
            settings=self.settings,
        )

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------
    def generate_draft(self, request: DraftRequest) -> Optional[Draft]:
        """Generate and store a draft; returns ``None`` while another is running."""

        require_custom_format(request.format, request.custom_format)
        if not self._generating.acquire(blocking=False):
            LOGGER.info("Draft generation already in progress; ignoring request")
            return None
        try:
            provider = LLMProvider(request.provider)
            api_key = self.keys.require(DRAFT_KEY_PROVIDERS[provider])
            responses = self.store.latest_responses(self.user_id, request.session_id)
            if not responses:
                raise MissingInput("No responses available to generate a draft")
            generated = self.drafts.generate(
                provider,
                api_key,
                responses,
                request.format,
                custom_format=request.custom_format,
                settings=request.settings,
            )
            return self.store.save_draft(
                self.user_id,
                request.session_id,
                provider,
                ContentFormat(request.format),
                generated.content,
                generated.prompt,
                settings=request.settings,
                custom_format=request.custom_format,
            )
        finally:
            self._generating.release()


__all__ = ["DRAFT_KEY_PROVIDERS", "DraftRequest", "JournalOrchestrator"]
