"""Typer CLI entry point for braindump."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from .config import (
    EnvironmentSettingError,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.audio.base import AudioCapture, CaptureConstraints
from .core.audio.devices import format_device_table
from .core.pipeline.orchestrator import DraftRequest, JournalOrchestrator
from .data.models import AdvancedSettings, ContentFormat, LLMProvider, QuestionStub
from .data.storage import InvalidSessionDataError, RecordNotFoundError
from .data.templates import PUBLIC_OWNER
from .logging import configure_logging, get_logger, mask_secret
from .services.drafts.base import CustomFormatRequired, DraftGenerationError
from .services.keys import PROVIDER_LABELS, KeyFormatError, KeyStore, KeyValidationError, Provider
from .services.questions import QuestionGenerationError
from .services.transcription.base import MissingInput

app = typer.Typer(help="braindump voice journaling")
keys_app = typer.Typer(help="Manage provider API keys")
templates_app = typer.Typer(help="Manage question templates")
config_app = typer.Typer(help="Inspect and change environment settings")
app.add_typer(keys_app, name="keys")
app.add_typer(templates_app, name="templates")
app.add_typer(config_app, name="config")

LOGGER = get_logger(__name__)


def _orchestrator() -> JournalOrchestrator:
    return JournalOrchestrator()


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _microphone_factory(constraints: CaptureConstraints) -> AudioCapture:
    from .core.audio.sounddevice_backend import open_microphone

    settings = get_settings()
    return open_microphone(
        constraints,
        sample_rate=settings.sample_rate,
        channels=settings.channels,
        device=settings.input_device,
        block_size=settings.block_size,
    )


@app.command()
def devices() -> None:
    """List available microphones."""

    configure_logging()
    typer.echo(format_device_table())


@app.command()
def record(
    session_id: Optional[str] = typer.Option(None, "--session", help="Continue an existing session"),
    template: Optional[str] = typer.Option(None, help="Template id for a new session"),
    new: bool = typer.Option(False, "--new", help="Start a new session instead of the most recent one"),
) -> None:
    """Answer questions by speaking, one recording per question."""

    from .ui.console import JournalConsoleUI

    configure_logging()
    orchestrator = _orchestrator()
    try:
        if session_id:
            session = orchestrator.open_session(session_id)
        elif new or template or orchestrator.store.most_recent_session(orchestrator.user_id) is None:
            session = orchestrator.create_session(template_id=template)
        else:
            session = orchestrator.open_session()
    except (RecordNotFoundError, InvalidSessionDataError) as exc:
        _fail(str(exc))
        return

    JournalConsoleUI(orchestrator, session, _microphone_factory).run()


@app.command()
def sessions() -> None:
    """List journaling sessions, newest first."""

    configure_logging()
    orchestrator = _orchestrator()
    summaries = orchestrator.store.list_sessions(orchestrator.user_id)
    if not summaries:
        typer.echo("No sessions stored yet.")
        return
    for summary in summaries:
        typer.echo(f"{summary.id} | {summary.created_at:%Y-%m-%d %H:%M} | {summary.title}")


@app.command()
def show(session_id: Optional[str] = typer.Argument(None, help="Session id; defaults to the latest")) -> None:
    """Show a session's questions and answers."""

    configure_logging()
    try:
        session = _orchestrator().open_session(session_id)
    except RecordNotFoundError as exc:
        _fail(str(exc))
        return
    typer.echo(session.title)
    for question in session.questions:
        typer.echo(f"{question.order + 1}. {question.text}")
        for response in question.responses:
            typer.echo(f"   [{response.created_at:%Y-%m-%d %H:%M}] {response.transcription}")


@app.command()
def export(
    session_id: Optional[str] = typer.Argument(None, help="Session id; defaults to the latest"),
    output: Optional[Path] = typer.Option(None, help="Write the export to this file"),
) -> None:
    """Export the latest answer to each question as plain text."""

    configure_logging()
    orchestrator = _orchestrator()
    try:
        session = orchestrator.open_session(session_id)
    except RecordNotFoundError as exc:
        _fail(str(exc))
        return
    text = orchestrator.export(session.id)
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text)
        typer.echo(f"Exported {session.title} to {output}")


@app.command("delete-session")
def delete_session(
    session_id: str = typer.Argument(..., help="Session to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a session with all its questions and responses."""

    configure_logging()
    if not yes and not typer.confirm(f"Delete session {session_id}?"):
        raise typer.Abort()
    orchestrator = _orchestrator()
    orchestrator.store.delete_session(orchestrator.user_id, session_id)
    typer.echo(f"Deleted session {session_id}")


@app.command()
def draft(
    session_id: Optional[str] = typer.Argument(None, help="Session id; defaults to the latest"),
    provider: LLMProvider = typer.Option(LLMProvider.CLAUDE, help="Generation provider"),
    format: ContentFormat = typer.Option(ContentFormat.BLOG, "--format", help="Output format"),
    custom_format: Optional[str] = typer.Option(None, help="Describe the custom format"),
    length: Optional[int] = typer.Option(None, help="Target length in words"),
    tone: Optional[str] = typer.Option(None, help="Tone of the draft"),
    audience: Optional[str] = typer.Option(None, help="Intended audience"),
    instructions: Optional[str] = typer.Option(None, help="Additional instructions"),
    output: Optional[Path] = typer.Option(None, help="Write the draft to this file"),
) -> None:
    """Turn a session's answers into a polished draft."""

    configure_logging()
    orchestrator = _orchestrator()
    try:
        session = orchestrator.open_session(session_id)
        result = orchestrator.generate_draft(
            DraftRequest(
                session_id=session.id,
                provider=provider,
                format=format,
                custom_format=custom_format,
                settings=AdvancedSettings(
                    length=length, tone=tone, audience=audience, custom_instructions=instructions
                ),
            )
        )
    except (RecordNotFoundError, MissingInput, CustomFormatRequired, DraftGenerationError) as exc:
        _fail(str(exc))
        return

    if result is None:
        _fail("A draft is already being generated")
        return
    if output is None:
        typer.echo(result.content)
    else:
        output.write_text(result.content)
        typer.echo(f"Draft saved to {output}")


@app.command()
def drafts(
    session_id: Optional[str] = typer.Argument(None, help="Only list drafts generated for this session"),
    show_id: Optional[str] = typer.Option(None, "--show", help="Print the draft with this id in full"),
) -> None:
    """List saved drafts, newest first, or print one of them."""

    configure_logging()
    orchestrator = _orchestrator()
    if show_id:
        saved = orchestrator.store.get_draft(orchestrator.user_id, show_id)
        if saved is None:
            _fail(f"Draft {show_id} not found")
            return
        typer.echo(f"{saved.provider.value} | {saved.format.value} | {saved.created_at:%Y-%m-%d %H:%M}")
        typer.echo(saved.content)
        return

    if session_id:
        history = orchestrator.store.list_session_drafts(orchestrator.user_id, session_id)
    else:
        history = orchestrator.store.list_user_drafts(orchestrator.user_id)
    if not history:
        typer.echo("No drafts saved yet.")
        return
    for saved in history:
        preview = saved.content.strip().splitlines()[0] if saved.content.strip() else ""
        typer.echo(
            f"{saved.id} | {saved.created_at:%Y-%m-%d %H:%M} | {saved.provider.value} | "
            f"{saved.format.value} | {preview[:60]}"
        )


@app.command("auto-advance")
def auto_advance(
    enabled: Optional[bool] = typer.Argument(None, help="true/false; omit to show the current value"),
) -> None:
    """Show or change whether recording moves on to the next question."""

    store = KeyStore()
    if enabled is not None:
        store.auto_advance = enabled
    typer.echo(f"Auto-advance: {'on' if store.auto_advance else 'off'}")


# ----------------------------------------------------------------------
# Keys
# ----------------------------------------------------------------------
@keys_app.command("set")
def keys_set(
    provider: Provider = typer.Argument(..., help="openai, anthropic or gemini"),
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="The API key"),
) -> None:
    """Check a key against its provider and store it."""

    configure_logging()
    try:
        KeyStore().set(provider, api_key)
    except (KeyFormatError, KeyValidationError) as exc:
        _fail(str(exc))
        return
    typer.echo(f"{PROVIDER_LABELS[provider]} API key saved ({mask_secret(api_key)})")


@keys_app.command("remove")
def keys_remove(provider: Provider = typer.Argument(..., help="openai, anthropic or gemini")) -> None:
    """Forget a stored key."""

    KeyStore().remove(provider)
    typer.echo(f"{PROVIDER_LABELS[provider]} API key removed")


@keys_app.command("status")
def keys_status() -> None:
    """Show which provider keys are configured."""

    store = KeyStore()
    for provider, present in store.status().items():
        detail = mask_secret(store.get(provider)) if present else "not set"
        typer.echo(f"{PROVIDER_LABELS[provider]:<10} {detail}")


# ----------------------------------------------------------------------
# Templates
# ----------------------------------------------------------------------
@templates_app.command("list")
def templates_list(public: bool = typer.Option(False, "--public", help="List public templates")) -> None:
    """List question templates."""

    orchestrator = _orchestrator()
    templates = (
        orchestrator.templates.list_public_templates()
        if public
        else orchestrator.templates.list_user_templates(orchestrator.user_id)
    )
    if not templates:
        typer.echo("No templates found.")
        return
    for item in templates:
        typer.echo(f"{item.id} | {item.name} | {len(item.questions)} question(s) | {item.description}")


@templates_app.command("create")
def templates_create(
    name: str = typer.Argument(..., help="Template name"),
    question: List[str] = typer.Option([], "--question", "-q", help="Question text; repeat for more"),
    description: str = typer.Option("", help="Short description"),
    public: bool = typer.Option(False, "--public", help="Share the template publicly"),
    generate: Optional[str] = typer.Option(None, help="Generate questions from this prompt"),
) -> None:
    """Create a template from explicit questions or a generation prompt."""

    configure_logging()
    orchestrator = _orchestrator()
    stubs = [QuestionStub(text=text, order=index) for index, text in enumerate(question)]
    if generate:
        try:
            api_key = orchestrator.keys.require(Provider.OPENAI)
            generated = orchestrator.questions.generate_questions(generate, api_key)
        except (MissingInput, QuestionGenerationError) as exc:
            _fail(str(exc))
            return
        stubs.extend(stub.model_copy(update={"order": len(stubs) + stub.order}) for stub in generated)
    owner = PUBLIC_OWNER if public else orchestrator.user_id
    try:
        template = orchestrator.templates.create_template(
            owner, name, stubs, description=description, is_public=public
        )
    except ValueError as exc:
        _fail(str(exc))
        return
    typer.echo(f"Created template {template.id} with {len(template.questions)} question(s)")


@templates_app.command("delete")
def templates_delete(template_id: str = typer.Argument(..., help="Template to delete")) -> None:
    """Delete one of your templates."""

    orchestrator = _orchestrator()
    try:
        orchestrator.templates.delete_template(orchestrator.user_id, template_id)
    except RecordNotFoundError as exc:
        _fail(str(exc))
        return
    typer.echo(f"Deleted template {template_id}")


# ----------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------
@config_app.command("list")
def config_list() -> None:
    """Show every environment-backed setting."""

    for entry in list_environment_settings():
        value = "(unset)" if entry.value is None else entry.value
        typer.echo(f"{entry.env_name} = {value} (default: {entry.default})")


@config_app.command("set")
def config_set(field: str, value: str) -> None:
    """Persist a setting to the .env file."""

    try:
        update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        _fail(str(exc))
        return
    typer.echo(f"{field} updated")


@config_app.command("clear")
def config_clear(field: str) -> None:
    """Remove a setting override."""

    try:
        clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        _fail(str(exc))
        return
    typer.echo(f"{field} reset")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
) -> None:
    """Run the HTTP API."""

    import uvicorn

    from .api.app import create_app

    configure_logging()
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    LOGGER.info("Serving braindump API on %s:%d", host, port)
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    app()
