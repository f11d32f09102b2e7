"""Client-side credential storage and provider liveness checks.

Keys are kept in a small JSON file owned by the local user. They never go
into the session database and are only logged through :func:`mask_secret`.
"""

from __future__ import annotations

import enum
import json
import os
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from ..config import get_settings
from ..logging import get_logger, mask_secret
from . import clients
from .transcription.base import MissingInput

LOGGER = get_logger(__name__)


class Provider(str, enum.Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


STORAGE_KEYS: Dict[Provider, str] = {
    Provider.OPENAI: "openai-api-key",
    Provider.ANTHROPIC: "anthropic-api-key",
    Provider.GEMINI: "gemini-api-key",
}
AUTO_ADVANCE_KEY = "braindump-auto-advance"

PROVIDER_LABELS: Dict[Provider, str] = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.GEMINI: "Gemini",
}


class KeyFormatError(ValueError):
    """Raised when a key is malformed before any provider call is made."""


class KeyValidationError(ValueError):
    """Raised when a provider rejects a key during its liveness check."""


def validate_openai_key(api_key: str) -> bool:
    """Return ``True`` when OpenAI accepts the key."""

    if not api_key or not api_key.startswith("sk-"):
        raise KeyFormatError("Invalid API key format")
    try:
        clients.make_openai_client(api_key).models.list()
    except Exception as exc:
        LOGGER.warning("OpenAI rejected key %s: %s", mask_secret(api_key), type(exc).__name__)
        return False
    return True


def validate_anthropic_key(api_key: str) -> bool:
    """Return ``True`` when Anthropic accepts the key for a one-token request."""

    if not api_key or not api_key.startswith("sk-"):
        raise KeyFormatError("Invalid API key format")
    try:
        clients.make_anthropic_client(api_key).messages.create(
            max_tokens=1,
            messages=[{"role": "user", "content": "Hi"}],
            model=get_settings().anthropic_probe_model,
        )
    except Exception as exc:
        LOGGER.warning("Anthropic rejected key %s: %s", mask_secret(api_key), type(exc).__name__)
        return False
    return True


def validate_gemini_key(api_key: str) -> bool:
    """Return ``True`` when Gemini answers a minimal prompt with the key."""

    if not api_key:
        raise KeyFormatError("API key is required")
    try:
        clients.make_gemini_model(api_key, get_settings().gemini_model).generate_content("Hi")
    except Exception as exc:
        LOGGER.warning("Gemini rejected key %s: %s", mask_secret(api_key), type(exc).__name__)
        return False
    return True


DEFAULT_VALIDATORS: Dict[Provider, Callable[[str], bool]] = {
    Provider.OPENAI: validate_openai_key,
    Provider.ANTHROPIC: validate_anthropic_key,
    Provider.GEMINI: validate_gemini_key,
}


class KeyStore:
    """Persistent credential store keyed by fixed storage names."""

    def __init__(
        self,
        path: Optional[Path] = None,
        validators: Optional[Mapping[Provider, Callable[[str], bool]]] = None,
    ) -> None:
        self.path = Path(path or get_settings().resolved_key_store_path)
        self._validators = dict(validators or DEFAULT_VALIDATORS)

    def _load(self) -> Dict[str, object]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Key store at %s is unreadable (%s); starting empty", self.path, type(exc).__name__)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(data, indent=2))
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)

    def get(self, provider: Provider) -> Optional[str]:
        value = self._load().get(STORAGE_KEYS[Provider(provider)])
        return value if isinstance(value, str) and value else None

    def require(self, provider: Provider) -> str:
        key = self.get(provider)
        if key is None:
            raise MissingInput(f"{PROVIDER_LABELS[Provider(provider)]} API key not found")
        return key

    def set(self, provider: Provider, api_key: str) -> None:
        """Store ``api_key`` after it passes the provider's liveness check."""

        provider = Provider(provider)
        api_key = api_key.strip()
        label = PROVIDER_LABELS[provider]
        if not self._validators[provider](api_key):
            raise KeyValidationError(f"Invalid {label} API key")
        data = self._load()
        data[STORAGE_KEYS[provider]] = api_key
        self._save(data)
        LOGGER.info("%s API key updated (%s)", label, mask_secret(api_key))

    def remove(self, provider: Provider) -> None:
        provider = Provider(provider)
        data = self._load()
        if data.pop(STORAGE_KEYS[provider], None) is not None:
            self._save(data)
        LOGGER.info("%s API key removed", PROVIDER_LABELS[provider])

    def status(self) -> Dict[Provider, bool]:
        return {provider: self.get(provider) is not None for provider in Provider}

    @property
    def auto_advance(self) -> bool:
        value = self._load().get(AUTO_ADVANCE_KEY)
        return value if isinstance(value, bool) else True

    @auto_advance.setter
    def auto_advance(self, enabled: bool) -> None:
        data = self._load()
        data[AUTO_ADVANCE_KEY] = bool(enabled)
        self._save(data)


__all__ = [
    "AUTO_ADVANCE_KEY",
    "DEFAULT_VALIDATORS",
    "KeyFormatError",
    "KeyStore",
    "KeyValidationError",
    "PROVIDER_LABELS",
    "Provider",
    "STORAGE_KEYS",
    "validate_anthropic_key",
    "validate_gemini_key",
    "validate_openai_key",
]
