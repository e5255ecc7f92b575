"""
Credential and settings state for a settings UI session.

SettingsStateManager owns the user's preferences: language and tone, the
active provider and one CredentialEntry per provider. A settings form edits
the active provider's key through edit_credential; switching providers keeps
typed-but-unsaved keys as drafts; save persists everything through two
stores with different guarantees.

Persistence layout:
- cross-device (sync) store: language, tone
- device-local store: provider, apiKeys (and language/tone when sync fails)

API keys are never written to the sync store. The sync payload is built from
SYNC_KEYS only.
"""
# src/explainit/settings_state.py
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from explainit import config
from explainit.exceptions import StorageError, ValidationError
from explainit.logging_config import get_logger
from explainit.prompts import DEFAULT_LANGUAGE, DEFAULT_TONE, LANGUAGES, TONES
from explainit.providers import DEFAULT_PROVIDER_ID, PROVIDER_IDS, is_known_provider, lookup
from explainit.sanitize import mask_credential
from explainit.storage import BaseStore

logger = get_logger("settings_state")

SYNC_KEYS = ("language", "tone")
LOCAL_KEYS = ("provider", "apiKeys")

STATUS_MESSAGE_MAX_LENGTH = 60


class CredentialStatus(str, Enum):
    NOT_SET = "not-set"
    SAVED = "saved"
    TESTING = "testing"
    VALIDATED = "validated"
    INVALID = "invalid"


@dataclass
class CredentialEntry:
    saved_value: str = ""
    draft_value: Optional[str] = None
    status: CredentialStatus = CredentialStatus.NOT_SET
    status_message: str = ""

    @property
    def effective_value(self) -> str:
        """Draft when present, otherwise the saved value."""
        return self.draft_value if self.draft_value is not None else self.saved_value

    @property
    def has_draft(self) -> bool:
        return self.draft_value is not None

    def reset_status(self) -> None:
        self.status = CredentialStatus.SAVED if self.effective_value else CredentialStatus.NOT_SET
        self.status_message = ""


@dataclass(frozen=True)
class PreferencesSnapshot:
    """Read-only view handed to the request path."""
    language: str
    tone: str
    provider_id: str
    credential: str


@dataclass
class UserPreferences:
    language: str = DEFAULT_LANGUAGE
    tone: str = DEFAULT_TONE
    active_provider_id: str = DEFAULT_PROVIDER_ID
    credentials: Dict[str, CredentialEntry] = field(
        default_factory=lambda: {provider_id: CredentialEntry() for provider_id in PROVIDER_IDS}
    )

    def saved_api_keys(self) -> Dict[str, str]:
        return {
            provider_id: entry.saved_value
            for provider_id, entry in self.credentials.items()
            if entry.saved_value
        }

    def snapshot(self) -> PreferencesSnapshot:
        entry = self.credentials.get(self.active_provider_id) or CredentialEntry()
        return PreferencesSnapshot(
            language=self.language,
            tone=self.tone,
            provider_id=self.active_provider_id,
            credential=entry.saved_value,
        )


@dataclass
class SaveOutcome:
    success: bool
    fallback: bool = False
    message: str = "Settings saved"

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "fallback": self.fallback, "message": self.message}


def _clean_key(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class SettingsStateManager:
    """Mediates all reads and writes of UserPreferences."""

    def __init__(self, sync_store: BaseStore, local_store: BaseStore, controller=None):
        self.sync_store = sync_store
        self.local_store = local_store
        self.controller = controller
        self.preferences = UserPreferences()
        # Value currently shown in the key input for the active provider
        self.edit_value = ""
        # Per-process keys that take precedence over saved ones; never persisted
        self._session_credentials: Dict[str, str] = {}

    # --- Loading ---

    async def load_all(self) -> UserPreferences:
        """Read preferences from both stores; never raises for a read failure."""
        sync_stored: Dict[str, Any] = {}
        try:
            sync_stored = await self.sync_store.get(SYNC_KEYS)
        except StorageError as e:
            logger.warning("Failed to load sync settings", error=str(e))

        local_stored: Dict[str, Any] = {}
        try:
            local_stored = await self.local_store.get(LOCAL_KEYS + SYNC_KEYS)
        except StorageError as e:
            logger.error("Failed to load local settings", error=str(e))

        language = sync_stored.get("language") or local_stored.get("language")
        tone = sync_stored.get("tone") or local_stored.get("tone")
        provider_id = local_stored.get("provider")
        api_keys = local_stored.get("apiKeys")
        if not isinstance(api_keys, dict):
            api_keys = {}

        credentials = {}
        for pid in PROVIDER_IDS:
            entry = CredentialEntry(saved_value=_clean_key(api_keys.get(pid)))
            entry.reset_status()
            credentials[pid] = entry

        self.preferences = UserPreferences(
            language=language if language in LANGUAGES else DEFAULT_LANGUAGE,
            tone=tone if tone in TONES else DEFAULT_TONE,
            active_provider_id=provider_id if is_known_provider(provider_id) else DEFAULT_PROVIDER_ID,
            credentials=credentials,
        )
        self.edit_value = self.active_entry.effective_value

        logger.info(
            "Settings loaded",
            language=self.preferences.language,
            tone=self.preferences.tone,
            provider=self.preferences.active_provider_id,
            configured=sorted(self.preferences.saved_api_keys()),
        )
        return self.preferences

    # --- Draft editing ---

    @property
    def active_entry(self) -> CredentialEntry:
        return self.preferences.credentials[self.preferences.active_provider_id]

    def snapshot(self) -> PreferencesSnapshot:
        snapshot = self.preferences.snapshot()
        override = self._session_credentials.get(snapshot.provider_id)
        if override:
            return replace(snapshot, credential=override)
        return snapshot

    def use_session_credential(self, provider_id: str, value: str) -> None:
        """
        Use value as provider_id's key for requests made by this process.

        The key is kept outside UserPreferences, so save() never writes it and
        export_state() never reports it. An empty value removes the override.
        """
        pid = lookup(provider_id).id
        api_key = _clean_key(value)
        if api_key:
            self._session_credentials[pid] = api_key
        else:
            self._session_credentials.pop(pid, None)

    def edit_credential(self, value: str) -> CredentialEntry:
        """Record a keystroke-level edit of the active provider's key."""
        self.edit_value = value or ""
        entry = self.active_entry
        entry.draft_value = self.edit_value.strip()
        entry.reset_status()
        return entry

    def switch_active_provider(self, new_id: str) -> str:
        """
        Make new_id the active provider and return the value for the key input.

        The current input is captured into the outgoing provider's draft before
        the incoming provider's draft-or-saved value is loaded.
        """
        outgoing = self.active_entry
        captured = self.edit_value.strip()
        if captured != outgoing.effective_value:
            # Input changed without going through edit_credential
            outgoing.draft_value = captured
            outgoing.reset_status()

        self.preferences.active_provider_id = lookup(new_id).id
        self.edit_value = self.active_entry.effective_value
        logger.debug("Switched provider", provider=self.preferences.active_provider_id)
        return self.edit_value

    def discard_draft(self, provider_id: Optional[str] = None) -> CredentialEntry:
        """Drop the unsaved edit and restore the saved value."""
        pid = lookup(provider_id).id if provider_id else self.preferences.active_provider_id
        entry = self.preferences.credentials[pid]
        entry.draft_value = None
        entry.reset_status()
        if pid == self.preferences.active_provider_id:
            self.edit_value = entry.saved_value
        return entry

    # --- Validation probe ---

    async def test_credential(self, provider_id: str, value: str) -> CredentialEntry:
        """
        Probe the provider with value and record Validated or Invalid.

        The outcome is recorded on the provider's entry only when value is the
        key that entry holds. Any other value is tested on a detached entry,
        which is returned and not stored.
        """
        provider = lookup(provider_id)
        api_key = _clean_key(value)
        stored = self.preferences.credentials[provider.id]
        entry = stored if api_key == stored.effective_value else CredentialEntry(draft_value=api_key)

        if not api_key:
            entry.status = CredentialStatus.NOT_SET
            entry.status_message = ""
            return entry

        entry.status = CredentialStatus.TESTING
        entry.status_message = ""
        logger.info("Testing credential", provider=provider.id, credential=mask_credential(api_key))

        result = await self.controller.execute(
            provider,
            api_key,
            config.VALIDATION_PROMPT,
            max_retries=0,
            timeout=config.VALIDATION_TIMEOUT,
            max_tokens=config.VALIDATION_MAX_TOKENS,
        )

        if entry.status is not CredentialStatus.TESTING:
            # Edited while the probe was in flight; the result is stale
            return entry

        if result.success:
            entry.status = CredentialStatus.VALIDATED
        elif result.cancelled:
            entry.reset_status()
        else:
            entry.status = CredentialStatus.INVALID
            entry.status_message = (result.error or "Invalid key")[:STATUS_MESSAGE_MAX_LENGTH]
        return entry

    # --- Saving ---

    def _merge(self, next_preferences: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        prefs = self.preferences
        # Live input belongs to the active provider's draft
        if self.edit_value.strip() != self.active_entry.effective_value:
            self.edit_credential(self.edit_value)

        api_keys = {pid: entry.effective_value for pid, entry in prefs.credentials.items()}
        merged = {
            "language": prefs.language,
            "tone": prefs.tone,
            "provider": prefs.active_provider_id,
        }
        if next_preferences:
            for key in ("language", "tone", "provider"):
                if key in next_preferences:
                    merged[key] = next_preferences[key]
            extra_keys = next_preferences.get("apiKeys", next_preferences.get("api_keys"))
            if extra_keys is not None:
                if not isinstance(extra_keys, dict):
                    raise ValidationError("apiKeys", extra_keys, "Must be a mapping of provider to key")
                for pid, key in extra_keys.items():
                    if not is_known_provider(pid):
                        raise ValidationError("apiKeys", pid, "Unknown provider")
                    if key is not None and not isinstance(key, str):
                        raise ValidationError(f"apiKeys.{pid}", type(key).__name__, "Must be a string")
                    api_keys[pid] = _clean_key(key)

        if merged["language"] not in LANGUAGES:
            raise ValidationError("language", merged["language"], f"Must be one of {list(LANGUAGES)}")
        if merged["tone"] not in TONES:
            raise ValidationError("tone", merged["tone"], f"Must be one of {list(TONES)}")
        if not is_known_provider(merged["provider"]):
            raise ValidationError("provider", merged["provider"], f"Must be one of {list(PROVIDER_IDS)}")

        merged["apiKeys"] = {pid: key for pid, key in api_keys.items() if key}
        return merged

    async def save(self, next_preferences: Optional[Dict[str, Any]] = None) -> SaveOutcome:
        """
        Validate and persist preferences.

        Raises ValidationError before any store is touched, and StorageError
        when the device-local write fails. A failed sync write falls back to
        the local store and reports fallback=True.
        """
        merged = self._merge(next_preferences)
        sync_payload = {key: merged[key] for key in SYNC_KEYS}
        local_payload = {key: merged[key] for key in LOCAL_KEYS}

        fallback = False
        try:
            await self.sync_store.set(sync_payload)
        except StorageError as e:
            logger.warning("Failed to save sync settings, saving locally", error=str(e))
            fallback = True
            local_payload.update(sync_payload)

        await self.local_store.set(local_payload)

        self._apply_saved(merged)
        logger.info(
            "Settings saved",
            language=merged["language"],
            tone=merged["tone"],
            provider=merged["provider"],
            configured=sorted(merged["apiKeys"]),
            fallback=fallback,
        )
        if fallback:
            return SaveOutcome(success=True, fallback=True, message="Saved locally (sync unavailable)")
        return SaveOutcome(success=True)

    def _apply_saved(self, merged: Dict[str, Any]) -> None:
        prefs = self.preferences
        prefs.language = merged["language"]
        prefs.tone = merged["tone"]
        prefs.active_provider_id = merged["provider"]

        for pid, entry in prefs.credentials.items():
            new_value = merged["apiKeys"].get(pid, "")
            changed = new_value != entry.saved_value or (
                entry.has_draft and entry.draft_value != new_value
            )
            entry.saved_value = new_value
            entry.draft_value = None
            if changed or entry.status is CredentialStatus.NOT_SET or not new_value:
                entry.reset_status()

        self.edit_value = self.active_entry.saved_value

    def export_state(self) -> Dict[str, Any]:
        """Preferences with masked credentials, safe to show or log."""
        prefs = self.preferences
        return {
            "language": prefs.language,
            "tone": prefs.tone,
            "provider": prefs.active_provider_id,
            "credentials": {
                pid: {
                    "configured": bool(entry.saved_value),
                    "masked": mask_credential(entry.saved_value),
                    "hasDraft": entry.has_draft,
                    "status": entry.status.value,
                    "message": entry.status_message,
                }
                for pid, entry in prefs.credentials.items()
            },
        }
