"""
Service facade exposed to the UI layer.

This module ties the prompt builder, the resilience controller and the
settings manager into the operations a UI needs: request an explanation,
test a key, load/save preferences and switch providers. It also owns
request-level cancellation: starting a new explanation aborts the previous
one, and cancel_pending() aborts whatever is in flight when the UI goes away.
"""
# src/explainit/service.py
from typing import Any, Dict, Optional

from explainit.exceptions import CredentialError, ValidationError
from explainit.logging_config import get_logger
from explainit.prompts import build_prompt, clean_text, language_label, normalize_language, normalize_tone, tone_label
from explainit.providers import PROVIDER_IDS, is_known_provider, lookup
from explainit.resilience import AbortSignal, DispatchResult, ResilienceController
from explainit.sanitize import hash_text, mask_text
from explainit.settings_state import CredentialStatus, SettingsStateManager

logger = get_logger("service")


def _require_known_provider(provider_id: str) -> None:
    if not is_known_provider(provider_id):
        raise ValidationError("provider", provider_id, f"Must be one of {list(PROVIDER_IDS)}")


class ExplainItService:
    """Collaborator interface for the UI layer."""

    def __init__(self, settings: SettingsStateManager, controller: ResilienceController):
        self.settings = settings
        self.controller = controller
        self._pending: Optional[AbortSignal] = None
        self._loaded = False

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load_preferences()

    def cancel_pending(self) -> None:
        """Abort the in-flight explanation request, if any."""
        if self._pending is not None:
            self._pending.abort()
            self._pending = None

    async def request_explanation(
        self,
        text: str,
        tone: Optional[str] = None,
        language: Optional[str] = None
    ) -> DispatchResult:
        """Explain text with the active provider; any earlier request is aborted."""
        self.cancel_pending()
        signal = AbortSignal()
        self._pending = signal

        try:
            await self.ensure_loaded()
            snapshot = self.settings.snapshot()
            tone = normalize_tone(tone or snapshot.tone)
            language = normalize_language(language or snapshot.language)

            try:
                cleaned = clean_text(text)
            except ValidationError as e:
                return DispatchResult.from_error(e)

            provider = lookup(snapshot.provider_id)
            if not snapshot.credential:
                error = CredentialError(
                    provider=provider.id,
                    message=f"API key for {provider.name} is not set"
                )
                return DispatchResult.from_error(error)

            logger.info(
                "Requesting explanation",
                provider=provider.id,
                language=language_label(language),
                tone=tone_label(tone),
                text_length=len(cleaned),
                text_hash=hash_text(cleaned),
            )
            logger.debug("Selected text", preview=mask_text(cleaned))
            prompt = build_prompt(cleaned, tone, language)
            return await self.controller.execute(provider, snapshot.credential, prompt, signal)
        finally:
            if self._pending is signal:
                self._pending = None

    async def test_credential(self, provider_id: str, value: str) -> Dict[str, Any]:
        _require_known_provider(provider_id)
        await self.ensure_loaded()
        entry = await self.settings.test_credential(provider_id, value)
        response: Dict[str, Any] = {"success": entry.status is CredentialStatus.VALIDATED,
                                    "status": entry.status.value}
        if entry.status_message:
            response["error"] = entry.status_message
        return response

    async def load_preferences(self) -> Dict[str, Any]:
        await self.settings.load_all()
        self._loaded = True
        return self.settings.export_state()

    async def current_preferences(self) -> Dict[str, Any]:
        """Preferences as held in this session, drafts included, keys masked."""
        await self.ensure_loaded()
        return self.settings.export_state()

    async def save_preferences(self, draft: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        await self.ensure_loaded()
        outcome = await self.settings.save(draft)
        return outcome.to_dict()

    def use_session_credential(self, provider_id: str, value: str) -> None:
        """Use value as the provider's key for this process only; never saved."""
        _require_known_provider(provider_id)
        self.settings.use_session_credential(provider_id, value)

    async def switch_provider(self, provider_id: str) -> Dict[str, Any]:
        _require_known_provider(provider_id)
        await self.ensure_loaded()
        self.settings.switch_active_provider(provider_id)
        return self.settings.export_state()
