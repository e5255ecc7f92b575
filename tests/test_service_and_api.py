"""
Tests for the service facade and the HTTP API in front of it.

The API tests swap in a service built on in-memory stores and a fake
dispatch function, so no request leaves the process.
"""
# tests/test_service_and_api.py
import asyncio
import threading

import pytest
from fastapi.testclient import TestClient

from conftest import FailingStore
from explainit import api
from explainit.exceptions import HttpError
from explainit.resilience import ResilienceController
from explainit.service import ExplainItService
from explainit.settings_state import SettingsStateManager
from explainit.storage import MemoryStore


@pytest.fixture
def service(settings, controller):
    return ExplainItService(settings=settings, controller=controller)


@pytest.fixture
def client(service):
    api.set_service(service)
    with TestClient(api.app) as test_client:
        yield test_client
    api.set_service(None)


# --- Service ---

@pytest.mark.asyncio
async def test_explanation_without_key_skips_network(service, fake_dispatch):
    result = await service.request_explanation("photosynthesis")

    assert not result.success
    assert result.is_credential_error
    fake_dispatch.assert_not_called()


@pytest.mark.asyncio
async def test_explanation_uses_saved_preferences(service, fake_dispatch):
    await service.save_preferences({"language": "ru", "tone": "kid", "provider": "groq",
                                    "apiKeys": {"groq": "gsk_1"}})

    result = await service.request_explanation("  photosynthesis  ")

    assert result.success
    assert result.text == "An explanation."
    provider, credential, prompt = fake_dispatch.call_args.args
    assert provider.id == "groq"
    assert credential == "gsk_1"
    assert "photosynthesis" in prompt
    assert "5-летним" in prompt


@pytest.mark.asyncio
async def test_explanation_arguments_override_preferences(service, fake_dispatch):
    await service.save_preferences({"language": "ru", "tone": "kid", "provider": "openai",
                                    "apiKeys": {"openai": "sk-1"}})

    await service.request_explanation("entropy", tone="expert", language="en")

    prompt = fake_dispatch.call_args.args[2]
    assert prompt.startswith("Provide a precise, technical explanation")


@pytest.mark.asyncio
async def test_explanation_rejects_blank_and_long_text(service, fake_dispatch):
    blank = await service.request_explanation("   ")
    long = await service.request_explanation("x" * 2001)

    assert blank.error_code == "VALIDATION_ERROR"
    assert long.error_code == "VALIDATION_ERROR"
    fake_dispatch.assert_not_called()


@pytest.mark.asyncio
async def test_unsaved_draft_is_not_used_for_requests(service, fake_dispatch):
    await service.save_preferences({"language": "en", "tone": "simple", "provider": "openai",
                                    "apiKeys": {"openai": "sk-saved"}})
    service.settings.edit_credential("sk-draft")

    await service.request_explanation("entropy")

    assert fake_dispatch.call_args.args[1] == "sk-saved"


@pytest.mark.asyncio
async def test_new_request_aborts_previous(settings):
    release = threading.Event()
    calls = []

    def slow_dispatch(provider, credential, prompt, timeout, max_tokens):
        calls.append(prompt)
        if len(calls) == 1:
            release.wait(2)
        return "done"

    controller = ResilienceController(dispatch_func=slow_dispatch, timeout=5.0, max_retries=0, retry_delay=0)
    settings.controller = controller
    service = ExplainItService(settings=settings, controller=controller)
    await service.save_preferences({"language": "en", "tone": "simple", "provider": "openai",
                                    "apiKeys": {"openai": "sk-1"}})

    first = asyncio.ensure_future(service.request_explanation("first"))
    while not calls:
        await asyncio.sleep(0.01)
    try:
        second = await service.request_explanation("second")
        first_result = await first
    finally:
        release.set()

    assert first_result.cancelled
    assert second.success


@pytest.mark.asyncio
async def test_cancel_pending_without_request_is_noop(service):
    service.cancel_pending()


@pytest.mark.asyncio
async def test_service_test_credential_shape(service, fake_dispatch):
    fake_dispatch.side_effect = HttpError(401, "Invalid x-api-key", "anthropic")

    response = await service.test_credential("anthropic", "sk-ant-bad")

    assert response == {"success": False, "status": "invalid", "error": "Invalid x-api-key"}


# --- API ---

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_providers_listing(client):
    body = client.get("/api/v1/providers").json()
    assert [p["id"] for p in body["providers"]] == ["openai", "anthropic", "gemini", "groq"]
    assert body["default"] == "openai"


def test_explain_endpoint(client, fake_dispatch):
    client.put("/api/v1/preferences", json={"provider": "openai", "api_keys": {"openai": "sk-1"}})

    response = client.post("/api/v1/explain", json={"text": "entropy", "tone": "kid"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "text": "An explanation.", "isCredentialError": False}


def test_explain_endpoint_reports_credential_error(client, fake_dispatch):
    client.put("/api/v1/preferences", json={"provider": "openai", "api_keys": {"openai": "sk-bad"}})
    fake_dispatch.side_effect = HttpError(401, "Incorrect API key provided", "openai")

    body = client.post("/api/v1/explain", json={"text": "entropy"}).json()

    assert body["success"] is False
    assert body["isCredentialError"] is True
    assert body["error"] == "Incorrect API key provided"


def test_explain_endpoint_rejects_empty_text(client):
    response = client.post("/api/v1/explain", json={"text": "  "})
    assert response.status_code == 400
    assert response.json()["errorCode"] == "VALIDATION_ERROR"


def test_preferences_round_trip_masks_keys(client):
    saved = client.put(
        "/api/v1/preferences",
        json={"language": "ru", "tone": "expert", "provider": "groq", "api_keys": {"groq": "gsk_1234567890"}},
    )
    assert saved.status_code == 200
    assert saved.json()["success"] is True

    body = client.get("/api/v1/preferences").json()
    assert body["provider"] == "groq"
    assert body["language"] == "ru"
    assert body["credentials"]["groq"]["masked"] == "gsk_...7890"
    assert "gsk_1234567890" not in str(body)


def test_preferences_validation_error(client):
    response = client.put("/api/v1/preferences", json={"provider": "openai", "language": "de"})
    assert response.status_code == 400
    assert response.json()["field"] == "language"


def test_preferences_storage_error(fake_dispatch, controller):
    settings = SettingsStateManager(MemoryStore(), FailingStore(), controller)
    api.set_service(ExplainItService(settings=settings, controller=controller))
    try:
        response = TestClient(api.app).put("/api/v1/preferences", json={"provider": "openai"})
    finally:
        api.set_service(None)

    assert response.status_code == 503
    assert response.json()["type"] == "storage_error"


def test_switch_provider_endpoint(client):
    body = client.post("/api/v1/preferences/provider", json={"provider": "gemini"}).json()
    assert body["provider"] == "gemini"

    response = client.post("/api/v1/preferences/provider", json={"provider": "mistral"})
    assert response.status_code == 400


def test_credential_test_endpoint(client, fake_dispatch):
    empty = client.post("/api/v1/credentials/test", json={"provider": "openai", "api_key": ""}).json()
    assert empty == {"success": False, "status": "not-set"}
    fake_dispatch.assert_not_called()

    ok = client.post("/api/v1/credentials/test", json={"provider": "openai", "api_key": "sk-1"}).json()
    assert ok == {"success": True, "status": "validated"}


@pytest.mark.asyncio
async def test_session_credential_reaches_dispatch(service, fake_dispatch):
    await service.switch_provider("anthropic")
    service.use_session_credential("anthropic", "sk-ant-session")

    result = await service.request_explanation("entropy")

    assert result.success
    assert fake_dispatch.call_args.args[1] == "sk-ant-session"


def test_partial_preferences_update_keeps_language_and_tone(controller):
    sync_store = MemoryStore({"language": "ru", "tone": "expert"})
    local_store = MemoryStore()
    settings = SettingsStateManager(sync_store, local_store, controller)
    api.set_service(ExplainItService(settings=settings, controller=controller))
    try:
        with TestClient(api.app) as test_client:
            response = test_client.put("/api/v1/preferences", json={"provider": "groq"})
    finally:
        api.set_service(None)

    assert response.status_code == 200
    assert sync_store.data == {"language": "ru", "tone": "expert"}
    assert local_store.data["provider"] == "groq"


@pytest.mark.parametrize("path,method", [
    ("/api/v1/preferences", "put"),
    ("/api/v1/preferences/provider", "post"),
])
def test_empty_provider_rejected_by_request_model(client, path, method):
    response = getattr(client, method)(path, json={"provider": ""})
    assert response.status_code == 422
