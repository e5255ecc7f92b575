# tests/test_config_and_exceptions.py
import requests

from explainit import config
from explainit.exceptions import (
    CredentialError,
    EmptyResponseError,
    HttpError,
    RateLimitError,
    RequestRejectedError,
    RequestTimeoutError,
    TransientServerError,
    ValidationError,
    classify_failure,
)
from explainit.resilience import ResilienceController
from explainit.sanitize import hash_text, mask_credential, mask_text
from explainit.storage import JsonFileStore, RedisStore


def test_resilience_profiles(monkeypatch):
    monkeypatch.delenv("EXPLAINIT_ENV", raising=False)
    monkeypatch.delenv("EXPLAINIT_TIMEOUT", raising=False)
    assert config.resolve_resilience_settings() == {"timeout": 30.0, "max_retries": 3, "retry_delay": 2.0}

    monkeypatch.setenv("EXPLAINIT_ENV", "Development")
    assert config.resolve_resilience_settings()["max_retries"] == 2

    monkeypatch.setenv("EXPLAINIT_ENV", "staging")
    assert config.resolve_environment() == "production"


def test_timeout_override(monkeypatch):
    monkeypatch.setenv("EXPLAINIT_TIMEOUT", "12.5")
    assert config.resolve_resilience_settings("development")["timeout"] == 12.5

    monkeypatch.setenv("EXPLAINIT_TIMEOUT", "soon")
    assert config.resolve_resilience_settings("development")["timeout"] == 30.0


def test_store_factories(tmp_path, monkeypatch):
    monkeypatch.setenv("EXPLAINIT_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("EXPLAINIT_SYNC_REDIS_URL", raising=False)

    local = config.get_local_store()
    sync = config.get_sync_store()
    assert isinstance(local, JsonFileStore) and local.path == tmp_path / "local.json"
    assert isinstance(sync, JsonFileStore) and sync.path == tmp_path / "sync.json"

    monkeypatch.setenv("EXPLAINIT_SYNC_REDIS_URL", "redis://localhost:6379/0")
    assert isinstance(config.get_sync_store(), RedisStore)


def test_controller_factory(monkeypatch):
    monkeypatch.setenv("EXPLAINIT_ENV", "development")
    monkeypatch.delenv("EXPLAINIT_TIMEOUT", raising=False)
    controller = config.get_resilience_controller()
    assert isinstance(controller, ResilienceController)
    assert (controller.max_retries, controller.retry_delay) == (2, 1.0)


def test_classify_http_statuses():
    def classify(status, message="boom"):
        return classify_failure(HttpError(status, message, "openai"), "openai")

    assert isinstance(classify(429), RateLimitError)
    assert isinstance(classify(500), TransientServerError)
    assert isinstance(classify(502), TransientServerError)
    assert isinstance(classify(401), CredentialError)
    assert isinstance(classify(403), CredentialError)
    assert isinstance(classify(400, "API key not valid"), CredentialError)
    assert isinstance(classify(400, "max_tokens too large"), RequestRejectedError)
    assert isinstance(classify(404), RequestRejectedError)

    assert classify(429).retryable and classify(503).retryable
    assert not classify(401).retryable and not classify(400).retryable


def test_classify_network_failures():
    timeout = classify_failure(RequestTimeoutError("groq", 30.0), "groq")
    assert isinstance(timeout, TransientServerError)
    assert timeout.message == "Request timeout"

    assert isinstance(classify_failure(requests.Timeout(), "groq"), TransientServerError)
    network = classify_failure(requests.ConnectionError("refused"), "groq")
    assert network.retryable
    assert network.message.startswith("Network error")


def test_classify_passes_user_facing_errors_through():
    empty = EmptyResponseError(provider="gemini")
    assert classify_failure(empty, "gemini") is empty
    assert not empty.retryable


def test_error_dict_and_str():
    err = ValidationError("tone", "pirate", "Unknown tone")
    assert str(err) == "[VALIDATION_ERROR] Validation error for field 'tone': Unknown tone"
    assert err.to_dict()["details"] == {"field": "tone", "value": "pirate", "reason": "Unknown tone"}


def test_sanitize_helpers():
    assert mask_credential("sk-1234567890abcdef") == "sk-1...cdef"
    assert mask_credential("short") == "*****"
    assert mask_credential("") == ""
    assert len(hash_text("hello")) == 16
    assert hash_text("hello") == hash_text("hello")
    assert mask_text("short text") == "[10 chars]"
    assert "middle" not in mask_text("a" * 10 + "middle" * 5 + "z" * 10)
