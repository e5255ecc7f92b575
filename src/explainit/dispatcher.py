# src/explainit/dispatcher.py
from __future__ import annotations
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import requests

from explainit import config
from explainit.exceptions import EmptyResponseError, HttpError
from explainit.logging_config import get_logger
from explainit.providers import (
    BearerHeader,
    CustomHeader,
    ProviderDescriptor,
    QueryParam,
    ResponsePath,
)

logger = get_logger("dispatcher")

JSON_HEADERS = {"Content-Type": "application/json"}


def extract_text(data: Any, path: ResponsePath) -> Optional[str]:
    """Walk path into a decoded JSON body; None when any step is missing or the text is blank."""
    node = data
    for step in path:
        try:
            node = node[step]
        except (KeyError, IndexError, TypeError):
            return None
    if not isinstance(node, str):
        return None
    return node.strip() or None


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        if body.get("message"):
            return str(body["message"])
    return f"HTTP {resp.status_code}"


def _retry_after(resp: requests.Response) -> Optional[int]:
    value = (resp.headers or {}).get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _post(
    provider: ProviderDescriptor,
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
) -> str:
    resp = requests.post(url, headers=headers, json=payload, timeout=timeout)

    if not 200 <= resp.status_code < 300:
        message = _error_message(resp)
        logger.warning(
            "Provider returned an error status",
            provider=provider.id,
            status_code=resp.status_code,
        )
        raise HttpError(
            status_code=resp.status_code,
            message=message,
            provider=provider.id,
            retry_after=_retry_after(resp),
        )

    try:
        data = resp.json()
    except ValueError:
        raise EmptyResponseError(provider=provider.id)

    text = extract_text(data, provider.response_path)
    if text is None:
        raise EmptyResponseError(provider=provider.id)
    return text


def dispatch_bearer_header(
    provider: ProviderDescriptor,
    credential: str,
    prompt: str,
    timeout: float = config.DEFAULT_REQUEST_TIMEOUT,
    max_tokens: int = config.DEFAULT_MAX_TOKENS,
) -> str:
    """OpenAI-compatible chat completions (OpenAI, Groq)."""
    payload = {
        "model": provider.model_id,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": config.DEFAULT_TEMPERATURE,
    }
    headers = {
        **JSON_HEADERS,
        provider.auth_scheme.header: f"Bearer {credential}",
    }
    return _post(provider, provider.endpoint_url, headers, payload, timeout)


def dispatch_custom_header(
    provider: ProviderDescriptor,
    credential: str,
    prompt: str,
    timeout: float = config.DEFAULT_REQUEST_TIMEOUT,
    max_tokens: int = config.DEFAULT_MAX_TOKENS,
) -> str:
    """Anthropic-style messages API: key header plus the fixed version header."""
    scheme = provider.auth_scheme
    version_name, version_value = scheme.version_header
    payload = {
        "model": provider.model_id,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    headers = {
        **JSON_HEADERS,
        scheme.name: credential,
        version_name: version_value,
    }
    return _post(provider, provider.endpoint_url, headers, payload, timeout)


def dispatch_query_param(
    provider: ProviderDescriptor,
    credential: str,
    prompt: str,
    timeout: float = config.DEFAULT_REQUEST_TIMEOUT,
    max_tokens: int = config.DEFAULT_MAX_TOKENS,
) -> str:
    """Gemini generateContent: the key travels in the URL only."""
    url = f"{provider.endpoint_url}?{urlencode({provider.auth_scheme.name: credential})}"
    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "maxOutputTokens": max_tokens,
            "temperature": config.DEFAULT_TEMPERATURE,
        },
    }
    return _post(provider, url, dict(JSON_HEADERS), payload, timeout)


DISPATCHERS: Dict[type, Callable[..., str]] = {
    BearerHeader: dispatch_bearer_header,
    CustomHeader: dispatch_custom_header,
    QueryParam: dispatch_query_param,
}


def dispatch(
    provider: ProviderDescriptor,
    credential: str,
    prompt: str,
    timeout: float = config.DEFAULT_REQUEST_TIMEOUT,
    max_tokens: int = config.DEFAULT_MAX_TOKENS,
) -> str:
    """Issue one provider call using the request function for its auth scheme."""
    func = DISPATCHERS[type(provider.auth_scheme)]
    return func(provider, credential, prompt, timeout=timeout, max_tokens=max_tokens)
