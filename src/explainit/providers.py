"""
Provider registry for the supported AI backends.

Each provider is described by an immutable ProviderDescriptor: where to send
requests, which model to ask for, how the API key is attached and where the
generated text sits in the JSON response. The auth scheme is a small tagged
union; the dispatcher picks its request function from the scheme type, so a
new provider is a new table row rather than a new branch.
"""
# src/explainit/providers.py
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class BearerHeader:
    """API key sent as `Authorization: Bearer <key>`."""
    header: str = "Authorization"


@dataclass(frozen=True)
class CustomHeader:
    """API key sent under a provider-specific header plus a fixed version header."""
    name: str
    version_header: Tuple[str, str]


@dataclass(frozen=True)
class QueryParam:
    """API key appended to the request URL; never sent as a header."""
    name: str


AuthScheme = Union[BearerHeader, CustomHeader, QueryParam]

# Path segments are dict keys (str) or list indices (int)
ResponsePath = Tuple[Union[str, int], ...]

OPENAI_RESPONSE_PATH: ResponsePath = ("choices", 0, "message", "content")
ANTHROPIC_RESPONSE_PATH: ResponsePath = ("content", 0, "text")
GEMINI_RESPONSE_PATH: ResponsePath = ("candidates", 0, "content", "parts", 0, "text")


@dataclass(frozen=True)
class ProviderDescriptor:
    id: str
    name: str
    label: str
    endpoint_url: str
    model_id: str
    auth_scheme: AuthScheme
    response_path: ResponsePath
    key_prefix: str = ""
    key_url: str = ""
    key_placeholder: str = ""


PROVIDERS: Dict[str, ProviderDescriptor] = {
    "openai": ProviderDescriptor(
        id="openai",
        name="OpenAI",
        label="GPT-4o mini",
        endpoint_url="https://api.openai.com/v1/chat/completions",
        model_id="gpt-4o-mini",
        auth_scheme=BearerHeader(),
        response_path=OPENAI_RESPONSE_PATH,
        key_prefix="sk-",
        key_url="https://platform.openai.com/api-keys",
        key_placeholder="sk-...",
    ),
    "anthropic": ProviderDescriptor(
        id="anthropic",
        name="Anthropic",
        label="Claude Haiku",
        endpoint_url="https://api.anthropic.com/v1/messages",
        model_id="claude-3-5-haiku-20241022",
        auth_scheme=CustomHeader(
            name="x-api-key",
            version_header=("anthropic-version", "2023-06-01"),
        ),
        response_path=ANTHROPIC_RESPONSE_PATH,
        key_prefix="sk-ant-",
        key_url="https://console.anthropic.com/settings/keys",
        key_placeholder="sk-ant-...",
    ),
    "gemini": ProviderDescriptor(
        id="gemini",
        name="Google Gemini",
        label="Gemini 1.5 Flash",
        endpoint_url=(
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "gemini-1.5-flash:generateContent"
        ),
        model_id="gemini-1.5-flash",
        auth_scheme=QueryParam(name="key"),
        response_path=GEMINI_RESPONSE_PATH,
        key_prefix="AIza",
        key_url="https://aistudio.google.com/app/apikey",
        key_placeholder="AIza...",
    ),
    "groq": ProviderDescriptor(
        id="groq",
        name="Groq",
        label="Llama 3.3 70B",
        endpoint_url="https://api.groq.com/openai/v1/chat/completions",
        model_id="llama-3.3-70b-versatile",
        auth_scheme=BearerHeader(),
        response_path=OPENAI_RESPONSE_PATH,
        key_prefix="gsk_",
        key_url="https://console.groq.com/keys",
        key_placeholder="gsk_...",
    ),
}

PROVIDER_IDS: Tuple[str, ...] = tuple(PROVIDERS)
DEFAULT_PROVIDER_ID = PROVIDER_IDS[0]


def is_known_provider(provider_id: Optional[str]) -> bool:
    return provider_id in PROVIDERS


def lookup(provider_id: Optional[str]) -> ProviderDescriptor:
    """
    Return the descriptor for provider_id.

    Unknown or missing ids resolve to the default provider so that a stale
    stored preference cannot break an explanation request.
    """
    return PROVIDERS.get(provider_id or DEFAULT_PROVIDER_ID, PROVIDERS[DEFAULT_PROVIDER_ID])
