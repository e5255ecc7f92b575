# src/explainit/prompts.py
from typing import Dict, Optional, Tuple

from explainit import config
from explainit.exceptions import ValidationError

TONES: Tuple[str, ...] = ("simple", "kid", "expert")
LANGUAGES: Tuple[str, ...] = ("en", "ru")
DEFAULT_TONE = "simple"
DEFAULT_LANGUAGE = "en"

PLACEHOLDER = "{text}"

PROMPT_TEMPLATES: Dict[Tuple[str, str], str] = {
    ("simple", "en"): (
        "Explain the following text in simple words that any adult can understand. "
        "Keep it concise (2-4 sentences). Do not use jargon.\n\nText:\n{text}"
    ),
    ("simple", "ru"): (
        "Объясни следующий текст простыми словами, понятными любому взрослому человеку. "
        "Будь краток (2-4 предложения). Не используй жаргон.\n\nТекст:\n{text}"
    ),
    ("kid", "en"): (
        "Explain the following text as if talking to a 5-year-old child. Use very simple "
        "words, short sentences, and a fun comparison if possible.\n\nText:\n{text}"
    ),
    ("kid", "ru"): (
        "Объясни следующий текст так, как будто ты разговариваешь с 5-летним ребёнком. "
        "Используй очень простые слова, короткие предложения и интересное сравнение, "
        "если возможно.\n\nТекст:\n{text}"
    ),
    ("expert", "en"): (
        "Provide a precise, technical explanation of the following text for a professional "
        "audience. Use appropriate terminology and cover key nuances.\n\nText:\n{text}"
    ),
    ("expert", "ru"): (
        "Предоставь точное техническое объяснение следующего текста для профессиональной "
        "аудитории. Используй соответствующую терминологию и раскрой ключевые нюансы."
        "\n\nТекст:\n{text}"
    ),
}

TONE_LABELS = {
    "simple": "Simple words",
    "kid": "Kid-friendly",
    "expert": "Expert level",
}

LANGUAGE_LABELS = {
    "en": "English",
    "ru": "Russian",
}


def normalize_tone(tone: Optional[str]) -> str:
    return tone if tone in TONES else DEFAULT_TONE


def normalize_language(language: Optional[str]) -> str:
    return language if language in LANGUAGES else DEFAULT_LANGUAGE


def build_prompt(text: str, tone: Optional[str], language: Optional[str]) -> str:
    """
    Build the prompt for the given tone and language.

    Unknown tone or language values fall back to simple/English. The text is
    inserted verbatim, exactly once.
    """
    template = PROMPT_TEMPLATES.get(
        (normalize_tone(tone), normalize_language(language)),
        PROMPT_TEMPLATES[(DEFAULT_TONE, DEFAULT_LANGUAGE)],
    )
    return template.replace(PLACEHOLDER, text, 1)


def clean_text(text) -> str:
    """Validate selected text and return it without surrounding whitespace."""
    if not isinstance(text, str) or not text:
        raise ValidationError("text", text, "Text is required")

    cleaned = text.strip()
    if len(cleaned) < config.MIN_TEXT_LENGTH:
        raise ValidationError("text", len(cleaned), "Text is too short")
    if len(cleaned) > config.MAX_TEXT_LENGTH:
        raise ValidationError(
            "text", len(cleaned), f"Text is too long (max {config.MAX_TEXT_LENGTH} characters)"
        )
    return cleaned


def tone_label(tone: str) -> str:
    return TONE_LABELS.get(tone, tone)


def language_label(language: str) -> str:
    return LANGUAGE_LABELS.get(language, language)
