# Display names for the language tags offered to learners.

LANGUAGE_NAMES = {
    "en-US": "English",
    "es-ES": "Spanish",
    "fr-FR": "French",
    "de-DE": "German",
    "it-IT": "Italian",
    "pt-BR": "Portuguese",
    "ja-JP": "Japanese",
    "ko-KR": "Korean",
    "zh-CN": "Chinese",
    "ru-RU": "Russian",
}

DIFFICULTIES = ("beginner", "intermediate", "advanced")


def language_name(tag: str) -> str:
    """Return the display name for a language tag, or the tag itself if unknown."""
    return LANGUAGE_NAMES.get(tag, tag)
