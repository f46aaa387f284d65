"""
Reply-language options and the prompt text derived from them.

Shared by the client (system prompt, nudges, text prefix) and the relay
(document QA language hint).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Optional

AUTO: Final[str] = "auto"

CODE_TO_NAME: Final[dict[str, str]] = {
    "en": "English",
    "hi": "Hindi",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "kn": "Kannada",
}

DEFAULT_PERSONA: Final[str] = "You are a friendly voice assistant."

_TRANSLATE_RULE: Final[str] = (
    "If I speak a different language, translate my request "
    "but ALWAYS reply in the selected language."
)


@dataclass(frozen=True)
class Language:
    """One selectable reply language."""
    code: str
    label: str
    system_nudge: str

    @property
    def is_auto(self) -> bool:
        return self.code == AUTO

    @property
    def display_name(self) -> str:
        """Label without the native-script suffix."""
        return CODE_TO_NAME.get(self.code, self.label)


LANGUAGES: Final[tuple[Language, ...]] = (
    Language(AUTO, "Auto", "Detect the user's language and reply in that language."),
    Language("en", "English", "Always reply in English."),
    Language("hi", "Hindi (हिन्दी)", "Always reply in Hindi."),
    Language("bn", "Bengali (বাংলা)", "Always reply in Bengali."),
    Language("ta", "Tamil (தமிழ்)", "Always reply in Tamil."),
    Language("te", "Telugu (తెలుగు)", "Always reply in Telugu."),
    Language("kn", "Kannada (ಕನ್ನಡ)", "Always reply in Kannada."),
)


def get_language(code: Optional[str]) -> Language:
    """Look up a language by code; unknown codes fall back to auto."""
    for lang in LANGUAGES:
        if lang.code == code:
            return lang
    return LANGUAGES[0]


def language_hint(code: Optional[str]) -> Optional[str]:
    """Language name for a code, or None for auto / unknown codes."""
    if code is None or code == AUTO:
        return None
    return CODE_TO_NAME.get(code)


def build_system_prompt(lang: Language, persona: str = DEFAULT_PERSONA) -> str:
    return " ".join([persona, lang.system_nudge, _TRANSLATE_RULE])


def reassert_language_text(lang: Language) -> str:
    name = lang.display_name
    return (
        f"From now on, reply ONLY in {name}. "
        f"If I use another language, translate and answer in {name}."
    )


def prefix_reply_language(text: str, lang: Language) -> str:
    """Prepend the reply-language nudge; auto leaves the text untouched."""
    if lang.is_auto:
        return text
    return f"Please reply ONLY in {lang.display_name}. {text}"
