"""
Localized text fields.

Names and descriptions are stored remotely as `{language: text}` maps.
Writes stamp the acting user's language; reads pick the user's language
with fallbacks so a menu written in Catalan still renders for an English
reader.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

type TextMap = dict[str, str]


class Language(StrEnum):
    EN_US = "en_US"
    ES_ES = "es_ES"
    CA_ES = "ca_ES"
    FR_FR = "fr_FR"


DEFAULT_LANGUAGE = Language.ES_ES

# Last-resort lookup order once the requested and fallback languages miss.
FALLBACK_ORDER: tuple[Language, ...] = (
    Language.ES_ES,
    Language.EN_US,
    Language.CA_ES,
    Language.FR_FR,
)


def localized(
    text: Mapping[str, str] | str | None,
    language: Language | str,
    fallback: Language | str = DEFAULT_LANGUAGE,
) -> str:
    """
    Pick the best translation.

    Order: language → fallback → es_ES, en_US, ca_ES, fr_FR → "".
    Plain strings (legacy rows) are returned unchanged.
    """
    if not text:
        return ""
    if isinstance(text, str):
        return text

    for lang in (language, fallback, *FALLBACK_ORDER):
        value = text.get(str(lang))
        if value:
            return value
    return ""


def translated(text: str, language: Language | str) -> TextMap:
    """Fresh text map holding a single translation."""
    return {str(language): text}


def merge_translation(
    existing: Mapping[str, str] | None,
    text: str,
    language: Language | str,
) -> TextMap:
    """Replace one language in a text map, keeping the others."""
    return {**(existing or {}), str(language): text}


__all__ = (
    "Language",
    "TextMap",
    "DEFAULT_LANGUAGE",
    "FALLBACK_ORDER",
    "localized",
    "translated",
    "merge_translation",
)
