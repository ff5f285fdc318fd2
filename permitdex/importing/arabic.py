"""Approximate romanization of Arabic script.

Character-level and deliberately lossy: good enough to make an untranslated
project or company name searchable in Latin script, not a linguistic
transliteration standard. Curated translations always take precedence
(see ``permitdex.importing.translations``).
"""

from __future__ import annotations

import re

_ARABIC_PATTERN = re.compile("[\u0600-\u06FF\u0750-\u077F]")

SHADDA = "\u0651"

# Two-character lam-alef ligatures, matched before single characters
_LIGATURES: dict[str, str] = {
    "لا": "la",  # lam + alef
    "لأ": "la",  # lam + alef with hamza above
    "لإ": "li",  # lam + alef with hamza below
    "لآ": "laa",  # lam + alef with madda
}

_CHARACTERS: dict[str, str] = {
    # Letters
    "ا": "a",  # alef
    "أ": "a",  # alef with hamza above
    "إ": "i",  # alef with hamza below
    "آ": "aa",  # alef with madda
    "ب": "b",
    "ت": "t",
    "ث": "th",
    "ج": "j",
    "ح": "h",
    "خ": "kh",
    "د": "d",
    "ذ": "dh",
    "ر": "r",
    "ز": "z",
    "س": "s",
    "ش": "sh",
    "ص": "s",
    "ض": "d",
    "ط": "t",
    "ظ": "z",
    "ع": "a",  # ain
    "غ": "gh",
    "ف": "f",
    "ق": "q",
    "ك": "k",
    "ل": "l",
    "م": "m",
    "ن": "n",
    "ه": "h",
    "و": "w",
    "ي": "y",
    "ى": "a",  # alef maksura
    "ة": "a",  # teh marbuta
    "ء": "",  # hamza
    # Diacritics
    "\u064E": "a",  # fatha
    "\u0650": "i",  # kasra
    "\u064F": "u",  # damma
    "\u0652": "",  # sukun
    SHADDA: "",
    "\u064B": "an",  # fathatan
    "\u064D": "in",  # kasratan
    "\u064C": "un",  # dammatan
    # Arabic-Indic digits
    "٠": "0",
    "١": "1",
    "٢": "2",
    "٣": "3",
    "٤": "4",
    "٥": "5",
    "٦": "6",
    "٧": "7",
    "٨": "8",
    "٩": "9",
}

_WHITESPACE = re.compile(r"\s+")
_LETTER_RUNS = re.compile(r"([a-z])\1{2,}", re.IGNORECASE)


def contains_arabic(text: str | None) -> bool:
    """True if any character falls in the Arabic or Arabic Supplement blocks."""
    if not text:
        return False
    return _ARABIC_PATTERN.search(text) is not None


def transliterate(text: str) -> str:
    """Romanize Arabic characters in ``text``.

    Text without Arabic is returned unchanged, so applying the function to its
    own output is a no-op.
    """
    if not text or not contains_arabic(text):
        return text

    result: list[str] = []
    i = 0
    length = len(text)

    while i < length:
        pair = text[i : i + 2]
        if len(pair) == 2 and pair in _LIGATURES:
            result.append(_LIGATURES[pair])
            i += 2
            continue

        char = text[i]
        i += 1

        if char == SHADDA:
            # Doubles the last romanized character
            emitted = "".join(result)
            if emitted:
                result.append(emitted[-1])
            continue

        if char in _CHARACTERS:
            result.append(_CHARACTERS[char])
        elif contains_arabic(char):
            continue  # unmapped Arabic is dropped
        else:
            result.append(char)

    romanized = _WHITESPACE.sub(" ", "".join(result))
    romanized = _LETTER_RUNS.sub(r"\1\1", romanized).strip()

    return " ".join(word[:1].upper() + word[1:] for word in romanized.split(" "))
