from __future__ import annotations

import re
import unicodedata
from typing import List, Tuple

# Latin, Greek and Cyrillic letters with diacritics, digits and a small
# punctuation set.
ALPHABET_CHARS = "0-9A-Za-zÀ-ÖØ-öø-žΆ-ώА-я& !?,.;:'\\-"
ALPHABET_PATTERN = re.compile(f"[{ALPHABET_CHARS}]")

_ILLEGAL = re.compile(f"[^{ALPHABET_CHARS}]")
_WHITESPACE = re.compile(r"\s+")
_SPACES = re.compile(r" {2,}")
_STRAY_APOSTROPHE = re.compile(r"'(?!\w)|(?<!\w)'")

_SIMILAR_CHARS: List[Tuple[re.Pattern, str]] = [
    (re.compile("[‐-―]"), "-"),
    (re.compile("[‘’‚‛`′]"), "'"),
    (re.compile("[“”„‟«»″]"), '"'),
]

_COMPACT_CHARS = {"æ": "ae", "œ": "oe", "ß": "ss"}

_SENTENCE_CASE = re.compile(r"((?:^|[.!?])[\W\d_]*?)([^\W\d_])|\bi\b", re.IGNORECASE)
_DASH_AFTER_SPACE = re.compile(r"\s(-+)(?![\s-])")
_DASH_BEFORE_SPACE = re.compile(r"(?<![\s-])(-+)\s")


def is_alphabet_char(character: str) -> bool:
    """Return True if a single character survives preprocessing."""
    return len(character) == 1 and ALPHABET_PATTERN.fullmatch(character) is not None


def preprocess(sample: str) -> str:
    """Normalise a raw sample down to the model alphabet.

    NFKC folds accented and compatibility forms into single code points,
    then the text is lowercased, whitespace is compressed, look-alike
    punctuation is unified, ligatures are expanded and anything outside
    the alphabet is dropped. Apostrophes only survive as contractions.
    """
    text = unicodedata.normalize("NFKC", sample).lower()
    text = _WHITESPACE.sub(" ", text)
    for pattern, replacement in _SIMILAR_CHARS:
        text = pattern.sub(replacement, text)
    for compact, expanded in _COMPACT_CHARS.items():
        text = text.replace(compact, expanded)
    text = _ILLEGAL.sub("", text)
    text = _STRAY_APOSTROPHE.sub("", text)
    # dropped characters may leave doubled spaces behind
    return _SPACES.sub(" ", text)


def _capitalise(match: re.Match) -> str:
    if match.group(2) is None:
        return match.group(0).upper()
    # punctuation before the letter is kept as is
    return match.group(1) + match.group(2).upper()


def postprocess(text: str) -> str:
    """Cosmetic cleanup of generated text: sentence case and dash spacing."""
    text = _WHITESPACE.sub(" ", text)
    text = _SENTENCE_CASE.sub(_capitalise, text)
    text = _DASH_AFTER_SPACE.sub(r" \1 ", text)
    return _DASH_BEFORE_SPACE.sub(r" \1 ", text)
