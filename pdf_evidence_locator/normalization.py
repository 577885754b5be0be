"""Text normalization shared by the page indexer and the locator."""

from __future__ import annotations

import re

# ASCII and CJK punctuation, quotes, brackets and the general/supplemental
# punctuation blocks.
_PUNCTUATION_RE = re.compile(
    "[\u2000-\u206f\u2e00-\u2e7f\u3000-\u303f"
    "'\"\u201c\u201d\u2018\u2019.,;:!?"
    "\uff0c\u3002\uff1f\uff01\u3001\uff1b\uff1a\u00b7\u2014\u2026"
    "\\-\u2013()\\[\\]{}<>\u300a\u300b\u3010\u3011]"
)

_INVISIBLE_RE = re.compile("[\u00ad\u200b-\u200d\ufeff]")

_LIGATURES = {
    "\ufb00": "ff",
    "\ufb01": "fi",
    "\ufb02": "fl",
    "\ufb03": "ffi",
    "\ufb04": "ffl",
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_for_index(text: str | None) -> str:
    """Case-fold *text*, expand ligatures and drop invisibles and whitespace."""
    if not text:
        return ""
    value = _INVISIBLE_RE.sub("", text)
    for ligature, expansion in _LIGATURES.items():
        value = value.replace(ligature, expansion)
    return _WHITESPACE_RE.sub("", value.casefold())


def strip_punctuation(text: str | None) -> str:
    return _PUNCTUATION_RE.sub("", text or "")


def normalize_no_punct(text: str | None) -> str:
    return strip_punctuation(normalize_for_index(text))


def collapse_whitespace(text: str | None) -> str:
    """Replace line breaks and whitespace runs with single spaces."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()
