"""Text normalization shared by the resolvers and the heuristic parser."""

import re
import unicodedata

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# NFD does not decompose these letters
_EXTRA_FOLDS = str.maketrans({"đ": "d", "Đ": "D", "ł": "l", "ø": "o"})


def normalize_text(text: str | None) -> str:
    """Lowercase, strip diacritics and collapse whitespace."""
    if not text:
        return ""
    folded = unicodedata.normalize("NFD", text.translate(_EXTRA_FOLDS))
    stripped = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def tokenize(text: str | None) -> list[str]:
    """Split normalized text into alphanumeric tokens."""
    return _TOKEN_RE.findall(normalize_text(text))


def contains_phrase(text: str, phrase: str) -> bool:
    """Whole-word containment of ``phrase`` in ``text``; both already normalized."""
    if not phrase:
        return False
    return re.search(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])", text) is not None


def levenshtein_at_most_one(a: str, b: str) -> bool:
    """True when ``a`` and ``b`` differ by at most one edit."""
    if a == b:
        return True
    la, lb = len(a), len(b)
    if abs(la - lb) > 1:
        return False
    if la > lb:
        a, b, la, lb = b, a, lb, la

    i = j = 0
    edits = 0
    while i < la and j < lb:
        if a[i] == b[j]:
            i += 1
            j += 1
            continue
        edits += 1
        if edits > 1:
            return False
        if la == lb:
            i += 1
        j += 1
    # trailing character on the longer string
    return edits + (lb - j) + (la - i) <= 1
