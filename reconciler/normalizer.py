"""
Title normalization for catalog matching.
"""

import re

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_LEADING_ARTICLE = re.compile(r"^(?:a|an|the)\s+")


def normalize_title(title: str) -> str:
    """
    Produce the comparison key for a title.

    Lower-cases, drops everything that is not a letter, digit or whitespace,
    collapses whitespace and removes a leading "a", "an" or "the". Two titles
    are equivalent when their keys are equal.

    Articles are stripped until none lead, which keeps the function
    idempotent: "The the End" and "The End" both reduce to "end".
    """
    key = _PUNCTUATION.sub("", (title or "").lower())
    key = _WHITESPACE.sub(" ", key).strip()
    while True:
        stripped = _LEADING_ARTICLE.sub("", key, count=1)
        if stripped == key:
            return key
        key = stripped
