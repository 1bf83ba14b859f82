"""
Small text helpers shared by the synthesizers and the aggregator.
"""
import re
from typing import List

ELLIPSIS = '...'

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")


def truncate_text(text: str, max_length: int) -> str:
    """Shorten text to at most max_length characters.

    Cuts at the last space when that keeps more than half the budget, otherwise
    hard-cuts; both variants end with an ellipsis.
    """
    text = text or ''
    if max_length <= 0 or len(text) <= max_length:
        return text
    if max_length <= len(ELLIPSIS):
        return text[:max_length]
    cut = text[:max_length - len(ELLIPSIS)]
    last_space = cut.rfind(' ')
    if last_space > max_length // 2:
        return cut[:last_space].rstrip(' ,;:-') + ELLIPSIS
    return cut + ELLIPSIS


def first_words(text: str, count: int) -> str:
    words = (text or '').split()
    if len(words) <= count:
        return ' '.join(words)
    return ' '.join(words[:count]) + ELLIPSIS


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text or '') if s and s.strip()]


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def contains_word(lower_text: str, word: str) -> bool:
    """Whole-word containment on already lowercased text."""
    return re.search(r"\b" + re.escape(word) + r"\b", lower_text) is not None
