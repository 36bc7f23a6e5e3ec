"""Conversation-wide redundancy: duplicated content and repeated type patterns."""

import re
from typing import Sequence

from contextprune.models import Message

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_content(content: str) -> str:
    """Lowercase, collapse whitespace, strip punctuation."""
    collapsed = _WHITESPACE.sub(" ", content.lower())
    return _PUNCTUATION.sub("", collapsed).strip()


def content_redundancy(messages: Sequence[Message]) -> float:
    """Fraction of messages whose normalized content repeats an earlier one."""
    if not messages:
        return 0.0
    seen: set[str] = set()
    duplicates = 0
    for message in messages:
        normalized = normalize_content(message.content)
        if normalized in seen:
            duplicates += 1
        else:
            seen.add(normalized)
    return duplicates / len(messages)


def pattern_redundancy(messages: Sequence[Message]) -> float:
    """Fraction of message-type 3-grams that already occurred earlier."""
    seen: set[tuple[str, str, str]] = set()
    windows = 0
    repeats = 0
    for i in range(len(messages) - 2):
        pattern = (messages[i].type.value, messages[i + 1].type.value, messages[i + 2].type.value)
        if pattern in seen:
            repeats += 1
        seen.add(pattern)
        windows += 1
    return repeats / windows if windows else 0.0


def redundancy_score(messages: Sequence[Message]) -> float:
    """Mean of content and pattern redundancy; 0.0 below two messages."""
    if len(messages) < 2:
        return 0.0
    return (content_redundancy(messages) + pattern_redundancy(messages)) / 2
