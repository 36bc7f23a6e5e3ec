"""Hierarchical summarizer - extractive summaries at three granularity levels."""

import re
import uuid
from datetime import datetime
from typing import Sequence

from loguru import logger

from contextprune.errors import InvalidSummaryLevelError
from contextprune.models import (
    Message,
    MessageType,
    Role,
    Summary,
    SummaryLevel,
    estimate_summary_tokens,
)

MAX_SUMMARY_LENGTH = {
    SummaryLevel.IMMEDIATE: 200,
    SummaryLevel.SESSION: 500,
    SummaryLevel.PROJECT: 1000,
}

SESSION_SEGMENT_LIMIT = 10
FILE_CONTEXT_JACCARD = 0.3

MAX_CODE_CHANGES = 5
MAX_FILE_OPERATIONS = 3
MAX_ERRORS = 2

CODE_CHANGE_PATTERN = re.compile(
    r"(?:created?|updated?|modified|deleted?|refactored?|implemented?)\s+.*?"
    r"(?:function|class|method|file|component)",
    re.IGNORECASE,
)
ERROR_PATTERN = re.compile(r"(?:error|exception|failed?|bug|issue).*?(?:\n|$)", re.IGNORECASE)
FILE_OPERATION_PATTERN = re.compile(r"(?:read|wrote|edited|created|deleted)\s+.*?\.\w+", re.IGNORECASE)

ACTIVITY_KEYWORDS = (
    ("implementation", ("implement", "create")),
    ("debugging", ("fix", "debug")),
    ("refactoring", ("refactor", "improve")),
    ("testing", ("test", "verify")),
)

_EDGE_NON_WORD = re.compile(r"^\W+|\W+$")
_WHITESPACE = re.compile(r"\s+")


def parse_level(level: SummaryLevel | str) -> SummaryLevel:
    try:
        return SummaryLevel(level)
    except ValueError:
        raise InvalidSummaryLevelError(
            f"Unknown summary level '{level}'. Use immediate, session or project."
        ) from None


def _clean(text: str) -> str:
    text = _WHITESPACE.sub(" ", text.strip())
    return _EDGE_NON_WORD.sub("", text).lower()


def _jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    return len(a & b) / len(union) if union else 1.0


class HierarchicalSummarizer:
    """
    Groups messages into segments and writes a short extractive summary per segment.

    - immediate: one segment per user/assistant exchange
    - session: segments break on file-context shifts or every 10 messages
    - project: one segment per primary file, plus one for file-less messages
    """

    def create_summaries(
        self, messages: Sequence[Message], level: SummaryLevel | str = SummaryLevel.SESSION
    ) -> list[Summary]:
        """
        Summarize an ordered message list at the requested level.

        Args:
            messages: Messages in chronological order.
            level: Granularity level.

        Returns:
            One summary per non-empty segment, in segment order.
        """
        level = parse_level(level)
        summaries = []
        for segment in self.segment(messages, level):
            summary = self.summarize_segment(segment, level)
            if summary:
                summaries.append(summary)
        logger.debug(f"Created {len(summaries)} {level.value} summaries from {len(messages)} messages")
        return summaries

    def segment(self, messages: Sequence[Message], level: SummaryLevel) -> list[list[Message]]:
        if level == SummaryLevel.IMMEDIATE:
            return self.segment_by_interaction(messages)
        if level == SummaryLevel.SESSION:
            return self.segment_by_topic(messages)
        return self.segment_by_file_context(messages)

    def segment_by_interaction(self, messages: Sequence[Message]) -> list[list[Message]]:
        segments: list[list[Message]] = []
        current: list[Message] = []
        has_user = False
        for message in messages:
            current.append(message)
            has_user = has_user or message.role == Role.USER
            if message.role == Role.ASSISTANT and has_user:
                segments.append(current)
                current = []
                has_user = False
        if current:
            segments.append(current)
        return segments

    def segment_by_topic(self, messages: Sequence[Message]) -> list[list[Message]]:
        segments: list[list[Message]] = []
        current: list[Message] = []
        seen_files: set[str] = set()
        for message in messages:
            files = set(message.metadata.file_references)
            shifted = bool(seen_files) and _jaccard(seen_files, files) < FILE_CONTEXT_JACCARD
            if shifted and current:
                segments.append(current)
                current = []

            current.append(message)
            seen_files |= files

            if len(current) >= SESSION_SEGMENT_LIMIT:
                segments.append(current)
                current = []
                seen_files = set()
        if current:
            segments.append(current)
        return segments

    def segment_by_file_context(self, messages: Sequence[Message]) -> list[list[Message]]:
        by_file: dict[str, list[Message]] = {}
        general: list[Message] = []
        for message in messages:
            files = message.metadata.file_references
            if files:
                by_file.setdefault(files[0], []).append(message)
            else:
                general.append(message)
        segments = list(by_file.values())
        if general:
            segments.insert(0, general)
        return segments

    def summarize_segment(self, messages: list[Message], level: SummaryLevel) -> Summary | None:
        if not messages:
            return None
        content = self.generate_text(messages, level)
        if not content.strip():
            return None

        original = sum(m.token_count for m in messages)
        return Summary(
            id=f"summary_{uuid.uuid4().hex[:12]}",
            level=level,
            content=content,
            original_message_ids=tuple(m.id for m in messages),
            tokens_saved=max(0, original - estimate_summary_tokens(content)),
            created_at=datetime.now(),
        )

    def generate_text(self, messages: list[Message], level: SummaryLevel) -> str:
        parts = []
        activities = self.extract_activities(messages)
        if activities:
            parts.append(f"Activities: {', '.join(activities)}. ")
        code_changes = self.extract_code_changes(messages)
        if code_changes:
            parts.append(f"Code changes: {', '.join(code_changes)}. ")
        file_operations = self.extract_file_operations(messages)
        if file_operations:
            parts.append(f"File operations: {', '.join(file_operations)}. ")
        errors = self.extract_errors(messages)
        if errors:
            parts.append(f"Errors encountered: {', '.join(errors)}. ")
        outcome = self.determine_outcome(messages)
        if outcome:
            parts.append(f"Outcome: {outcome}")
        return truncate_summary("".join(parts), MAX_SUMMARY_LENGTH[level])

    def extract_activities(self, messages: list[Message]) -> list[str]:
        activities: dict[str, None] = {}
        for message in messages:
            content = message.content.lower()
            for name, keywords in ACTIVITY_KEYWORDS:
                if any(kw in content for kw in keywords):
                    activities[name] = None
            if message.metadata.tools_used:
                activities["tool usage"] = None
        return list(activities)

    def extract_code_changes(self, messages: list[Message]) -> list[str]:
        changes: dict[str, None] = {}
        for message in messages:
            for match in CODE_CHANGE_PATTERN.findall(message.content):
                changes[_clean(match)] = None
            for block in message.metadata.code_blocks:
                entry = f"modified {block.file_path}" if block.file_path else f"{block.language} code"
                changes[entry] = None
        return list(changes)[:MAX_CODE_CHANGES]

    def extract_file_operations(self, messages: list[Message]) -> list[str]:
        operations: dict[str, None] = {}
        for message in messages:
            for match in FILE_OPERATION_PATTERN.findall(message.content):
                operations[_clean(match)] = None
            for path in message.metadata.file_references:
                operations[f"worked on {path}"] = None
        return list(operations)[:MAX_FILE_OPERATIONS]

    def extract_errors(self, messages: list[Message]) -> list[str]:
        errors: dict[str, None] = {}
        for message in messages:
            if not message.metadata.has_error:
                continue
            for match in ERROR_PATTERN.findall(message.content):
                errors[_clean(match)] = None
        return list(errors)[:MAX_ERRORS]

    def determine_outcome(self, messages: list[Message]) -> str:
        last = messages[-1]
        if last.metadata.has_error:
            return "unresolved"
        content = last.content.lower()
        if last.type == MessageType.SUCCESS or "complete" in content or "done" in content:
            return "completed successfully"
        if last.type == MessageType.CODE_CHANGE:
            return "implemented changes"
        return "in progress"


def truncate_summary(summary: str, max_length: int) -> str:
    """Cut at the last sentence end past 70% of the budget, else hard-cut with an ellipsis."""
    if len(summary) <= max_length:
        return summary
    truncated = summary[:max_length]
    last_end = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))
    if last_end > max_length * 0.7:
        return truncated[: last_end + 1]
    return truncated + "..."
