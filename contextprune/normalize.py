"""Turn loosely-typed conversation records into a `ConversationContext`.

Records come from JSON files or other tools, so keys may be camelCase or
snake_case and per-message facts may sit at the top level or under a
`metadata` object. Anything missing gets a default; token counts fall back
to a pluggable estimator.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from contextprune.config.loader import convert_keys
from contextprune.errors import NormalizationError
from contextprune.models import (
    CodeBlock,
    ConversationContext,
    ExternalContext,
    Message,
    MessageMetadata,
    MessageType,
    Role,
)

TokenEstimator = Callable[[str], int]

_CODE_FENCE = re.compile(r"```")
_JSON_BRACKET = re.compile(r"[{}\[\]]")
_MARKDOWN_MARKER = re.compile(r"[*_`#]")

# Numbers above this are epoch milliseconds, below it epoch seconds
_EPOCH_MS_THRESHOLD = 1e11

_METADATA_FIELDS = ("token_count", "file_references", "code_blocks", "has_error", "tools_used")


def estimate_tokens(text: str) -> int:
    """
    Rough token count: four characters per token plus structural overhead.

    Overhead is 0.1 per line, 10 per fenced code block, 0.2 per JSON bracket
    and 0.05 per markdown marker, each rounded up separately.
    """
    if not text:
        return 0
    lines = text.count("\n") + 1
    code_blocks = len(_CODE_FENCE.findall(text)) / 2
    brackets = len(_JSON_BRACKET.findall(text))
    markers = len(_MARKDOWN_MARKER.findall(text))
    return (
        math.ceil(len(text) / 4)
        + math.ceil(lines * 0.1)
        + math.ceil(code_blocks * 10)
        + math.ceil(brackets * 0.2)
        + math.ceil(markers * 0.05)
    )


def _parse_timestamp(value: Any, default: datetime) -> datetime:
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        return datetime.fromtimestamp(seconds)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise NormalizationError(f"Invalid timestamp '{value}'") from None
    else:
        raise NormalizationError(f"Unsupported timestamp type {type(value).__name__}")

    # Everything downstream compares against naive local time
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_enum(enum_cls, value: Any, default):
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise NormalizationError(f"Invalid {enum_cls.__name__} '{value}'. Use one of: {allowed}") from None


def _parse_code_block(raw: Any) -> CodeBlock:
    if isinstance(raw, CodeBlock):
        return raw
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"Code block must be an object, got {type(raw).__name__}")
    return CodeBlock(
        language=str(raw.get("language") or "text"),
        content=str(raw.get("content") or ""),
        file_path=raw.get("file_path"),
        start_line=raw.get("start_line"),
        end_line=raw.get("end_line"),
    )


def _parse_token_count(value: Any) -> int:
    if isinstance(value, bool):
        raise NormalizationError(f"Invalid token count {value!r}")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise NormalizationError(f"Invalid token count {value!r}") from None
    if count < 0:
        raise NormalizationError(f"Token count must not be negative, got {count}")
    return count


def _parse_names(name: str, value: Any) -> tuple[str, ...]:
    """A list of strings; a bare string counts as a one-element list."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise NormalizationError(f"{name} must be a list of strings, got {type(value).__name__}")
    if not all(isinstance(v, str) for v in value):
        raise NormalizationError(f"{name} must contain only strings")
    return tuple(value)


def _parse_flag(name: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise NormalizationError(f"{name} must be true or false, got {value!r}")
    return value


def normalize_record(
    record: Mapping[str, Any],
    estimator: TokenEstimator = estimate_tokens,
    now: datetime | None = None,
) -> Message:
    """
    Build one `Message` from a raw record.

    Args:
        record: Mapping with any of id, timestamp, role, type, content and
            the metadata fields, camelCase or snake_case.
        estimator: Used when no token count is given.
        now: Default timestamp.

    Raises:
        NormalizationError: If the record is not a mapping or a field has an
            unusable value.
    """
    if not isinstance(record, Mapping):
        raise NormalizationError(f"Message record must be an object, got {type(record).__name__}")

    data = convert_keys(dict(record))
    meta = data.get("metadata") or {}
    if not isinstance(meta, Mapping):
        raise NormalizationError("Message metadata must be an object")
    # Nested metadata wins over top-level duplicates
    fields = {k: data[k] for k in _METADATA_FIELDS if k in data}
    fields.update({k: meta[k] for k in _METADATA_FIELDS if k in meta})

    content = data.get("content") or ""
    if not isinstance(content, str):
        content = str(content)

    token_count = fields.get("token_count")
    if token_count is None:
        token_count = estimator(content)

    code_blocks = fields.get("code_blocks") or ()
    if not isinstance(code_blocks, (list, tuple)):
        raise NormalizationError(f"codeBlocks must be a list, got {type(code_blocks).__name__}")

    metadata = MessageMetadata(
        token_count=_parse_token_count(token_count),
        file_references=_parse_names("fileReferences", fields.get("file_references")),
        code_blocks=tuple(_parse_code_block(b) for b in code_blocks),
        has_error=_parse_flag("hasError", fields.get("has_error")),
        tools_used=_parse_names("toolsUsed", fields.get("tools_used")),
    )

    return Message(
        id=str(data.get("id") or f"msg_{uuid.uuid4().hex[:12]}"),
        timestamp=_parse_timestamp(data.get("timestamp"), now or datetime.now()),
        role=_parse_enum(Role, data.get("role"), Role.USER),
        type=_parse_enum(MessageType, data.get("type"), MessageType.QUERY),
        content=content,
        metadata=metadata,
    )


def normalize_records(
    records: Iterable[Mapping[str, Any]],
    estimator: TokenEstimator = estimate_tokens,
    now: datetime | None = None,
) -> list[Message]:
    now = now or datetime.now()
    return [normalize_record(r, estimator, now) for r in records]


def build_context(
    records: Iterable[Mapping[str, Any]],
    estimator: TokenEstimator = estimate_tokens,
    active_files: Iterable[str] | None = None,
    external: ExternalContext | None = None,
) -> ConversationContext:
    """
    Normalize records into a context.

    Active files default to the union of every message's file references.
    """
    messages = normalize_records(records, estimator)
    if active_files is None:
        active_files = {f for m in messages for f in m.metadata.file_references}
    return ConversationContext.from_messages(messages, set(active_files), external)


def context_from_payload(payload: Any, estimator: TokenEstimator = estimate_tokens) -> ConversationContext:
    """
    Accept either a bare list of records or an object with `messages` plus
    optional `activeFiles`, `systemTokens`, `toolResultTokens` and `suggestions`.
    """
    if isinstance(payload, list):
        return build_context(payload, estimator)
    if not isinstance(payload, Mapping):
        raise NormalizationError("Conversation must be a list of messages or an object with 'messages'")

    records = payload.get("messages")
    if not isinstance(records, list):
        raise NormalizationError("Conversation object needs a 'messages' list")

    options = convert_keys({k: v for k, v in payload.items() if k != "messages"})
    external = None
    if any(k in options for k in ("system_tokens", "tool_result_tokens", "suggestions")):
        external = ExternalContext(
            system_tokens=int(options.get("system_tokens") or 0),
            tool_result_tokens=int(options.get("tool_result_tokens") or 0),
            suggestions=tuple(options.get("suggestions") or ()),
        )
    return build_context(records, estimator, options.get("active_files"), external)
