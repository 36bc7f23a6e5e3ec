"""Tests for record normalization and token estimation."""

from datetime import datetime, timezone

import pytest

from contextprune.errors import NormalizationError
from contextprune.models import MessageType, Role
from contextprune.normalize import (
    build_context,
    context_from_payload,
    estimate_tokens,
    normalize_record,
)
from contextprune.scoring.corpus import extract_message_references

NOW = datetime(2026, 3, 2, 9, 0, 0)


# ============================================================================
# Token estimation
# ============================================================================


def test_estimate_tokens_plain_text():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 2  # 1 + one line
    assert estimate_tokens("A" * 600_000) == 150_001


def test_estimate_tokens_structure_overhead():
    text = "```py\nx = {}\n```"
    # 16 chars -> 4, 3 lines -> 1, 1 fenced block -> 10, 2 brackets -> 1, 6 backticks -> 1
    assert estimate_tokens(text) == 17


# ============================================================================
# Records
# ============================================================================


def test_defaults_for_minimal_record():
    message = normalize_record({"content": "hello there"}, now=NOW)

    assert message.id.startswith("msg_")
    assert message.timestamp == NOW
    assert message.role == Role.USER
    assert message.type == MessageType.QUERY
    assert message.token_count == estimate_tokens("hello there")


def test_generated_ids_are_message_references():
    message = normalize_record({"content": "x"})
    assert extract_message_references(message.id) == [message.id]


def test_camel_case_metadata_object():
    message = normalize_record(
        {
            "id": "msg_1",
            "timestamp": "2026-03-02T09:30:00",
            "role": "assistant",
            "type": "code_change",
            "content": "patched",
            "metadata": {
                "tokenCount": 42,
                "fileReferences": ["app.py"],
                "codeBlocks": [{"language": "python", "filePath": "app.py", "startLine": 3}],
                "hasError": False,
                "toolsUsed": ["edit_file"],
            },
        }
    )

    assert message.timestamp == datetime(2026, 3, 2, 9, 30)
    assert message.role == Role.ASSISTANT
    assert message.type == MessageType.CODE_CHANGE
    assert message.token_count == 42
    assert message.metadata.file_references == ("app.py",)
    assert message.metadata.code_blocks[0].file_path == "app.py"
    assert message.metadata.code_blocks[0].start_line == 3
    assert message.metadata.tools_used == ("edit_file",)


def test_snake_case_top_level_metadata():
    message = normalize_record({"content": "boom", "token_count": 7, "has_error": True})

    assert message.token_count == 7
    assert message.metadata.has_error is True


def test_bare_string_lists_and_numeric_strings():
    message = normalize_record(
        {"content": "x", "tokenCount": "12", "fileReferences": "auth.py", "toolsUsed": "grep"}
    )

    assert message.token_count == 12
    assert message.metadata.file_references == ("auth.py",)
    assert message.metadata.tools_used == ("grep",)
    assert message.metadata.has_error is False


def test_custom_estimator():
    message = normalize_record({"content": "whatever"}, estimator=lambda text: 99)
    assert message.token_count == 99


def test_epoch_milliseconds_timestamp():
    message = normalize_record({"content": "x", "timestamp": 1_700_000_000_000})
    assert message.timestamp == datetime.fromtimestamp(1_700_000_000)


def test_aware_timestamp_becomes_naive_local():
    message = normalize_record({"content": "x", "timestamp": "2026-03-02T09:00:00+00:00"})
    expected = datetime(2026, 3, 2, 9, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert message.timestamp == expected


@pytest.mark.parametrize(
    "record",
    [
        "not a record",
        {"content": "x", "type": "gossip"},
        {"content": "x", "role": "narrator"},
        {"content": "x", "timestamp": "yesterday"},
        {"content": "x", "metadata": ["wrong"]},
        {"content": "x", "tokenCount": "many"},
        {"content": "x", "tokenCount": -3},
        {"content": "x", "hasError": "false"},
        {"content": "x", "fileReferences": [1, 2]},
        {"content": "x", "toolsUsed": {"name": "grep"}},
        {"content": "x", "codeBlocks": "print(1)"},
    ],
)
def test_invalid_records(record):
    with pytest.raises(NormalizationError):
        normalize_record(record)


# ============================================================================
# Contexts
# ============================================================================


def test_build_context_active_files_default_to_all_references():
    context = build_context([
        {"content": "a", "fileReferences": ["a.py"]},
        {"content": "b", "metadata": {"fileReferences": ["b.py", "a.py"]}},
    ])
    assert context.active_files == frozenset({"a.py", "b.py"})


def test_payload_list():
    context = context_from_payload([{"content": "one"}, {"content": "two"}])

    assert len(context.messages) == 2
    assert context.external is None


def test_payload_object():
    context = context_from_payload({
        "messages": [{"content": "one", "fileReferences": ["a.py"]}],
        "activeFiles": ["z.py"],
        "systemTokens": 300,
        "toolResultTokens": 200,
        "suggestions": ["Drop stale tool output"],
    })

    assert context.active_files == frozenset({"z.py"})
    assert context.external.total_tokens == 500
    assert context.external.suggestions == ("Drop stale tool output",)


@pytest.mark.parametrize("payload", [42, {"conversation": []}, {"messages": "nope"}])
def test_invalid_payloads(payload):
    with pytest.raises(NormalizationError):
        context_from_payload(payload)
