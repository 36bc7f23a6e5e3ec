"""Shared fixtures for contextprune tests."""

from datetime import datetime, timedelta

import pytest

from contextprune.models import (
    CodeBlock,
    ConversationContext,
    Message,
    MessageMetadata,
    MessageType,
    Role,
)

BASE_TIME = datetime(2026, 3, 2, 9, 0, 0)


def _message(
    id: str,
    content: str = "",
    *,
    type: MessageType = MessageType.QUERY,
    role: Role = Role.USER,
    tokens: int = 10,
    minute: float = 0,
    files: tuple[str, ...] = (),
    code: tuple[CodeBlock, ...] = (),
    has_error: bool = False,
    tools: tuple[str, ...] = (),
) -> Message:
    return Message(
        id=id,
        timestamp=BASE_TIME + timedelta(minutes=minute),
        role=role,
        type=type,
        content=content,
        metadata=MessageMetadata(
            token_count=tokens,
            file_references=files,
            code_blocks=code,
            has_error=has_error,
            tools_used=tools,
        ),
    )


@pytest.fixture
def make_message():
    """Factory for messages stamped relative to BASE_TIME."""
    return _message


@pytest.fixture
def now():
    """Ten minutes after the conversation started."""
    return BASE_TIME + timedelta(minutes=10)


@pytest.fixture
def coding_session(make_message):
    """A short debugging session touching two files."""
    messages = [
        make_message(
            "msg_q1",
            "The login handler in auth.py throws a KeyError when the token is missing",
            tokens=20,
            minute=0,
            files=("auth.py",),
        ),
        make_message(
            "msg_a1",
            "I read auth.py and found the token lookup. I will fix the function to use get().",
            type=MessageType.FILE_OPERATION,
            role=Role.ASSISTANT,
            tokens=25,
            minute=1,
            files=("auth.py",),
            tools=("read_file",),
        ),
        make_message(
            "msg_a2",
            "Updated the login function in auth.py to handle a missing token.",
            type=MessageType.CODE_CHANGE,
            role=Role.ASSISTANT,
            tokens=120,
            minute=2,
            files=("auth.py",),
            code=(CodeBlock(language="python", content="token = data.get('token')", file_path="auth.py"),),
        ),
        make_message(
            "msg_e1",
            "Error: test_login failed with AssertionError in tests/test_auth.py",
            type=MessageType.ERROR,
            role=Role.ASSISTANT,
            tokens=30,
            minute=3,
            files=("test_auth.py",),
            has_error=True,
        ),
        make_message(
            "msg_a3",
            "Fixed the assertion, all tests pass now. Done.",
            type=MessageType.SUCCESS,
            role=Role.ASSISTANT,
            tokens=15,
            minute=4,
            files=("test_auth.py",),
        ),
    ]
    return ConversationContext.from_messages(messages, active_files={"auth.py"})
