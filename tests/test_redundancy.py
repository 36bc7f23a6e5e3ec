"""Tests for conversation redundancy."""

import pytest

from contextprune.models import MessageType
from contextprune.scoring.redundancy import (
    content_redundancy,
    normalize_content,
    pattern_redundancy,
    redundancy_score,
)


def test_normalize_content():
    assert normalize_content("  Fix   the BUG!\n") == "fix the bug"


def test_identical_messages_are_duplicates_after_the_first(make_message):
    messages = [make_message(f"msg_{i}", "Run the tests again.") for i in range(4)]
    assert content_redundancy(messages) == pytest.approx(3 / 4)


def test_identical_content_redundancy_approaches_one(make_message):
    messages = [make_message(f"msg_{i}", "same") for i in range(100)]
    assert content_redundancy(messages) == pytest.approx(0.99)


def test_duplicates_ignore_case_spacing_and_punctuation(make_message):
    messages = [
        make_message("msg_1", "Run the tests."),
        make_message("msg_2", "run   the TESTS"),
        make_message("msg_3", "deploy now"),
    ]
    assert content_redundancy(messages) == pytest.approx(1 / 3)


def test_pattern_redundancy(make_message):
    types = [MessageType.QUERY, MessageType.CODE_CHANGE, MessageType.ERROR] * 2
    messages = [make_message(f"msg_{i}", str(i), type=t) for i, t in enumerate(types)]

    # windows: (q,c,e) (c,e,q) (e,q,c) (q,c,e) -> one repeat out of four
    assert pattern_redundancy(messages) == pytest.approx(1 / 4)


def test_pattern_redundancy_needs_three_messages(make_message):
    assert pattern_redundancy([make_message("msg_1"), make_message("msg_2")]) == 0.0


def test_redundancy_score_is_mean_of_components(make_message):
    messages = [make_message(f"msg_{i}", "same") for i in range(4)]
    # content 3/4; all-query type windows (q,q,q) twice -> one repeat of two
    assert redundancy_score(messages) == pytest.approx((3 / 4 + 1 / 2) / 2)


def test_redundancy_score_below_two_messages(make_message):
    assert redundancy_score([]) == 0.0
    assert redundancy_score([make_message("msg_1", "alone")]) == 0.0
