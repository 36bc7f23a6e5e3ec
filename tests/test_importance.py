"""Tests for importance scoring."""

from datetime import timedelta

import pytest

from contextprune.models import ConversationContext, MessageType
from contextprune.profiles import get_profile
from contextprune.scoring.importance import (
    ImportanceScorer,
    file_relevance_score,
    reference_score,
)


@pytest.fixture
def scorer():
    return ImportanceScorer()


# ============================================================================
# Component scores
# ============================================================================


def test_recency_is_one_at_age_zero(scorer, now):
    assert scorer.recency_score(now, now) == 1.0


def test_recency_strictly_decreases_with_age(scorer, now):
    ages = [0, 1, 5, 30, 120]
    scores = [scorer.recency_score(now - timedelta(minutes=a), now) for a in ages]

    assert all(a > b for a, b in zip(scores, scores[1:]))
    assert scores[1] == pytest.approx(0.95)


def test_recency_of_future_timestamps_is_capped(scorer, now):
    assert scorer.recency_score(now + timedelta(minutes=5), now) == 1.0


def test_reference_score_is_monotonic_and_capped():
    scores = [reference_score(c) for c in range(20)]

    assert all(a <= b for a, b in zip(scores, scores[1:]))
    assert reference_score(0) == 0.0
    assert reference_score(3) == pytest.approx(0.3)
    assert reference_score(10) == 1.0
    assert reference_score(19) == 1.0


def test_file_relevance(make_message):
    message = make_message("msg_f", files=("a.py", "b.py"))

    assert file_relevance_score(message, []) == 0.5
    assert file_relevance_score(make_message("msg_g"), ["a.py"]) == 0.3
    assert file_relevance_score(message, ["a.py"]) == 0.5
    assert file_relevance_score(message, ["a.py", "b.py", "c.py"]) == 1.0


def test_legacy_semantic_score_caps_at_one(scorer, make_message):
    message = make_message("msg_e", "error in function", type=MessageType.ERROR, has_error=True)
    assert scorer.legacy_semantic_score(message) == 1.0


def test_lexical_score_is_bounded(scorer, coding_session):
    corpus = scorer.build_corpus(coding_session.messages)
    for i in range(len(corpus)):
        assert 0.0 <= scorer.lexical_score(i, corpus) <= 1.0


# ============================================================================
# Scoring passes
# ============================================================================


def test_score_messages_annotates_every_message_in_order(scorer, coding_session, now):
    scored = scorer.score_messages(coding_session, now)

    assert [m.id for m in scored] == coding_session.message_ids
    for message in scored:
        s = message.importance
        assert s is not None
        assert s.breakdown is not None
        assert s.computed_at == now
        for value in (s.total, s.recency, s.semantic, s.references, s.file_relevance, s.coherence):
            assert 0.0 <= value <= 1.0


def test_scored_messages_equal_their_originals(scorer, coding_session, now):
    scored = scorer.score_messages(coding_session, now)
    assert scored == list(coding_session.messages)


def test_total_is_weighted_sum(scorer, coding_session, now):
    w = scorer.profile.weights
    for message in scorer.score_messages(coding_session, now):
        s = message.importance
        expected = (
            s.recency * w.recency
            + s.semantic * w.semantic
            + s.references * w.references
            + s.file_relevance * w.file_relevance
            + s.coherence * w.coherence
        )
        assert s.total == pytest.approx(expected)


def test_newer_identical_message_scores_higher(scorer, make_message, now):
    context = ConversationContext.from_messages([
        make_message("msg_old", "deploy the service", minute=0),
        make_message("msg_new", "deploy the service", minute=9),
    ])
    old, new = scorer.score_messages(context, now)
    assert new.importance.recency > old.importance.recency


def test_frequently_referenced_message_gets_full_reference_score(scorer, make_message, now):
    messages = [make_message("msg_target", "base decision")]
    messages += [make_message(f"msg_r{i}", f"following up on msg_target ({i})") for i in range(10)]
    scored = scorer.score_messages(ConversationContext.from_messages(messages), now)

    assert scored[0].importance.references == 1.0
    assert scored[1].importance.references == 0.0


def test_message_outside_corpus_gets_neutral_coherence(scorer, coding_session, make_message, now):
    corpus = scorer.build_corpus(coding_session.messages)
    stranger = make_message("msg_stranger", "fix the bug", type=MessageType.ERROR)

    score = scorer.score_message(stranger, corpus, now)

    assert score.coherence == 0.5
    assert score.breakdown is None
    assert score.semantic == scorer.legacy_semantic_score(stranger)


def test_empty_context(scorer):
    assert scorer.score_messages(ConversationContext()) == []


def test_profile_switch(scorer, coding_session, now):
    scorer.set_profile(get_profile("creative"))
    scored = scorer.score_messages(coding_session, now)

    assert scorer.profile.name == "creative"
    assert len(scored) == len(coding_session.messages)
