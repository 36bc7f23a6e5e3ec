"""Tests for coherence metrics and conversation flow."""

import math

import pytest

from contextprune.models import CodeBlock
from contextprune.scoring.coherence import (
    FILE_REF_PATTERN,
    CoherenceAnalyzer,
    positional_recency,
)
from contextprune.scoring.corpus import ScoringCorpus, extract_message_references, identify_clusters
from contextprune.scoring.vector import VectorScorer


@pytest.fixture
def analyzer():
    return CoherenceAnalyzer(window_size=5)


def build(messages, analyzer):
    return ScoringCorpus.build(messages, analyzer.vectors)


# ============================================================================
# Helpers
# ============================================================================


def test_positional_recency():
    assert positional_recency(0, 0, 1) == 1.0
    assert positional_recency(2, 2, 5) == 1.0
    assert positional_recency(0, 4, 5) == pytest.approx(math.exp(-2))


def test_file_ref_pattern():
    text = "see utils.py:42, app.ts and README.md but not version 1.2.3 or archive.tsx"
    assert FILE_REF_PATTERN.findall(text) == ["utils.py:42", "app.ts", "README.md"]


def test_extract_message_references():
    assert extract_message_references("as in msg_a1 and msg_b2, again msg_a1") == [
        "msg_a1", "msg_b2", "msg_a1",
    ]


def test_identify_clusters_drops_singletons():
    scorer = VectorScorer()
    texts = [
        "database schema migration",
        "database schema migration rollback",
        "purple elephants dancing",
    ]
    clusters = identify_clusters([scorer.vectorize(t) for t in texts], scorer)

    assert len(clusters) == 1
    assert clusters[0].members == [0, 1]
    assert 0 < clusters[0].topic_score <= 1


# ============================================================================
# Per-message metrics
# ============================================================================


def test_lone_message_gets_neutral_continuity(analyzer, make_message):
    corpus = build([make_message("msg_only", "database schema migration")], analyzer)
    metrics = analyzer.metrics(0, corpus)

    assert metrics.thread_continuity == 0.5
    assert metrics.topic_consistency == 0.5
    assert 0.0 <= metrics.combined <= 1.0


def test_reference_chain_strength_counts_mentions(analyzer, make_message):
    linked = build(
        [
            make_message("msg_abc", "plain alpha text"),
            make_message("msg_def", "see msg_abc for details"),
        ],
        analyzer,
    )
    unlinked = build(
        [
            make_message("msg_abc", "plain alpha text"),
            make_message("msg_def", "unrelated words here"),
        ],
        analyzer,
    )

    assert analyzer.reference_chain_strength(0, linked) == 1.0
    assert analyzer.reference_chain_strength(1, linked) == 1.0
    assert analyzer.reference_chain_strength(0, unlinked) == 0.0


def test_reference_chain_strength_counts_shared_files(analyzer, make_message):
    corpus = build(
        [
            make_message("msg_a", "first", files=("a.py", "b.py")),
            make_message("msg_b", "second", files=("a.py",)),
            make_message("msg_c", "third"),
            make_message("msg_d", "fourth"),
        ],
        analyzer,
    )
    # one shared file out of max(2, 1): 0.5 connections over 4 * 0.3
    assert analyzer.reference_chain_strength(0, corpus) == pytest.approx(0.5 / 1.2)
    assert analyzer.reference_chain_strength(2, corpus) == 0.0


def test_information_density_bonuses(analyzer, make_message):
    plain = build([make_message("msg_p", "database schema migration")], analyzer)
    flagged = build(
        [
            make_message(
                "msg_f",
                "database schema migration",
                has_error=True,
                code=(CodeBlock(language="sql"),),
            )
        ],
        analyzer,
    )

    assert analyzer.information_density(0, flagged) > analyzer.information_density(0, plain)
    assert analyzer.information_density(0, flagged) <= 1.0


def test_related_neighbours_raise_continuity(analyzer, make_message):
    corpus = build(
        [
            make_message("msg_1", "database schema migration"),
            make_message("msg_2", "database schema migration rollback"),
            make_message("msg_3", "purple elephants dancing"),
        ],
        analyzer,
    )
    assert analyzer.thread_continuity(0, corpus) > analyzer.thread_continuity(2, corpus)


# ============================================================================
# Conversation flow
# ============================================================================


def test_analyze_flow_empty(analyzer):
    flow = analyzer.analyze_flow([])

    assert flow.average_coherence == 0.0
    assert flow.topic_shifts == 0
    assert flow.isolated_messages == ()
    assert flow.strong_cluster_count == 0


def test_analyze_flow_unrelated_messages_are_isolated(analyzer, make_message):
    messages = [
        make_message("msg_x1", "purple elephants dancing"),
        make_message("msg_x2", "quantum bagels orbiting"),
        make_message("msg_x3", "velvet trombones sleeping"),
    ]
    flow = analyzer.analyze_flow(messages)

    assert flow.topic_shifts == 2
    assert flow.isolated_messages == ("msg_x1", "msg_x2", "msg_x3")
    assert flow.strong_cluster_count == 0


def test_analyze_flow_bounds(analyzer, coding_session):
    flow = analyzer.analyze_flow(coding_session.messages)
    ids = set(coding_session.message_ids)

    assert 0.0 <= flow.average_coherence <= 1.0
    assert 0 <= flow.topic_shifts <= len(ids) - 1
    assert set(flow.isolated_messages) <= ids
