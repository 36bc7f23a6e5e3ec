"""Importance scoring: fuses recency, semantic, reference, file and coherence signals."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from loguru import logger

from contextprune.models import (
    ConversationContext,
    ImportanceScore,
    Message,
    MessageType,
    ScoreBreakdown,
    ScoringProfile,
)
from contextprune.profiles import DEFAULT_SCORING_PROFILES
from contextprune.scoring.coherence import CoherenceAnalyzer
from contextprune.scoring.corpus import ScoringCorpus
from contextprune.scoring.vector import VectorScorer

DEFAULT_RECENCY_DECAY = 0.95

LEXICAL_WINDOW = 3
CONTEXTUAL_WINDOW = 5
# BM25 has no fixed upper bound; scores around this value count as a full match
LEXICAL_SCORE_CEILING = 10.0

# Only used for messages that cannot be located in the scoring corpus
LEGACY_KEYWORDS = (
    "error", "bug", "fix", "implement", "create", "update", "delete", "refactor",
    "test", "deploy", "config", "install", "import", "export", "function", "class",
    "method", "variable", "constant", "interface", "type",
)
LEGACY_TYPE_WEIGHTS = {
    MessageType.ERROR: 1.0,
    MessageType.CODE_CHANGE: 0.9,
    MessageType.FILE_OPERATION: 0.8,
    MessageType.TOOL_USE: 0.7,
    MessageType.QUERY: 0.6,
    MessageType.SUCCESS: 0.4,
    MessageType.SUMMARY: 0.3,
}


def reference_score(count: int) -> float:
    """0.1 per inbound mention, capped at 1.0."""
    return min(count * 0.1, 1.0)


def file_relevance_score(message: Message, active_files: Iterable[str]) -> float:
    """
    Share of a message's files that are currently active.

    Returns:
        0.5 when nothing is active, 0.3 when the message names no files.
    """
    active = set(active_files)
    if not active:
        return 0.5
    files = set(message.metadata.file_references)
    if not files:
        return 0.3
    return len(files & active) / len(files)


class ImportanceScorer:
    """
    Scores every message of a context against the active profile.

    The profile can be swapped between passes; within a pass all messages
    share one `ScoringCorpus`.
    """

    def __init__(
        self,
        profile: ScoringProfile | None = None,
        recency_decay: float = DEFAULT_RECENCY_DECAY,
        coherence_window: int = 5,
        vector_scorer: VectorScorer | None = None,
    ):
        self.profile = profile or DEFAULT_SCORING_PROFILES["technical"]
        self.recency_decay = recency_decay
        self.vectors = vector_scorer or VectorScorer()
        self.coherence = CoherenceAnalyzer(coherence_window, self.vectors)

    def set_profile(self, profile: ScoringProfile) -> None:
        self.profile = profile

    def build_corpus(self, messages: Iterable[Message]) -> ScoringCorpus:
        return ScoringCorpus.build(list(messages), self.vectors, self.profile.bm25)

    def score_messages(
        self, context: ConversationContext, now: datetime | None = None
    ) -> list[Message]:
        """
        Return a copy of every message carrying its importance score.

        Args:
            context: Conversation snapshot.
            now: Current time for recency; defaults to `datetime.now()`.

        Returns:
            Scored messages in context order.
        """
        now = now or datetime.now()
        logger.debug(
            f"Scoring {len(context.messages)} messages with profile '{self.profile.name}'"
        )
        corpus = self.build_corpus(context.messages)
        return [
            m.with_importance(self.score_message(m, corpus, now, context.active_files))
            for m in context.messages
        ]

    def score_message(
        self,
        message: Message,
        corpus: ScoringCorpus,
        now: datetime,
        active_files: Iterable[str] = (),
    ) -> ImportanceScore:
        """Score one message; falls back to neutral values if it is not in `corpus`."""
        index = corpus.index_of(message)
        breakdown = None

        if index is None:
            logger.debug(f"Message {message.id} not in corpus, using legacy semantic score")
            semantic = self.legacy_semantic_score(message)
            coherence = 0.5
        else:
            lexical = self.lexical_score(index, corpus)
            vector = self.vector_score(message)
            contextual = self.contextual_score(index, corpus)
            hybrid = self.profile.hybrid
            semantic = min(
                1.0,
                lexical * hybrid.lexical + vector * hybrid.vector + contextual * hybrid.contextual,
            )
            metrics = self.coherence.metrics(index, corpus)
            coherence = metrics.combined
            breakdown = ScoreBreakdown(
                lexical_score=lexical,
                vector_score=vector,
                contextual_score=contextual,
                thread_continuity=metrics.thread_continuity,
                reference_chain_strength=metrics.reference_chain_strength,
                information_density=metrics.information_density,
            )

        recency = self.recency_score(message.timestamp, now)
        references = reference_score(corpus.reference_counts.get(message.id, 0))
        file_relevance = file_relevance_score(message, active_files)

        w = self.profile.weights
        total = (
            recency * w.recency
            + semantic * w.semantic
            + references * w.references
            + file_relevance * w.file_relevance
            + coherence * w.coherence
        )
        return ImportanceScore(
            total=total,
            recency=recency,
            semantic=semantic,
            references=references,
            file_relevance=file_relevance,
            coherence=coherence,
            computed_at=now,
            breakdown=breakdown,
        )

    def recency_score(self, timestamp: datetime, now: datetime) -> float:
        """decay ** age_in_minutes; 1.0 at age zero."""
        age_minutes = max(0.0, (now - timestamp).total_seconds() / 60)
        return self.recency_decay ** age_minutes

    def lexical_score(self, index: int, corpus: ScoringCorpus) -> float:
        """BM25 of profile keywords plus the local window against this message."""
        start = max(0, index - LEXICAL_WINDOW)
        end = min(len(corpus), index + LEXICAL_WINDOW + 1)
        window_text = " ".join(m.content for m in corpus.messages[start:end])
        query = f"{' '.join(self.profile.keywords)} {window_text}".strip()
        if not query:
            return 0.5
        return min(1.0, corpus.ranker.score(query, index) / LEXICAL_SCORE_CEILING)

    def vector_score(self, message: Message) -> float:
        """Density, domain relevance, type weight and content bonuses."""
        density = self.vectors.semantic_density(message.content)
        relevance = self.vectors.domain_relevance(message.content, self.profile.keywords)
        type_weight = self.profile.type_weight(message.type)

        meta = message.metadata
        bonus = 0.0
        if meta.has_error:
            bonus += 0.25
        if meta.code_blocks:
            bonus += 0.2
        if meta.tools_used:
            bonus += 0.15

        return min(1.0, density * 0.3 + relevance * 0.3 + type_weight * 0.3 + bonus * 0.1)

    def contextual_score(self, index: int, corpus: ScoringCorpus) -> float:
        window = corpus.window(index, CONTEXTUAL_WINDOW)
        if not window:
            return 0.5
        return self.vectors.contextual_importance(
            corpus.vectors[index], [corpus.vectors[i] for i in window]
        )

    def legacy_semantic_score(self, message: Message) -> float:
        """Type weight plus keyword density and flat content bonuses."""
        score = LEGACY_TYPE_WEIGHTS.get(message.type, 0.5)
        content = message.content.lower()
        total_words = len(content.split()) or 1
        hits = sum(1 for kw in LEGACY_KEYWORDS if kw in content)
        score += hits / total_words * 0.5

        meta = message.metadata
        if meta.has_error:
            score += 0.3
        if meta.code_blocks:
            score += 0.2
        if meta.tools_used:
            score += 0.15
        return min(score, 1.0)
