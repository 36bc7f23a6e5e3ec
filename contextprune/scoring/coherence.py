"""Coherence: how well a message fits the conversation around it."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Sequence

from contextprune.models import FlowAnalysis, Message
from contextprune.scoring.corpus import ScoringCorpus, extract_message_references
from contextprune.scoring.vector import TermVector, VectorScorer, cosine

FILE_REF_PATTERN = re.compile(
    r"[\w-]+\.(?:js|ts|py|java|cpp|c|h|md|txt|json|xml|yaml|html|css)\b(?::\d+)?"
)

# Weights of the four metrics in the combined score
THREAD_WEIGHT = 0.4
REFERENCE_WEIGHT = 0.3
DENSITY_WEIGHT = 0.2
TOPIC_WEIGHT = 0.1

MAX_CONNECTION_RATE = 0.3
MESSAGE_KEY_TERMS = 15

TOPIC_SHIFT_THRESHOLD = 0.3
ISOLATION_THRESHOLD = 0.2
STRONG_CLUSTER_THRESHOLD = 0.5


@dataclass(frozen=True)
class CoherenceMetrics:
    thread_continuity: float
    reference_chain_strength: float
    information_density: float
    topic_consistency: float

    @property
    def combined(self) -> float:
        return (
            self.thread_continuity * THREAD_WEIGHT
            + self.reference_chain_strength * REFERENCE_WEIGHT
            + self.information_density * DENSITY_WEIGHT
            + self.topic_consistency * TOPIC_WEIGHT
        )


def positional_recency(index: int, reference: int, total: int) -> float:
    """exp(-2d / maxDistance) over positions; 1.0 for a single message."""
    max_distance = total - 1
    if max_distance <= 0:
        return 1.0
    return math.exp(-2 * abs(index - reference) / max_distance)


class CoherenceAnalyzer:
    """
    Computes coherence metrics for messages of a prepared corpus.

    Each metric reads only the corpus, never another message's score.
    """

    def __init__(self, window_size: int = 5, vector_scorer: VectorScorer | None = None):
        self.window_size = window_size
        self.vectors = vector_scorer or VectorScorer()

    def score(self, index: int, corpus: ScoringCorpus) -> float:
        return self.metrics(index, corpus).combined

    def metrics(self, index: int, corpus: ScoringCorpus) -> CoherenceMetrics:
        return CoherenceMetrics(
            thread_continuity=self.thread_continuity(index, corpus),
            reference_chain_strength=self.reference_chain_strength(index, corpus),
            information_density=self.information_density(index, corpus),
            topic_consistency=self.topic_consistency(index, corpus),
        )

    def thread_continuity(self, index: int, corpus: ScoringCorpus) -> float:
        """Recency-weighted similarity to the neighbouring window, sigmoid-squashed."""
        window = corpus.window(index, self.window_size)
        if not window:
            return 0.5

        target = corpus.vectors[index]
        weighted = 0.0
        total_weight = 0.0
        for other in window:
            weight = positional_recency(index, other, len(corpus))
            weighted += cosine(target, corpus.vectors[other]) * weight
            total_weight += weight

        if total_weight == 0:
            return 0.3
        average = weighted / total_weight
        return 1 / (1 + math.exp(-6 * (average - 0.4)))

    def reference_chain_strength(self, index: int, corpus: ScoringCorpus) -> float:
        """Explicit and shared-resource links, relative to conversation size."""
        message = corpus.messages[index]
        outgoing = len(extract_message_references(message.content)) + len(
            FILE_REF_PATTERN.findall(message.content)
        )

        incoming = 0
        connections = 0.0
        files = set(message.metadata.file_references)
        tools = set(message.metadata.tools_used)
        for i, other in enumerate(corpus.messages):
            if i == index:
                continue
            if message.id in other.content:
                incoming += 1

            other_files = set(other.metadata.file_references)
            shared = len(files & other_files)
            if shared:
                connections += min(1.0, shared / max(len(files), len(other_files)))

            other_tools = set(other.metadata.tools_used)
            shared = len(tools & other_tools)
            if shared:
                connections += 0.3 * shared / max(len(tools), len(other_tools))

        max_connections = len(corpus) * MAX_CONNECTION_RATE
        return min(1.0, (incoming + outgoing + connections) / max_connections)

    def information_density(self, index: int, corpus: ScoringCorpus) -> float:
        """Concept density, novelty against a wide window, length and content bonuses."""
        message = corpus.messages[index]
        base = self.vectors.semantic_density(message.content)

        novelty = 1.0
        window = corpus.window(index, self.window_size * 2)
        if window:
            target = corpus.vectors[index]
            novelty = 1 - max(cosine(target, corpus.vectors[i]) for i in window)

        meta = message.metadata
        code_bonus = 0.2 if meta.code_blocks else 0.0
        tool_bonus = 0.15 if meta.tools_used else 0.0
        error_bonus = 0.25 if meta.has_error else 0.0
        length_factor = min(1.0, math.log(len(message.content) + 1) / math.log(1000))

        return min(
            1.0,
            base * 0.4 + novelty * 0.3 + length_factor * 0.1 + code_bonus + tool_bonus + error_bonus,
        )

    def topic_consistency(self, index: int, corpus: ScoringCorpus) -> float:
        """Best match against any topic cluster centroid, lightly recency-modulated."""
        if not corpus.clusters:
            return 0.5

        key_terms = dict(self.vectors.key_terms(corpus.vectors[index], MESSAGE_KEY_TERMS))
        message_vec = TermVector.from_weights(key_terms)
        best = max(cosine(message_vec, c.centroid) for c in corpus.clusters)

        recency = positional_recency(index, 0, len(corpus))
        return best * (0.7 + 0.3 * recency)

    def analyze_flow(self, messages: Sequence[Message]) -> FlowAnalysis:
        """Conversation-level view: average coherence, topic shifts, isolated messages."""
        if not messages:
            return FlowAnalysis(
                average_coherence=0.0, topic_shifts=0, isolated_messages=(), strong_cluster_count=0
            )

        corpus = ScoringCorpus.build(messages, self.vectors)
        total = 0.0
        shifts = 0
        isolated: list[str] = []
        for i, message in enumerate(corpus.messages):
            coherence = self.score(i, corpus)
            total += coherence
            if i > 0 and coherence < TOPIC_SHIFT_THRESHOLD:
                shifts += 1
            if coherence < ISOLATION_THRESHOLD:
                isolated.append(message.id)

        strong = sum(1 for c in corpus.clusters if c.topic_score > STRONG_CLUSTER_THRESHOLD)
        return FlowAnalysis(
            average_coherence=total / len(corpus),
            topic_shifts=shifts,
            isolated_messages=tuple(isolated),
            strong_cluster_count=strong,
        )
