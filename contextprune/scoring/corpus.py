"""Corpus-wide statistics computed once per scoring pass.

Everything here is built before the first message is scored and only read
afterwards, so every message in a pass sees the same statistics.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from itertools import combinations
from typing import Sequence

from loguru import logger

from contextprune.models import BM25Parameters, Message
from contextprune.scoring.lexical import BM25Ranker
from contextprune.scoring.vector import TermVector, VectorScorer, cosine

MESSAGE_ID_PATTERN = re.compile(r"msg_[a-zA-Z0-9]+")

CLUSTER_THRESHOLD = 0.3
CENTROID_TERMS = 20


def extract_message_references(content: str) -> list[str]:
    """Message identifiers mentioned in a text, with repeats."""
    return MESSAGE_ID_PATTERN.findall(content)


@dataclass
class TopicCluster:
    """Messages grouped around a seed by vector similarity."""
    members: list[int]
    centroid: TermVector = field(default_factory=TermVector)
    topic_score: float = 0.0


def identify_clusters(vectors: Sequence[TermVector], scorer: VectorScorer) -> list[TopicCluster]:
    """
    Single-pass greedy clustering.

    Each unassigned message seeds a cluster and absorbs every other
    unassigned message whose similarity to the seed exceeds the threshold.
    Singleton clusters are dropped.
    """
    assigned: set[int] = set()
    clusters: list[TopicCluster] = []

    for seed, seed_vec in enumerate(vectors):
        if seed in assigned:
            continue
        members = [seed]
        for other, other_vec in enumerate(vectors):
            if other == seed or other in assigned:
                continue
            if cosine(seed_vec, other_vec) > CLUSTER_THRESHOLD:
                members.append(other)
                assigned.add(other)
        assigned.add(seed)

        if len(members) > 1:
            clusters.append(_finish_cluster(members, vectors, scorer))

    return clusters


def _finish_cluster(
    members: list[int], vectors: Sequence[TermVector], scorer: VectorScorer
) -> TopicCluster:
    weights: Counter[str] = Counter()
    for i in members:
        for term, weight in scorer.key_terms(vectors[i], CENTROID_TERMS):
            weights[term] += weight
    centroid = TermVector.from_weights({t: w / len(members) for t, w in weights.items()})

    pairs = list(combinations(members, 2))
    topic_score = sum(cosine(vectors[a], vectors[b]) for a, b in pairs) / len(pairs)
    return TopicCluster(members=members, centroid=centroid, topic_score=topic_score)


@dataclass
class ScoringCorpus:
    """Read-only view of one conversation snapshot prepared for scoring."""
    messages: tuple[Message, ...]
    positions: dict[str, int]
    vectors: list[TermVector]
    ranker: BM25Ranker
    clusters: list[TopicCluster]
    reference_counts: Counter[str]

    @classmethod
    def build(
        cls,
        messages: Sequence[Message],
        scorer: VectorScorer,
        bm25: BM25Parameters | None = None,
    ) -> ScoringCorpus:
        messages = tuple(messages)
        positions: dict[str, int] = {}
        for i, m in enumerate(messages):
            positions.setdefault(m.id, i)

        contents = [m.content for m in messages]
        vectors = [scorer.vectorize(c) for c in contents]

        reference_counts: Counter[str] = Counter()
        for content in contents:
            reference_counts.update(extract_message_references(content))

        corpus = cls(
            messages=messages,
            positions=positions,
            vectors=vectors,
            ranker=BM25Ranker(contents, bm25),
            clusters=identify_clusters(vectors, scorer),
            reference_counts=reference_counts,
        )
        logger.debug(
            f"Corpus built: {len(messages)} messages, {len(corpus.clusters)} clusters, "
            f"avg length {corpus.ranker.average_length:.1f}"
        )
        return corpus

    def __len__(self) -> int:
        return len(self.messages)

    def index_of(self, message: Message) -> int | None:
        return self.positions.get(message.id)

    def window(self, index: int, size: int) -> list[int]:
        """Indices within `size` positions of `index`, excluding `index` itself."""
        start = max(0, index - size)
        end = min(len(self.messages), index + size + 1)
        return [i for i in range(start, end) if i != index]
