"""Bag-of-terms vector similarity.

A light stand-in for embeddings: log-dampened term weights with concept terms
counted double, compared by cosine similarity.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from contextprune.scoring.text import stem, tokenize

# Vector terms must be at least this long (BM25 keeps 2-letter terms)
MIN_TERM_LENGTH = 3

CONCEPT_WORDS = (
    # technical
    "algorithm", "function", "method", "class", "object", "variable", "constant",
    "interface", "type", "struct", "enum", "module", "package", "library",
    "framework", "api", "endpoint", "database", "query", "schema", "table",
    "index", "cache", "memory", "performance", "optimization", "scale",
    "security", "authentication", "authorization", "encryption", "hash",
    "protocol", "http", "tcp", "ssl", "json", "xml", "yaml", "config",
    # development process
    "development", "implementation", "deployment", "testing", "debugging",
    "refactoring", "maintenance", "documentation", "version", "release",
    "build", "compile", "runtime", "execution", "process", "thread",
    "async", "sync", "callback", "promise", "event", "handler", "listener",
    # problem solving
    "problem", "solution", "issue", "challenge", "approach", "strategy",
    "analysis", "design", "pattern", "architecture", "structure", "model",
    "workflow", "pipeline", "integration", "system", "component",
    # quality
    "quality", "reliability", "stability", "robustness", "efficiency",
    "accuracy", "precision", "validation", "verification", "compliance",
    "standard", "convention", "guideline", "principle",
    # creative
    "innovation", "creativity", "inspiration", "imagination", "exploration",
    "experimentation", "prototype", "concept", "vision", "possibility",
    "opportunity", "potential", "breakthrough", "advancement", "evolution",
)


@dataclass
class TermVector:
    """Sparse term-weight vector."""
    terms: dict[str, float] = field(default_factory=dict)
    magnitude: float = 0.0

    @classmethod
    def from_weights(cls, weights: dict[str, float]) -> TermVector:
        return cls(terms=weights, magnitude=math.sqrt(sum(w * w for w in weights.values())))

    def is_empty(self) -> bool:
        return self.magnitude == 0


def cosine(v1: TermVector, v2: TermVector) -> float:
    """Cosine similarity; 0.0 if either vector is empty."""
    if v1.magnitude == 0 or v2.magnitude == 0:
        return 0.0
    small, large = (v1, v2) if len(v1.terms) <= len(v2.terms) else (v2, v1)
    dot = sum(w * large.terms.get(t, 0.0) for t, w in small.terms.items())
    return dot / (v1.magnitude * v2.magnitude)


class VectorScorer:
    """Builds term vectors and derives similarity-based measures from them."""

    def __init__(self, concept_words: Iterable[str] = CONCEPT_WORDS):
        self.concept_terms = frozenset(stem(w.lower()) for w in concept_words)

    def terms(self, text: str) -> list[str]:
        return tokenize(text, min_length=MIN_TERM_LENGTH)

    def vectorize(self, text: str) -> TermVector:
        """Weight = 1 + ln(freq), where concept terms count twice toward freq."""
        counts: Counter[str] = Counter()
        for term in self.terms(text):
            counts[term] += 2 if term in self.concept_terms else 1
        return TermVector.from_weights({t: 1 + math.log(f) for t, f in counts.items()})

    def _as_vector(self, value: str | TermVector) -> TermVector:
        return value if isinstance(value, TermVector) else self.vectorize(value)

    def similarity(self, a: str | TermVector, b: str | TermVector) -> float:
        return cosine(self._as_vector(a), self._as_vector(b))

    def semantic_density(self, text: str) -> float:
        """How concept-dense a text is on its own, in [0, 1]."""
        terms = self.terms(text)
        if not terms:
            return 0.0
        concept_weight = sum(2 for t in terms if t in self.concept_terms)
        density = concept_weight / len(terms)
        return min(1.0, math.log(1 + density * 2))

    def domain_relevance(self, text: str, keywords: Sequence[str]) -> float:
        """
        Share of a text's terms matching domain keywords.

        Exact (stemmed) matches count 1.0, substring near-matches 0.5. The
        total is normalized by the smaller of the two term sets.

        Returns:
            Score in [0, 1]; 0.5 when no keywords are given.
        """
        if not keywords:
            return 0.5
        text_terms = set(self.terms(text))
        domain_terms = {stem(kw.lower()) for kw in keywords}

        matches = 0
        partial = 0
        for term in text_terms:
            if term in domain_terms:
                matches += 1
            elif any(term in d or d in term for d in domain_terms):
                partial += 1

        max_possible = min(len(text_terms), len(domain_terms))
        if max_possible == 0:
            return 0.0
        return min(1.0, (matches + partial * 0.5) / max_possible)

    def contextual_importance(
        self,
        target: str | TermVector,
        context: Sequence[str | TermVector],
    ) -> float:
        """
        Sigmoid-normalized mean similarity of a target to its context.

        Only positive similarities enter the mean.

        Returns:
            0.5 with no context, 0.3 when nothing in the context is similar.
        """
        if not context:
            return 0.5
        target_vec = self._as_vector(target)
        sims = [s for s in (cosine(target_vec, self._as_vector(c)) for c in context) if s > 0]
        if not sims:
            return 0.3
        mean = sum(sims) / len(sims)
        return 1 / (1 + math.exp(-5 * (mean - 0.5)))

    def key_terms(self, text: str | TermVector, limit: int = 10) -> list[tuple[str, float]]:
        """Highest-weighted terms of a text."""
        vector = self._as_vector(text)
        return sorted(vector.terms.items(), key=lambda kv: kv[1], reverse=True)[:limit]
