"""Scoring pipeline: lexical and vector similarity, coherence, importance, redundancy."""

from contextprune.scoring.coherence import CoherenceAnalyzer, CoherenceMetrics
from contextprune.scoring.corpus import ScoringCorpus
from contextprune.scoring.importance import ImportanceScorer
from contextprune.scoring.lexical import BM25Ranker, bm25_similarity
from contextprune.scoring.redundancy import redundancy_score
from contextprune.scoring.vector import VectorScorer

__all__ = [
    "BM25Ranker",
    "CoherenceAnalyzer",
    "CoherenceMetrics",
    "ImportanceScorer",
    "ScoringCorpus",
    "VectorScorer",
    "bm25_similarity",
    "redundancy_score",
]
