"""Corpus-relative lexical ranking using BM25.

A `BM25Ranker` is built once per corpus and never mutated afterwards, so a
one-off pairwise comparison builds its own throwaway ranker instead of
re-indexing a shared one.
"""

import math
from typing import Sequence

from rank_bm25 import BM25Okapi

from contextprune.models import BM25Parameters
from contextprune.scoring.text import tokenize


class _RawIdfBM25(BM25Okapi):
    """BM25Okapi keeping the plain `ln((N - df + 0.5) / (df + 0.5))` IDF.

    BM25Okapi lifts negative IDF to an epsilon floor; here negative terms keep
    pulling the sum down and the ranker clamps the final score instead.
    """

    def _calc_idf(self, nd):
        for word, freq in nd.items():
            self.idf[word] = math.log(self.corpus_size - freq + 0.5) - math.log(freq + 0.5)
        self.average_idf = sum(self.idf.values()) / len(self.idf) if self.idf else 0.0


class BM25Ranker:
    """
    Scores query strings against an indexed corpus of texts.

    Indexing (tokenize, term frequencies, document frequencies, average
    length) happens in the constructor; every later call is read-only.
    """

    def __init__(self, documents: Sequence[str], params: BM25Parameters | None = None):
        params = params or BM25Parameters()
        self.k1 = params.k1
        self.b = params.b
        self._corpus = [tokenize(doc) for doc in documents]
        # rank_bm25 divides by the average length, so an all-empty corpus has no index
        self._bm25 = (
            _RawIdfBM25(self._corpus, k1=self.k1, b=self.b) if any(self._corpus) else None
        )

    def __len__(self) -> int:
        return len(self._corpus)

    @property
    def average_length(self) -> float:
        return self._bm25.avgdl if self._bm25 else 0.0

    def score(self, query: str, index: int) -> float:
        """
        BM25 score of `query` against document `index`, floored at zero.

        Args:
            query: Free text, tokenized like the corpus.
            index: Position of the document in the corpus.

        Returns:
            Non-negative score; 0.0 for an out-of-range index.
        """
        if self._bm25 is None or index < 0 or index >= len(self._corpus):
            return 0.0
        terms = tokenize(query)
        if not terms:
            return 0.0
        raw = float(self._bm25.get_batch_scores(terms, [index])[0])
        return max(0.0, raw)

    def scores(self, query: str) -> list[float]:
        """Scores of `query` against every document, in corpus order."""
        if self._bm25 is None:
            return [0.0] * len(self._corpus)
        terms = tokenize(query)
        if not terms:
            return [0.0] * len(self._corpus)
        return [max(0.0, float(s)) for s in self._bm25.get_scores(terms)]


def bm25_similarity(text1: str, text2: str, params: BM25Parameters | None = None) -> float:
    """
    Symmetric similarity of two standalone texts.

    Indexes just the two texts, scores each against the other as the query,
    and normalizes the mean by the larger self-score.

    Note: with a two-document corpus every shared term has a non-positive
    IDF and every unshared term an IDF of zero, so this returns 0.0 for any
    pair, identical texts included. Use `VectorScorer.similarity` for a
    usable pairwise measure.
    """
    ranker = BM25Ranker([text1, text2], params)
    first, second = ranker.scores(text1), ranker.scores(text2)
    cross = (second[0] + first[1]) / 2
    self_max = max(first[0], second[1])
    return cross / self_max if self_max > 0 else 0.0
