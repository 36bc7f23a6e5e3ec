"""Tokenization shared by the lexical and vector scorers."""

import re
from functools import lru_cache

from nltk.stem import PorterStemmer

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# English stopwords; the corpus-free list avoids an nltk data download.
STOPWORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because been
    before being below between both but by can cannot could did do does doing down
    during each few for from further had has have having he her here hers herself him
    himself his how i if in into is it its itself just let me more most my myself no
    nor not now of off on once only or other ought our ours ourselves out over own
    same she should so some such than that the their theirs them themselves then there
    these they this those through to too under until up very was we were what when
    where which while who whom why will with would you your yours yourself yourselves
    """.split()
)

_stemmer = PorterStemmer()


@lru_cache(maxsize=8192)
def stem(word: str) -> str:
    """Porter stem of a lowercase word."""
    return _stemmer.stem(word)


def tokenize(text: str, min_length: int = 2) -> list[str]:
    """Lowercase, strip punctuation, drop short tokens and stopwords, stem.

    Args:
        text: Raw text.
        min_length: Shortest token kept, before stemming.

    Returns:
        Stemmed terms in text order.
    """
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return [
        stem(token)
        for token in _WHITESPACE.split(cleaned)
        if len(token) >= min_length and token not in STOPWORDS
    ]
