"""Built-in scoring profiles, pruning strategies and profile selection."""

from contextprune.errors import UnknownProfileError, UnknownStrategyError
from contextprune.models import (
    BM25Parameters,
    ConversationContext,
    HybridWeights,
    MessageType,
    PruningStrategy,
    ScoringProfile,
    ScoringWeights,
)

T = MessageType

DEFAULT_STRATEGIES: dict[str, PruningStrategy] = {
    "aggressive": PruningStrategy(
        name="aggressive",
        max_tokens=50_000,
        preserve_ratio=0.3,
        summary_ratio=0.4,
        importance_threshold=0.7,
        always_preserve=frozenset({T.ERROR, T.CODE_CHANGE}),
    ),
    "balanced": PruningStrategy(
        name="balanced",
        max_tokens=75_000,
        preserve_ratio=0.5,
        summary_ratio=0.3,
        importance_threshold=0.5,
        always_preserve=frozenset({T.ERROR, T.CODE_CHANGE, T.FILE_OPERATION}),
    ),
    "conservative": PruningStrategy(
        name="conservative",
        max_tokens=100_000,
        preserve_ratio=0.7,
        summary_ratio=0.2,
        importance_threshold=0.3,
        always_preserve=frozenset({T.ERROR, T.CODE_CHANGE, T.FILE_OPERATION, T.TOOL_USE}),
    ),
}

DEFAULT_SCORING_PROFILES: dict[str, ScoringProfile] = {
    "technical": ScoringProfile(
        name="technical",
        weights=ScoringWeights(
            recency=0.2, semantic=0.4, references=0.2, file_relevance=0.15, coherence=0.05
        ),
        keywords=(
            "error", "bug", "fix", "implement", "create", "update", "delete", "refactor",
            "test", "deploy", "config", "install", "import", "export", "function", "class",
            "method", "variable", "constant", "interface", "type", "debug", "compile",
            "build", "package", "dependency", "version", "branch", "commit", "merge",
        ),
        type_weights={
            T.ERROR: 1.0, T.CODE_CHANGE: 0.95, T.FILE_OPERATION: 0.9, T.TOOL_USE: 0.8,
            T.QUERY: 0.6, T.SUCCESS: 0.4, T.SUMMARY: 0.3,
        },
        coherence_threshold=0.7,
        bm25=BM25Parameters(k1=1.5, b=0.75),
        hybrid=HybridWeights(lexical=0.4, vector=0.4, contextual=0.2),
    ),
    "creative": ScoringProfile(
        name="creative",
        weights=ScoringWeights(
            recency=0.3, semantic=0.3, references=0.15, file_relevance=0.1, coherence=0.15
        ),
        keywords=(
            "idea", "concept", "design", "create", "brainstorm", "iterate", "sketch",
            "prototype", "explore", "experiment", "imagine", "visualize", "inspire",
            "creative", "innovative", "original", "artistic", "aesthetic", "style",
        ),
        type_weights={
            T.QUERY: 0.8, T.CODE_CHANGE: 0.6, T.SUMMARY: 0.7, T.FILE_OPERATION: 0.5,
            T.TOOL_USE: 0.6, T.SUCCESS: 0.5, T.ERROR: 0.9,
        },
        coherence_threshold=0.6,
        bm25=BM25Parameters(k1=1.2, b=0.5),
        hybrid=HybridWeights(lexical=0.3, vector=0.5, contextual=0.2),
    ),
    "problemSolving": ScoringProfile(
        name="problemSolving",
        weights=ScoringWeights(
            recency=0.25, semantic=0.35, references=0.25, file_relevance=0.1, coherence=0.05
        ),
        keywords=(
            "problem", "solution", "fix", "analyze", "troubleshoot", "debug", "resolve",
            "investigate", "diagnose", "identify", "root cause", "workaround", "patch",
            "issue", "challenge", "obstacle", "barrier", "blocker", "solve", "approach",
        ),
        type_weights={
            T.ERROR: 1.0, T.QUERY: 0.8, T.CODE_CHANGE: 0.7, T.TOOL_USE: 0.75,
            T.FILE_OPERATION: 0.6, T.SUCCESS: 0.5, T.SUMMARY: 0.4,
        },
        coherence_threshold=0.75,
        bm25=BM25Parameters(k1=1.4, b=0.8),
        hybrid=HybridWeights(lexical=0.35, vector=0.4, contextual=0.25),
    ),
}

DEFAULT_PROFILE_NAME = "technical"

CREATIVE_KEYWORDS = ("design", "creative", "idea", "concept", "brainstorm", "explore")
PROBLEM_KEYWORDS = ("problem", "solution", "issue", "fix", "debug", "troubleshoot", "analyze")


def get_strategy(name: str, max_tokens: int | None = None) -> PruningStrategy:
    """Look up a built-in strategy, optionally overriding its token budget."""
    try:
        strategy = DEFAULT_STRATEGIES[name]
    except KeyError:
        raise UnknownStrategyError(
            f"Unknown strategy '{name}'. Available: {', '.join(DEFAULT_STRATEGIES)}"
        ) from None
    if max_tokens is not None:
        strategy = strategy.with_max_tokens(max_tokens)
    return strategy


def get_profile(name: str) -> ScoringProfile:
    """Look up a built-in scoring profile."""
    try:
        return DEFAULT_SCORING_PROFILES[name]
    except KeyError:
        raise UnknownProfileError(
            f"Unknown scoring profile '{name}'. Available: {', '.join(DEFAULT_SCORING_PROFILES)}"
        ) from None


def recommend_profile(context: ConversationContext) -> str:
    """Pick a profile name from message types and content keywords.

    Kept apart from the scoring math so the heuristic can change freely.
    """
    types = {m.type for m in context.messages}
    technical_score = (
        (3 if T.ERROR in types else 0)
        + (2 if T.CODE_CHANGE in types else 0)
        + (2 if T.FILE_OPERATION in types else 0)
        + (1 if T.TOOL_USE in types else 0)
    )

    all_content = " ".join(m.content.lower() for m in context.messages)
    creative_score = sum(1 for kw in CREATIVE_KEYWORDS if kw in all_content)
    problem_score = sum(1 for kw in PROBLEM_KEYWORDS if kw in all_content)

    if technical_score >= 4:
        return "technical"
    if problem_score >= 3:
        return "problemSolving"
    if creative_score >= 2:
        return "creative"
    return DEFAULT_PROFILE_NAME
