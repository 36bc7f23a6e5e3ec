"""Context analysis: token totals, importance, redundancy and a strategy recommendation."""

from datetime import datetime
from typing import Sequence

from loguru import logger

from contextprune.models import (
    AnalysisResult,
    ConversationContext,
    EnhancedAnalysis,
    Message,
    ScoringProfile,
    TokenBreakdown,
)
from contextprune.profiles import DEFAULT_STRATEGIES, recommend_profile
from contextprune.scoring.importance import ImportanceScorer
from contextprune.scoring.redundancy import redundancy_score

AGGRESSIVE_TOKEN_THRESHOLD = 150_000
BALANCED_TOKEN_THRESHOLD = 100_000
HIGH_REDUNDANCY = 0.4
LOW_IMPORTANCE = 0.4


def recommend_strategy(total_tokens: int, average_importance: float, redundancy: float) -> str:
    if total_tokens > AGGRESSIVE_TOKEN_THRESHOLD or redundancy > HIGH_REDUNDANCY:
        return "aggressive"
    if total_tokens > BALANCED_TOKEN_THRESHOLD or average_importance < LOW_IMPORTANCE:
        return "balanced"
    return "conservative"


def estimate_reduction(total_tokens: int, strategy_name: str) -> float:
    """Percentage of tokens a strategy would need to cut; 0 when already within budget."""
    max_tokens = DEFAULT_STRATEGIES[strategy_name].max_tokens
    if total_tokens <= max_tokens:
        return 0.0
    return (total_tokens - max_tokens) / total_tokens * 100


def average_importance(messages: Sequence[Message]) -> float:
    if not messages:
        return 0.0
    return sum(m.importance_total for m in messages) / len(messages)


class ContextAnalyzer:
    """
    Read-only operations over a conversation snapshot.

    Shares its `ImportanceScorer` with a `PruningEngine` when both are built
    from the same config, so profile switches apply to both.
    """

    def __init__(self, scorer: ImportanceScorer | None = None):
        self.scorer = scorer or ImportanceScorer()

    @property
    def scoring_profile(self) -> ScoringProfile:
        return self.scorer.profile

    def set_scoring_profile(self, profile: ScoringProfile) -> None:
        logger.info(f"Scoring profile set to '{profile.name}'")
        self.scorer.set_profile(profile)

    def score_messages(
        self, context: ConversationContext, now: datetime | None = None
    ) -> list[Message]:
        """Every message annotated with its importance, in context order."""
        return self.scorer.score_messages(context, now)

    def token_breakdown(self, context: ConversationContext) -> TokenBreakdown:
        external = context.external
        return TokenBreakdown(
            message_tokens=context.total_tokens,
            system_tokens=external.system_tokens if external else 0,
            tool_result_tokens=external.tool_result_tokens if external else 0,
            suggestions=external.suggestions if external else (),
        )

    def analyze(self, context: ConversationContext, now: datetime | None = None) -> AnalysisResult:
        """
        Summarize a context's size and quality.

        Args:
            context: Conversation snapshot, possibly empty.
            now: Current time for recency scoring.

        Returns:
            AnalysisResult; the token total includes external system and
            tool-result tokens.
        """
        total_tokens = self.token_breakdown(context).total_tokens
        scored = self.scorer.score_messages(context, now) if context.messages else []
        avg = average_importance(scored)
        redundancy = redundancy_score(context.messages)
        strategy = recommend_strategy(total_tokens, avg, redundancy)

        logger.debug(
            f"Analyzed {len(scored)} messages: {total_tokens} tokens, "
            f"importance {avg:.2f}, redundancy {redundancy:.2f}, recommend {strategy}"
        )
        return AnalysisResult(
            total_messages=len(context.messages),
            total_tokens=total_tokens,
            average_importance=avg,
            redundancy_score=redundancy,
            recommended_strategy=strategy,
            estimated_reduction=estimate_reduction(total_tokens, strategy),
        )

    def analyze_enhanced(
        self, context: ConversationContext, now: datetime | None = None
    ) -> EnhancedAnalysis:
        """Basic analysis plus conversation flow and a recommended scoring profile."""
        return EnhancedAnalysis(
            analysis=self.analyze(context, now),
            flow=self.scorer.coherence.analyze_flow(context.messages),
            recommended_profile=recommend_profile(context),
        )
