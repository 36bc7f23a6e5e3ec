"""Plain-text reports for analysis, pruning, summarization and undo."""

from typing import Sequence

from contextprune.models import (
    AnalysisResult,
    EnhancedAnalysis,
    PruningResult,
    Summary,
    SummaryLevel,
    TokenBreakdown,
)


def to_ten_scale(value: float) -> str:
    """0-1 score as a one-decimal 0-10 figure."""
    return f"{value * 10:.1f}"


def analysis_report(
    result: AnalysisResult,
    breakdown: TokenBreakdown | None = None,
    enhanced: EnhancedAnalysis | None = None,
) -> str:
    lines = ["Conversation Analysis:", f"- Total messages: {result.total_messages}"]
    if breakdown:
        lines += [
            f"- Message tokens: {breakdown.message_tokens}",
            f"- System context tokens: {breakdown.system_tokens}",
            f"- Tool result tokens: {breakdown.tool_result_tokens}",
        ]
    lines += [
        f"- Total tokens: {result.total_tokens}",
        f"- Average importance: {to_ten_scale(result.average_importance)}/10.0",
        f"- Redundancy score: {to_ten_scale(result.redundancy_score)}/10.0",
        f"- Recommended strategy: {result.recommended_strategy}",
        f"- Estimated reduction: {result.estimated_reduction:.1f}%",
    ]

    if enhanced:
        flow = enhanced.flow
        lines += [
            "",
            "Conversation Flow:",
            f"- Average coherence: {to_ten_scale(flow.average_coherence)}/10.0",
            f"- Topic shifts: {flow.topic_shifts}",
            f"- Isolated messages: {len(flow.isolated_messages)}",
            f"- Strong topic clusters: {flow.strong_cluster_count}",
            f"- Recommended profile: {enhanced.recommended_profile}",
        ]

    if breakdown and breakdown.suggestions:
        lines += ["", "Recommendations:"]
        lines += [f"- {s}" for s in breakdown.suggestions]

    return "\n".join(lines)


def pruning_report(result: PruningResult) -> str:
    return "\n".join([
        "Context pruned successfully:",
        f"- Pruning id: {result.pruning_id}",
        f"- Original tokens: {result.original_tokens}",
        f"- Final tokens: {result.final_tokens}",
        f"- Reduction: {result.reduction_percent:.1f}%",
        f"- Messages removed: {result.messages_removed}",
        f"- Messages summarized: {result.messages_summarized}",
        f"- Summaries created: {len(result.summaries)}",
    ])


def summarization_report(summaries: Sequence[Summary], level: SummaryLevel) -> str:
    saved = sum(s.tokens_saved for s in summaries)
    return f"Created {len(summaries)} {level.value} summaries, saving approximately {saved} tokens"


def undo_report(pruning_id: str, success: bool) -> str:
    if success:
        return f"Successfully rolled back pruning operation: {pruning_id}"
    return f"Rollback failed: pruning operation {pruning_id} not found"
