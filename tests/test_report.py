"""Tests for the plain-text reports."""

from datetime import datetime

from contextprune.models import (
    AnalysisResult,
    EnhancedAnalysis,
    FlowAnalysis,
    PruningResult,
    Summary,
    SummaryLevel,
    TokenBreakdown,
    UndoRecord,
)
from contextprune.report import (
    analysis_report,
    pruning_report,
    summarization_report,
    to_ten_scale,
    undo_report,
)

RESULT = AnalysisResult(
    total_messages=12,
    total_tokens=5_400,
    average_importance=0.456,
    redundancy_score=0.1,
    recommended_strategy="conservative",
    estimated_reduction=0.0,
)


def _summary(id, saved, level=SummaryLevel.SESSION):
    return Summary(
        id=id,
        level=level,
        content="Session: fixed the parser.",
        original_message_ids=("msg_1", "msg_2"),
        tokens_saved=saved,
    )


def test_to_ten_scale():
    assert to_ten_scale(0.456) == "4.6"
    assert to_ten_scale(1.0) == "10.0"
    assert to_ten_scale(0.0) == "0.0"


def test_basic_analysis_report():
    text = analysis_report(RESULT)

    assert text.startswith("Conversation Analysis:\n- Total messages: 12")
    assert "- Total tokens: 5400" in text
    assert "- Average importance: 4.6/10.0" in text
    assert "- Redundancy score: 1.0/10.0" in text
    assert "- Recommended strategy: conservative" in text
    assert "- Estimated reduction: 0.0%" in text
    assert "System context tokens" not in text
    assert "Recommendations:" not in text


def test_analysis_report_with_breakdown_and_flow():
    breakdown = TokenBreakdown(
        message_tokens=4_000,
        system_tokens=1_000,
        tool_result_tokens=400,
        suggestions=("Trim CLAUDE.md", "Drop stale tool output"),
    )
    enhanced = EnhancedAnalysis(
        analysis=RESULT,
        flow=FlowAnalysis(
            average_coherence=0.62,
            topic_shifts=2,
            isolated_messages=("msg_7",),
            strong_cluster_count=1,
        ),
        recommended_profile="problemSolving",
    )

    lines = analysis_report(RESULT, breakdown, enhanced).splitlines()

    assert "- Message tokens: 4000" in lines
    assert "- System context tokens: 1000" in lines
    assert "- Tool result tokens: 400" in lines
    assert "- Average coherence: 6.2/10.0" in lines
    assert "- Topic shifts: 2" in lines
    assert "- Isolated messages: 1" in lines
    assert "- Recommended profile: problemSolving" in lines
    assert lines[-3:] == ["Recommendations:", "- Trim CLAUDE.md", "- Drop stale tool output"]


def test_pruning_report():
    result = PruningResult(
        original_tokens=1_000,
        final_tokens=400,
        reduction_percent=60.0,
        preserved=(),
        summarized=(),
        discarded=(),
        summaries=(_summary("summary_1", 300),),
        undo_record=UndoRecord(
            pruning_id="prune_1_abc",
            removed_messages=(),
            original_order=(),
            created_at=datetime(2026, 3, 2),
        ),
    )

    text = pruning_report(result)

    assert text.splitlines()[0] == "Context pruned successfully:"
    assert "- Pruning id: prune_1_abc" in text
    assert "- Reduction: 60.0%" in text
    assert "- Messages removed: 0" in text
    assert "- Summaries created: 1" in text


def test_summarization_report_sums_savings():
    summaries = [_summary("summary_1", 120), _summary("summary_2", 30)]

    assert summarization_report(summaries, SummaryLevel.PROJECT) == (
        "Created 2 project summaries, saving approximately 150 tokens"
    )
    assert summarization_report([], SummaryLevel.IMMEDIATE) == (
        "Created 0 immediate summaries, saving approximately 0 tokens"
    )


def test_undo_report():
    assert undo_report("prune_1", True) == "Successfully rolled back pruning operation: prune_1"
    assert undo_report("prune_9", False) == "Rollback failed: pruning operation prune_9 not found"
