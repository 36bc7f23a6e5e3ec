"""
contextprune.models

Data model shared by the scorers, the selection engine and the summarizer.

Conventions:
- Messages, profiles and strategies are immutable (frozen=True).
- A message's importance score is derived data: it is excluded from equality
  and replaced wholesale by every scoring pass.
- Timestamps are timezone-naive `datetime` values in local time, matching
  `datetime.now()` used as the default "current time".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, Enum):
    """Closed vocabulary of message type tags."""
    QUERY = "query"
    CODE_CHANGE = "code_change"
    FILE_OPERATION = "file_operation"
    ERROR = "error"
    SUCCESS = "success"
    TOOL_USE = "tool_use"
    SUMMARY = "summary"


class SummaryLevel(str, Enum):
    """Granularity of a hierarchical summary."""
    IMMEDIATE = "immediate"
    SESSION = "session"
    PROJECT = "project"


@dataclass(frozen=True)
class CodeBlock:
    """A code fragment embedded in a message."""
    language: str
    content: str = ""
    file_path: str | None = None
    start_line: int | None = None
    end_line: int | None = None


@dataclass(frozen=True)
class ScoreBreakdown:
    """Diagnostic sub-scores. Never read back by the scorer."""
    lexical_score: float = 0.0
    vector_score: float = 0.0
    contextual_score: float = 0.0
    thread_continuity: float = 0.0
    reference_chain_strength: float = 0.0
    information_density: float = 0.0


@dataclass(frozen=True)
class ImportanceScore:
    """Fused retention priority of one message."""
    total: float
    recency: float
    semantic: float
    references: float
    file_relevance: float
    coherence: float
    computed_at: datetime = field(default_factory=datetime.now)
    breakdown: ScoreBreakdown | None = None


@dataclass(frozen=True)
class MessageMetadata:
    """Per-message facts supplied by the upstream normalizer."""
    token_count: int = 0
    file_references: tuple[str, ...] = ()
    code_blocks: tuple[CodeBlock, ...] = ()
    has_error: bool = False
    tools_used: tuple[str, ...] = ()


@dataclass(frozen=True)
class Message:
    """One conversational unit. Identity is everything except `importance`."""
    id: str
    timestamp: datetime
    role: Role
    type: MessageType
    content: str
    metadata: MessageMetadata = field(default_factory=MessageMetadata)
    importance: ImportanceScore | None = field(default=None, compare=False)

    @property
    def token_count(self) -> int:
        return self.metadata.token_count

    @property
    def importance_total(self) -> float:
        """Total importance, 0.0 for an unscored message."""
        return self.importance.total if self.importance else 0.0

    def with_importance(self, score: ImportanceScore) -> Message:
        """Return a copy carrying `score`."""
        return replace(self, importance=score)


@dataclass(frozen=True)
class ExternalContext:
    """Token totals from non-conversational context, computed upstream.

    Only summed into the analysis total and listed in reports.
    """
    system_tokens: int = 0
    tool_result_tokens: int = 0
    suggestions: tuple[str, ...] = ()

    @property
    def total_tokens(self) -> int:
        return self.system_tokens + self.tool_result_tokens


@dataclass(frozen=True)
class ConversationContext:
    """Ordered message snapshot. Message order is the chronology."""
    messages: tuple[Message, ...] = ()
    active_files: frozenset[str] = frozenset()
    session_start: datetime = field(default_factory=datetime.now)
    external: ExternalContext | None = None

    @property
    def total_tokens(self) -> int:
        return sum(m.token_count for m in self.messages)

    @property
    def message_ids(self) -> list[str]:
        return [m.id for m in self.messages]

    @classmethod
    def from_messages(
        cls,
        messages: list[Message],
        active_files: set[str] | frozenset[str] | None = None,
        external: ExternalContext | None = None,
    ) -> ConversationContext:
        """Build a context; session start defaults to the first timestamp."""
        start = messages[0].timestamp if messages else datetime.now()
        return cls(
            messages=tuple(messages),
            active_files=frozenset(active_files or ()),
            session_start=start,
            external=external,
        )


@dataclass(frozen=True)
class ScoringWeights:
    """Component weights for the total. Need not sum to 1."""
    recency: float
    semantic: float
    references: float
    file_relevance: float
    coherence: float


@dataclass(frozen=True)
class BM25Parameters:
    k1: float = 1.2  # term-frequency saturation
    b: float = 0.75  # length normalization


@dataclass(frozen=True)
class HybridWeights:
    """How the semantic component is assembled."""
    lexical: float
    vector: float
    contextual: float


@dataclass(frozen=True)
class ScoringProfile:
    """Named scoring configuration. Exactly one is active per scoring pass."""
    name: str
    weights: ScoringWeights
    keywords: tuple[str, ...]
    type_weights: Mapping[MessageType, float] = field(hash=False)
    coherence_threshold: float
    bm25: BM25Parameters
    hybrid: HybridWeights

    def __post_init__(self):
        # Read-only copy of the caller's mapping
        object.__setattr__(self, "type_weights", MappingProxyType(dict(self.type_weights)))

    def type_weight(self, message_type: MessageType) -> float:
        return self.type_weights.get(message_type, 0.5)


@dataclass(frozen=True)
class PruningStrategy:
    """Budget and thresholds driving one pruning pass."""
    name: str
    max_tokens: int
    preserve_ratio: float
    summary_ratio: float
    importance_threshold: float
    always_preserve: frozenset[MessageType] = frozenset()

    def with_max_tokens(self, max_tokens: int) -> PruningStrategy:
        return replace(self, max_tokens=max_tokens)


def estimate_summary_tokens(text: str) -> int:
    """Flat 4-characters-per-token estimate used for generated summary text."""
    return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class Summary:
    """Compact replacement for a segment of messages."""
    id: str
    level: SummaryLevel
    content: str
    original_message_ids: tuple[str, ...]
    tokens_saved: int
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def estimated_tokens(self) -> int:
        return estimate_summary_tokens(self.content)

    def to_message(self) -> Message:
        """Stand-in message that can re-enter the conversation."""
        return Message(
            id=self.id,
            timestamp=self.created_at,
            role=Role.ASSISTANT,
            type=MessageType.SUMMARY,
            content=f"[SUMMARY] {self.content}",
            metadata=MessageMetadata(token_count=self.estimated_tokens),
        )


@dataclass(frozen=True)
class UndoRecord:
    """What one pruning pass discarded, enough for a caller to restore it.

    Summarized messages are not included; they are reachable only through
    the summaries' `original_message_ids`.
    """
    pruning_id: str
    removed_messages: tuple[Message, ...]
    original_order: tuple[str, ...]
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class PruningResult:
    """Outcome of one pruning pass."""
    original_tokens: int
    final_tokens: int
    reduction_percent: float
    preserved: tuple[Message, ...]
    summarized: tuple[Message, ...]
    discarded: tuple[Message, ...]
    summaries: tuple[Summary, ...]
    undo_record: UndoRecord

    @property
    def pruning_id(self) -> str:
        return self.undo_record.pruning_id

    @property
    def messages_removed(self) -> int:
        return len(self.discarded)

    @property
    def messages_summarized(self) -> int:
        return len(self.summarized)

    def retained_messages(self) -> list[Message]:
        """Preserved messages followed by the summaries as stand-ins."""
        return list(self.preserved) + [s.to_message() for s in self.summaries]


@dataclass(frozen=True)
class AnalysisResult:
    """Answer of the analysis operation."""
    total_messages: int
    total_tokens: int
    average_importance: float
    redundancy_score: float
    recommended_strategy: str
    estimated_reduction: float


@dataclass(frozen=True)
class FlowAnalysis:
    """Conversation-level coherence diagnostics."""
    average_coherence: float
    topic_shifts: int
    isolated_messages: tuple[str, ...]
    strong_cluster_count: int


@dataclass(frozen=True)
class EnhancedAnalysis:
    """Basic analysis plus coherence flow and a profile recommendation."""
    analysis: AnalysisResult
    flow: FlowAnalysis
    recommended_profile: str


@dataclass(frozen=True)
class TokenBreakdown:
    """Where the analysis total comes from."""
    message_tokens: int
    system_tokens: int
    tool_result_tokens: int
    suggestions: tuple[str, ...] = ()

    @property
    def total_tokens(self) -> int:
        return self.message_tokens + self.system_tokens + self.tool_result_tokens
