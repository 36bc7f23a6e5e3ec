"""Pruning engine - budget-constrained selection with a bounded undo history."""

import math
import sys
import threading
import time
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Sequence

from loguru import logger

from contextprune.models import (
    ConversationContext,
    Message,
    MessageType,
    PruningResult,
    PruningStrategy,
    ScoringProfile,
    SummaryLevel,
    UndoRecord,
)
from contextprune.scoring.importance import ImportanceScorer
from contextprune.summarizer import HierarchicalSummarizer

DEFAULT_UNDO_CAPACITY = 5
MIN_SUMMARIZABLE_TOKENS = 50
MIN_SUMMARIZABLE_CHARS = 200


class UndoBuffer:
    """
    Insertion-ordered, fixed-capacity store of undo records.

    The oldest record is evicted first. Consuming a record removes it.
    """

    def __init__(self, capacity: int = DEFAULT_UNDO_CAPACITY):
        if capacity < 1:
            raise ValueError("Undo capacity must be at least 1")
        self.capacity = capacity
        self._records: OrderedDict[str, UndoRecord] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, pruning_id: str) -> bool:
        return pruning_id in self._records

    def push(self, record: UndoRecord) -> None:
        with self._lock:
            self._records[record.pruning_id] = record
            while len(self._records) > self.capacity:
                evicted, _ = self._records.popitem(last=False)
                logger.debug(f"Undo history full, evicted {evicted}")

    def get(self, pruning_id: str) -> UndoRecord | None:
        with self._lock:
            return self._records.get(pruning_id)

    def consume(self, pruning_id: str) -> UndoRecord | None:
        with self._lock:
            return self._records.pop(pruning_id, None)

    def records(self) -> list[UndoRecord]:
        """All records, newest first."""
        with self._lock:
            return list(reversed(self._records.values()))

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


def is_summarizable(message: Message) -> bool:
    """Large enough, not an error, and carrying code or a long body."""
    if message.token_count < MIN_SUMMARIZABLE_TOKENS:
        return False
    if message.type == MessageType.ERROR:
        return False
    return bool(message.metadata.code_blocks) or len(message.content) > MIN_SUMMARIZABLE_CHARS


def restore_order(messages: list[Message], original: Sequence[Message]) -> list[Message]:
    """Stable sort back into the original chronology; unknown ids go last."""
    positions = {m.id: i for i, m in enumerate(original)}
    return sorted(messages, key=lambda m: positions.get(m.id, sys.maxsize))


def _by_importance(messages: Sequence[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: m.importance_total, reverse=True)


def _tokens(messages: Sequence[Message]) -> int:
    return sum(m.token_count for m in messages)


class PruningEngine:
    """
    Partitions a scored conversation into preserve / summarize / discard.

    Every pass stores an undo record holding the discarded messages and the
    original ordering. `undo()` only invalidates that record; splicing the
    messages back is up to the caller.
    """

    def __init__(
        self,
        scorer: ImportanceScorer | None = None,
        summarizer: HierarchicalSummarizer | None = None,
        max_undo_history: int = DEFAULT_UNDO_CAPACITY,
        summary_level: SummaryLevel = SummaryLevel.SESSION,
        enable_undo: bool = True,
    ):
        self.scorer = scorer or ImportanceScorer()
        self.summarizer = summarizer or HierarchicalSummarizer()
        self.summary_level = summary_level
        self.enable_undo = enable_undo
        self.undo_history = UndoBuffer(max_undo_history)

    @property
    def scoring_profile(self) -> ScoringProfile:
        return self.scorer.profile

    def set_scoring_profile(self, profile: ScoringProfile) -> None:
        self.scorer.set_profile(profile)

    def prune(
        self,
        context: ConversationContext,
        strategy: PruningStrategy,
        now: datetime | None = None,
    ) -> PruningResult:
        """
        Run one pruning pass.

        Args:
            context: Conversation snapshot.
            strategy: Budget, ratios, threshold and always-preserve types.
            now: Current time for recency scoring.

        Returns:
            PruningResult with the three partitions in chronological order,
            the summaries produced and the stored undo record.
        """
        pruning_id = f"prune_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        scored = self.scorer.score_messages(context, now)
        original_tokens = _tokens(scored)

        if original_tokens <= strategy.max_tokens:
            preserved, summarized, discarded = list(scored), [], []
        else:
            preserved, summarized, discarded = self.categorize(scored, strategy)

        summaries = (
            self.summarizer.create_summaries(summarized, self.summary_level) if summarized else []
        )

        record = UndoRecord(
            pruning_id=pruning_id,
            removed_messages=tuple(discarded),
            original_order=tuple(m.id for m in context.messages),
            created_at=datetime.now(),
        )
        if self.enable_undo:
            self.undo_history.push(record)

        final_tokens = _tokens(preserved) + sum(s.estimated_tokens for s in summaries)
        reduction = (
            (original_tokens - final_tokens) / original_tokens * 100 if original_tokens else 0.0
        )
        logger.info(
            f"Pruned {pruning_id} ({strategy.name}): {original_tokens} -> {final_tokens} tokens, "
            f"kept {len(preserved)}, summarized {len(summarized)}, discarded {len(discarded)}"
        )

        return PruningResult(
            original_tokens=original_tokens,
            final_tokens=final_tokens,
            reduction_percent=reduction,
            preserved=tuple(preserved),
            summarized=tuple(summarized),
            discarded=tuple(discarded),
            summaries=tuple(summaries),
            undo_record=record,
        )

    def categorize(
        self, messages: Sequence[Message], strategy: PruningStrategy
    ) -> tuple[list[Message], list[Message], list[Message]]:
        """
        Split scored messages into (preserved, summarized, discarded).

        Force-preserved types are kept even past the budget and are never
        demoted by the preserve-ratio correction.
        """
        preserved: list[Message] = []
        forced: set[str] = set()
        pool: list[Message] = []
        discarded: list[Message] = []
        running = 0

        for message in _by_importance(messages):
            if message.type in strategy.always_preserve:
                preserved.append(message)
                forced.add(message.id)
                running += message.token_count
            elif (
                message.importance_total >= strategy.importance_threshold
                and running + message.token_count <= strategy.max_tokens
            ):
                preserved.append(message)
                running += message.token_count
            elif is_summarizable(message):
                pool.append(message)
            else:
                discarded.append(message)

        forced_tokens = _tokens([m for m in preserved if m.id in forced])
        if forced_tokens > strategy.max_tokens:
            logger.warning(
                f"Always-preserve messages need {forced_tokens} tokens, "
                f"over the {strategy.max_tokens} budget of '{strategy.name}'"
            )

        if running > strategy.max_tokens * strategy.preserve_ratio:
            split = math.floor(len(preserved) * strategy.preserve_ratio)
            kept = preserved[:split]
            for message in preserved[split:]:
                if message.id in forced:
                    kept.append(message)
                elif is_summarizable(message):
                    pool.append(message)
                else:
                    discarded.append(message)
            preserved = kept

        summary_budget = strategy.max_tokens * strategy.summary_ratio
        summary_tokens = 0
        summarized: list[Message] = []
        for message in _by_importance(pool):
            if summary_tokens + message.token_count <= summary_budget:
                summarized.append(message)
                summary_tokens += message.token_count
            else:
                discarded.append(message)

        return (
            restore_order(preserved, messages),
            restore_order(summarized, messages),
            restore_order(discarded, messages),
        )

    def undo(self, pruning_id: str) -> bool:
        """Invalidate the undo record for `pruning_id`. False if unknown or already used."""
        record = self.undo_history.consume(pruning_id)
        if record is None:
            logger.debug(f"No undo record for {pruning_id}")
            return False
        logger.info(f"Undo {pruning_id}: {len(record.removed_messages)} messages recoverable")
        return True

    def get_undo_record(self, pruning_id: str) -> UndoRecord | None:
        """Peek at a record without consuming it."""
        return self.undo_history.get(pruning_id)

    def available_undos(self) -> list[UndoRecord]:
        return self.undo_history.records()

    def clear_undo_history(self) -> None:
        self.undo_history.clear()
