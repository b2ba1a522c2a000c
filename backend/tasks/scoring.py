"""
Penalty Scoring Engine for the Task Tracker.

This module converts a completed task's lifecycle timestamps into a bounded
penalty score. It is deliberately free of Django imports: it reads a
read-only snapshot and returns a fresh result, so it can be called from
views, signal receivers, management commands or tests alike.

Scoring Design:
---------------
Three independent penalty categories, each capped at 25 points:

- Extension penalty: consuming a granted deadline extension. Proportional to
  the size of the extension and to how much of the extension window was
  actually used.
- Delay penalty: finishing after the current (possibly extended) deadline.
  Linear per minute late.
- Rework penalty: exponential in the number of rework cycles (3, 9, 27...),
  clamped to the category cap.

Scoring Formula:
---------------
total_penalty = extension_penalty + delay_penalty + rework_penalty
final_score   = max(-75, round(-total_penalty))

The breakdown reports each category rounded on its own, so the sum of the
breakdown can differ from the final score by one point.

The calculator never raises. Missing or unparseable fields degrade the
result instead:
- no completion timestamp   -> score 0, nothing to penalize yet
- no due date pair          -> rework penalty only
- negative deltas           -> clamped to a zero contribution
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Mapping, Optional, Tuple
import logging
import math


logger = logging.getLogger(__name__)


MILLIS_PER_MINUTE = 60 * 1000


# ==================== Snapshot ====================

def to_epoch_millis(value: Any) -> Optional[float]:
    """
    Convert a timestamp-like value to epoch milliseconds.

    Accepts datetimes (naive values are read as UTC), dates (midnight UTC),
    epoch milliseconds and ISO-8601 strings. Anything else, including
    unparseable strings, is treated as absent and returns None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp() * 1000

    if isinstance(value, (int, float)):
        try:
            millis = float(value)
        except OverflowError:
            return None
        return millis if math.isfinite(millis) else None

    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return to_epoch_millis(parsed)

    return None


def to_rework_count(value: Any) -> int:
    """Coerce a rework counter to a non-negative int (absent -> 0)."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, count)


@dataclass(frozen=True)
class TaskSnapshot:
    """
    Read-only view of the task fields the scoring engine depends on.

    Attributes:
        original_due_date: First committed deadline, fixed at creation
        due_date: Current deadline, moved forward by approved extensions
        completed_at: When the task entered Done (None while open)
        rework_count: Number of times the task was sent back for rework
    """
    original_due_date: Any = None
    due_date: Any = None
    completed_at: Any = None
    rework_count: Any = 0

    @classmethod
    def from_mapping(cls, data: Mapping) -> 'TaskSnapshot':
        """Build a snapshot from a dict using camelCase or snake_case keys."""
        def pick(*keys):
            for key in keys:
                if key in data:
                    return data[key]
            return None

        return cls(
            original_due_date=pick('original_due_date', 'originalDueDate'),
            due_date=pick('due_date', 'dueDate'),
            completed_at=pick('completed_at', 'completedAt'),
            rework_count=pick('rework_count', 'reworkCount'),
        )

    @classmethod
    def coerce(cls, task: Any) -> 'TaskSnapshot':
        """Accept a snapshot, a mapping, or any object with the four attributes."""
        if isinstance(task, TaskSnapshot):
            return task
        if task is None:
            return cls()
        if isinstance(task, Mapping):
            return cls.from_mapping(task)
        to_snapshot = getattr(task, 'to_snapshot', None)
        if callable(to_snapshot):
            return to_snapshot()
        return cls(
            original_due_date=getattr(task, 'original_due_date', None),
            due_date=getattr(task, 'due_date', None),
            completed_at=getattr(task, 'completed_at', None),
            rework_count=getattr(task, 'rework_count', 0),
        )


# ==================== Results ====================

@dataclass(frozen=True)
class PenaltyBreakdown:
    """Per-category penalties, each rounded independently to an int."""
    extension_penalty: int = 0
    delay_penalty: int = 0
    rework_penalty: int = 0

    @property
    def total(self) -> int:
        return self.extension_penalty + self.delay_penalty + self.rework_penalty

    def to_dict(self) -> Dict:
        return {
            'extensionPenalty': self.extension_penalty,
            'delayPenalty': self.delay_penalty,
            'reworkPenalty': self.rework_penalty,
        }


@dataclass(frozen=True)
class TaskScore:
    """A task's final score together with how it was reached."""
    final_score: int = 0
    breakdown: PenaltyBreakdown = field(default_factory=PenaltyBreakdown)
    extension_minutes: float = 0.0
    extension_usage_ratio: float = 0.0
    delay_minutes: float = 0.0
    scoreable: bool = False

    def to_dict(self) -> Dict:
        return {
            'finalScore': self.final_score,
            'breakdown': self.breakdown.to_dict(),
        }


# ==================== Calculator ====================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int(math.floor(value + 0.5))


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


class TaskPenaltyScorer:
    """
    Calculates penalty scores for completed tasks.

    The scorer holds no state beyond its constants; one instance can be
    shared across threads.
    """

    MAX_PENALTY_PER_CATEGORY = 25
    # 10 penalty points per day, normalized to minutes
    PENALTY_PER_MINUTE = 10 / (24 * 60)
    EXTENSION_MULTIPLIER = 10
    REWORK_BASE = 3
    SCORE_FLOOR = -3 * MAX_PENALTY_PER_CATEGORY

    def calculate_rework_penalty(self, rework_count: Any) -> int:
        """
        Exponential rework penalty: 0, 3, 9, then capped at 25.

        The exponent is clamped before exponentiation so very large counters
        stay cheap; 3^3 already exceeds the cap.
        """
        count = to_rework_count(rework_count)
        if count == 0:
            return 0
        penalty = self.REWORK_BASE ** min(count, 3)
        return min(self.MAX_PENALTY_PER_CATEGORY, penalty)

    def calculate_extension_penalty(
        self,
        planned_target: float,
        expected_target: float,
        end_time: float
    ) -> Tuple[float, float, float]:
        """
        Penalty for consuming a granted extension.

        Returns:
            Tuple of (penalty, extension_minutes, extension_usage_ratio)
        """
        extension_minutes = max(0.0, expected_target - planned_target) / MILLIS_PER_MINUTE

        if expected_target == planned_target:
            usage_ratio = 0.0
        else:
            usage_ratio = clamp01(
                (end_time - planned_target) / (expected_target - planned_target)
            )

        penalty = min(
            self.MAX_PENALTY_PER_CATEGORY,
            extension_minutes * self.PENALTY_PER_MINUTE * self.EXTENSION_MULTIPLIER * usage_ratio
        )
        return penalty, extension_minutes, usage_ratio

    def calculate_delay_penalty(
        self,
        expected_target: float,
        end_time: float
    ) -> Tuple[float, float]:
        """
        Penalty for finishing after the deadline currently in force.

        Returns:
            Tuple of (penalty, delay_minutes)
        """
        delay_minutes = max(0.0, end_time - expected_target) / MILLIS_PER_MINUTE
        penalty = min(self.MAX_PENALTY_PER_CATEGORY, delay_minutes * self.PENALTY_PER_MINUTE)
        return penalty, delay_minutes

    def score(self, task: Any) -> TaskScore:
        """
        Calculate the score for a task snapshot.

        Args:
            task: A TaskSnapshot, a mapping, or an object exposing
                  original_due_date, due_date, completed_at and rework_count

        Returns:
            TaskScore with final_score in [-75, 0] and the rounded breakdown
        """
        snapshot = TaskSnapshot.coerce(task)

        end_time = to_epoch_millis(snapshot.completed_at)
        if end_time is None:
            return TaskScore()

        rework_penalty = self.calculate_rework_penalty(snapshot.rework_count)

        planned_target = to_epoch_millis(snapshot.original_due_date)
        expected_target = to_epoch_millis(snapshot.due_date)

        if planned_target is None or expected_target is None:
            rounded_rework = round_half_up(rework_penalty)
            return TaskScore(
                final_score=max(self.SCORE_FLOOR, -rounded_rework),
                breakdown=PenaltyBreakdown(rework_penalty=rounded_rework),
                scoreable=True,
            )

        extension_penalty, extension_minutes, usage_ratio = self.calculate_extension_penalty(
            planned_target, expected_target, end_time
        )
        delay_penalty, delay_minutes = self.calculate_delay_penalty(expected_target, end_time)

        total_penalty = extension_penalty + delay_penalty + rework_penalty
        final_score = max(self.SCORE_FLOOR, round_half_up(0 - total_penalty))

        logger.debug(
            "Scored task: extension=%.3f delay=%.3f rework=%d final=%d",
            extension_penalty, delay_penalty, rework_penalty, final_score
        )

        return TaskScore(
            final_score=final_score,
            breakdown=PenaltyBreakdown(
                extension_penalty=round_half_up(extension_penalty),
                delay_penalty=round_half_up(delay_penalty),
                rework_penalty=round_half_up(rework_penalty),
            ),
            extension_minutes=extension_minutes,
            extension_usage_ratio=usage_ratio,
            delay_minutes=delay_minutes,
            scoreable=True,
        )


default_scorer = TaskPenaltyScorer()


def calculate_task_score(task: Any) -> TaskScore:
    """Score a task with the default scorer."""
    return default_scorer.score(task)


def calculate_rework_penalty(rework_count: Any) -> int:
    """Rework penalty for a counter value with the default scorer."""
    return default_scorer.calculate_rework_penalty(rework_count)
