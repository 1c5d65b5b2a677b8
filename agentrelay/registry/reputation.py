"""
Reputation scoring for the Agent Registry.

Turns task outcomes into a 0-100 rating:

    success_rate = successful / total
    task_weight  = min(total / 100, 1)
    rating       = round_half_up(success_rate * 100 * (0.5 + 0.5 * task_weight))

Confidence ramps linearly over an agent's first 100 tasks, so a short
perfect history caps out near 50 while a long one can reach 100.

Cold start: agents are seeded at the neutral prior of 50. The first failure
drops a fresh agent straight to 0; the first success moves it to 51
(50.5 rounded half up). After n straight successes (n <= 100) the rating is
round_half_up(50 + n / 2).

All arithmetic is exact (``fractions.Fraction``) and rounds half up, so the
same counters always reproduce the same rating.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from fractions import Fraction
from typing import Optional

from .models import NEUTRAL_RATING, PaymentToken, Reputation


# Tasks needed before the rating carries full confidence
FULL_CONFIDENCE_TASKS = 100


@dataclass(frozen=True)
class TaskOutcome:
    """Result of one task, as fed to the reputation engine."""
    success: bool
    paid_amount: int
    token: PaymentToken
    response_time_ms: int


def round_half_up(value: Fraction) -> int:
    """Round to the nearest integer, ties away from zero for non-negative values."""
    return math.floor(value + Fraction(1, 2))


def compute_rating(successful_tasks: int, total_tasks: int) -> int:
    """
    Rating for the given counters.

    Returns the neutral prior when the agent has no tasks yet.
    """
    if total_tasks <= 0:
        return NEUTRAL_RATING

    success_rate = Fraction(successful_tasks, total_tasks)
    task_weight = min(Fraction(total_tasks, FULL_CONFIDENCE_TASKS), Fraction(1))
    rating = round_half_up(success_rate * 100 * (Fraction(1, 2) + Fraction(1, 2) * task_weight))

    return max(0, min(100, rating))


def apply_outcome(
    current: Reputation,
    outcome: TaskOutcome,
    now: Optional[datetime] = None,
) -> Reputation:
    """
    Fold one task outcome into a reputation.

    Args:
        current: Reputation before the task
        outcome: What happened
        now: Activity timestamp (defaults to utcnow)

    Returns:
        A new Reputation; ``current`` is left untouched.

    Raises:
        ValueError: if the paid amount or latency is negative
    """
    if outcome.paid_amount < 0:
        raise ValueError("paid_amount must not be negative")
    if outcome.response_time_ms < 0:
        raise ValueError("response_time_ms must not be negative")

    total = current.total_tasks + 1
    successful = current.successful_tasks + (1 if outcome.success else 0)
    failed = current.failed_tasks + (0 if outcome.success else 1)

    earned_stx = current.total_earned_stx
    earned_sbtc = current.total_earned_sbtc
    if outcome.token == PaymentToken.SBTC:
        earned_sbtc += outcome.paid_amount
    else:
        earned_stx += outcome.paid_amount

    avg_time = round_half_up(
        Fraction(current.avg_response_time_ms * current.total_tasks + outcome.response_time_ms, total)
    )

    return replace(
        current,
        total_tasks=total,
        successful_tasks=successful,
        failed_tasks=failed,
        total_earned_stx=earned_stx,
        total_earned_sbtc=earned_sbtc,
        avg_response_time_ms=avg_time,
        rating=compute_rating(successful, total),
        last_activity=now or datetime.utcnow(),
    )


def is_consistent(reputation: Reputation) -> bool:
    """Check that the stored rating and counters agree."""
    if reputation.successful_tasks + reputation.failed_tasks != reputation.total_tasks:
        return False
    return reputation.rating == compute_rating(reputation.successful_tasks, reputation.total_tasks)
