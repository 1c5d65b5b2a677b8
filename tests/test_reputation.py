"""
Tests for reputation scoring.
"""

import pytest
from datetime import datetime
from fractions import Fraction

from agentrelay.registry.models import PaymentToken, Reputation
from agentrelay.registry.reputation import (
    TaskOutcome,
    apply_outcome,
    compute_rating,
    is_consistent,
    round_half_up,
)


def success(amount=1000, token=PaymentToken.STX, ms=100):
    return TaskOutcome(success=True, paid_amount=amount, token=token, response_time_ms=ms)


def failure(amount=1000, token=PaymentToken.STX, ms=100):
    return TaskOutcome(success=False, paid_amount=amount, token=token, response_time_ms=ms)


class TestComputeRating:
    """Test the rating formula."""

    def test_no_tasks_is_neutral(self):
        assert compute_rating(0, 0) == 50

    def test_first_success(self):
        """50.5 rounds half up to 51."""
        assert compute_rating(1, 1) == 51

    def test_first_failure(self):
        assert compute_rating(0, 1) == 0

    def test_confidence_ramp(self):
        assert compute_rating(10, 10) == 55
        assert compute_rating(3, 3) == 52  # 51.5
        assert compute_rating(1, 2) == 26  # 25.5

    def test_full_confidence(self):
        assert compute_rating(100, 100) == 100
        assert compute_rating(50, 100) == 50
        assert compute_rating(150, 200) == 75

    def test_always_in_range(self):
        for total in range(0, 250, 7):
            for successful in range(0, total + 1, 3):
                assert 0 <= compute_rating(successful, total) <= 100


class TestRoundHalfUp:
    """Test rounding."""

    def test_halves_round_up(self):
        assert round_half_up(Fraction(1, 2)) == 1
        assert round_half_up(Fraction(101, 2)) == 51
        assert round_half_up(Fraction(5, 2)) == 3

    def test_below_half_rounds_down(self):
        assert round_half_up(Fraction(49, 100)) == 0


class TestApplyOutcome:
    """Test folding outcomes into a reputation."""

    def test_success_updates_counters(self):
        rep = apply_outcome(Reputation(agent_id="a"), success(amount=500))
        assert rep.total_tasks == 1
        assert rep.successful_tasks == 1
        assert rep.failed_tasks == 0
        assert rep.total_earned_stx == 500
        assert rep.rating == 51

    def test_failure_updates_counters(self):
        rep = apply_outcome(Reputation(agent_id="a"), failure(amount=500))
        assert rep.total_tasks == 1
        assert rep.successful_tasks == 0
        assert rep.failed_tasks == 1
        assert rep.total_earned_stx == 500
        assert rep.rating == 0

    def test_input_not_mutated(self):
        current = Reputation(agent_id="a")
        apply_outcome(current, success())
        assert current.total_tasks == 0
        assert current.rating == 50

    def test_earnings_per_token(self):
        rep = Reputation(agent_id="a")
        rep = apply_outcome(rep, success(amount=300, token=PaymentToken.SBTC))
        rep = apply_outcome(rep, success(amount=700, token=PaymentToken.STX))
        assert rep.total_earned_sbtc == 300
        assert rep.total_earned_stx == 700
        assert rep.earned(PaymentToken.SBTC) == 300
        assert rep.total_earned == 1000

    def test_average_response_time(self):
        rep = Reputation(agent_id="a")
        rep = apply_outcome(rep, success(ms=100))
        assert rep.avg_response_time_ms == 100
        rep = apply_outcome(rep, success(ms=201))
        assert rep.avg_response_time_ms == 151  # 150.5

    def test_activity_timestamp(self):
        now = datetime(2025, 1, 1, 12, 0, 0)
        rep = apply_outcome(Reputation(agent_id="a"), success(), now=now)
        assert rep.last_activity == now

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            apply_outcome(Reputation(agent_id="a"), success(amount=-1))

    def test_negative_latency_rejected(self):
        with pytest.raises(ValueError):
            apply_outcome(Reputation(agent_id="a"), success(ms=-5))

    def test_counters_stay_consistent(self):
        rep = Reputation(agent_id="a")
        for i in range(40):
            rep = apply_outcome(rep, success() if i % 3 else failure())
            assert rep.successful_tasks + rep.failed_tasks == rep.total_tasks
            assert rep.rating == compute_rating(rep.successful_tasks, rep.total_tasks)
            assert is_consistent(rep)

    def test_straight_successes(self):
        rep = Reputation(agent_id="a")
        for n in range(1, 101):
            rep = apply_outcome(rep, success())
            assert rep.rating == round_half_up(50 + Fraction(n, 2))
        assert rep.rating == 100


class TestConsistency:
    """Test consistency checks."""

    def test_fresh_is_consistent(self):
        assert is_consistent(Reputation(agent_id="a"))

    def test_bad_rating_detected(self):
        rep = Reputation(agent_id="a", total_tasks=1, successful_tasks=1, rating=99)
        assert not is_consistent(rep)

    def test_bad_counters_detected(self):
        rep = Reputation(agent_id="a", total_tasks=2, successful_tasks=1, failed_tasks=0, rating=26)
        assert not is_consistent(rep)
