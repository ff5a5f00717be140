"""Unit tests for rollup arithmetic and booking status rules"""

from datetime import datetime, timedelta

import pytest

from app.domain.bookings.status_rules import derive_status, validate_action
from app.domain.milestones.progress import (
    is_overdue,
    milestone_progress,
    round_half_up,
    weighted_progress,
)


class TestRoundHalfUp:

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (66.66666, 67), (33.3333, 33), (0, 0)],
    )
    def test_rounds_half_away_from_banker(self, value, expected):
        assert round_half_up(value) == expected


class TestMilestoneProgress:

    def test_no_tasks_is_zero(self):
        assert milestone_progress(0, 0) == 0

    def test_share_of_completed_tasks(self):
        assert milestone_progress(1, 3) == 33
        assert milestone_progress(2, 3) == 67
        assert milestone_progress(1, 8) == 13  # 12.5 rounds up

    def test_completed_status_pins_to_100(self):
        assert milestone_progress(0, 4, "completed") == 100
        assert milestone_progress(0, 0, "completed") == 100


class TestWeightedProgress:

    def test_empty_is_zero(self):
        assert weighted_progress([]) == 0

    def test_equal_weights_is_mean(self):
        assert weighted_progress([(100, 1), (0, 1)]) == 50

    def test_weights_shift_the_mean(self):
        # (100*3 + 0*1) / 4 = 75
        assert weighted_progress([(100, 3), (0, 1)]) == 75
        # (50*1 + 25*2) / 3 = 33.33
        assert weighted_progress([(50, 1), (25, 2)]) == 33

    def test_half_rounds_up(self):
        # (50 + 51) / 2 = 50.5
        assert weighted_progress([(50, 1), (51, 1)]) == 51


class TestIsOverdue:

    def test_past_open_item_is_overdue(self):
        now = datetime(2026, 1, 10)
        assert is_overdue(now - timedelta(days=1), "pending", now)
        assert is_overdue(now - timedelta(days=1), "in_progress", now)

    def test_closed_or_undated_items_are_not(self):
        now = datetime(2026, 1, 10)
        assert not is_overdue(None, "pending", now)
        assert not is_overdue(now - timedelta(days=1), "completed", now)
        assert not is_overdue(now - timedelta(days=1), "cancelled", now)
        assert not is_overdue(now + timedelta(days=1), "pending", now)


class TestDeriveStatus:

    @pytest.mark.parametrize(
        "status,approval,invoices,expected",
        [
            ("completed", "approved", ["paid"], "delivered"),
            ("in_progress", "approved", [], "in_production"),
            ("pending", "approved", ["issued"], "ready_to_launch"),
            ("pending", "approved", ["void"], "approved"),
            ("approved", "pending", [], "approved"),
            ("declined", "rejected", [], "cancelled"),
            ("pending", "rejected", [], "cancelled"),
            ("pending", "pending", [], "pending_review"),
            ("rescheduled", "pending", [], "pending_review"),
            ("on_hold", "pending", [], "on_hold"),
            ("cancelled", "pending", [], "cancelled"),
        ],
    )
    def test_derivation(self, status, approval, invoices, expected):
        assert derive_status(status, approval, invoices) == expected


class TestValidateAction:

    def test_terminal_states_reject_everything(self):
        for status in ("completed", "cancelled", "declined"):
            assert validate_action("cancel", status, "approved") is not None

    def test_approve_only_from_review_states(self):
        assert validate_action("approve", "pending", "pending") is None
        assert validate_action("approve", "rescheduled", "pending") is None
        assert validate_action("approve", "in_progress", "approved") is not None

    def test_start_requires_approval(self):
        assert validate_action("start", "pending", "pending") is not None
        assert validate_action("start", "pending", "approved") is None
