"""Tests for milestone insights, predictions and smart status"""

from datetime import datetime, timedelta
from types import SimpleNamespace

from conftest import ADMIN, CLIENT, OTHER, PROVIDER, add_milestone, add_task

from app.domain.insights.service import (
    calculate_insights,
    calculate_predictions,
    current_milestone,
    estimated_completion,
    generate_recommendations,
)

NOW = datetime(2030, 6, 1, 12, 0, 0)
PAST = "2020-01-01T00:00:00Z"


def ms(status="pending", order_index=0, tasks=(), **fields):
    values = {
        "status": status,
        "order_index": order_index,
        "tasks": list(tasks),
        "due_date": None,
        "start_date": None,
        "estimated_hours": None,
        "progress_percentage": 0,
    }
    values.update(fields)
    return SimpleNamespace(**values)


def task(status="pending", due_date=None):
    return SimpleNamespace(status=status, due_date=due_date)


class TestInsightMath:

    def test_empty_booking(self):
        insights = calculate_insights([], NOW)
        # 0% completion is penalised twice
        assert insights["healthScore"] == 65
        assert insights["totalMilestones"] == 0
        assert insights["completionRate"] == 0

    def test_healthy_booking_is_capped(self):
        milestones = [ms("completed", tasks=[task("completed")]) for _ in range(3)]
        insights = calculate_insights(milestones, NOW)
        assert insights["healthScore"] == 100
        assert insights["completionRate"] == 100
        assert generate_recommendations(milestones, insights) == []

    def test_overdue_penalties(self):
        overdue = NOW - timedelta(days=2)
        milestones = [
            ms("completed", tasks=[task("completed")]),
            ms("in_progress", order_index=1, due_date=overdue, tasks=[task("pending", overdue)]),
        ]
        insights = calculate_insights(milestones, NOW)
        assert insights["overdueMilestones"] == 1
        assert insights["overdueTasks"] == 1
        # 100 - 15 - 5, completion rates are exactly 50%
        assert insights["healthScore"] == 80

        kinds = [r["title"] for r in generate_recommendations(milestones, insights)]
        assert kinds == ["Overdue Milestones", "Overdue Tasks"]

    def test_low_health_and_resource_spread(self):
        overdue = NOW - timedelta(days=1)
        milestones = [ms("in_progress", order_index=i, due_date=overdue) for i in range(4)]
        insights = calculate_insights(milestones, NOW)
        # 100 - 4 x 15 overdue - 20 - 15 for zero completion
        assert insights["healthScore"] == 5

        titles = {r["title"] for r in generate_recommendations(milestones, insights)}
        assert {"Overdue Milestones", "Project Health Low", "Resource Spread"} <= titles

    def test_predictions_use_observed_velocity(self):
        milestones = [
            ms("completed", estimated_hours=10, start_date=NOW - timedelta(days=5)),
            ms("pending", order_index=1, estimated_hours=10),
        ]
        predictions = calculate_predictions(milestones, NOW)
        assert predictions["completedHours"] == 10
        assert predictions["remainingHours"] == 10
        assert predictions["velocity"] == 2
        assert predictions["estimatedDaysToComplete"] == 5
        assert predictions["estimatedCompletion"] == NOW + timedelta(days=5)
        assert predictions["riskLevel"] == "medium"

    def test_predictions_without_history(self):
        predictions = calculate_predictions([ms("pending", estimated_hours=16)], NOW)
        assert predictions["velocity"] == 8
        assert predictions["estimatedDaysToComplete"] == 2
        assert predictions["riskLevel"] == "high"

    def test_in_progress_counts_partial_hours(self):
        milestones = [ms("in_progress", estimated_hours=10, progress_percentage=50, start_date=NOW)]
        predictions = calculate_predictions(milestones, NOW)
        assert predictions["completedHours"] == 5

    def test_current_milestone_prefers_in_progress(self):
        first = ms("pending", order_index=0)
        second = ms("in_progress", order_index=1)
        assert current_milestone([first, second]) is second
        assert current_milestone([ms("completed"), first]) is first
        assert current_milestone([ms("completed")]) is None

    def test_estimated_completion(self):
        assert estimated_completion([], NOW) is None
        assert estimated_completion([ms("completed")], NOW) is None
        two_open = [ms("pending"), ms("in_progress", order_index=1)]
        assert estimated_completion(two_open, NOW) == NOW + timedelta(days=14)


class TestInsightsApi:

    def test_insights_endpoint(self, client, booking):
        add_milestone(client, booking["id"], title="Late", due_date=PAST)
        add_milestone(client, booking["id"], title="Done", status="completed")

        resp = client.get("/milestones/insights", params={"booking_id": booking["id"]}, headers=CLIENT)
        assert resp.status_code == 200
        data = resp.json()
        assert data["insights"]["overdueMilestones"] == 1
        # 100 - 15 overdue - 15 for no completed tasks
        assert data["insights"]["healthScore"] == 70
        assert data["recommendations"][0]["title"] == "Overdue Milestones"
        assert [m["title"] for m in data["milestones"]] == ["Late", "Done"]
        assert "estimatedCompletion" in data["predictions"]

    def test_insights_requires_participant(self, client, booking):
        resp = client.get("/milestones/insights", params={"booking_id": booking["id"]}, headers=OTHER)
        assert resp.status_code == 403

    def test_insights_requires_booking_id(self, client):
        assert client.get("/milestones/insights", headers=CLIENT).status_code == 422


class TestSmartStatus:

    def test_pending_booking(self, client, booking):
        provider_view = client.get(f"/bookings/{booking['id']}/smart-status", headers=PROVIDER).json()
        assert provider_view["overall_status"] == "pending_review"
        assert provider_view["next_action"] == "Provider needs to approve booking"
        assert provider_view["next_action_by"] == "provider"
        assert provider_view["status_description"] == "Waiting for provider approval to begin project"
        assert [a["id"] for a in provider_view["contextual_actions"]] == ["approve_booking", "decline_booking"]

        client_view = client.get(f"/bookings/{booking['id']}/smart-status", headers=CLIENT).json()
        assert client_view["contextual_actions"] == []

        admin_view = client.get(f"/bookings/{booking['id']}/smart-status", headers=ADMIN).json()
        assert [a["id"] for a in admin_view["contextual_actions"]] == ["manage_project", "force_approve"]

    def test_approved_without_plan(self, client, approved_booking):
        data = client.get(f"/bookings/{approved_booking['id']}/smart-status", headers=PROVIDER).json()
        assert data["overall_status"] == "ready_to_launch"
        assert data["next_action"] == "Provider needs to create project milestones"
        assert [a["id"] for a in data["contextual_actions"]] == ["create_milestones"]
        assert data["estimated_completion"] is None

    def test_in_production(self, client, approved_booking):
        m = add_milestone(client, approved_booking["id"], title="Design")
        add_task(client, m["id"], title="Wireframes")
        client.patch(f"/milestones/{m['id']}", json={"status": "in_progress"}, headers=PROVIDER)

        data = client.get(f"/bookings/{approved_booking['id']}/smart-status", headers=CLIENT).json()
        assert data["overall_status"] == "in_production"
        assert data["current_milestone"] == "Design"
        assert data["current_milestone_id"] == m["id"]
        assert data["next_action"] == "Complete 1 remaining task(s)"
        assert data["status_description"] == 'Active - Working on "Design" (0% complete)'
        assert data["tasks_total"] == 1
        assert data["last_activity"] is not None
        assert [a["id"] for a in data["contextual_actions"]] == ["add_feedback"]

    def test_client_asked_to_approve_completed_milestones(self, client, approved_booking):
        m = add_milestone(client, approved_booking["id"], title="Design", status="completed")

        data = client.get(f"/bookings/{approved_booking['id']}/smart-status", headers=CLIENT).json()
        assert data["overall_status"] == "delivered"
        assert data["next_action"] == "Provide final project approval"
        assert data["next_action_by"] == "client"
        ids = [a["id"] for a in data["contextual_actions"]]
        assert ids == [f"approve_milestone_{m['id']}", "final_approval"]

        client.post("/milestones/approve", json={"milestone_id": m["id"], "action": "approve"}, headers=CLIENT)
        data = client.get(f"/bookings/{approved_booking['id']}/smart-status", headers=CLIENT).json()
        assert [a["id"] for a in data["contextual_actions"]] == ["final_approval"]

    def test_risks(self, client, approved_booking):
        add_milestone(client, approved_booking["id"], title="First", due_date=PAST)
        add_milestone(client, approved_booking["id"], title="Second", risk_level="high")

        data = client.get(f"/bookings/{approved_booking['id']}/smart-status", headers=PROVIDER).json()
        assert [r["id"] for r in data["risks"]] == [
            "overdue_milestones",
            "high_risk_milestones",
            "blocked_dependencies",
        ]

    def test_cancelled(self, client, booking):
        client.patch(f"/bookings/{booking['id']}", json={"action": "cancel"}, headers=CLIENT)
        data = client.get(f"/bookings/{booking['id']}/smart-status", headers=CLIENT).json()
        assert data["overall_status"] == "cancelled"
        assert data["status_description"] == "Project cancelled"
