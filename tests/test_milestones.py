"""Tests for milestone/task management and progress rollups"""

from types import SimpleNamespace

from conftest import ADMIN, CLIENT, CLIENT_ID, OTHER, OTHER_ID, PROVIDER, PROVIDER_ID, add_milestone, add_task

from app.models import Milestone, MilestoneApproval, UserNotification


UNKNOWN_ID = "99999999-9999-9999-9999-999999999999"


def booking_progress(client, booking_id):
    return client.get(f"/bookings/{booking_id}", headers=CLIENT).json()["project_progress"]


class TestMilestoneCrud:

    def test_add_milestone_appends_order(self, client, booking):
        first = add_milestone(client, booking["id"], title="Design")
        second = add_milestone(client, booking["id"], title="Build")
        assert first["order_index"] == 0
        assert second["order_index"] == 1
        assert first["progress_percentage"] == 0
        assert first["editable"] is True

    def test_client_cannot_add_milestone(self, client, booking):
        resp = client.post(f"/bookings/{booking['id']}/milestones", json={"title": "X"}, headers=CLIENT)
        assert resp.status_code == 403

    def test_outsider_gets_403(self, client, booking):
        resp = client.get(f"/bookings/{booking['id']}/milestones", headers=OTHER)
        assert resp.status_code == 403

    def test_weight_must_be_positive(self, client, booking):
        resp = client.post(
            f"/bookings/{booking['id']}/milestones", json={"title": "X", "weight": 0}, headers=PROVIDER
        )
        assert resp.status_code == 422

    def test_non_finite_numbers_rejected(self, client, booking):
        for field, value in [("weight", "NaN"), ("weight", "Infinity"), ("estimated_hours", "-Infinity")]:
            resp = client.post(
                f"/bookings/{booking['id']}/milestones", json={"title": "X", field: value}, headers=PROVIDER
            )
            assert resp.status_code == 422, (field, value)

        m = add_milestone(client, booking["id"])
        resp = client.patch(f"/milestones/{m['id']}", json={"weight": "NaN"}, headers=PROVIDER)
        assert resp.status_code == 422
        assert booking_progress(client, booking["id"]) == 0

    def test_update_keeps_unspecified_fields(self, client, booking):
        m = add_milestone(client, booking["id"], title="Design", description="Wireframes first")
        resp = client.patch(f"/milestones/{m['id']}", json={"title": "Design v2"}, headers=PROVIDER)
        assert resp.status_code == 200
        assert resp.json()["title"] == "Design v2"
        assert resp.json()["description"] == "Wireframes first"

    def test_completed_status_stamps_and_pins(self, client, booking):
        m = add_milestone(client, booking["id"])
        add_task(client, m["id"])
        resp = client.patch(f"/milestones/{m['id']}", json={"status": "completed"}, headers=PROVIDER)
        data = resp.json()
        assert data["completed_at"] is not None
        assert data["progress_percentage"] == 100
        assert booking_progress(client, booking["id"]) == 100

    def test_non_editable_milestone_rejected(self, client, booking, db):
        m = add_milestone(client, booking["id"])
        db.query(Milestone).filter(Milestone.id == m["id"]).update({"editable": False})
        db.commit()
        resp = client.patch(f"/milestones/{m['id']}", json={"title": "Nope"}, headers=PROVIDER)
        assert resp.status_code == 400

    def test_invalid_transition_rejected(self, client, booking):
        m = add_milestone(client, booking["id"])
        client.patch(f"/milestones/{m['id']}", json={"status": "cancelled"}, headers=PROVIDER)
        resp = client.patch(f"/milestones/{m['id']}", json={"status": "in_progress"}, headers=PROVIDER)
        assert resp.status_code == 400

    def test_delete_renumbers(self, client, booking):
        a = add_milestone(client, booking["id"], title="A")
        b = add_milestone(client, booking["id"], title="B")
        c = add_milestone(client, booking["id"], title="C")
        resp = client.delete(f"/milestones/{b['id']}", headers=PROVIDER)
        assert resp.status_code == 200

        listed = client.get(f"/bookings/{booking['id']}/milestones", headers=CLIENT).json()
        assert [(m["id"], m["order_index"]) for m in listed] == [(a["id"], 0), (c["id"], 1)]

    def test_reorder_requires_full_permutation(self, client, booking):
        a = add_milestone(client, booking["id"], title="A")
        b = add_milestone(client, booking["id"], title="B")

        bad = client.post(
            f"/bookings/{booking['id']}/milestones/reorder",
            json={"milestone_ids": [a["id"]]},
            headers=PROVIDER,
        )
        assert bad.status_code == 400

        dup = client.post(
            f"/bookings/{booking['id']}/milestones/reorder",
            json={"milestone_ids": [a["id"], a["id"]]},
            headers=PROVIDER,
        )
        assert dup.status_code == 400

        ok = client.post(
            f"/bookings/{booking['id']}/milestones/reorder",
            json={"milestone_ids": [b["id"], a["id"]]},
            headers=PROVIDER,
        )
        assert ok.status_code == 200
        assert [m["title"] for m in ok.json()] == ["B", "A"]

    def test_terminal_booking_blocks_changes(self, client, booking):
        m = add_milestone(client, booking["id"])
        client.patch(f"/bookings/{booking['id']}", json={"action": "cancel"}, headers=CLIENT)
        resp = client.patch(f"/milestones/{m['id']}", json={"title": "Late"}, headers=PROVIDER)
        assert resp.status_code == 400
        resp = client.post(f"/bookings/{booking['id']}/milestones", json={"title": "X"}, headers=PROVIDER)
        assert resp.status_code == 400

    def test_starting_milestone_starts_approved_booking(self, client, approved_booking):
        m = add_milestone(client, approved_booking["id"])
        resp = client.patch(f"/milestones/{m['id']}", json={"status": "in_progress"}, headers=PROVIDER)
        assert resp.json()["start_date"] is not None
        booking = client.get(f"/bookings/{approved_booking['id']}", headers=CLIENT).json()
        assert booking["status"] == "in_progress"

    def test_starting_milestone_leaves_unapproved_booking(self, client, booking):
        m = add_milestone(client, booking["id"])
        client.patch(f"/milestones/{m['id']}", json={"status": "in_progress"}, headers=PROVIDER)
        assert client.get(f"/bookings/{booking['id']}", headers=CLIENT).json()["status"] == "pending"


class TestTaskRollups:

    def test_task_completion_updates_progress(self, client, booking):
        m = add_milestone(client, booking["id"])
        t1 = add_task(client, m["id"], title="One")
        add_task(client, m["id"], title="Two")
        add_task(client, m["id"], title="Three")

        resp = client.patch(f"/tasks/{t1['id']}", json={"status": "completed"}, headers=PROVIDER)
        assert resp.status_code == 200

        listed = client.get(f"/bookings/{booking['id']}/milestones", headers=CLIENT).json()[0]
        assert listed["total_tasks"] == 3
        assert listed["completed_tasks"] == 1
        assert listed["progress_percentage"] == 33
        assert booking_progress(client, booking["id"]) == 33

    def test_weighted_booking_progress(self, client, booking):
        heavy = add_milestone(client, booking["id"], title="Heavy", weight=3)
        light = add_milestone(client, booking["id"], title="Light", weight=1)
        t = add_task(client, heavy["id"])
        add_task(client, light["id"])

        client.patch(f"/tasks/{t['id']}", json={"status": "completed"}, headers=PROVIDER)
        assert booking_progress(client, booking["id"]) == 75

    def test_delete_task_recounts(self, client, booking):
        m = add_milestone(client, booking["id"])
        done = add_task(client, m["id"], status="completed")
        open_task = add_task(client, m["id"])
        assert booking_progress(client, booking["id"]) == 50

        client.delete(f"/tasks/{open_task['id']}", headers=PROVIDER)
        assert booking_progress(client, booking["id"]) == 100

        client.delete(f"/tasks/{done['id']}", headers=PROVIDER)
        assert booking_progress(client, booking["id"]) == 0

    def test_task_order_and_validation(self, client, booking):
        m = add_milestone(client, booking["id"])
        a = add_task(client, m["id"])
        b = add_task(client, m["id"])
        assert (a["order_index"], b["order_index"]) == (0, 1)

        resp = client.post(f"/milestones/{m['id']}/tasks", json={"title": "X", "priority": "asap"}, headers=PROVIDER)
        assert resp.status_code == 422

    def test_update_task_keeps_fields(self, client, booking):
        m = add_milestone(client, booking["id"])
        t = add_task(client, m["id"], priority="high", estimated_hours=4)
        resp = client.patch(f"/tasks/{t['id']}", json={"title": "Renamed"}, headers=PROVIDER)
        data = resp.json()
        assert data["title"] == "Renamed"
        assert data["priority"] == "high"
        assert data["estimated_hours"] == 4

    def test_missing_task(self, client):
        assert client.patch("/tasks/missing", json={"title": "x"}, headers=PROVIDER).status_code == 404

    def test_assignee_must_take_part_in_booking(self, client, booking):
        m = add_milestone(client, booking["id"])
        client.get("/notifications", headers=OTHER)

        for assignee, detail in [
            (UNKNOWN_ID, "Assignee not found"),
            (OTHER_ID, "Assignee does not take part in this booking"),
        ]:
            resp = client.post(
                f"/milestones/{m['id']}/tasks", json={"title": "X", "assigned_to": assignee}, headers=PROVIDER
            )
            assert resp.status_code == 400
            assert resp.json()["detail"] == detail

        t = add_task(client, m["id"], assigned_to=CLIENT_ID)
        assert t["assigned_to"] == CLIENT_ID

        resp = client.patch(f"/tasks/{t['id']}", json={"assigned_to": UNKNOWN_ID}, headers=PROVIDER)
        assert resp.status_code == 400
        listed = client.get(f"/bookings/{booking['id']}/milestones", headers=CLIENT).json()
        assert listed[0]["tasks"][0]["assigned_to"] == CLIENT_ID


class TestMilestoneApproval:

    def test_client_approves(self, client, booking, db):
        m = add_milestone(client, booking["id"])
        resp = client.post(
            "/milestones/approve",
            json={"milestone_id": m["id"], "action": "approve", "feedback": "Looks great"},
            headers=CLIENT,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["milestone"]["status"] == "completed"
        assert data["milestone"]["completed_at"] is not None
        assert data["booking_progress"] == 100
        assert data["approval_status"] == "approved"

        approval = db.query(MilestoneApproval).filter(MilestoneApproval.milestone_id == m["id"]).one()
        assert approval.comment == "Looks great"
        types = [n.type for n in db.query(UserNotification).filter(UserNotification.user_id == PROVIDER_ID)]
        assert "milestone_approved" in types

    def test_approve_is_idempotent(self, client, booking, db):
        m = add_milestone(client, booking["id"])
        for _ in range(2):
            resp = client.post(
                "/milestones/approve", json={"milestone_id": m["id"], "action": "approve"}, headers=CLIENT
            )
            assert resp.status_code == 200
            assert resp.json()["milestone"]["status"] == "completed"
        assert db.query(MilestoneApproval).count() == 2

    def test_reject_completed_is_blocked(self, client, booking):
        m = add_milestone(client, booking["id"], status="completed")
        resp = client.post(
            "/milestones/approve", json={"milestone_id": m["id"], "action": "reject"}, headers=CLIENT
        )
        assert resp.status_code == 400

    def test_reject(self, client, booking):
        m = add_milestone(client, booking["id"])
        resp = client.post(
            "/milestones/approve",
            json={"milestone_id": m["id"], "action": "reject", "feedback": "Needs work"},
            headers=CLIENT,
        )
        assert resp.json()["milestone"]["status"] == "rejected"

    def test_outsider_cannot_approve(self, client, booking):
        m = add_milestone(client, booking["id"])
        resp = client.post(
            "/milestones/approve", json={"milestone_id": m["id"], "action": "approve"}, headers=OTHER
        )
        assert resp.status_code == 403

    def test_unknown_milestone(self, client):
        resp = client.post(
            "/milestones/approve", json={"milestone_id": "nope", "action": "approve"}, headers=CLIENT
        )
        assert resp.status_code == 404


class TestProgressEndpoints:

    def test_calculate_requires_an_id(self, client):
        resp = client.post("/progress/calculate", json={}, headers=CLIENT)
        assert resp.status_code == 400

    def test_calculate_returns_fresh_rows(self, client, booking, db):
        m = add_milestone(client, booking["id"])
        t = add_task(client, m["id"], status="completed")
        add_task(client, m["id"])

        # Corrupt the stored rollups, then recompute
        db.query(Milestone).filter(Milestone.id == m["id"]).update({"progress_percentage": 0})
        db.commit()

        resp = client.post(
            "/progress/calculate",
            json={"booking_id": booking["id"], "milestone_id": m["id"], "task_id": t["id"]},
            headers=PROVIDER,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["queued"] is False
        assert data["milestone"]["progress_percentage"] == 50
        assert data["booking"]["project_progress"] == 50
        assert data["task"]["id"] == t["id"]

    def test_async_falls_back_inline_without_queue(self, client, booking, monkeypatch):
        from app.domain.milestones import router as milestones_router

        async def no_pool(*args, **kwargs):
            raise ConnectionError("redis down")

        monkeypatch.setattr(milestones_router, "create_pool", no_pool)
        add_milestone(client, booking["id"], status="completed")

        resp = client.post(
            "/progress/calculate", json={"booking_id": booking["id"], "async": True}, headers=PROVIDER
        )
        assert resp.status_code == 200
        assert resp.json()["queued"] is False
        assert resp.json()["booking"]["project_progress"] == 100

    def test_async_queues_booking_recalculation(self, client, booking, monkeypatch):
        from app.domain.milestones import router as milestones_router

        class FakePool:
            def __init__(self):
                self.jobs = []
                self.closed = False

            async def enqueue_job(self, name, *args):
                self.jobs.append((name, *args))
                return SimpleNamespace(job_id="job-123")

            async def close(self):
                self.closed = True

        pool = FakePool()

        async def fake_create_pool(settings):
            return pool

        monkeypatch.setattr(milestones_router, "create_pool", fake_create_pool)

        resp = client.post(
            "/progress/calculate", json={"booking_id": booking["id"], "async": True}, headers=PROVIDER
        )
        assert resp.status_code == 200
        assert resp.json() == {"queued": True, "jobId": "job-123", "booking_id": booking["id"]}
        assert pool.jobs == [("recalculate_progress_task", booking["id"])]
        assert pool.closed is True

    def test_async_rejects_milestone_or_task_ids(self, client, booking):
        m = add_milestone(client, booking["id"])
        resp = client.post(
            "/progress/calculate",
            json={"booking_id": booking["id"], "milestone_id": m["id"], "async": True},
            headers=PROVIDER,
        )
        assert resp.status_code == 400

    def test_async_outsider_is_rejected_before_queueing(self, client, booking):
        resp = client.post(
            "/progress/calculate", json={"booking_id": booking["id"], "async": True}, headers=OTHER
        )
        assert resp.status_code == 403

    def test_progress_analytics(self, client, booking):
        m1 = add_milestone(client, booking["id"], status="completed")
        m2 = add_milestone(client, booking["id"], due_date="2020-01-01T00:00:00Z")
        add_task(client, m1["id"], status="completed", estimated_hours=2)
        add_task(client, m2["id"], estimated_hours=3, due_date="2020-01-01T00:00:00Z")

        data = client.get(f"/progress/{booking['id']}", headers=ADMIN).json()
        assert data["total_milestones"] == 2
        assert data["completed_milestones"] == 1
        assert data["total_tasks"] == 2
        assert data["completed_tasks"] == 1
        assert data["overdue_milestones"] == 1
        assert data["overdue_tasks"] == 1
        assert data["average_milestone_progress"] == 50
        assert data["booking_progress"] == 50
        assert data["total_estimated_hours"] == 5
