"""Tests for the arq job functions (called directly, no Redis)"""

import asyncio
from datetime import datetime

import pytest
from conftest import add_milestone, add_task

from app.models import Booking, Milestone, Task
from app.worker import WorkerSettings, recalculate_progress_task, refresh_overdue_task


def test_recalculate_progress_job(client, booking, db):
    milestone = add_milestone(client, booking["id"])
    add_task(client, milestone["id"], status="completed")
    add_task(client, milestone["id"])

    db.query(Milestone).update({"progress_percentage": 0})
    db.query(Booking).update({"project_progress": 0})
    db.commit()

    result = asyncio.run(recalculate_progress_task({}, booking["id"]))
    assert result == {"booking_id": booking["id"], "project_progress": 50}

    db.expire_all()
    assert db.get(Milestone, milestone["id"]).progress_percentage == 50


def test_recalculate_unknown_booking_fails():
    with pytest.raises(Exception, match="Booking not found"):
        asyncio.run(recalculate_progress_task({}, "missing"))


def test_overdue_job(client, booking, db):
    milestone = add_milestone(client, booking["id"])
    task = add_task(client, milestone["id"])
    db.query(Task).update({"due_date": datetime(2020, 1, 1)})
    db.commit()

    summary = asyncio.run(refresh_overdue_task({}))
    assert summary["tasks_marked"] == 1

    db.expire_all()
    assert db.get(Task, task["id"]).is_overdue is True


def test_worker_settings():
    assert recalculate_progress_task in WorkerSettings.functions
    assert len(WorkerSettings.cron_jobs) == 1
