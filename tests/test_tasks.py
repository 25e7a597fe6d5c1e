"""Tests for the periodic Celery jobs and their schedule."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from autoquote import tasks
from autoquote.celery_app import app as celery_app


def test_beat_schedule():
    schedule = celery_app.conf.beat_schedule
    expire = schedule["expire-stale-quotes"]
    assert expire["task"] == "autoquote.tasks.expire_stale_quotes"
    assert expire["schedule"].hour == {3}
    assert expire["schedule"].minute == {0}
    assert schedule["health-check"]["task"] == "autoquote.tasks.health_check"


def test_tasks_registered():
    assert "autoquote.tasks.expire_stale_quotes" in celery_app.tasks
    assert "autoquote.tasks.health_check" in celery_app.tasks


@pytest.mark.asyncio
async def test_expire_stale_quotes_async(session_factory, quoted_policy, policy_service):
    later = datetime.now(timezone.utc) + timedelta(days=45)
    summary = await tasks._expire_stale_quotes_async(session_factory, now=later)

    assert summary == {"expired": 1, "run_at": later.isoformat()}
    policy = await policy_service.get_policy_by_id(quoted_policy.policy_id)
    assert policy.status_code == "EXPIRED"


@pytest.mark.asyncio
async def test_health_check_healthy(session_factory, quoted_policy):
    report = await tasks._health_check_async(session_factory)

    assert report["status"] == "healthy"
    assert report["database"] == "ok"
    assert report["coverages_loaded"] == 10
    assert report["open_quotes"] == 1
    assert report["issues"] == []


@pytest.mark.asyncio
async def test_health_check_degraded_without_reference_data(session_factory):
    report = await tasks._health_check_async(session_factory)

    assert report["status"] == "degraded"
    assert report["issues"] == ["No coverage reference data loaded"]


def test_expire_task_runs_sweep():
    async def _fake(*args, **kwargs):
        return {"expired": 4, "run_at": "2026-10-19T03:00:00+00:00"}

    with patch.object(tasks, "_expire_stale_quotes_async", _fake), \
            patch.object(tasks, "_run_async", asyncio.run):
        result = tasks.expire_stale_quotes.apply().get()

    assert result["expired"] == 4
