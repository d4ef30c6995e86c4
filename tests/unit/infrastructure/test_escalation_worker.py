"""Tests for EscalationWorker with the database swapped for the in-memory store."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest

from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.value_objects.enums import (
    AssignmentPriority,
    AssignmentReason,
    Department,
    LeadSource,
    Role,
)
from leadflow.domain.value_objects.timestamps import utcnow
from leadflow.infrastructure.wiring import memory_repositories
from leadflow.workers import escalation_worker
from leadflow.workers.escalation_worker import EscalationWorker


class FakeSession:
    def __init__(self, fail_commit: bool = False):
        self.committed = False
        self.rolled_back = False
        self.fail_commit = fail_commit

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def commit(self):
        if self.fail_commit:
            raise RuntimeError("connection lost during commit")
        self.committed = True

    async def rollback(self):
        self.rolled_back = True


@pytest.fixture
def sessions(monkeypatch, store):
    opened: list[FakeSession] = []

    def factory():
        session = FakeSession()
        opened.append(session)
        return session

    monkeypatch.setattr(escalation_worker, "async_session_factory", factory)
    monkeypatch.setattr(escalation_worker, "sql_repositories", lambda session: memory_repositories(store))
    return opened


@pytest.fixture
def worker():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    return EscalationWorker(interval_seconds=0.01, cooldown=timedelta(minutes=120), http_client=client)


async def _seed_overdue(store) -> Assignment:
    repos = memory_repositories(store)
    member = await repos.members.save(
        TeamMember(id=None, name="Alice", email="alice@example.com", role=Role.ADVISOR,
                   department=Department.INSURANCE)
    )
    lead = await repos.leads.add(
        Lead(id=None, name="Pat", email="pat@example.com", source=LeadSource.INSURANCE)
    )
    created = utcnow() - timedelta(hours=30)
    return await repos.assignments.save(
        Assignment(
            id=None, lead_id=lead.id, assigned_to_id=member.id,
            assignment_reason=AssignmentReason.ROUND_ROBIN,
            priority=AssignmentPriority.NORMAL,
            response_deadline=created + timedelta(hours=24),
            created_at=created,
        )
    )


@pytest.mark.asyncio
async def test_sweep_once_commits(worker, sessions, store):
    assignment = await _seed_overdue(store)

    handled = await worker.sweep_once()

    assert handled == 1
    assert sessions[0].committed
    assert worker.sweeps == 1
    assert worker.escalated == 1
    assert store.assignments[assignment.id].escalation_level == 1
    assert worker._dispatcher.pending == 1
    await worker.shutdown()


@pytest.mark.asyncio
async def test_sweep_failure_rolls_back(worker, sessions, store, monkeypatch):
    repos = memory_repositories(store)

    async def broken(now):
        raise RuntimeError("database down")

    repos.assignments.get_overdue = broken
    monkeypatch.setattr(escalation_worker, "sql_repositories", lambda session: repos)

    with pytest.raises(RuntimeError):
        await worker.sweep_once()
    assert sessions[0].rolled_back
    assert not sessions[0].committed
    assert worker.sweeps == 0
    await worker.shutdown()


@pytest.mark.asyncio
async def test_failed_commit_sends_no_notifications(worker, sessions, store, monkeypatch):
    await _seed_overdue(store)

    def failing_factory():
        session = FakeSession(fail_commit=True)
        sessions.append(session)
        return session

    monkeypatch.setattr(escalation_worker, "async_session_factory", failing_factory)

    with pytest.raises(RuntimeError):
        await worker.sweep_once()

    assert sessions[0].rolled_back
    assert worker._dispatcher.pending == 0
    await worker.shutdown()


@pytest.mark.asyncio
async def test_run_stops_after_consecutive_errors(worker, sessions, monkeypatch):
    async def failing():
        raise RuntimeError("database down")

    monkeypatch.setattr(worker, "sweep_once", failing)
    monkeypatch.setattr(EscalationWorker, "MAX_CONSECUTIVE_ERRORS", 3)

    await worker.run()

    assert not worker.running


@pytest.mark.asyncio
async def test_stop_ends_the_loop(worker, sessions):
    task = asyncio.create_task(worker.run())
    await asyncio.sleep(0.05)
    worker.stop()
    await asyncio.wait_for(task, timeout=1)

    assert worker.sweeps >= 1
    assert not worker.running
