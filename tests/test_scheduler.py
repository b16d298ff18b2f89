"""
Tests for the periodic sweep job.
"""
from datetime import timedelta
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler

from shopsync.scheduler import SWEEP_JOB_ID, get_scheduled_jobs, run_tenant_sweep, setup_scheduler
from shopsync.services.ingestion_service import SyncState


class _Service:
    def __init__(self, states=None, error=None):
        self.states = states or {}
        self.error = error
        self.calls = 0

    def sync_all_tenants(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.states


def test_sweep_job_is_registered_without_overlap():
    target = BackgroundScheduler()

    setup_scheduler(target=target, interval_seconds=300)

    job = target.get_job(SWEEP_JOB_ID)
    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.trigger.interval == timedelta(seconds=300)


def test_scheduled_jobs_listing():
    target = BackgroundScheduler()
    setup_scheduler(target=target, interval_seconds=300)

    jobs = get_scheduled_jobs(target)

    assert len(jobs) == 1
    assert jobs[0]["id"] == SWEEP_JOB_ID
    assert jobs[0]["name"] == "Tenant Full Sync Sweep"


def test_run_tenant_sweep_returns_states():
    tenant_id = uuid4()
    service = _Service(states={tenant_id: SyncState.FINALIZED})

    assert run_tenant_sweep(lambda: service) == {tenant_id: SyncState.FINALIZED}
    assert service.calls == 1


def test_run_tenant_sweep_never_raises():
    service = _Service(error=RuntimeError("database unavailable"))

    assert run_tenant_sweep(lambda: service) == {}
    assert service.calls == 1
