"""
GWT Tests for the federation scheduler and its persisted state.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from catalogmesh.core.exceptions import ConfigurationError, StoreFailure
from catalogmesh.core.models.reports import SyncReport
from catalogmesh.core.system.scheduler import (
    BROADCAST_JOB_ID,
    INITIAL_SYNC_JOB_ID,
    SYNC_JOB_ID,
    FederationScheduler,
    SchedulerState,
)


@pytest.fixture
def state(tmp_path) -> SchedulerState:
    return SchedulerState(tmp_path / "scheduler_state.json")


@pytest.fixture
def engines():
    sync_engine = MagicMock()
    sync_engine.run = AsyncMock(return_value=SyncReport(contacted=1))
    broadcast_engine = MagicMock()
    broadcast_engine.run = AsyncMock()
    return sync_engine, broadcast_engine


@pytest.fixture
def fake_scheduler():
    return MagicMock()


def _scheduler(engines, federation_config, state, fake_scheduler) -> FederationScheduler:
    sync_engine, broadcast_engine = engines
    return FederationScheduler(
        sync_engine, broadcast_engine, federation_config, state, scheduler=fake_scheduler
    )


def _jobs(fake_scheduler) -> dict:
    return {c.kwargs["id"]: c for c in fake_scheduler.add_job.call_args_list}


# =============================================================================
# GIVEN: A fresh installation
# =============================================================================


def test_start_given_first_run_when_started_then_jobs_and_initial_sync_registered(
    engines, federation_config, state, fake_scheduler
):
    # Given
    scheduler = _scheduler(engines, federation_config, state, fake_scheduler)

    # When
    scheduler.start()

    # Then
    jobs = _jobs(fake_scheduler)
    assert set(jobs) == {SYNC_JOB_ID, BROADCAST_JOB_ID, INITIAL_SYNC_JOB_ID}
    sync_job = jobs[SYNC_JOB_ID]
    assert sync_job.args[1] == "interval"
    assert sync_job.kwargs["seconds"] == 3600
    assert sync_job.kwargs["max_instances"] == 1
    assert sync_job.kwargs["coalesce"] is True
    assert jobs[BROADCAST_JOB_ID].kwargs["seconds"] == 14400
    fake_scheduler.start.assert_called_once()


def test_start_given_initial_sync_done_when_started_then_no_initial_job(
    engines, federation_config, state, fake_scheduler
):
    # Given
    state.mark_initial_sync_done()
    scheduler = _scheduler(engines, federation_config, state, fake_scheduler)

    # When
    scheduler.start()

    # Then
    assert INITIAL_SYNC_JOB_ID not in _jobs(fake_scheduler)


def test_start_given_missing_identity_when_started_then_configuration_error(
    engines, federation_config, state, fake_scheduler
):
    federation_config.directory_url = ""
    scheduler = _scheduler(engines, federation_config, state, fake_scheduler)

    with pytest.raises(ConfigurationError):
        scheduler.start()
    fake_scheduler.start.assert_not_called()


# =============================================================================
# GIVEN: The initial sync job
# =============================================================================


@pytest.mark.asyncio
async def test_initial_sync_given_success_when_run_then_flag_persisted(
    engines, federation_config, state, fake_scheduler, tmp_path
):
    # Given
    scheduler = _scheduler(engines, federation_config, state, fake_scheduler)

    # When
    await scheduler.initial_sync()

    # Then
    assert state.initial_sync_done
    saved = json.loads((tmp_path / "scheduler_state.json").read_text())
    assert saved["initial_sync_done"] is True
    assert SchedulerState(tmp_path / "scheduler_state.json").initial_sync_done


@pytest.mark.asyncio
async def test_initial_sync_given_store_failure_when_run_then_flag_not_set(
    engines, federation_config, state, fake_scheduler
):
    # Given
    engines[0].run.side_effect = StoreFailure("offline")
    scheduler = _scheduler(engines, federation_config, state, fake_scheduler)

    # When
    with pytest.raises(StoreFailure):
        await scheduler.initial_sync()

    # Then
    assert not state.initial_sync_done


@pytest.mark.asyncio
async def test_initial_sync_given_overlapping_run_when_skipped_then_flag_not_set(
    engines, federation_config, state, fake_scheduler
):
    engines[0].run.return_value = SyncReport(skipped=True)
    scheduler = _scheduler(engines, federation_config, state, fake_scheduler)

    await scheduler.initial_sync()

    assert not state.initial_sync_done


def test_state_given_corrupted_file_when_loaded_then_treated_as_fresh(tmp_path):
    path = tmp_path / "scheduler_state.json"
    path.write_text("{oops", encoding="utf-8")
    assert SchedulerState(path).initial_sync_done is False
