from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from maintenance.domain.cancellation import CancellationToken, check_cancelled
from maintenance.domain.entities import Backup, MaintenanceTask
from maintenance.domain.enums import MaintenanceTaskType
from maintenance.domain.errors import (
    BackupRepositoryError,
    OperationCancelledError,
    PublishError,
    RepositoryError,
)
from maintenance.services.maintenance_service import MaintenanceService

NOW = datetime(2025, 1, 1, 12, 34, tzinfo=timezone.utc)


class FakeTaskRepo:
    def __init__(self, tasks: list[MaintenanceTask] | None = None) -> None:
        self.tasks = {task.id: task for task in tasks or []}
        self.saved: list[MaintenanceTask] = []
        self.fail_query = False
        self.fail_save = False

    def save(self, task: MaintenanceTask, token: CancellationToken | None = None) -> None:
        check_cancelled(token)
        if self.fail_save:
            raise RepositoryError("database is read-only")
        self.saved.append(replace(task))
        self.tasks[task.id] = replace(task)

    def find_all(self, token: CancellationToken | None = None) -> list[MaintenanceTask]:
        return [replace(task) for task in self.tasks.values()]

    def find_due_tasks(
        self,
        token: CancellationToken | None = None,
        now: datetime | None = None,
    ) -> list[MaintenanceTask]:
        check_cancelled(token)
        if self.fail_query:
            raise RepositoryError("connection refused")
        return [replace(task) for task in self.tasks.values() if task.is_due(now)]


class FakeBackupRepo:
    def __init__(self, backups: list[Backup] | None = None, fail: bool = False) -> None:
        self.backups = backups or []
        self.fail = fail

    def find_all(self, token: CancellationToken | None = None) -> list[Backup]:
        if self.fail:
            raise BackupRepositoryError("backups table unavailable")
        return list(self.backups)


class FakePublisher:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.published: list[str] = []
        self.attempted: list[str] = []
        self.fail_on = fail_on or set()
        self.on_publish = None

    def publish_purge_task(self, backup: Backup, token: CancellationToken | None = None) -> None:
        self.attempted.append(backup.id)
        if self.on_publish:
            self.on_publish(backup)
        if backup.id in self.fail_on:
            raise PublishError("redis unavailable")
        self.published.append(backup.id)


def _task(
    name: str = "nightly-purge",
    type: MaintenanceTaskType | str = MaintenanceTaskType.PURGE,
    schedule: str = "0 2 * * *",
    next_run_at: datetime | None = NOW - timedelta(minutes=1),
    enabled: bool = True,
) -> MaintenanceTask:
    return MaintenanceTask.restore(
        id=uuid.uuid4(),
        name=name,
        type=type,
        schedule=schedule,
        next_run_at=next_run_at,
        last_run_at=None,
        enabled=enabled,
        created_at=NOW - timedelta(days=1),
        updated_at=NOW - timedelta(days=1),
    )


def _backup(backup_id: str, incremental: bool, retention: int) -> Backup:
    return Backup(
        id=backup_id,
        host_id="host-1",
        path=f"/srv/{backup_id}",
        destination=f"dest-{backup_id}",
        incremental=incremental,
        retention=retention,
    )


MIXED_BACKUPS = [
    _backup("A", True, 7),
    _backup("B", False, 7),
    _backup("C", True, 0),
    _backup("D", True, 30),
]


def _service(repo: FakeTaskRepo, backups: FakeBackupRepo, publisher: FakePublisher) -> MaintenanceService:
    return MaintenanceService(repo, backups, publisher, clock=lambda: NOW)


def test_single_due_purge_publishes_eligible_backups() -> None:
    task = _task()
    repo = FakeTaskRepo([task])
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.published == ["A", "D"]
    assert len(repo.saved) == 1
    saved = repo.saved[0]
    assert saved.id == task.id
    assert saved.last_run_at == NOW
    assert saved.updated_at == NOW
    assert saved.next_run_at == datetime(2025, 1, 2, 2, 0, tzinfo=timezone.utc)


def test_not_yet_due_task_is_left_alone() -> None:
    repo = FakeTaskRepo([_task(next_run_at=NOW + timedelta(hours=1))])
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.attempted == []
    assert repo.saved == []


def test_disabled_task_is_never_run() -> None:
    repo = FakeTaskRepo([_task(next_run_at=NOW - timedelta(hours=1), enabled=False)])
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.attempted == []
    assert repo.saved == []


def test_task_without_next_run_runs_immediately() -> None:
    repo = FakeTaskRepo([_task(next_run_at=None)])
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.published == ["A", "D"]
    assert repo.saved[0].next_run_at == datetime(2025, 1, 2, 2, 0, tzinfo=timezone.utc)


def test_no_due_tasks_is_a_no_op() -> None:
    repo = FakeTaskRepo()
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.attempted == []
    assert repo.saved == []


def test_purge_without_eligible_backups_still_advances() -> None:
    repo = FakeTaskRepo([_task()])
    publisher = FakePublisher()
    backups = FakeBackupRepo([_backup("B", False, 7), _backup("C", True, 0)])

    _service(repo, backups, publisher).process_due_tasks()

    assert publisher.attempted == []
    assert len(repo.saved) == 1
    assert repo.saved[0].last_run_at == NOW


def test_publisher_partial_failure_still_advances(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    repo = FakeTaskRepo([_task()])
    publisher = FakePublisher(fail_on={"A"})

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.attempted == ["A", "D"]
    assert publisher.published == ["D"]
    assert len(repo.saved) == 1
    failures = [r for r in caplog.records if "Failed to publish purge task" in r.getMessage()]
    assert len(failures) == 1
    assert "backup A" in failures[0].getMessage()


def test_backup_repo_failure_leaves_task_untouched(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    task = _task()
    repo = FakeTaskRepo([task])
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(fail=True), publisher).process_due_tasks()

    assert publisher.attempted == []
    assert repo.saved == []
    assert repo.tasks[task.id].next_run_at == NOW - timedelta(minutes=1)
    assert repo.tasks[task.id].last_run_at is None
    errors = [r for r in caplog.records if "Error executing maintenance task" in r.getMessage()]
    assert len(errors) == 1
    assert str(task.id) in errors[0].getMessage()


def test_unknown_task_type_is_a_successful_no_op(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    repo = FakeTaskRepo([_task(name="compactor", type="compact", schedule="@hourly")])
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.attempted == []
    assert len(repo.saved) == 1
    assert repo.saved[0].next_run_at == datetime(2025, 1, 1, 13, 0, tzinfo=timezone.utc)
    unknown = [r for r in caplog.records if "Unknown maintenance task type: compact" in r.getMessage()]
    assert len(unknown) == 1
    assert unknown[0].levelno == logging.INFO


def test_hourly_task_is_rescheduled_to_next_hour() -> None:
    repo = FakeTaskRepo([_task(schedule="@hourly")])

    _service(repo, FakeBackupRepo(), FakePublisher()).process_due_tasks()

    assert repo.saved[0].next_run_at == datetime(2025, 1, 1, 13, 0, tzinfo=timezone.utc)


def test_last_run_advances_across_successive_ticks() -> None:
    task = _task(schedule="@hourly")
    repo = FakeTaskRepo([task])
    publisher = FakePublisher()
    clock = [NOW]
    service = MaintenanceService(repo, FakeBackupRepo(MIXED_BACKUPS), publisher, clock=lambda: clock[0])

    service.process_due_tasks()
    clock[0] = NOW + timedelta(hours=1, minutes=5)
    service.process_due_tasks()

    first, second = repo.saved
    assert first.id == second.id == task.id
    assert second.last_run_at > first.last_run_at
    assert first.next_run_at == datetime(2025, 1, 1, 13, 0, tzinfo=timezone.utc)
    assert second.next_run_at == datetime(2025, 1, 1, 14, 0, tzinfo=timezone.utc)
    assert publisher.published == ["A", "D", "A", "D"]


def test_second_tick_before_next_run_does_nothing() -> None:
    repo = FakeTaskRepo([_task(schedule="@hourly")])
    publisher = FakePublisher()
    clock = [NOW]
    service = MaintenanceService(repo, FakeBackupRepo(MIXED_BACKUPS), publisher, clock=lambda: clock[0])

    service.process_due_tasks()
    clock[0] = NOW + timedelta(minutes=10)
    service.process_due_tasks()

    assert len(repo.saved) == 1
    assert publisher.published == ["A", "D"]


def test_processing_logs_task_name_and_type(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    repo = FakeTaskRepo([_task()])

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), FakePublisher()).process_due_tasks()

    messages = [r.getMessage() for r in caplog.records]
    assert "Processing maintenance task: nightly-purge (purge)" in messages
    assert "Queueing purge task for backup: A (retention: 7)" in messages
    assert "Queueing purge task for backup: D (retention: 30)" in messages


def test_recompute_failure_is_logged_and_task_still_saved(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    task = _task(type="compact", schedule="not a schedule")
    repo = FakeTaskRepo([task])

    _service(repo, FakeBackupRepo(), FakePublisher()).process_due_tasks()

    assert len(repo.saved) == 1
    assert repo.saved[0].last_run_at == NOW
    assert repo.saved[0].next_run_at == task.next_run_at
    assert any("Error calculating next run for task" in r.getMessage() for r in caplog.records)


def test_save_failure_is_logged_and_loop_continues(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    repo = FakeTaskRepo([_task(name="first"), _task(name="second")])
    repo.fail_save = True
    publisher = FakePublisher()

    _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.published == ["A", "D", "A", "D"]
    errors = [r for r in caplog.records if "Error saving maintenance task" in r.getMessage()]
    assert len(errors) == 2


def test_body_failure_does_not_stop_other_tasks() -> None:
    purge = _task(name="purge")
    other = _task(name="other", type="compact", schedule="@hourly")
    repo = FakeTaskRepo([purge, other])

    _service(repo, FakeBackupRepo(fail=True), FakePublisher()).process_due_tasks()

    assert [t.id for t in repo.saved] == [other.id]


def test_due_query_failure_is_returned() -> None:
    repo = FakeTaskRepo([_task()])
    repo.fail_query = True
    publisher = FakePublisher()

    with pytest.raises(RepositoryError):
        _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks()

    assert publisher.attempted == []
    assert repo.saved == []


def test_cancelled_token_aborts_before_any_work() -> None:
    repo = FakeTaskRepo([_task()])
    publisher = FakePublisher()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks(token)

    assert publisher.attempted == []
    assert repo.saved == []


def test_cancellation_mid_fan_out_leaves_task_due(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    task = _task()
    repo = FakeTaskRepo([task])
    token = CancellationToken()
    publisher = FakePublisher()
    publisher.on_publish = lambda backup: token.cancel()

    with pytest.raises(OperationCancelledError):
        _service(repo, FakeBackupRepo(MIXED_BACKUPS), publisher).process_due_tasks(token)

    assert publisher.attempted == ["A"]
    assert repo.saved == []
    assert repo.tasks[task.id].is_due(NOW)
    assert not any("Error executing" in r.getMessage() for r in caplog.records)
