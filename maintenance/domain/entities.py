from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from . import cron
from .enums import MaintenanceTaskType, WorkItemType
from .errors import InvalidArgumentError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class MaintenanceTask:
    """A named recurring maintenance job with a cron schedule.

    Build new tasks with :meth:`create`, which validates; rows coming back from
    a store go through :meth:`restore`, which trusts its input. Only the
    dispatcher mutates scheduling state.
    """

    id: uuid.UUID
    name: str
    type: MaintenanceTaskType | str
    schedule: str
    next_run_at: Optional[datetime]
    last_run_at: Optional[datetime]
    enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls,
        name: str,
        type: MaintenanceTaskType | str,
        schedule: str,
        now: datetime | None = None,
    ) -> MaintenanceTask:
        if not name or not name.strip():
            raise InvalidArgumentError("name is required")
        if not schedule or not schedule.strip():
            raise InvalidArgumentError("schedule is required")
        cron.validate(schedule)

        now = now or utcnow()
        task = cls(
            id=uuid.uuid4(),
            name=name,
            type=_coerce_type(type),
            schedule=schedule,
            next_run_at=None,
            last_run_at=None,
            enabled=True,
            created_at=now,
            updated_at=now,
        )
        task.recompute_next_run(now)
        return task

    @classmethod
    def restore(
        cls,
        id: uuid.UUID,
        name: str,
        type: MaintenanceTaskType | str,
        schedule: str,
        next_run_at: Optional[datetime],
        last_run_at: Optional[datetime],
        enabled: bool,
        created_at: datetime,
        updated_at: datetime,
    ) -> MaintenanceTask:
        return cls(
            id=id,
            name=name,
            type=_coerce_type(type),
            schedule=schedule,
            next_run_at=next_run_at,
            last_run_at=last_run_at,
            enabled=enabled,
            created_at=created_at,
            updated_at=updated_at,
        )

    def recompute_next_run(self, now: datetime | None = None) -> None:
        # updated_at is left alone; callers pair this with mark_executed.
        self.next_run_at = cron.next_fire_after(self.schedule, now or utcnow())

    def mark_executed(self, at: datetime, now: datetime | None = None) -> None:
        self.last_run_at = at
        self.updated_at = now or utcnow()

    def is_due(self, now: datetime) -> bool:
        if not self.enabled:
            return False
        return self.next_run_at is None or self.next_run_at <= now


def _coerce_type(value: MaintenanceTaskType | str) -> MaintenanceTaskType | str:
    try:
        return MaintenanceTaskType(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class Host:
    id: str
    name: str
    hostname: str
    user: str
    port: int
    path: str = ""


@dataclass(frozen=True)
class Backup:
    id: str
    host_id: str
    path: str
    destination: str
    incremental: bool
    retention: int

    @property
    def purge_eligible(self) -> bool:
        return self.incremental and self.retention > 0


@dataclass(frozen=True)
class PurgeWorkItem:
    """Message consumed by backup workers to prune old incremental snapshots."""

    backup_id: str
    host: str
    user: str
    port: int
    path: str
    destination: str
    host_path: str
    incremental: bool
    retention: int
    type: str = WorkItemType.PURGE.value
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def for_backup(cls, backup: Backup, host: Host) -> PurgeWorkItem:
        return cls(
            backup_id=backup.id,
            host=host.hostname,
            user=host.user,
            port=host.port,
            path=backup.path,
            destination=backup.destination,
            host_path=host.path,
            incremental=backup.incremental,
            retention=backup.retention,
        )
