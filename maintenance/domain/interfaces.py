"""Collaborator contracts consumed by the maintenance dispatcher.

Structural (``Protocol``) interfaces: adapters only need matching methods.
Every method takes an optional cancellation token and must raise
``OperationCancelledError`` when it fires before or during I/O.
"""
from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .cancellation import CancellationToken
from .entities import Backup, Host, MaintenanceTask


class MaintenanceTaskRepository(Protocol):
    def save(self, task: MaintenanceTask, token: CancellationToken | None = None) -> None:
        """Insert or update the task, keyed by its id."""
        ...

    def find_all(self, token: CancellationToken | None = None) -> list[MaintenanceTask]:
        ...

    def find_due_tasks(
        self,
        token: CancellationToken | None = None,
        now: datetime | None = None,
    ) -> list[MaintenanceTask]:
        """Enabled tasks whose next run is unset or not after ``now``."""
        ...


class BackupRepository(Protocol):
    def find_all(self, token: CancellationToken | None = None) -> list[Backup]:
        ...


class HostRepository(Protocol):
    def get(self, host_id: str, token: CancellationToken | None = None) -> Host:
        ...


class MaintenancePublisher(Protocol):
    def publish_purge_task(self, backup: Backup, token: CancellationToken | None = None) -> None:
        """Enqueue a purge work item for ``backup``; does not wait for the worker."""
        ...
