"""In-process adapters, used for local runs without a database and in tests."""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from maintenance.domain.cancellation import CancellationToken, check_cancelled
from maintenance.domain.entities import Backup, Host, MaintenanceTask, utcnow
from maintenance.domain.errors import HostNotFoundError


class InMemoryMaintenanceTaskRepository:
    def __init__(self, tasks: Iterable[MaintenanceTask] = ()) -> None:
        self._lock = threading.Lock()
        self._tasks: dict[str, MaintenanceTask] = {}
        for task in tasks:
            self._tasks[str(task.id)] = replace(task)

    def save(self, task: MaintenanceTask, token: CancellationToken | None = None) -> None:
        check_cancelled(token)
        with self._lock:
            self._tasks[str(task.id)] = replace(task)

    def find_all(self, token: CancellationToken | None = None) -> list[MaintenanceTask]:
        check_cancelled(token)
        with self._lock:
            return [replace(task) for task in self._tasks.values()]

    def find_due_tasks(
        self,
        token: CancellationToken | None = None,
        now: datetime | None = None,
    ) -> list[MaintenanceTask]:
        check_cancelled(token)
        now = now or utcnow()
        with self._lock:
            return [replace(task) for task in self._tasks.values() if task.is_due(now)]


class InMemoryBackupRepository:
    def __init__(self, backups: Iterable[Backup] = ()) -> None:
        self._lock = threading.Lock()
        self._backups = list(backups)

    def add(self, backup: Backup) -> None:
        with self._lock:
            self._backups.append(backup)

    def find_all(self, token: CancellationToken | None = None) -> list[Backup]:
        check_cancelled(token)
        with self._lock:
            return list(self._backups)


class InMemoryHostRepository:
    def __init__(self, hosts: Iterable[Host] = ()) -> None:
        self._lock = threading.Lock()
        self._hosts = {host.id: host for host in hosts}

    def add(self, host: Host) -> None:
        with self._lock:
            self._hosts[host.id] = host

    def get(self, host_id: str, token: CancellationToken | None = None) -> Host:
        check_cancelled(token)
        with self._lock:
            host = self._hosts.get(host_id)
        if host is None:
            raise HostNotFoundError(host_id)
        return host
