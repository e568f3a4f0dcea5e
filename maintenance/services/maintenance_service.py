from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from maintenance.domain.cancellation import CancellationToken, check_cancelled
from maintenance.domain.entities import MaintenanceTask, utcnow
from maintenance.domain.enums import MaintenanceTaskType
from maintenance.domain.errors import OperationCancelledError
from maintenance.domain.interfaces import (
    BackupRepository,
    MaintenancePublisher,
    MaintenanceTaskRepository,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class MaintenanceService:
    """Runs due maintenance tasks and advances their schedules.

    One call to :meth:`process_due_tasks` is one dispatcher tick. Ticks must not
    overlap on the same instance.
    """

    def __init__(
        self,
        repo: MaintenanceTaskRepository,
        backup_repo: BackupRepository,
        publisher: MaintenancePublisher,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._backup_repo = backup_repo
        self._publisher = publisher
        self._clock = clock

    def process_due_tasks(self, token: CancellationToken | None = None) -> None:
        tasks = self._repo.find_due_tasks(token, now=self._clock())

        for task in tasks:
            check_cancelled(token)
            logger.info("Processing maintenance task: %s (%s)", task.name, task.type)

            try:
                self._execute_task(task, token)
            except OperationCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("Error executing maintenance task %s: %s", task.id, exc)
                continue

            self._advance(task, token)

    def _advance(self, task: MaintenanceTask, token: CancellationToken | None) -> None:
        now = self._clock()
        task.mark_executed(now, now=now)
        try:
            task.recompute_next_run(now)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error calculating next run for task %s: %s", task.id, exc)

        try:
            self._repo.save(task, token)
        except OperationCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Error saving maintenance task %s: %s", task.id, exc)

    def _execute_task(self, task: MaintenanceTask, token: CancellationToken | None) -> None:
        if task.type == MaintenanceTaskType.PURGE:
            self._purge_incremental_backups(token)
            return
        logger.info("Unknown maintenance task type: %s", task.type)

    def _purge_incremental_backups(self, token: CancellationToken | None) -> None:
        backups = self._backup_repo.find_all(token)

        for backup in backups:
            if not backup.purge_eligible:
                continue

            check_cancelled(token)
            logger.info("Queueing purge task for backup: %s (retention: %d)", backup.id, backup.retention)
            try:
                self._publisher.publish_purge_task(backup, token)
            except OperationCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to publish purge task for backup %s: %s", backup.id, exc)
