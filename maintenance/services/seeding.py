from __future__ import annotations

import logging

from maintenance.domain.cancellation import CancellationToken
from maintenance.domain.entities import MaintenanceTask
from maintenance.domain.enums import MaintenanceTaskType
from maintenance.domain.interfaces import MaintenanceTaskRepository

logger = logging.getLogger(__name__)

DEFAULT_PURGE_TASK_NAME = "Purge incremental backups"


def seed_default_tasks(
    repo: MaintenanceTaskRepository,
    purge_schedule: str = "@daily",
    token: CancellationToken | None = None,
) -> MaintenanceTask | None:
    """Ensure one purge task exists. Returns the task created, or None if one was already there."""
    existing = repo.find_all(token)
    for task in existing:
        if task.type == MaintenanceTaskType.PURGE:
            logger.info("Seeding: '%s' task already exists.", task.name)
            return None

    logger.info("Seeding: Creating '%s' task...", DEFAULT_PURGE_TASK_NAME)
    task = MaintenanceTask.create(DEFAULT_PURGE_TASK_NAME, MaintenanceTaskType.PURGE, purge_schedule)
    repo.save(task, token)
    return task
