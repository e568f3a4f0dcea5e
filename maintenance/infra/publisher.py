from __future__ import annotations

import json
import logging
from dataclasses import asdict

import redis

from maintenance.domain.cancellation import CancellationToken, check_cancelled
from maintenance.domain.entities import Backup, PurgeWorkItem
from maintenance.domain.errors import PublishError, RepositoryError
from maintenance.domain.interfaces import HostRepository

logger = logging.getLogger(__name__)

DEFAULT_QUEUE = "backup_tasks"


class RedisMaintenancePublisher:
    """Pushes purge work items onto the Redis list the backup workers consume."""

    def __init__(
        self,
        client: redis.Redis,
        host_repo: HostRepository,
        queue: str = DEFAULT_QUEUE,
    ) -> None:
        self._client = client
        self._host_repo = host_repo
        self._queue = queue

    @classmethod
    def from_url(cls, url: str, host_repo: HostRepository, queue: str = DEFAULT_QUEUE) -> RedisMaintenancePublisher:
        return cls(redis.Redis.from_url(url), host_repo, queue)

    def publish_purge_task(self, backup: Backup, token: CancellationToken | None = None) -> None:
        try:
            host = self._host_repo.get(backup.host_id, token)
        except RepositoryError as exc:
            raise PublishError(f"failed to get host: {exc}") from exc

        item = PurgeWorkItem.for_backup(backup, host)
        payload = json.dumps(asdict(item))

        check_cancelled(token)
        try:
            self._client.rpush(self._queue, payload)
        except redis.RedisError as exc:
            raise PublishError(f"failed to publish purge task to redis: {exc}") from exc
        logger.debug("Pushed purge work item %s for backup %s onto %s", item.task_id, backup.id, self._queue)
