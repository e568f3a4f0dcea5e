from __future__ import annotations

import logging
import signal
import sys

from maintenance.config import load_settings
from maintenance.domain.cancellation import CancellationToken
from maintenance.infra.db import get_session_factory, init_db
from maintenance.infra.logging import setup_logging
from maintenance.infra.publisher import RedisMaintenancePublisher
from maintenance.infra.repository import BackupRepository, HostRepository, MaintenanceTaskRepository
from maintenance.services.maintenance_service import MaintenanceService
from maintenance.services.scheduler import MaintenanceScheduler
from maintenance.services.seeding import seed_default_tasks

logger = logging.getLogger(__name__)


def _install_signal_handlers(token: CancellationToken) -> None:
    def _stop(signum, _frame) -> None:
        logger.info("Received signal %s, shutting down", signum)
        token.cancel()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main() -> None:
    settings = load_settings()
    setup_logging(settings)
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.critical("DB error: %s", exc)
        sys.exit(1)

    session_factory = get_session_factory()
    task_repo = MaintenanceTaskRepository(session_factory)
    publisher = RedisMaintenancePublisher.from_url(
        settings.redis_url,
        HostRepository(session_factory),
        queue=settings.maintenance_queue,
    )
    service = MaintenanceService(task_repo, BackupRepository(session_factory), publisher)

    if settings.seed_purge_schedule:
        seed_default_tasks(task_repo, settings.seed_purge_schedule)

    token = CancellationToken()
    _install_signal_handlers(token)
    MaintenanceScheduler(service, settings.scheduler_interval_seconds).run(token)


if __name__ == "__main__":
    main()
