from __future__ import annotations

import logging
import threading

from maintenance.domain.cancellation import CancellationToken
from maintenance.domain.errors import OperationCancelledError

from .maintenance_service import MaintenanceService

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Fixed-interval driver for :class:`MaintenanceService`.

    Ticks run one after another on the calling thread, so a slow tick delays
    the next one instead of overlapping it.
    """

    def __init__(self, service: MaintenanceService, interval: float = 60.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._service = service
        self._interval = interval

    def run(self, token: CancellationToken) -> None:
        logger.info("Maintenance scheduler started (interval: %ss)", self._interval)
        while not token.wait(self._interval):
            self.tick(token)
        logger.info("Maintenance scheduler stopped")

    def tick(self, token: CancellationToken) -> None:
        try:
            self._service.process_due_tasks(token)
        except OperationCancelledError:
            logger.info("Maintenance tick cancelled")
        except Exception as exc:  # noqa: BLE001
            logger.error("Error processing due maintenance tasks: %s", exc)

    def start(self, token: CancellationToken) -> threading.Thread:
        thread = threading.Thread(target=self.run, args=(token,), name="maintenance-scheduler", daemon=True)
        thread.start()
        return thread
