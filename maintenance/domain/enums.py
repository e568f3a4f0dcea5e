from __future__ import annotations

from enum import StrEnum


class MaintenanceTaskType(StrEnum):
    PURGE = "purge"


class WorkItemType(StrEnum):
    PURGE = "purge"
