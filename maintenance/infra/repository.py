from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from maintenance.domain.cancellation import CancellationToken, check_cancelled
from maintenance.domain.entities import Backup, Host, MaintenanceTask, utcnow
from maintenance.domain.errors import BackupRepositoryError, HostNotFoundError, RepositoryError

from .db import get_session_factory
from .models import BackupModel, HostModel, MaintenanceTaskModel


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back naive; everything is stored as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_entity(model: MaintenanceTaskModel) -> MaintenanceTask:
    return MaintenanceTask.restore(
        id=model.id,
        name=model.name,
        type=model.type,
        schedule=model.schedule,
        next_run_at=_as_utc(model.next_run_at),
        last_run_at=_as_utc(model.last_run_at),
        enabled=model.enabled,
        created_at=_as_utc(model.created_at),
        updated_at=_as_utc(model.updated_at),
    )


def _to_model(task: MaintenanceTask) -> MaintenanceTaskModel:
    return MaintenanceTaskModel(
        id=task.id,
        name=task.name,
        type=str(task.type),
        schedule=task.schedule,
        next_run_at=task.next_run_at,
        last_run_at=task.last_run_at,
        enabled=task.enabled,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


class MaintenanceTaskRepository:
    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    def save(self, task: MaintenanceTask, token: CancellationToken | None = None) -> None:
        check_cancelled(token)
        try:
            with self._session_factory() as session:
                session.merge(_to_model(task))
                session.commit()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to save maintenance task {task.id}: {exc}") from exc

    def find_all(self, token: CancellationToken | None = None) -> list[MaintenanceTask]:
        check_cancelled(token)
        try:
            with self._session_factory() as session:
                stmt = select(MaintenanceTaskModel)
                return [_to_entity(task) for task in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to list maintenance tasks: {exc}") from exc

    def find_due_tasks(
        self,
        token: CancellationToken | None = None,
        now: datetime | None = None,
    ) -> list[MaintenanceTask]:
        check_cancelled(token)
        now = now or utcnow()
        try:
            with self._session_factory() as session:
                stmt = (
                    select(MaintenanceTaskModel)
                    .where(
                        MaintenanceTaskModel.enabled.is_(True),
                        or_(
                            MaintenanceTaskModel.next_run_at.is_(None),
                            MaintenanceTaskModel.next_run_at <= now,
                        ),
                    )
                    .order_by(
                        MaintenanceTaskModel.next_run_at.is_not(None),
                        MaintenanceTaskModel.next_run_at.asc(),
                    )
                )
                return [_to_entity(task) for task in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to query due maintenance tasks: {exc}") from exc


class BackupRepository:
    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    def find_all(self, token: CancellationToken | None = None) -> list[Backup]:
        check_cancelled(token)
        try:
            with self._session_factory() as session:
                return [
                    Backup(
                        id=row.id,
                        host_id=row.host_id,
                        path=row.path,
                        destination=row.destination,
                        incremental=row.incremental,
                        retention=row.retention,
                    )
                    for row in session.scalars(select(BackupModel))
                ]
        except SQLAlchemyError as exc:
            raise BackupRepositoryError(f"failed to list backups: {exc}") from exc


class HostRepository:
    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    def get(self, host_id: str, token: CancellationToken | None = None) -> Host:
        check_cancelled(token)
        try:
            with self._session_factory() as session:
                row = session.get(HostModel, host_id)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to load host {host_id}: {exc}") from exc
        if not row:
            raise HostNotFoundError(host_id)
        return Host(
            id=row.id,
            name=row.name,
            hostname=row.hostname,
            user=row.user,
            port=row.port,
            path=row.path,
        )
