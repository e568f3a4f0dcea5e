from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid

from maintenance.domain.entities import utcnow

from .db import Base

class MaintenanceTaskModel(Base):
    __tablename__ = "maintenance_tasks"

    id = Column(Uuid, primary_key=True)
    name = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False)
    schedule = Column(String(100), nullable=False)
    next_run_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


# Owned by the backup subsystem; mapped here for read access only.
class HostModel(Base):
    __tablename__ = "hosts"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)
    hostname = Column(String(255), nullable=False)
    user = Column(String(100), nullable=False)
    port = Column(Integer, nullable=False, default=22)
    path = Column(String(500), nullable=False, default="")


class BackupModel(Base):
    __tablename__ = "backups"

    id = Column(String(36), primary_key=True)
    host_id = Column(String(36), nullable=False, index=True)
    path = Column(String(500), nullable=False)
    destination = Column(String(500), nullable=False)
    incremental = Column(Boolean, nullable=False, default=False)
    retention = Column(Integer, nullable=False, default=0)
