from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str
    redis_url: str = "redis://localhost:6379/0"
    maintenance_queue: str = "backup_tasks"
    scheduler_interval_seconds: float = 60.0
    log_level: str = "INFO"
    log_dir: str = "logs"
    seed_purge_schedule: str | None = "@daily"


def load_settings() -> Settings:
    load_env()

    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

    return Settings(
        database_url=database_url,
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0").strip(),
        maintenance_queue=os.getenv("MAINTENANCE_QUEUE", "backup_tasks").strip(),
        scheduler_interval_seconds=float(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        seed_purge_schedule=os.getenv("SEED_PURGE_SCHEDULE", "@daily").strip() or None,
    )
