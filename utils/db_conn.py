import os
import logging
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

# Configure logging for storage operations
logger = logging.getLogger(__name__)

# Defaults used when the environment / .env does not override them
HARDCODE_DATA_DIR = "instance"
HARDCODE_DB_NAME = "repota-storage.sqlite3"
HARDCODE_LOCAL_QUOTA_BYTES = 5 * 1024 * 1024
HARDCODE_DB_QUOTA_BYTES = 50 * 1024 * 1024
HARDCODE_DEBOUNCE_MS = 500
HARDCODE_UNDO_WINDOW_SECONDS = 10
HARDCODE_SECRET_KEY = "dev-secret-key-change-in-production"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}; using {default}")
        return default


@dataclass
class StorageConfig:
    """Where and how the gradebook keeps its data on this device."""

    data_dir: str = HARDCODE_DATA_DIR
    db_name: str = HARDCODE_DB_NAME
    force_local_storage: bool = False
    local_quota_bytes: int = HARDCODE_LOCAL_QUOTA_BYTES
    db_quota_bytes: Optional[int] = HARDCODE_DB_QUOTA_BYTES
    debounce_ms: int = HARDCODE_DEBOUNCE_MS
    undo_window_seconds: float = HARDCODE_UNDO_WINDOW_SECONDS
    secret_key: str = field(default=HARDCODE_SECRET_KEY, repr=False)

    @property
    def db_path(self) -> str:
        return os.path.join(self.data_dir, self.db_name)

    @property
    def local_storage_dir(self) -> str:
        return os.path.join(self.data_dir, "localstorage")

    @classmethod
    def from_env(cls, **overrides) -> "StorageConfig":
        """Build a config from environment variables (after loading .env)."""
        load_dotenv()
        logger.info("Environment variables loaded from .env file")

        db_quota = _env_int("REPOTA_DB_QUOTA_BYTES", HARDCODE_DB_QUOTA_BYTES)
        config = cls(
            data_dir=os.getenv("REPOTA_DATA_DIR", HARDCODE_DATA_DIR),
            db_name=os.getenv("REPOTA_DB_NAME", HARDCODE_DB_NAME),
            force_local_storage=_env_bool("REPOTA_FORCE_LOCAL_STORAGE"),
            local_quota_bytes=_env_int(
                "REPOTA_LOCAL_QUOTA_BYTES", HARDCODE_LOCAL_QUOTA_BYTES
            ),
            db_quota_bytes=db_quota if db_quota > 0 else None,
            debounce_ms=_env_int("REPOTA_AUTOSAVE_DEBOUNCE_MS", HARDCODE_DEBOUNCE_MS),
            undo_window_seconds=_env_int(
                "REPOTA_UNDO_WINDOW_SECONDS", HARDCODE_UNDO_WINDOW_SECONDS
            ),
            secret_key=os.getenv("SECRET_KEY", HARDCODE_SECRET_KEY),
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        logger.info(f"Storage config: {config}")
        return config


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_storage_engine(db_path: str) -> Engine:
    """Create the single SQLite engine for the primary store.

    StaticPool keeps exactly one DB-API connection for the engine's lifetime,
    shared across the autosave timer threads (callers serialise access).
    """
    directory = os.path.dirname(os.path.abspath(db_path))
    os.makedirs(directory, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    logger.info(f"SQLite engine configured at {db_path}")
    return engine
