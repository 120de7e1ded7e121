"""Application configuration helpers."""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


def _default_data_root() -> Path:
    """Return the platform specific directory used for persistent data."""

    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home()))
        return base / "FreshStockAdmin"
    return Path.home() / ".freshstock_admin"


def _default_database_path() -> Path:
    override = os.environ.get("FRESHSTOCK_DB")
    if override:
        return Path(override).expanduser()
    return _default_data_root() / "ledger.sqlite3"


def _default_log_file() -> Path:
    override = os.environ.get("FRESHSTOCK_LOG_FILE")
    if override:
        return Path(override).expanduser()
    return _default_data_root() / "logs" / "freshstock.log"


def _default_secret_key() -> str:
    """Return the secret key used for signing operator tokens."""

    override = os.environ.get("FRESHSTOCK_SECRET")
    if override:
        return override
    return secrets.token_hex(32)


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() in {"1", "true", "yes"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration loaded from environment variables."""

    app_name: str = field(default_factory=lambda: os.environ.get("FRESHSTOCK_APP_NAME", "FreshStock Admin"))
    host: str = field(default_factory=lambda: os.environ.get("FRESHSTOCK_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("FRESHSTOCK_PORT", 8000))
    reload: bool = field(default_factory=lambda: _env_bool("FRESHSTOCK_RELOAD", False))
    log_level: str = field(default_factory=lambda: os.environ.get("FRESHSTOCK_LOG_LEVEL", "info"))
    database_path: Path = field(default_factory=_default_database_path)
    log_file: Path = field(default_factory=_default_log_file)
    secret_key: str = field(default_factory=_default_secret_key)
    session_max_age: int = field(default_factory=lambda: _env_int("FRESHSTOCK_SESSION_AGE", 60 * 60 * 8))

    # Bulk update retry schedule: min(base * 2^(attempt-1), cap) milliseconds.
    bulk_max_retries: int = field(default_factory=lambda: _env_int("FRESHSTOCK_BULK_MAX_RETRIES", 3))
    retry_base_ms: int = field(default_factory=lambda: _env_int("FRESHSTOCK_RETRY_BASE_MS", 1000))
    retry_cap_ms: int = field(default_factory=lambda: _env_int("FRESHSTOCK_RETRY_CAP_MS", 5000))
    ledger_save_attempts: int = field(default_factory=lambda: _env_int("FRESHSTOCK_LEDGER_SAVE_ATTEMPTS", 2))

    quantity_min: float = field(default_factory=lambda: _env_float("FRESHSTOCK_QTY_MIN", 0.5))
    quantity_max: float = field(default_factory=lambda: _env_float("FRESHSTOCK_QTY_MAX", 200.0))
    quantity_step: float = field(default_factory=lambda: _env_float("FRESHSTOCK_QTY_STEP", 0.5))
    reconciliation_tolerance: float = field(default_factory=lambda: _env_float("FRESHSTOCK_TOLERANCE", 0.01))

    discount_enabled: bool = field(default_factory=lambda: _env_bool("FRESHSTOCK_DISCOUNT_ENABLED", True))
    discount_percentage: float = field(default_factory=lambda: _env_float("FRESHSTOCK_DISCOUNT_PERCENT", 5.0))
    discount_minimum: float = field(default_factory=lambda: _env_float("FRESHSTOCK_DISCOUNT_MINIMUM", 1000.0))

    def ensure_storage(self) -> None:
        """Ensure that the database and log directories exist."""

        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    settings = Settings()
    settings.ensure_storage()
    return settings
