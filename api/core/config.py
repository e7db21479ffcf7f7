"""
Runtime settings read from the environment.

Everything is optional; defaults target a local PostgreSQL on the standard port.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit, urlunsplit


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def sanitize_database_url(url: str) -> str:
    # asyncpg rejects libpq's sslmode query parameter.
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    database_url: str = ""
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "postgres"
    pool_size: int = 10
    pool_acquire_timeout: float | None = 10.0
    command_timeout: float = 30.0
    app_env: str = "development"
    log_dir: Path = Path("logs")
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    def connect_kwargs(self) -> dict:
        """
        Keyword arguments for `asyncpg.create_pool`.

        DATABASE_URL wins over the discrete POSTGRES_* values.
        """
        if self.database_url:
            return {"dsn": sanitize_database_url(self.database_url)}
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password or None,
            "database": self.db_name,
        }

    def secrets(self) -> tuple[str, ...]:
        """Passwords that must never appear in logs or error responses."""
        found = [self.db_password]
        if self.database_url:
            password = urlsplit(self.database_url).password
            if password:
                found += [password, unquote(password)]
        return tuple(dict.fromkeys(s for s in found if s))

    @classmethod
    def from_env(cls) -> "Settings":
        timeout = _env_float("DB_POOL_TIMEOUT", 10.0)
        pool_size = _env_int("DB_POOL_SIZE", 10)
        return cls(
            host=_env_str("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            database_url=os.environ.get("DATABASE_URL", "").strip(),
            db_host=_env_str("POSTGRES_HOST", "localhost"),
            db_port=_env_int("POSTGRES_PORT", 5432),
            db_user=_env_str("POSTGRES_USER", "postgres"),
            db_password=os.environ.get("POSTGRES_PASSWORD", ""),
            db_name=_env_str("POSTGRES_DB", "postgres"),
            pool_size=pool_size if pool_size > 0 else 10,
            # 0 (or negative) means wait for a free connection indefinitely.
            pool_acquire_timeout=timeout if timeout > 0 else None,
            command_timeout=_env_float("DB_COMMAND_TIMEOUT", 30.0),
            app_env=_env_str("APP_ENV", "development"),
            log_dir=Path(_env_str("LOG_DIR", "logs")),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
