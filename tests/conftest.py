from __future__ import annotations

import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import asyncpg
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "users-api-test-logs"))
os.environ.setdefault("APP_ENV", "production")

from core.config import Settings
from core.db import Database
from main import create_app

DB_PASSWORD = "s3cret-pw"

_WHITESPACE = re.compile(r"\s+")
_UPDATE = re.compile(r"UPDATE users SET (.+) WHERE id = \$(\d+)")


def normalize_sql(sql: str) -> str:
    return _WHITESPACE.sub(" ", sql).strip()


class FakeConnection:
    """In-memory stand-in for an asyncpg connection serving the users statements."""

    def __init__(self) -> None:
        self.table_exists = False
        self.rows: dict[int, dict] = {}
        self.next_id = 1
        self.statements: list[tuple[str, tuple]] = []
        self.fail_with: Exception | None = None

    def _record(self, sql: str, args: tuple) -> str:
        statement = normalize_sql(sql)
        self.statements.append((statement, args))
        if self.fail_with is not None:
            raise self.fail_with
        for index, value in enumerate(args, start=1):
            if isinstance(value, int) and not -(2**31) <= value <= 2**31 - 1:
                raise asyncpg.DataError(
                    f"invalid input for query argument ${index}: {value} (value out of int32 range)"
                )
        if not statement.startswith("CREATE TABLE") and not self.table_exists:
            raise asyncpg.UndefinedTableError('relation "users" does not exist')
        return statement

    def _ensure_unique_email(self, email: str, *, exclude: int | None = None) -> None:
        for user_id, row in self.rows.items():
            if user_id != exclude and row["email"] == email:
                raise asyncpg.UniqueViolationError(
                    'duplicate key value violates unique constraint "users_email_key"'
                )

    async def execute(self, sql: str, *args):
        statement = self._record(sql, args)
        if statement.startswith("CREATE TABLE IF NOT EXISTS users"):
            self.table_exists = True
            return "CREATE TABLE"

        match = _UPDATE.fullmatch(statement)
        if match:
            changes = {}
            for assignment in match.group(1).split(", "):
                column, placeholder = assignment.split(" = ")
                changes[column] = args[int(placeholder[1:]) - 1]
            user_id = args[int(match.group(2)) - 1]
            row = self.rows.get(user_id)
            if row is None:
                return "UPDATE 0"
            if "email" in changes:
                self._ensure_unique_email(changes["email"], exclude=user_id)
            row.update(changes)
            return "UPDATE 1"

        if statement == "DELETE FROM users WHERE id = $1":
            removed = self.rows.pop(args[0], None)
            return f"DELETE {0 if removed is None else 1}"

        raise AssertionError(f"Unexpected statement: {statement}")

    async def fetch(self, sql: str, *args):
        statement = self._record(sql, args)
        if statement == "SELECT id, name, email, created_at FROM users":
            return [dict(row) for row in self.rows.values()]
        raise AssertionError(f"Unexpected statement: {statement}")

    async def fetchrow(self, sql: str, *args):
        statement = self._record(sql, args)
        if statement == "SELECT id, name, email, created_at FROM users WHERE id = $1":
            row = self.rows.get(args[0])
            return dict(row) if row is not None else None

        if statement == "INSERT INTO users (name, email) VALUES ($1, $2) RETURNING id":
            name, email = args
            self._ensure_unique_email(email)
            user_id = self.next_id
            self.next_id += 1
            self.rows[user_id] = {
                "id": user_id,
                "name": name,
                "email": email,
                "created_at": datetime.now(timezone.utc),
            }
            return {"id": user_id}

        raise AssertionError(f"Unexpected statement: {statement}")


class FakePool:
    def __init__(self, connection: FakeConnection | None = None) -> None:
        self.connection = connection or FakeConnection()
        self.acquire_error: BaseException | None = None
        self.acquired = 0
        self.released = 0
        self.timeouts: list[float | None] = []
        self.closed = False

    async def acquire(self, timeout: float | None = None):
        self.timeouts.append(timeout)
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        return self.connection

    async def release(self, connection) -> None:
        assert connection is self.connection
        self.released += 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(log_dir=tmp_path / "logs", app_env="production", db_password=DB_PASSWORD)


@pytest.fixture()
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def pool(connection: FakeConnection) -> FakePool:
    return FakePool(connection)


@pytest.fixture()
def database(pool: FakePool) -> Database:
    return Database(pool, acquire_timeout=5.0, secrets=(DB_PASSWORD,))


@pytest.fixture()
def client(settings: Settings, database: Database):
    app = create_app(settings=settings, database=database)
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def users_table(connection: FakeConnection) -> FakeConnection:
    connection.table_exists = True
    return connection
