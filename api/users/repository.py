"""
Users persistence (raw SQL).

Every function takes a leased connection. Errors from the driver propagate
unchanged; deciding what they mean for the caller is the service's job.
"""

from __future__ import annotations

from typing import Any, Mapping

UPDATABLE_COLUMNS = ("name", "email")

# users.id is SERIAL (int4); asyncpg refuses to bind anything outside this range.
ID_MIN = -(2**31)
ID_MAX = 2**31 - 1

CREATE_USERS_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(100) NOT NULL UNIQUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

SELECT_USERS_SQL = """
    SELECT id, name, email, created_at
    FROM users
"""

SELECT_USER_BY_ID_SQL = """
    SELECT id, name, email, created_at
    FROM users
    WHERE id = $1
"""

INSERT_USER_SQL = """
    INSERT INTO users (name, email)
    VALUES ($1, $2)
    RETURNING id
"""

UPDATE_USER_SQL = """
    UPDATE users
    SET name = $1, email = $2
    WHERE id = $3
"""

DELETE_USER_SQL = """
    DELETE FROM users
    WHERE id = $1
"""


def affected_rows(command_status: str | None) -> int:
    """
    Row count from an asyncpg command tag such as "UPDATE 1" or "DELETE 0".
    """
    if not command_status:
        return 0
    try:
        return int(command_status.split()[-1])
    except ValueError:
        return 0


def id_in_range(user_id: int) -> bool:
    return ID_MIN <= user_id <= ID_MAX


async def ensure_users_table(conn: Any) -> None:
    await conn.execute(CREATE_USERS_TABLE_SQL)


async def list_users(conn: Any) -> list[dict]:
    # No ORDER BY: callers must not rely on row order.
    rows = await conn.fetch(SELECT_USERS_SQL)
    return [dict(r) for r in rows]


async def insert_user(conn: Any, *, name: str, email: str) -> int:
    row = await conn.fetchrow(INSERT_USER_SQL, name, email)
    if row is None:
        raise RuntimeError("Failed to insert user.")
    return int(row["id"])


async def get_user_by_id(conn: Any, user_id: int) -> dict | None:
    row = await conn.fetchrow(SELECT_USER_BY_ID_SQL, user_id)
    return dict(row) if row is not None else None


async def update_user(conn: Any, user_id: int, *, name: str, email: str) -> int:
    status = await conn.execute(UPDATE_USER_SQL, name, email, user_id)
    return affected_rows(status)


def build_patch_statement(user_id: int, fields: Mapping[str, Any]) -> tuple[str, list[Any]]:
    """
    Render a parameterized UPDATE for the given subset of updatable columns.

    Column names come from `UPDATABLE_COLUMNS`, never from the caller's keys,
    and every value is a bound parameter.
    """
    unknown = set(fields) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Columns not updatable: {', '.join(sorted(unknown))}")

    pairs = [(column, fields[column]) for column in UPDATABLE_COLUMNS if column in fields]
    if not pairs:
        raise ValueError("At least one column is required for a partial update.")

    assignments = ", ".join(f"{column} = ${index}" for index, (column, _) in enumerate(pairs, start=1))
    params = [value for _, value in pairs]
    params.append(user_id)
    sql = f"UPDATE users SET {assignments} WHERE id = ${len(params)}"
    return sql, params


async def patch_user(conn: Any, user_id: int, fields: Mapping[str, Any]) -> int:
    sql, params = build_patch_statement(user_id, fields)
    status = await conn.execute(sql, *params)
    return affected_rows(status)


async def delete_user(conn: Any, user_id: int) -> int:
    status = await conn.execute(DELETE_USER_SQL, user_id)
    return affected_rows(status)
