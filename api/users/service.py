"""
Users business logic.

Each operation validates its input before leasing a connection, runs one
repository call inside `database.connection()`, and classifies the outcome
into a `ServiceResult`:
- nothing found / zero affected rows -> NotFoundError (404)
- unique email violation             -> ConflictError (409)
- any other driver error             -> InternalError (500)
- pool failures                      -> the ConnectivityError raised by the pool
"""

from __future__ import annotations

import logging

import asyncpg

from core.db import Database
from core.errors import AppError, ConflictError, InternalError, NotFoundError, ValidationError
from core.result import ServiceResult

from . import repository, schemas

logger = logging.getLogger("users_api.users")

_STORAGE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError)


def _storage_failure(database: Database, context: str, exc: Exception) -> AppError:
    if isinstance(exc, asyncpg.UniqueViolationError):
        return ConflictError(f"{context}: email is already in use")
    return InternalError(f"{context}: {database.redact(str(exc))}")


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _check_length(field: str, value: str, limit: int) -> None:
    if len(value) > limit:
        raise ValidationError(f"{field} must be at most {limit} characters")


def _validated_fields(name: str | None, email: str | None) -> dict[str, str]:
    """
    Non-empty subset of {name, email}, stripped and length-checked.
    """
    fields: dict[str, str] = {}
    name, email = _clean(name), _clean(email)
    if name:
        _check_length("name", name, schemas.NAME_MAX_LENGTH)
        fields["name"] = name
    if email:
        _check_length("email", email, schemas.EMAIL_MAX_LENGTH)
        fields["email"] = email
    return fields


def _not_found(user_id: int) -> NotFoundError:
    return NotFoundError(f"User with id {user_id} not found")


def _to_user_response(row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=int(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        created_at=row["created_at"],
    )


async def create_table(database: Database) -> ServiceResult[str]:
    context = "Error creating users table"
    try:
        async with database.connection() as conn:
            await repository.ensure_users_table(conn)
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    logger.info("Users table ensured")
    return ServiceResult.success("Users table created successfully")


async def list_users(database: Database) -> ServiceResult[list[schemas.UserResponse]]:
    context = "Error fetching users"
    try:
        async with database.connection() as conn:
            rows = await repository.list_users(conn)
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    # An empty table is a valid, empty listing.
    return ServiceResult.success([_to_user_response(row) for row in rows])


async def create_user(
    database: Database, payload: schemas.UserWriteRequest | None
) -> ServiceResult[int]:
    payload = payload or schemas.UserWriteRequest()
    try:
        fields = _validated_fields(payload.name, payload.email)
    except ValidationError as exc:
        return ServiceResult.failure(exc)
    if len(fields) != 2:
        return ServiceResult.failure(ValidationError("Name and email are required"))

    context = "Error creating user"
    try:
        async with database.connection() as conn:
            user_id = await repository.insert_user(conn, name=fields["name"], email=fields["email"])
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    logger.info(f"User {user_id} created", extra={"user_id": user_id})
    return ServiceResult.success(user_id)


async def get_user(database: Database, user_id: int) -> ServiceResult[schemas.UserResponse]:
    if not repository.id_in_range(user_id):
        return ServiceResult.failure(_not_found(user_id))

    context = f"Error fetching user {user_id}"
    try:
        async with database.connection() as conn:
            row = await repository.get_user_by_id(conn, user_id)
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    if row is None:
        return ServiceResult.failure(_not_found(user_id))
    return ServiceResult.success(_to_user_response(row))


async def update_user(
    database: Database, user_id: int, payload: schemas.UserWriteRequest | None
) -> ServiceResult[str]:
    payload = payload or schemas.UserWriteRequest()
    try:
        fields = _validated_fields(payload.name, payload.email)
    except ValidationError as exc:
        return ServiceResult.failure(exc)
    if len(fields) != 2:
        return ServiceResult.failure(ValidationError("Name and email are required"))

    if not repository.id_in_range(user_id):
        return ServiceResult.failure(_not_found(user_id))

    context = f"Error updating user {user_id}"
    try:
        async with database.connection() as conn:
            updated = await repository.update_user(
                conn, user_id, name=fields["name"], email=fields["email"]
            )
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    if updated == 0:
        return ServiceResult.failure(_not_found(user_id))
    logger.info(f"User {user_id} updated", extra={"user_id": user_id})
    return ServiceResult.success("User updated successfully")


async def patch_user(
    database: Database, user_id: int, payload: schemas.UserPatchRequest | None
) -> ServiceResult[str]:
    payload = payload or schemas.UserPatchRequest()
    try:
        fields = _validated_fields(payload.name, payload.email)
    except ValidationError as exc:
        return ServiceResult.failure(exc)
    if not fields:
        return ServiceResult.failure(
            ValidationError("At least one of name or email is required")
        )

    if not repository.id_in_range(user_id):
        return ServiceResult.failure(_not_found(user_id))

    context = f"Error updating user {user_id}"
    try:
        async with database.connection() as conn:
            updated = await repository.patch_user(conn, user_id, fields)
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    if updated == 0:
        return ServiceResult.failure(_not_found(user_id))
    logger.info(
        f"User {user_id} patched ({', '.join(fields)})",
        extra={"user_id": user_id},
    )
    return ServiceResult.success("User updated successfully")


async def delete_user(database: Database, user_id: int) -> ServiceResult[str]:
    if not repository.id_in_range(user_id):
        return ServiceResult.failure(_not_found(user_id))

    context = f"Error deleting user {user_id}"
    try:
        async with database.connection() as conn:
            deleted = await repository.delete_user(conn, user_id)
    except AppError as exc:
        return ServiceResult.failure(exc)
    except _STORAGE_ERRORS as exc:
        return ServiceResult.failure(_storage_failure(database, context, exc))
    if deleted == 0:
        return ServiceResult.failure(_not_found(user_id))
    logger.info(f"User {user_id} deleted", extra={"user_id": user_id})
    return ServiceResult.success("User deleted successfully")
