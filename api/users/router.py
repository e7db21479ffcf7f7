"""
FastAPI router for the users endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, status

from core.db import Database, get_database

from . import schemas, service

router = APIRouter()


# Declared before /users/{user_id} so the literal path wins.
@router.get("/users/create-table")
async def create_users_table(
    database: Database = Depends(get_database),
) -> schemas.MessageResponse:
    message = (await service.create_table(database)).unwrap()
    return schemas.MessageResponse(message=message)


@router.get("/users")
async def list_users(
    database: Database = Depends(get_database),
) -> list[schemas.UserResponse]:
    return (await service.list_users(database)).unwrap()


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: schemas.UserWriteRequest | None = Body(default=None),
    database: Database = Depends(get_database),
) -> schemas.UserCreatedResponse:
    user_id = (await service.create_user(database, payload)).unwrap()
    return schemas.UserCreatedResponse(message="User created successfully", id=user_id)


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    database: Database = Depends(get_database),
) -> schemas.UserResponse:
    return (await service.get_user(database, user_id)).unwrap()


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    payload: schemas.UserWriteRequest | None = Body(default=None),
    database: Database = Depends(get_database),
) -> schemas.MessageResponse:
    message = (await service.update_user(database, user_id, payload)).unwrap()
    return schemas.MessageResponse(message=message)


@router.patch("/users/{user_id}")
async def patch_user(
    user_id: int,
    payload: schemas.UserPatchRequest | None = Body(default=None),
    database: Database = Depends(get_database),
) -> schemas.MessageResponse:
    message = (await service.patch_user(database, user_id, payload)).unwrap()
    return schemas.MessageResponse(message=message)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    database: Database = Depends(get_database),
) -> schemas.MessageResponse:
    message = (await service.delete_user(database, user_id)).unwrap()
    return schemas.MessageResponse(message=message)
