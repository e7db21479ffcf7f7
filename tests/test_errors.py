from __future__ import annotations

from fastapi.testclient import TestClient

from core.errors import AppError, ConflictError, InternalError, NotFoundError, ValidationError
from core.result import ServiceResult
from main import create_app


def test_error_types_carry_status_codes():
    assert AppError("x").status_code == 500
    assert AppError("x", 418).status_code == 418
    assert ValidationError("x").status_code == 400
    assert NotFoundError("x").status_code == 404
    assert ConflictError("x").status_code == 409
    assert InternalError("x").status_code == 500


def test_service_result_unwrap():
    assert ServiceResult.success(3).unwrap() == 3
    failed = ServiceResult.failure(NotFoundError("gone"))
    assert not failed.ok
    try:
        failed.unwrap()
    except NotFoundError as exc:
        assert exc.message == "gone"
    else:
        raise AssertionError("unwrap() should raise the stored error")


def test_unknown_route_uses_error_shape(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"status": "error", "statusCode": 404, "message": "Not Found"}


def test_wrong_method_uses_error_shape(client):
    response = client.post("/users/1", json={})
    assert response.status_code == 405
    assert response.json()["statusCode"] == 405


def test_malformed_json_is_a_400(client, pool):
    response = client.post(
        "/users",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid request")
    assert pool.acquired == 0


def test_unhandled_exception_renders_500(settings, database):
    app = create_app(settings=settings, database=database)

    @app.get("/explode")
    async def explode():
        raise RuntimeError("kaboom")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/explode")

    assert response.status_code == 500
    assert response.json() == {
        "status": "error",
        "statusCode": 500,
        "message": "Internal Server Error",
    }


def test_explicit_status_on_app_error_is_rendered(settings, database):
    app = create_app(settings=settings, database=database)

    @app.get("/teapot")
    async def teapot():
        raise AppError("short and stout", 418)

    with TestClient(app) as client:
        response = client.get("/teapot")

    assert response.status_code == 418
    assert response.json()["message"] == "short and stout"


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").status_code == 200
