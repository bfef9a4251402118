"""Tests for request id and request size middleware."""

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from quizgate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from quizgate.app.middleware.request_size import RequestSizeLimitMiddleware


def _echo_app(max_body_size: int = 10) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=max_body_size)
    app.add_middleware(RequestIdMiddleware)

    @app.post("/echo")
    async def echo(req: Request):
        return {"size": len(await req.body()), "request_id": get_request_id(req)}

    @app.post("/boom")
    async def boom(_: Request):
        raise RuntimeError("boom")

    return app


def test_request_id_generated_when_missing():
    client = TestClient(_echo_app())

    response = client.post("/echo", content=b"hi")

    assert response.headers["X-Request-ID"] == response.json()["request_id"]
    assert len(response.headers["X-Request-ID"]) == 36


def test_request_id_propagated():
    client = TestClient(_echo_app())

    response = client.post("/echo", content=b"hi", headers={"X-Request-ID": "abc"})

    assert response.headers["X-Request-ID"] == "abc"
    assert response.json()["request_id"] == "abc"


def test_overlong_request_id_replaced():
    client = TestClient(_echo_app())

    response = client.post("/echo", content=b"hi", headers={"X-Request-ID": "x" * 500})

    assert response.headers["X-Request-ID"] != "x" * 500


def test_body_within_limit_passes():
    client = TestClient(_echo_app(max_body_size=10))

    response = client.post("/echo", content=b"x" * 10)

    assert response.status_code == 200
    assert response.json()["size"] == 10


def test_oversize_body_returns_json_413():
    client = TestClient(_echo_app(max_body_size=10), raise_server_exceptions=False)

    response = client.post("/echo", content=b"x" * 11)

    assert response.status_code == 413
    assert response.headers.get("content-type", "").startswith("application/json")
    assert response.json()["success"] is False
    assert "10 bytes" in response.json()["message"]


def test_size_middleware_does_not_mask_exceptions():
    client = TestClient(_echo_app(max_body_size=1024), raise_server_exceptions=False)

    response = client.post("/boom", json={"x": 1})

    # If middleware masked exceptions, this would be 413.
    assert response.status_code == 500
