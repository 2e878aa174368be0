from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient


def _with_echo_route(app: FastAPI) -> TestClient:
    @app.get("/echo-ip")
    async def echo_ip(request: Request) -> dict:
        return {"client_ip": request.state.client_ip}

    return TestClient(app)


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_echoes_request_id(client: TestClient):
    resp = client.get("/v1/operations", headers={"X-Request-ID": "req-err-1"})

    assert resp.status_code == 401
    assert resp.json()["error"]["request_id"] == "req-err-1"
    assert resp.headers.get("X-Request-ID") == "req-err-1"


def test_client_ip_is_resolved_from_proxy_headers(app: FastAPI):
    client = _with_echo_route(app)

    resp = client.get("/echo-ip", headers={"X-Forwarded-For": "::ffff:198.51.100.4, 10.0.0.1"})

    assert resp.json() == {"client_ip": "198.51.100.4"}


def test_client_ip_falls_back_to_socket_peer(app: FastAPI):
    client = _with_echo_route(app)

    resp = client.get("/echo-ip")

    assert resp.json() == {"client_ip": "testclient"}
