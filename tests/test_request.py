from ipaddress import ip_address, ip_network

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient

from real_ip.app import app
from real_ip.networks import IpNetworks
from real_ip.request import RealIp, forwarding_headers, get_client_ip, get_real_ip, peer_address
from real_ip.resolver import InvalidHeaderPolicy


def make_request(headers=(), client=("10.0.0.1", 50000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in headers],
        "client": client,
    }
    return Request(scope)


def with_peer(asgi_app, host):
    """Wrap an ASGI app so every request appears to come from host."""
    async def wrapped(scope, receive, send):
        if scope["type"] == "http":
            scope = dict(scope, client=(host, 50000))
        await asgi_app(scope, receive, send)
    return wrapped


@pytest.fixture
def trusted_app():
    app.dependency_overrides[get_real_ip] = lambda: RealIp(IpNetworks([ip_network("10.0.0.0/8")]))
    yield app
    app.dependency_overrides.clear()


def test_peer_address():
    assert peer_address(make_request()) == ip_address("10.0.0.1")
    assert peer_address(make_request(client=("::1", 1))) == ip_address("::1")
    assert peer_address(make_request(client=("testclient", 1))) is None
    assert peer_address(make_request(client=None)) is None


def test_forwarding_headers_joins_list_headers():
    request = make_request([
        ("X-Forwarded-For", "203.0.113.7"),
        ("X-Forwarded-For", "10.0.0.2"),
        ("X-Real-IP", "192.0.2.1"),
        ("X-Real-IP", "192.0.2.2"),
        ("Forwarded", "for=192.0.2.60"),
        ("Forwarded", "for=\"[2001:db8::1]\""),
        ("Content-Type", "text/plain"),
    ])
    assert forwarding_headers(request) == {
        "x-forwarded-for": "203.0.113.7, 10.0.0.2",
        "x-real-ip": "192.0.2.1",
        "forwarded": "for=192.0.2.60, for=\"[2001:db8::1]\"",
    }


def test_real_ip_dependency_accepts_address_list():
    resolver = RealIp([ip_address("10.0.0.1")])
    request = make_request([("x-forwarded-for", "203.0.113.7")])
    assert resolver(request) == ip_address("203.0.113.7")
    assert RealIp()(request) == ip_address("10.0.0.1")


def test_real_ip_dependency_rejects_invalid_headers():
    resolver = RealIp([ip_address("10.0.0.1")], InvalidHeaderPolicy.REJECT)
    with pytest.raises(HTTPException) as excinfo:
        resolver(make_request([("x-forwarded-for", "203.0.113.7, junk")]))
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "Invalid x-forwarded-for header"
    assert "junk" not in excinfo.value.detail


def test_get_client_ip(monkeypatch):
    monkeypatch.setenv("REAL_IP_TRUSTED_PROXIES", "10.0.0.0/8")
    get_real_ip.cache_clear()
    try:
        assert get_client_ip(make_request([("x-real-ip", "203.0.113.7")])) == "203.0.113.7"
        assert get_client_ip(make_request(client=None)) == "unknown"
    finally:
        get_real_ip.cache_clear()


def test_ip_route_behind_trusted_proxy(trusted_app):
    client = TestClient(with_peer(trusted_app, "10.0.0.1"))
    response = client.get("/v1/ip", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.5"})
    assert response.status_code == 200
    assert response.json() == {"ip": "203.0.113.7"}


def test_ip_route_from_untrusted_peer(trusted_app):
    client = TestClient(with_peer(trusted_app, "198.51.100.9"))
    response = client.get("/v1/ip", headers={"X-Forwarded-For": "203.0.113.7"})
    assert response.json() == {"ip": "198.51.100.9"}


def test_ip_route_without_ip_peer(trusted_app):
    client = TestClient(with_peer(trusted_app, "testclient"))
    assert client.get("/v1/ip").json() == {"ip": None}


def test_ip_route_rejects_invalid_header():
    app.dependency_overrides[get_real_ip] = lambda: RealIp([ip_address("10.0.0.1")], InvalidHeaderPolicy.REJECT)
    try:
        client = TestClient(with_peer(app, "10.0.0.1"))
        response = client.get("/v1/ip", headers={"X-Forwarded-For": "not-an-ip"})
        assert response.status_code == 400
    finally:
        app.dependency_overrides.clear()


def test_app_health():
    """Smoke test that the FastAPI app module imports and serves requests."""
    assert TestClient(app).get("/health").json() == {"status": "ok"}


def test_get_client_ip_with_explicit_resolver():
    """get_client_ip is not a dependency, so a resolver is passed in directly."""
    request = make_request([("x-forwarded-for", "203.0.113.7")])
    assert get_client_ip(request, RealIp([ip_address("10.0.0.1")])) == "203.0.113.7"
    assert get_client_ip(request, RealIp()) == "10.0.0.1"
