# tests/test_infrastructure.py

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.errors import install_error_handlers
from core.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_fixed_window_limits_then_resets() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert limiter.hit("1.2.3.4") is True
    assert limiter.hit("1.2.3.4") is True
    assert limiter.hit("1.2.3.4") is False
    # other keys have their own window
    assert limiter.hit("5.6.7.8") is True

    clock.now += 30
    assert limiter.retry_after("1.2.3.4") == 30

    clock.now += 30
    assert limiter.hit("1.2.3.4") is True


def _tiny_app(limiter: FixedWindowRateLimiter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    install_error_handlers(app)

    @app.get("/api/thing")
    def thing():
        return {"ok": True}

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/api/boom")
    def boom():
        raise RuntimeError("secret detail")

    return app


def test_middleware_returns_429_on_api_paths_only() -> None:
    client = TestClient(_tiny_app(FixedWindowRateLimiter(max_requests=2, window_seconds=900)))

    assert client.get("/api/thing").status_code == 200
    assert client.get("/api/thing").status_code == 200
    limited = client.get("/api/thing")
    assert limited.status_code == 429
    assert limited.json()["success"] is False
    assert "Retry-After" in limited.headers

    assert client.get("/health").status_code == 200


def test_uncaught_errors_become_generic_500() -> None:
    app = _tiny_app(FixedWindowRateLimiter(max_requests=100, window_seconds=900))
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.get("/api/boom")
    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "error": "Internal server error",
        "message": "Please try again later",
    }
