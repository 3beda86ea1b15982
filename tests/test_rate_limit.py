"""Tests for the rate limiting middleware."""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fastapi import FastAPI
from fastapi.testclient import TestClient

from middleware.rate_limit import RateLimitConfig, RateLimitMiddleware


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _client(config, clock):
    app = FastAPI()

    @app.post("/merges/{sid}/merge")
    async def merge(sid: str):
        return {"ok": True}

    @app.post("/merges/{sid}/files/{fid}/cell")
    async def cell(sid: str, fid: str):
        return {"ok": True}

    @app.post("/merges/{sid}/summary")
    async def summary(sid: str):
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware, config=config, clock=clock)
    return TestClient(app)


class TestRateLimit:

    def test_burst_limit(self):
        clock = FakeClock()
        client = _client(RateLimitConfig(burst_limit=2), clock)

        assert client.post("/merges/s/merge").status_code == 200
        assert client.post("/merges/s/merge").status_code == 200
        r = client.post("/merges/s/merge")
        assert r.status_code == 429
        assert r.headers["Retry-After"] == "1"

        clock.now += 1.5
        assert client.post("/merges/s/merge").status_code == 200

    def test_summary_has_stricter_minute_limit(self):
        clock = FakeClock()
        client = _client(RateLimitConfig(ai_requests_per_minute=1, requests_per_minute=5), clock)

        assert client.post("/merges/s/summary").status_code == 200
        clock.now += 2
        assert client.post("/merges/s/summary").status_code == 429
        assert client.post("/merges/s/merge").status_code == 200

    def test_rate_limit_headers(self):
        client = _client(RateLimitConfig(requests_per_minute=5), FakeClock())
        r = client.post("/merges/s/merge")
        assert r.headers["X-RateLimit-Limit"] == "5"
        assert r.headers["X-RateLimit-Remaining"] == "4"

    def test_edits_do_not_use_up_summary_allowance(self):
        clock = FakeClock()
        client = _client(RateLimitConfig(requests_per_minute=120, ai_requests_per_minute=10), clock)

        for _ in range(10):
            assert client.post("/merges/s/files/f/cell").status_code == 200
            clock.now += 2

        r = client.post("/merges/s/summary")
        assert r.status_code == 200
        assert r.headers["X-RateLimit-Limit"] == "10"
        assert r.headers["X-RateLimit-Remaining"] == "9"

    def test_summaries_count_toward_general_limit(self):
        clock = FakeClock()
        client = _client(RateLimitConfig(requests_per_minute=2, ai_requests_per_minute=5), clock)

        assert client.post("/merges/s/summary").status_code == 200
        clock.now += 2
        assert client.post("/merges/s/merge").status_code == 200
        clock.now += 2
        assert client.post("/merges/s/merge").status_code == 429
