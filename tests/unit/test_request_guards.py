"""
Unit tests for caller identity and the generation rate limiter.
"""
import pytest
from fastapi import HTTPException, Request

from app.utils.identity import ANONYMOUS_USER_ID, get_client_address, resolve_caller_id
from app.utils.rate_limiter import RateLimiter


class TestCallerIdentity:

    @pytest.mark.parametrize("raw,expected", [
        (None, ANONYMOUS_USER_ID),
        ("", ANONYMOUS_USER_ID),
        ("   ", ANONYMOUS_USER_ID),
        ("user_42", "user_42"),
        ("  user_42 ", "user_42"),
    ])
    def test_resolve(self, raw, expected):
        assert resolve_caller_id(raw) == expected

    def test_client_address(self):
        request = Request({"type": "http", "headers": [], "client": ("203.0.113.7", 5000)})
        assert get_client_address(request) == "203.0.113.7"

    def test_client_address_unknown(self):
        request = Request({"type": "http", "headers": [], "client": None})
        assert get_client_address(request) == "unknown"


class TestRateLimiter:

    def test_minute_limit(self):
        limiter = RateLimiter(requests_per_minute=2, requests_per_hour=100)
        limiter.check("u1", now=1000.0)
        limiter.check("u1", now=1001.0)

        with pytest.raises(HTTPException) as exc_info:
            limiter.check("u1", now=1002.0)

        assert exc_info.value.status_code == 429
        assert exc_info.value.detail["retry_after"] == 60

    def test_minute_window_slides(self):
        limiter = RateLimiter(requests_per_minute=1, requests_per_hour=100)
        limiter.check("u1", now=1000.0)

        limiter.check("u1", now=1061.0)

    def test_hour_limit(self):
        limiter = RateLimiter(requests_per_minute=100, requests_per_hour=3)
        for minute in range(3):
            limiter.check("u1", now=1000.0 + minute * 120)

        with pytest.raises(HTTPException) as exc_info:
            limiter.check("u1", now=1500.0)

        assert exc_info.value.detail["retry_after"] == 3600

    def test_clients_are_independent(self):
        limiter = RateLimiter(requests_per_minute=1, requests_per_hour=10)
        limiter.check("u1", now=1000.0)

        limiter.check("u2", now=1000.0)

    def test_refused_requests_are_not_counted(self):
        limiter = RateLimiter(requests_per_minute=1, requests_per_hour=10)
        limiter.check("u1", now=1000.0)
        with pytest.raises(HTTPException):
            limiter.check("u1", now=1010.0)

        limiter.check("u1", now=1061.0)

    def test_reset(self):
        limiter = RateLimiter(requests_per_minute=1, requests_per_hour=10)
        limiter.check("u1", now=1000.0)

        limiter.reset()

        limiter.check("u1", now=1000.0)

    def test_idle_clients_are_dropped(self):
        limiter = RateLimiter(requests_per_minute=5, requests_per_hour=10)
        for n in range(50):
            limiter.check(f"10.0.0.{n}", now=1000.0)

        limiter.check("10.0.1.1", now=1000.0 + 3601)

        assert list(limiter.history) == ["10.0.1.1"]

    def test_active_client_keeps_its_window(self):
        limiter = RateLimiter(requests_per_minute=5, requests_per_hour=2)
        limiter.check("10.0.0.1", now=1000.0)
        limiter.check("10.0.0.2", now=1000.0)
        limiter.check("10.0.0.1", now=3000.0)

        limiter.check("10.0.0.3", now=4700.0)

        assert set(limiter.history) == {"10.0.0.1", "10.0.0.3"}
        assert list(limiter.history["10.0.0.1"]) == [3000.0]

    def test_refused_check_leaves_no_entry(self):
        limiter = RateLimiter(requests_per_minute=0, requests_per_hour=10)

        with pytest.raises(HTTPException):
            limiter.check("10.0.0.1", now=1000.0)

        assert limiter.history == {}
