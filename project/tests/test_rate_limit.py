# tests/test_rate_limit.py

from types import SimpleNamespace

import pytest

from app.services.rate_limit import TokenBucketRateLimiter, client_address
from app.utils.errors import RateLimited


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return TokenBucketRateLimiter(capacity=10, refill_rate=1.0, clock=clock)


def test_burst_of_fifteen_allows_ten(limiter):
    results = [limiter.check("user-1") for _ in range(15)]
    assert results.count(True) == 10
    assert results.count(False) == 5
    assert results[:10] == [True] * 10


def test_one_second_idle_allows_exactly_one_more(limiter, clock):
    for _ in range(15):
        limiter.check("user-1")
    clock.advance(1.0)
    assert limiter.check("user-1") is True
    assert limiter.check("user-1") is False


def test_partial_second_adds_nothing(limiter, clock):
    for _ in range(10):
        limiter.check("user-1")
    clock.advance(0.5)
    assert limiter.check("user-1") is False
    clock.advance(0.5)
    assert limiter.check("user-1") is True


def test_refill_is_capped_at_capacity(limiter, clock):
    limiter.check("user-1")
    clock.advance(3600)
    results = [limiter.check("user-1") for _ in range(12)]
    assert results.count(True) == 10


def test_keys_are_independent(limiter):
    for _ in range(10):
        assert limiter.check("user-1")
    assert limiter.check("user-1") is False
    assert limiter.check("user-2") is True


def test_hit_raises_with_retry_after(limiter):
    for _ in range(10):
        limiter.hit("user-1")
    with pytest.raises(RateLimited) as exc:
        limiter.hit("user-1")
    assert exc.value.status_code == 429
    assert exc.value.headers["Retry-After"] == "1"


def test_client_address_prefers_forwarded_for():
    request = SimpleNamespace(
        headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"},
        client=SimpleNamespace(host="127.0.0.1"),
    )
    assert client_address(request) == "203.0.113.7"


def test_client_address_falls_back_to_peer():
    assert client_address(SimpleNamespace(headers={}, client=SimpleNamespace(host="127.0.0.1"))) == "127.0.0.1"
    assert client_address(SimpleNamespace(headers={}, client=None)) == "unknown"
