from src.utils.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)

    assert [limiter.allow("1.2.3.4") for _ in range(4)] == [True, True, True, False]
    # Other clients are unaffected
    assert limiter.allow("5.6.7.8")


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.allow("a")
    clock.now += 30
    limiter.allow("a")
    assert not limiter.allow("a")
    assert limiter.retry_after("a") == 30

    clock.now += 30
    assert limiter.allow("a")
    assert limiter.get_stats("a") == {"requests_in_window": 2, "limit": 2, "window_seconds": 60}


def test_zero_disables_limiting():
    limiter = RateLimiter(max_requests=0)
    assert all(limiter.allow("a") for _ in range(1000))


def test_idle_clients_are_forgotten():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    for i in range(100):
        limiter.allow(f"10.0.0.{i}")
    assert len(limiter._hits) == 100

    clock.now += 61
    assert limiter.allow("10.0.1.1")

    assert list(limiter._hits) == ["10.0.1.1"]


def test_stats_for_expired_client_do_not_keep_an_entry():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    limiter.allow("a")
    clock.now += 60

    assert limiter.get_stats("a")["requests_in_window"] == 0
    assert limiter.get_stats("never-seen")["requests_in_window"] == 0
    assert limiter._hits == {}
