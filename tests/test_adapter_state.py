# tests/test_adapter_state.py
import threading
import time

from domains.tracking.adapters.state import CarrierState, TokenCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_token_cache_refreshes_30_seconds_early():
    clock = FakeClock()
    cache = TokenCache(clock=clock)
    issued = []

    def fetch():
        issued.append(f"tok-{len(issued) + 1}")
        return issued[-1], 100

    assert cache.get(fetch) == "tok-1"
    clock.now += 69
    assert cache.get(fetch) == "tok-1"
    clock.now += 2
    assert cache.get(fetch) == "tok-2"
    assert len(issued) == 2


def test_concurrent_callers_share_one_refresh():
    cache = TokenCache()
    calls = []
    start = threading.Event()

    def slow_fetch():
        calls.append(1)
        time.sleep(0.05)
        return "shared", 3600

    results = []

    def worker():
        start.wait()
        results.append(cache.get(slow_fetch))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    start.set()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert results == ["shared"] * 8


def test_carrier_state_init_and_teardown():
    state = CarrierState.init(
        {
            "sfex": {"credentials": {"partner_id": "P", "check_word": ""}, "timezone": "Asia/Shanghai"},
            "fdx": {"credentials": {"client_id": "C", "client_secret": "S"}},
        },
        timeout=3,
    )
    assert state.timeout == 3.0
    assert not state.is_configured("sfex")
    assert state.is_configured("fdx")
    assert not state.is_configured("ups")
    assert state.option("sfex", "timezone") == "Asia/Shanghai"
    assert state.option("fdx", "missing", "x") == "x"

    cache = state.token_cache("fdx")
    assert state.token_cache("fdx") is cache
    cache.get(lambda: ("tok", 3600))
    state.teardown()
    assert state.token_cache("fdx") is not cache
