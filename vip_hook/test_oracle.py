# vip_hook/test_oracle.py
from vip_hook.oracle import TickOracle

POOL = b'\x50' * 32


class Clock:
    def __init__(self, now=1000):
        self.now = now

    def __call__(self):
        return self.now


def test_empty_oracle():
    oracle = TickOracle()
    assert oracle.latest(POOL) is None
    assert oracle.get_twap_tick(POOL) is None


def test_twap_weights_by_duration():
    clock = Clock()
    oracle = TickOracle(clock=clock)

    oracle.record_observation(POOL, 100)
    clock.now += 30
    oracle.record_observation(POOL, 200)
    clock.now += 10
    oracle.record_observation(POOL, 0)

    # 100 held for 30s, 200 for 10s
    assert oracle.get_twap_tick(POOL) == (100 * 30 + 200 * 10) // 40
    assert oracle.latest(POOL) == 0


def test_same_timestamp_falls_back_to_latest():
    oracle = TickOracle(clock=Clock())
    oracle.record_observation(POOL, -5)
    oracle.record_observation(POOL, -7)
    assert oracle.get_twap_tick(POOL) == -7


def test_old_observations_leave_the_window():
    clock = Clock()
    oracle = TickOracle(window=60, clock=clock)
    oracle.record_observation(POOL, 10)
    clock.now += 61
    oracle.record_observation(POOL, 20)

    assert oracle.observations[POOL] == [(1061, 20)]


def test_dict_round_trip():
    oracle = TickOracle(window=120, clock=Clock())
    oracle.record_observation(POOL, 3)

    restored = TickOracle.from_dict(oracle.to_dict())

    assert restored.window == 120
    assert restored.observations[POOL] == [(1000, 3)]
