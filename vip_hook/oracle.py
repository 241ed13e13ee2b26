"""
Tick observations pushed by the hook, with a time-weighted average.
"""
import time
from collections import defaultdict
from typing import Callable, Optional

TWAP_WINDOW = 3600  # 1 hour


class TickOracle:
    """Time-weighted average tick per pool, for manipulation resistance."""

    def __init__(self, window: int = TWAP_WINDOW, clock: Optional[Callable[[], float]] = None):
        self.window = window
        self.clock = clock or time.time
        self.observations = defaultdict(list)  # pool_id -> [(timestamp, tick)]

    def record_observation(self, pool_id: bytes, tick: int):
        """Record a new tick observation and drop ones outside the window."""
        now = int(self.clock())
        observations = self.observations[pool_id]
        observations.append((now, tick))

        cutoff = now - self.window
        self.observations[pool_id] = [obs for obs in observations if obs[0] > cutoff]

    def latest(self, pool_id: bytes) -> Optional[int]:
        observations = self.observations.get(pool_id)
        return observations[-1][1] if observations else None

    def get_twap_tick(self, pool_id: bytes) -> Optional[int]:
        """Each tick weighted by how long it stood; None with no data."""
        observations = self.observations.get(pool_id)
        if not observations:
            return None
        if len(observations) == 1:
            return observations[0][1]

        weighted = 0
        total_time = 0
        for (prev_time, prev_tick), (curr_time, _) in zip(observations, observations[1:]):
            delta = curr_time - prev_time
            if delta > 0:
                weighted += prev_tick * delta
                total_time += delta

        if total_time == 0:
            return observations[-1][1]
        return weighted // total_time

    def to_dict(self) -> dict:
        return {
            'window': self.window,
            'observations': {pid.hex(): obs for pid, obs in self.observations.items()},
        }

    @staticmethod
    def from_dict(data: dict) -> 'TickOracle':
        oracle = TickOracle(window=data.get('window', TWAP_WINDOW))
        for pid, obs in data.get('observations', {}).items():
            oracle.observations[bytes.fromhex(pid)] = [tuple(o) for o in obs]
        return oracle
