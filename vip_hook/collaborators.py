"""
In-process implementations of the hook's external collaborators: a
per-pool base/surge fee source and a vault receiving protocol fees.
"""
import logging
from collections import defaultdict

from .core import PoolFeeState

logger = logging.getLogger(__name__)


class StaticFeeSource:
    """Per-pool (base, surge) fees set by the operator."""

    def __init__(self, default_base_fee: int = 3000):
        self.default_base_fee = default_base_fee
        self.states: dict[bytes, PoolFeeState] = {}

    def set_fee_state(self, pool_id: bytes, base_fee: int, surge_fee: int = 0):
        self.states[pool_id] = PoolFeeState(base_fee=base_fee, surge_fee=surge_fee)

    def get_fee_state(self, pool_id: bytes) -> tuple[int, int]:
        state = self.states.get(pool_id)
        if state is None:
            return self.default_base_fee, 0
        return state.base_fee, state.surge_fee


class FeeVault:
    """Accumulates protocol fees per pool for later reinvestment."""

    def __init__(self):
        self.balances = defaultdict(lambda: [0, 0])
        self.deposits = 0

    def notify_fee(self, pool_id: bytes, amount0: int, amount1: int):
        if amount0 < 0 or amount1 < 0:
            raise ValueError("Fee amounts cannot be negative")
        balance = self.balances[pool_id]
        balance[0] += amount0
        balance[1] += amount1
        self.deposits += 1
        logger.debug(f"Vault credited pool {pool_id.hex()[:16]}: {amount0}, {amount1}")

    def balance_of(self, pool_id: bytes) -> tuple[int, int]:
        balance = self.balances.get(pool_id, [0, 0])
        return balance[0], balance[1]
