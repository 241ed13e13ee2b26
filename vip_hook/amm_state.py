"""
Reference swap host: constant-product pools that call a hook around swaps.

Implements x * y = k with the fee taken from the input. The hook chooses the
fee at pre-swap and may withhold part of the input (exact input, before the
swap) or charge extra input (exact output, after the swap).
"""
import logging
import math

from .core import BalanceDelta, PoolKey, SwapParams, PPM
from .errors import ValidationError

logger = logging.getLogger(__name__)

TICK_BASE = 1.0001


class LiquidityPoolState:
    """Reserves of one pool, stored as integers in smallest units."""

    def __init__(self, data: dict = None):
        if data is None:
            data = {'reserve0': 0, 'reserve1': 0}
        self.reserve0 = int(data['reserve0'])
        self.reserve1 = int(data['reserve1'])

    def to_dict(self) -> dict:
        return {'reserve0': self.reserve0, 'reserve1': self.reserve1}

    @property
    def tick(self) -> int:
        """floor(log_1.0001(reserve1 / reserve0))"""
        if self.reserve0 == 0 or self.reserve1 == 0:
            return 0
        return math.floor(math.log(self.reserve1 / self.reserve0, TICK_BASE))

    def _reserves(self, zero_for_one: bool) -> tuple[int, int]:
        if zero_for_one:
            return self.reserve0, self.reserve1
        return self.reserve1, self.reserve0

    def get_swap_output(self, amount_in: int, zero_for_one: bool, fee: int) -> int:
        """
        Output for an exact input.

        Formula: Δy = y * Δx(1-f) / (x + Δx(1-f))
        """
        if amount_in <= 0:
            return 0
        reserve_in, reserve_out = self._reserves(zero_for_one)
        input_with_fee = amount_in * (PPM - fee) // PPM
        denominator = reserve_in + input_with_fee
        if denominator == 0:
            return 0
        return input_with_fee * reserve_out // denominator

    def get_swap_input(self, amount_out: int, zero_for_one: bool, fee: int) -> int:
        """Input required for an exact output, rounded up."""
        reserve_in, reserve_out = self._reserves(zero_for_one)
        if amount_out >= reserve_out:
            raise ValidationError("Insufficient liquidity for exact output")
        if fee >= PPM:
            raise ValidationError("Exact output impossible at 100% fee")
        net = -(-reserve_in * amount_out // (reserve_out - amount_out))
        return -(-net * PPM // (PPM - fee))

    def apply(self, amount_in: int, amount_out: int, zero_for_one: bool):
        if zero_for_one:
            self.reserve0 += amount_in
            self.reserve1 -= amount_out
        else:
            self.reserve1 += amount_in
            self.reserve0 -= amount_out

    def __repr__(self) -> str:
        return f"LiquidityPoolState(reserve0={self.reserve0}, reserve1={self.reserve1}, tick={self.tick})"


class PoolManager:
    """Hosts pools by id and runs the hook callbacks around each swap."""

    def __init__(self):
        self.pools: dict[bytes, LiquidityPoolState] = {}
        self.keys: dict[bytes, PoolKey] = {}
        self.hooks = {}

    def register_hook(self, address: bytes, hook):
        self.hooks[address] = hook

    def initialize(self, key: PoolKey, reserve0: int, reserve1: int) -> bytes:
        pool_id = key.to_id()
        if pool_id in self.pools:
            raise ValidationError("Pool already initialized")
        self.pools[pool_id] = LiquidityPoolState({'reserve0': reserve0, 'reserve1': reserve1})
        self.keys[pool_id] = key
        return pool_id

    def get_pool(self, pool_id: bytes) -> LiquidityPoolState:
        pool = self.pools.get(pool_id)
        if pool is None:
            raise ValidationError(f"Unknown pool {pool_id.hex()[:16]}")
        return pool

    def current_tick(self, pool_id: bytes) -> int:
        return self.get_pool(pool_id).tick

    def swap(self, sender: bytes, key: PoolKey, params: SwapParams) -> BalanceDelta:
        """
        Execute a swap atomically.

        Returns:
            The caller's delta: negative amounts are paid in, positive received
        """
        if params.amount_specified == 0:
            raise ValidationError("Swap amount must be non-zero")
        pool_id = key.to_id()
        pool = self.get_pool(pool_id)
        hook = self.hooks.get(key.hooks)
        snapshot = pool.to_dict()

        ctx = None
        try:
            fee, specified_delta = key.fee, 0
            if hook:
                before, ctx = hook.before_swap(sender, key, params)
                fee, specified_delta = before.fee, before.specified_delta

            if params.is_exact_input:
                amount_in = -params.amount_specified - specified_delta
                if amount_in <= 0:
                    raise ValidationError("Hook withheld the whole input")
                amount_out = pool.get_swap_output(amount_in, params.zero_for_one, fee)
            else:
                amount_out = params.amount_specified
                amount_in = pool.get_swap_input(amount_out, params.zero_for_one, fee)
            pool.apply(amount_in, amount_out, params.zero_for_one)

            if params.zero_for_one:
                swap_delta = BalanceDelta(-amount_in, amount_out)
            else:
                swap_delta = BalanceDelta(amount_out, -amount_in)

            unspecified_delta = 0
            if hook:
                unspecified_delta = hook.after_swap(ctx, swap_delta).unspecified_delta
        except Exception:
            pool.reserve0, pool.reserve1 = snapshot['reserve0'], snapshot['reserve1']
            if hook and ctx is not None:
                hook.abort(ctx)
            raise

        # hook amounts are always taken in the input currency
        extra_in = specified_delta + unspecified_delta
        if params.zero_for_one:
            caller_delta = swap_delta - BalanceDelta(extra_in, 0)
        else:
            caller_delta = swap_delta - BalanceDelta(0, extra_in)

        logger.info(
            f"Swap on {pool_id.hex()[:16]}: in {amount_in} out {amount_out} "
            f"fee {fee} ppm, hook withheld {extra_in}"
        )
        return caller_delta
