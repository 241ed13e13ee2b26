"""
Collaborator interfaces the hook consumes.
"""
from typing import Protocol


class ManualFeeProvider(Protocol):
    def get_manual_fee(self, pool_id: bytes) -> tuple[int, bool]:
        """(fee, is_set) for the pool."""
        ...


class FeeStateSource(Protocol):
    def get_fee_state(self, pool_id: bytes) -> tuple[int, int]:
        """(base_fee, surge_fee) in ppm."""
        ...


class DiscountSource(Protocol):
    def get_discount(self, user: bytes) -> int:
        ...


class FeeRecipient(Protocol):
    def notify_fee(self, pool_id: bytes, amount0: int, amount1: int) -> None:
        """Deposit-style credit of extracted protocol fees."""
        ...


class PriceObserver(Protocol):
    def record_observation(self, pool_id: bytes, tick: int) -> None:
        ...


class SwapHost(Protocol):
    def current_tick(self, pool_id: bytes) -> int:
        ...
