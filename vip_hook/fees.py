"""
Swap-time fee blending: manual override or base + surge, then the user's
discount, then the protocol cut.

Fees are in ppm (1_000_000 = 100%), discounts in units of 1/10000.
"""
import logging

from .core import DISCOUNT_DENOMINATOR, MAX_FEE_24, MAX_LP_FEE, PPM
from .errors import ValidationError
from .interfaces import DiscountSource, FeeStateSource, ManualFeeProvider

logger = logging.getLogger(__name__)


def ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def apply_discount(fee: int, discount: int) -> int:
    """floor(fee * (10000 - discount) / 10000)."""
    if not 0 <= discount <= DISCOUNT_DENOMINATOR:
        raise ValidationError(f"Discount {discount} out of range [0, {DISCOUNT_DENOMINATOR}]")
    return fee * (DISCOUNT_DENOMINATOR - discount) // DISCOUNT_DENOMINATOR


def protocol_cut(amount_in: int, fee: int, share_ppm: int) -> tuple[int, int]:
    """
    Split of the swap fee on an input amount.

    Returns:
        (swap_fee_amount, protocol_cut), both rounded up
    """
    if amount_in <= 0 or share_ppm <= 0:
        return 0, 0
    swap_fee = ceil_div(amount_in * fee, PPM)
    return swap_fee, ceil_div(swap_fee * share_ppm, PPM)


class FeeBlender:
    def __init__(self, discounts: DiscountSource, fee_source: FeeStateSource,
                 manual_fees: ManualFeeProvider):
        self.discounts = discounts
        self.fee_source = fee_source
        self.manual_fees = manual_fees

    def base_fee(self, pool_id: bytes) -> int:
        """Manual override if set, else base + surge."""
        fee, is_set = self.manual_fees.get_manual_fee(pool_id)
        if not is_set:
            base, surge = self.fee_source.get_fee_state(pool_id)
            fee = base + surge
        if not 0 <= fee <= MAX_LP_FEE:
            raise ValidationError(f"Fee {fee} ppm exceeds maximum {MAX_LP_FEE}")
        return fee

    def compute_fee(self, pool_id: bytes, user: bytes) -> int:
        base = self.base_fee(pool_id)
        discount = self.discounts.get_discount(user)
        fee = apply_discount(base, discount)
        if fee > MAX_FEE_24:
            raise ValidationError(f"Fee {fee} does not fit in 24 bits")
        logger.debug(f"Fee for {user.hex()} on pool {pool_id.hex()[:16]}: base {base}, discount {discount}, fee {fee}")
        return fee
