"""
Receipt validation against a batch's public inputs.

Every check is evaluated and combined, never short-circuited on the first
failure, so the predicate costs the same for every slot.
"""
from typing import Optional

from .core import (
    BatchInput,
    Receipt,
    UNISWAP_SWAP_EVENT,
    HOOK_EVENT,
    INT248_MIN,
    INT248_MAX,
)


def _eq(a, b) -> int:
    return int(a == b)


def _lt(a, b) -> int:
    return int(a < b)


def receipt_checks(receipt: Receipt, batch: BatchInput) -> dict[str, int]:
    """All validity checks for one receipt, each 1 (pass) or 0 (fail)."""
    hook_log = receipt.hook_log
    swap_log = receipt.swap_log
    amount_log = receipt.amount_log
    amount = receipt.amount
    return {
        # block_start < block < block_end
        'after_start': _lt(batch.block_start, receipt.block_number),
        'before_end': _lt(receipt.block_number, batch.block_end),
        'same_log_pos': _eq(swap_log.log_position, amount_log.log_position),
        # swap logs from the pool
        'swap_source': _eq(swap_log.source_id, batch.pool_addr),
        'amount_source': _eq(amount_log.source_id, batch.pool_addr),
        'pool_id': _eq(swap_log.value, batch.pool_id),
        'same_event': _eq(swap_log.event_id, amount_log.event_id),
        'swap_event': _eq(swap_log.event_id, UNISWAP_SWAP_EVENT),
        # hook log
        'hook_source': _eq(hook_log.source_id, batch.hook_addr),
        'hook_event': _eq(hook_log.event_id, HOOK_EVENT),
        'amount_range': _lt(INT248_MIN - 1, amount) & _lt(amount, INT248_MAX + 1),
    }


def is_valid_receipt(receipt: Optional[Receipt], batch: BatchInput) -> int:
    """1 if the receipt passes every check, 0 otherwise. Padding is 0."""
    if receipt is None:
        return 0
    valid = 1
    for passed in receipt_checks(receipt, batch).values():
        valid &= passed
    return valid


def failed_checks(receipt: Receipt, batch: BatchInput) -> list[str]:
    """Names of the checks a receipt fails, for diagnostics."""
    return [name for name, passed in receipt_checks(receipt, batch).items() if not passed]
