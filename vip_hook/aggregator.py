"""
Fixed-shape volume aggregation and tier resolution.

A batch is MAX_USERS segments of MAX_PER_USER receipt slots. Every slot is
visited and contributes through a select, so the work done does not depend
on which slots hold real receipts:

    total[i] = select(valid & owner_match, total[i] + |amount|, total[i])

Afterwards, for i = 1..n-1, if users[i] == users[i-1] the previous total is
folded into the current one. A user spread over k adjacent segments ends up
with the full volume in the last segment of the run only. Repeats that are
not adjacent are never merged.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from .config import BatchConfig
from .core import BatchInput, BatchResult, DiscountTier, Receipt, UserVolume
from .crypto import word_to_address
from .errors import ValidationError
from .validator import is_valid_receipt, failed_checks

logger = logging.getLogger(__name__)


def select(cond: int, if_true: int, if_false: int) -> int:
    """Arithmetic select; cond must be 0 or 1."""
    return cond * if_true + (1 - cond) * if_false


def validate_tiers(tiers: list) -> None:
    """Raise if thresholds are not strictly ascending or discounts decrease."""
    for prev, cur in zip(tiers, tiers[1:]):
        if cur.min_volume <= prev.min_volume:
            raise ValidationError(
                f"Tier thresholds must be strictly ascending: "
                f"{prev.min_volume} then {cur.min_volume}"
            )
        if cur.discount < prev.discount:
            raise ValidationError(
                f"Tier discounts must not decrease: {prev.discount} then {cur.discount}"
            )
    for tier in tiers:
        if not 0 <= tier.discount <= 10_000:
            raise ValidationError(f"Tier discount {tier.discount} out of range [0, 10000]")


def pad_tiers(tiers: list, tier_num: int) -> list:
    """Left-pad with zero tiers; zero tiers in front never change the result."""
    if len(tiers) > tier_num:
        raise ValueError(f"At most {tier_num} tiers supported, got {len(tiers)}")
    return [DiscountTier(0, 0)] * (tier_num - len(tiers)) + list(tiers)


def layout_slots(segments: list, config: BatchConfig) -> list:
    """Flatten per-user segments into the fixed slot array, padding with None."""
    if len(segments) > config.max_users:
        raise ValueError(f"At most {config.max_users} segments, got {len(segments)}")
    slots = []
    for i, segment in enumerate(segments):
        if len(segment) > config.max_per_user:
            raise ValueError(
                f"Segment {i} holds {len(segment)} receipts, capacity is {config.max_per_user}"
            )
        slots.extend(segment)
        slots.extend([None] * (config.max_per_user - len(segment)))
    slots.extend([None] * (config.max_receipts - len(slots)))
    return slots


def uniqueness_mask(slots: list) -> list[int]:
    """1 for the first appearance of each receipt, 0 for repeats and padding."""
    seen = set()
    mask = []
    for receipt in slots:
        if receipt is None:
            mask.append(0)
            continue
        key = receipt.key
        mask.append(int(key not in seen))
        seen.add(key)
    return mask


def segment_volumes(batch: BatchInput, slots: list, config: BatchConfig) -> list[int]:
    """Per-segment masked volume totals, before the adjacent merge."""
    users = batch.padded_users(config.max_users)
    unique = uniqueness_mask(slots)
    totals = []
    for i in range(config.max_users):
        total = 0
        for j in range(config.max_per_user):
            slot = config.max_per_user * i + j
            receipt: Optional[Receipt] = slots[slot]
            if receipt is None:
                valid, amount, trader = 0, 0, None
            else:
                valid, amount, trader = is_valid_receipt(receipt, batch), abs(receipt.amount), receipt.trader
            cond = valid & unique[slot] & int(trader == users[i])
            total = select(cond, total + amount, total)
        totals.append(total)
    return totals


def merge_adjacent(users: list, totals: list[int]) -> list[int]:
    """Fold each total into the next segment when both share an owner."""
    merged = list(totals)
    for i in range(1, len(merged)):
        merged[i] = select(int(users[i - 1] == users[i]), merged[i] + merged[i - 1], merged[i])
    return merged


def resolve_tier(volume: int, tiers: Iterable[DiscountTier]) -> int:
    """
    Discount for a volume: the last tier whose minimum is strictly exceeded.
    Tiers are not checked for ordering here.
    """
    discount = 0
    for tier in tiers:
        discount = select(int(volume > tier.min_volume), tier.discount, discount)
    return discount


def _check_strict(batch: BatchInput, slots: list, tiers: list) -> None:
    validate_tiers(tiers)
    seen = set()
    for index, receipt in enumerate(slots):
        if receipt is None:
            continue
        failures = failed_checks(receipt, batch)
        if failures:
            raise ValidationError(f"Receipt in slot {index} failed checks: {', '.join(failures)}")
        if receipt.key in seen:
            raise ValidationError(f"Duplicate receipt in slot {index}: {receipt.key}")
        seen.add(receipt.key)


def run_batch(batch: BatchInput, segments: list, config: Optional[BatchConfig] = None) -> BatchResult:
    """
    Aggregate one batch.

    Args:
        batch: Public inputs (epoch, pool, hook, block range, tiers, users)
        segments: One list of receipts per user slot, in user order

    Returns:
        BatchResult with per-segment volumes and discounts
    """
    config = config or BatchConfig()
    if not 0 <= batch.epoch <= 0xFFFFFFFF:
        raise ValueError(f"Epoch {batch.epoch} does not fit in 32 bits")

    slots = layout_slots(segments, config)
    tiers = pad_tiers(batch.tiers, config.tier_num)
    users = batch.padded_users(config.max_users)

    if config.strict:
        _check_strict(batch, slots, batch.tiers)

    totals = merge_adjacent(users, segment_volumes(batch, slots, config))

    volumes = []
    discounts = []
    for user, total in zip(users, totals):
        discount = resolve_tier(total, tiers)
        logger.debug(f"account: {user.hex()} total volume: {total} discount: {discount}")
        volumes.append(UserVolume(user, total))
        discounts.append(discount)

    return BatchResult(epoch=batch.epoch, volumes=volumes, discounts=discounts)


def aggregate_batches(jobs: list, config: Optional[BatchConfig] = None) -> list[BatchResult]:
    """Run independent (batch, segments) jobs concurrently, preserving order."""
    config = config or BatchConfig()
    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        return list(executor.map(lambda job: run_batch(job[0], job[1], config), jobs))


def group_receipts(receipts: Iterable[Receipt], users: list,
                   config: Optional[BatchConfig] = None) -> tuple[list, list]:
    """
    Split a flat receipt list into per-user segments.

    Each user's receipts are chunked into consecutive segments of
    max_per_user; the returned user list repeats the user once per chunk so
    the chunks stay adjacent.

    Returns:
        (segment_users, segments)
    """
    config = config or BatchConfig()
    by_user = {user: [] for user in users}
    for receipt in receipts:
        trader = word_to_address(receipt.hook_log.value)
        if trader in by_user:
            by_user[trader].append(receipt)

    segment_users = []
    segments = []
    for user in users:
        own = by_user[user]
        chunks = [own[k:k + config.max_per_user] for k in range(0, len(own), config.max_per_user)] or [[]]
        for chunk in chunks:
            segment_users.append(user)
            segments.append(chunk)

    if len(segments) > config.max_users:
        raise ValueError(f"Receipts need {len(segments)} segments, capacity is {config.max_users}")
    return segment_users, segments
