"""
Volume aggregation and tier resolution.

Covers the masked per-segment sums, the adjacent-only merge, receipt
validity masking and the tier resolver.
"""
import pytest

from vip_hook.aggregator import (
    aggregate_batches,
    group_receipts,
    merge_adjacent,
    resolve_tier,
    run_batch,
    validate_tiers,
)
from vip_hook.config import BatchConfig
from vip_hook.core import (
    BatchInput,
    DiscountTier,
    LogRecord,
    Receipt,
    HOOK_EVENT,
    MAX_USERS,
    ZERO_ADDRESS,
)
from vip_hook.crypto import address_to_word
from vip_hook.errors import ValidationError

POOL_ADDR = b'\x11' * 20
HOOK_ADDR = b'\x22' * 20
POOL_ID = b'\x33' * 32

ALICE = b'\xa1' * 20
BOB = b'\xb0' * 20
CAROL = b'\xc0' * 20

TIERS = [
    DiscountTier(100, 1000),
    DiscountTier(500, 3000),
    DiscountTier(1000, 5000),
]

_block = [0]


def receipt(user: bytes, amount: int, block: int = None, log_position: int = 1) -> Receipt:
    """A valid receipt; each call gets a fresh block unless one is given."""
    if block is None:
        _block[0] += 1
        block = 10 + _block[0] % 900
    return Receipt.for_swap(block, log_position, POOL_ADDR, HOOK_ADDR, POOL_ID, user, amount)


def make_batch(users, tiers=TIERS, epoch=7) -> BatchInput:
    return BatchInput(
        epoch=epoch,
        pool_addr=POOL_ADDR,
        hook_addr=HOOK_ADDR,
        pool_id=POOL_ID,
        block_start=0,
        block_end=1000,
        tiers=list(tiers),
        users=list(users),
    )


def unique_receipts(user: bytes, amounts: list, start_block: int) -> list:
    return [receipt(user, amount, block=start_block + i) for i, amount in enumerate(amounts)]


class TestSegmentVolumes:
    def test_sums_absolute_amounts(self):
        batch = make_batch([ALICE])
        segments = [unique_receipts(ALICE, [100, -50, -25], 1)]

        result = run_batch(batch, segments)

        assert result.volumes[0].user == ALICE
        assert result.volumes[0].volume == 175

    def test_output_always_has_full_width(self):
        result = run_batch(make_batch([ALICE]), [unique_receipts(ALICE, [5], 1)])

        assert len(result.volumes) == MAX_USERS
        assert len(result.entries) == MAX_USERS
        assert result.volumes[1].user == ZERO_ADDRESS
        assert result.volumes[1].volume == 0

    def test_receipt_from_other_user_is_masked(self):
        batch = make_batch([ALICE, BOB])
        segments = [
            unique_receipts(ALICE, [100], 1) + unique_receipts(BOB, [999], 2),
            unique_receipts(BOB, [10], 3),
        ]

        result = run_batch(batch, segments)

        assert result.volumes[0].volume == 100
        # Bob's receipt sitting in Alice's segment is not counted anywhere
        assert result.volumes[1].volume == 10

    def test_full_segment(self):
        batch = make_batch([ALICE])
        segments = [unique_receipts(ALICE, [1] * 128, 1)]

        assert run_batch(batch, segments).volumes[0].volume == 128

    def test_segment_over_capacity_raises(self):
        batch = make_batch([ALICE])
        with pytest.raises(ValueError):
            run_batch(batch, [unique_receipts(ALICE, [1] * 129, 1)])

    def test_too_many_segments_raises(self):
        batch = make_batch([ALICE] * 32)
        with pytest.raises(ValueError):
            run_batch(batch, [[] for _ in range(33)])

    def test_too_many_users_raises(self):
        with pytest.raises(ValueError):
            run_batch(make_batch([ALICE] * 33), [])

    def test_epoch_must_fit_32_bits(self):
        with pytest.raises(ValueError):
            run_batch(make_batch([ALICE], epoch=1 << 32), [])


class TestAdjacentMerge:
    def test_contiguous_run_accumulates_in_last_segment(self):
        batch = make_batch([ALICE, ALICE, ALICE])
        segments = [
            unique_receipts(ALICE, [10], 1),
            unique_receipts(ALICE, [20], 2),
            unique_receipts(ALICE, [30], 3),
        ]

        volumes = [v.volume for v in run_batch(batch, segments).volumes[:3]]

        # first keeps its local sum, each later one carries the running total
        assert volumes == [10, 30, 60]

    def test_run_of_two_first_reports_local_sum(self):
        batch = make_batch([ALICE, ALICE])
        segments = [unique_receipts(ALICE, [40, 2], 1), unique_receipts(ALICE, [8], 5)]

        result = run_batch(batch, segments)

        assert result.volumes[0].volume == 42
        assert result.volumes[1].volume == 50

    def test_non_adjacent_repeats_are_not_merged(self):
        batch = make_batch([ALICE, BOB, ALICE])
        segments = [
            unique_receipts(ALICE, [10], 1),
            unique_receipts(BOB, [5], 2),
            unique_receipts(ALICE, [30], 3),
        ]

        volumes = [v.volume for v in run_batch(batch, segments).volumes[:3]]

        assert volumes == [10, 5, 30]

    def test_merge_adjacent_directly(self):
        users = [ALICE, ALICE, BOB, BOB, CAROL]
        assert merge_adjacent(users, [1, 2, 3, 4, 5]) == [1, 3, 3, 7, 5]

    def test_discount_uses_merged_volume(self):
        batch = make_batch([ALICE, ALICE])
        segments = [unique_receipts(ALICE, [300], 1), unique_receipts(ALICE, [300], 2)]

        result = run_batch(batch, segments)

        assert result.discounts[0] == 1000  # 300
        assert result.discounts[1] == 3000  # 600


class TestReceiptMasking:
    """Invalid receipts contribute zero and never reject the batch."""

    def _volume_with(self, bad: Receipt) -> int:
        batch = make_batch([ALICE])
        segments = [unique_receipts(ALICE, [100], 500) + [bad]]
        return run_batch(batch, segments).volumes[0].volume

    def test_block_on_range_boundaries_is_masked(self):
        assert self._volume_with(receipt(ALICE, 7, block=0)) == 100
        assert self._volume_with(receipt(ALICE, 7, block=1000)) == 100

    def test_block_inside_range_counts(self):
        assert self._volume_with(receipt(ALICE, 7, block=999)) == 107

    def test_wrong_pool_address(self):
        good = receipt(ALICE, 7, block=600)
        bad = Receipt.for_swap(600, 1, b'\x99' * 20, HOOK_ADDR, POOL_ID, ALICE, 7)
        assert bad.swap_log.source_id != good.swap_log.source_id
        assert self._volume_with(bad) == 100

    def test_wrong_pool_id(self):
        bad = Receipt.for_swap(600, 1, POOL_ADDR, HOOK_ADDR, b'\x44' * 32, ALICE, 7)
        assert self._volume_with(bad) == 100

    def test_wrong_hook_address(self):
        bad = Receipt.for_swap(600, 1, POOL_ADDR, b'\x98' * 20, POOL_ID, ALICE, 7)
        assert self._volume_with(bad) == 100

    def test_wrong_hook_event(self):
        good = receipt(ALICE, 7, block=600)
        hook_log = LogRecord(HOOK_ADDR, b'\x01' * 32, 0, address_to_word(ALICE))
        bad = Receipt(good.block_number, hook_log, good.swap_log, good.amount_log)
        assert self._volume_with(bad) == 100

    def test_wrong_swap_event(self):
        good = receipt(ALICE, 7, block=600)
        swap_log = LogRecord(POOL_ADDR, HOOK_EVENT, 1, POOL_ID)
        bad = Receipt(good.block_number, good.hook_log, swap_log, good.amount_log)
        assert self._volume_with(bad) == 100

    def test_mismatched_log_positions(self):
        good = receipt(ALICE, 7, block=600)
        amount_log = LogRecord(POOL_ADDR, good.amount_log.event_id, 2, good.amount_log.value)
        bad = Receipt(good.block_number, good.hook_log, good.swap_log, amount_log)
        assert self._volume_with(bad) == 100

    def test_duplicate_receipt_counted_once(self):
        batch = make_batch([ALICE])
        r = receipt(ALICE, 40, block=50)
        assert run_batch(batch, [[r, r, r]]).volumes[0].volume == 40

    def test_strict_mode_rejects_invalid_receipt(self):
        batch = make_batch([ALICE])
        segments = [[receipt(ALICE, 7, block=1000)]]
        with pytest.raises(ValidationError, match="before_end"):
            run_batch(batch, segments, BatchConfig(strict=True))

    def test_strict_mode_rejects_duplicates(self):
        batch = make_batch([ALICE])
        r = receipt(ALICE, 40, block=50)
        with pytest.raises(ValidationError, match="Duplicate"):
            run_batch(batch, [[r, r]], BatchConfig(strict=True))

    def test_strict_mode_rejects_misordered_tiers(self):
        batch = make_batch([ALICE], tiers=[DiscountTier(500, 3000), DiscountTier(100, 1000)])
        with pytest.raises(ValidationError):
            run_batch(batch, [], BatchConfig(strict=True))


class TestTierResolver:
    def test_scenario_a(self):
        assert resolve_tier(600, TIERS) == 3000

    def test_threshold_must_be_strictly_exceeded(self):
        assert resolve_tier(100, TIERS) == 0
        assert resolve_tier(101, TIERS) == 1000
        assert resolve_tier(500, TIERS) == 1000
        assert resolve_tier(1001, TIERS) == 5000

    def test_no_tiers_means_no_discount(self):
        assert resolve_tier(10**30, []) == 0

    def test_deterministic_and_idempotent(self):
        first = resolve_tier(750, TIERS)
        assert all(resolve_tier(750, TIERS) == first for _ in range(5))

    def test_misordered_tiers_are_not_rejected(self):
        # the last exceeded tier wins, not the highest
        tiers = [DiscountTier(500, 3000), DiscountTier(100, 1000)]
        assert resolve_tier(600, tiers) == 1000

    def test_validate_tiers(self):
        validate_tiers(TIERS)
        with pytest.raises(ValidationError):
            validate_tiers([DiscountTier(100, 1000), DiscountTier(100, 2000)])
        with pytest.raises(ValidationError):
            validate_tiers([DiscountTier(100, 2000), DiscountTier(200, 1000)])
        with pytest.raises(ValidationError):
            validate_tiers([DiscountTier(100, 10001)])

    def test_too_many_tiers_raises(self):
        tiers = [DiscountTier(i * 10, i) for i in range(1, 7)]
        with pytest.raises(ValueError):
            run_batch(make_batch([ALICE], tiers=tiers), [])

    def test_batch_with_five_tiers(self):
        tiers = [DiscountTier(10 * i, 100 * i) for i in range(1, 6)]
        batch = make_batch([ALICE, BOB], tiers=tiers)
        segments = [unique_receipts(ALICE, [35], 1), unique_receipts(BOB, [51], 2)]

        result = run_batch(batch, segments)

        assert result.discounts[:2] == [300, 500]


class TestBatchHelpers:
    def test_run_is_deterministic(self):
        batch = make_batch([ALICE, BOB])
        segments = [unique_receipts(ALICE, [150], 1), unique_receipts(BOB, [700], 2)]

        assert run_batch(batch, segments) == run_batch(batch, segments)

    def test_aggregate_batches_preserves_order(self):
        jobs = [
            (make_batch([ALICE], epoch=1), [unique_receipts(ALICE, [150], 1)]),
            (make_batch([BOB], epoch=2), [unique_receipts(BOB, [700], 2)]),
            (make_batch([CAROL], epoch=3), [unique_receipts(CAROL, [5000], 3)]),
        ]

        results = aggregate_batches(jobs, BatchConfig(max_workers=2))

        assert [r.epoch for r in results] == [1, 2, 3]
        assert [r.discounts[0] for r in results] == [1000, 3000, 5000]

    def test_group_receipts_chunks_large_users(self):
        receipts = unique_receipts(ALICE, [1] * 130, 1) + unique_receipts(BOB, [2], 200)

        users, segments = group_receipts(receipts, [ALICE, BOB])

        assert users == [ALICE, ALICE, BOB]
        assert [len(s) for s in segments] == [128, 2, 1]

        result = run_batch(make_batch(users), segments)
        assert result.volumes[1].volume == 130
        assert result.volumes[2].volume == 2

    def test_group_receipts_keeps_users_without_receipts(self):
        users, segments = group_receipts([], [ALICE, BOB])
        assert users == [ALICE, BOB]
        assert segments == [[], []]
