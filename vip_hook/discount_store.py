"""
Durable per-user discount storage.
"""
import logging
from typing import Iterable, Optional

import msgpack

from .core import DiscountRecord, DISCOUNT_DENOMINATOR
from .errors import ValidationError

logger = logging.getLogger(__name__)

DISCOUNT_PREFIX = b"DISCOUNT:"


class DiscountStore:
    """
    Map from user address to discount (10000 = 100%).

    Writes are plain overwrites unless enforce_epoch_order is set, in which
    case an update carrying an epoch not newer than the stored one is skipped.
    """

    def __init__(self, db, enforce_epoch_order: bool = False):
        self.db = db
        self.enforce_epoch_order = enforce_epoch_order

    @staticmethod
    def _key(user: bytes) -> bytes:
        return DISCOUNT_PREFIX + user

    def get_record(self, user: bytes) -> Optional[DiscountRecord]:
        raw = self.db.get(self._key(user))
        if not raw:
            return None
        return DiscountRecord.from_dict(user, msgpack.unpackb(raw, raw=False))

    def get_discount(self, user: bytes) -> int:
        """Stored discount, 0 when the user has none."""
        record = self.get_record(user)
        return record.discount if record else 0

    def _should_write(self, user: bytes, epoch: int) -> bool:
        if not self.enforce_epoch_order:
            return True
        current = self.get_record(user)
        if current is not None and epoch <= current.epoch:
            logger.warning(
                f"Skipping stale discount for {user.hex()}: "
                f"epoch {epoch} <= stored {current.epoch}"
            )
            return False
        return True

    @staticmethod
    def _check(discount: int):
        if not 0 <= discount <= DISCOUNT_DENOMINATOR:
            raise ValidationError(f"Discount {discount} out of range [0, {DISCOUNT_DENOMINATOR}]")

    def upsert(self, user: bytes, discount: int, epoch: int = 0) -> bool:
        """Write one discount. Returns False if skipped as stale."""
        self._check(discount)
        if not self._should_write(user, epoch):
            return False
        record = DiscountRecord(user, discount, epoch)
        self.db.put(self._key(user), msgpack.packb(record.to_dict(), use_bin_type=True))
        return True

    def upsert_many(self, epoch: int, updates: Iterable[tuple[bytes, int]]) -> int:
        """
        Write a set of discounts for one epoch atomically.

        Every discount is range-checked before anything is written.
        Returns the number of records written.
        """
        updates = list(updates)
        for _, discount in updates:
            self._check(discount)

        written = 0
        with self.db.write_batch() as batch:
            # later entries for the same user win, as with sequential upserts
            pending = {}
            for user, discount in updates:
                if user in pending or self._should_write(user, epoch):
                    pending[user] = discount
            for user, discount in pending.items():
                record = DiscountRecord(user, discount, epoch)
                batch.put(self._key(user), msgpack.packb(record.to_dict(), use_bin_type=True))
                written += 1
        return written

    def all_records(self) -> list[DiscountRecord]:
        records = []
        for key, raw in self.db.iterate_prefix(DISCOUNT_PREFIX):
            user = key[len(DISCOUNT_PREFIX):]
            records.append(DiscountRecord.from_dict(user, msgpack.unpackb(raw, raw=False)))
        return records
