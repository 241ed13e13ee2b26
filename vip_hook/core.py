"""
Core data structures for batches, receipts, discounts and swaps.
"""
from dataclasses import dataclass, field
from typing import Optional

from .crypto import (
    generate_hash,
    int_to_word,
    address_to_word,
    word_to_address,
    word_to_int,
    ADDRESS_SIZE,
)

# Batch shape
MAX_PER_USER = 128
MAX_USERS = 32
MAX_RECEIPTS = MAX_PER_USER * MAX_USERS
TIER_NUM = 5

# Fee / discount scaling
DISCOUNT_DENOMINATOR = 10_000   # 10000 = 100% discount
PPM = 1_000_000                 # 1e6 = 100% fee
MAX_LP_FEE = PPM
MAX_FEE_24 = (1 << 24) - 1
MAX_EPOCH = (1 << 32) - 1
MAX_DISCOUNT_FIELD = (1 << 16) - 1
INT248_MIN = -(1 << 247)
INT248_MAX = (1 << 247) - 1

ZERO_ADDRESS = b'\x00' * ADDRESS_SIZE
ZERO_WORD = b'\x00' * 32

# Event topics
UNISWAP_SWAP_EVENT = bytes.fromhex("40e9cecb9f5f1f1c5b9c97dec2917b7ee92e57ba5563708daca94dd84ad7112f")
HOOK_EVENT = bytes.fromhex("4f8272f9d756f2f56d6a05792b13469cba4d94669c54bf5b7014093a6af2a6a2")


@dataclass(frozen=True)
class LogRecord:
    """One ledger event log, as fetched from a receipt."""
    source_id: bytes        # emitting contract address
    event_id: bytes         # event topic
    log_position: int
    value: bytes            # 32-byte data word

    def to_dict(self) -> dict:
        return {
            'source_id': self.source_id.hex(),
            'event_id': self.event_id.hex(),
            'log_position': self.log_position,
            'value': self.value.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LogRecord':
        return cls(
            source_id=bytes.fromhex(data['source_id']),
            event_id=bytes.fromhex(data['event_id']),
            log_position=int(data['log_position']),
            value=bytes.fromhex(data['value']),
        )


@dataclass(frozen=True)
class Receipt:
    """
    Evidence of one swap. Logs are in log-index order:
    hook event (value = trader), pool swap event (value = pool id),
    pool swap event again (value = signed amount).
    """
    block_number: int
    hook_log: LogRecord
    swap_log: LogRecord
    amount_log: LogRecord

    @property
    def trader(self) -> bytes:
        return word_to_address(self.hook_log.value)

    @property
    def amount(self) -> int:
        return word_to_int(self.amount_log.value, signed=True)

    @property
    def key(self) -> tuple[int, int]:
        """Identity used for input uniqueness."""
        return (self.block_number, self.swap_log.log_position)

    def to_dict(self) -> dict:
        return {
            'block_number': self.block_number,
            'hook_log': self.hook_log.to_dict(),
            'swap_log': self.swap_log.to_dict(),
            'amount_log': self.amount_log.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Receipt':
        return cls(
            block_number=int(data['block_number']),
            hook_log=LogRecord.from_dict(data['hook_log']),
            swap_log=LogRecord.from_dict(data['swap_log']),
            amount_log=LogRecord.from_dict(data['amount_log']),
        )

    @classmethod
    def for_swap(cls, block_number: int, log_position: int, pool_addr: bytes,
                 hook_addr: bytes, pool_id: bytes, trader: bytes, amount: int) -> 'Receipt':
        """Build the receipt a swap through the hook would emit."""
        hook_log = LogRecord(hook_addr, HOOK_EVENT, log_position - 1, address_to_word(trader))
        swap_log = LogRecord(pool_addr, UNISWAP_SWAP_EVENT, log_position, pool_id)
        amount_log = LogRecord(pool_addr, UNISWAP_SWAP_EVENT, log_position, int_to_word(amount, signed=True))
        return cls(block_number, hook_log, swap_log, amount_log)


@dataclass(frozen=True)
class DiscountTier:
    min_volume: int
    discount: int

    def to_dict(self) -> dict:
        return {'min_volume': self.min_volume, 'discount': self.discount}

    @classmethod
    def from_dict(cls, data: dict) -> 'DiscountTier':
        return cls(int(data['min_volume']), int(data['discount']))


@dataclass
class BatchInput:
    """
    Public inputs of one aggregation batch.

    Users MUST be ordered so that repeated identities are adjacent; only
    contiguous runs are merged. Tiers MUST be sorted from lowest to highest.
    """
    epoch: int
    pool_addr: bytes
    hook_addr: bytes
    pool_id: bytes
    block_start: int
    block_end: int
    tiers: list = field(default_factory=list)
    users: list = field(default_factory=list)

    @classmethod
    def default(cls) -> 'BatchInput':
        """All-zero batch."""
        return cls(
            epoch=0,
            pool_addr=ZERO_ADDRESS,
            hook_addr=ZERO_ADDRESS,
            pool_id=ZERO_WORD,
            block_start=0,
            block_end=0,
            tiers=[DiscountTier(0, 0) for _ in range(TIER_NUM)],
            users=[ZERO_ADDRESS] * MAX_USERS,
        )

    def padded_users(self, max_users: int = MAX_USERS) -> list:
        if len(self.users) > max_users:
            raise ValueError(f"Batch holds at most {max_users} users, got {len(self.users)}")
        return list(self.users) + [ZERO_ADDRESS] * (max_users - len(self.users))

    def to_dict(self) -> dict:
        return {
            'epoch': self.epoch,
            'pool_addr': self.pool_addr.hex(),
            'hook_addr': self.hook_addr.hex(),
            'pool_id': self.pool_id.hex(),
            'block_start': self.block_start,
            'block_end': self.block_end,
            'tiers': [t.to_dict() for t in self.tiers],
            'users': [u.hex() for u in self.users],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'BatchInput':
        return cls(
            epoch=int(data['epoch']),
            pool_addr=bytes.fromhex(data['pool_addr']),
            hook_addr=bytes.fromhex(data['hook_addr']),
            pool_id=bytes.fromhex(data['pool_id']),
            block_start=int(data['block_start']),
            block_end=int(data['block_end']),
            tiers=[DiscountTier.from_dict(t) for t in data.get('tiers', [])],
            users=[bytes.fromhex(u) for u in data.get('users', [])],
        )


@dataclass(frozen=True)
class UserVolume:
    user: bytes
    volume: int


@dataclass
class BatchResult:
    """Output of one aggregation pass, in segment order."""
    epoch: int
    volumes: list
    discounts: list

    @property
    def entries(self) -> list[tuple[bytes, int]]:
        return [(v.user, d) for v, d in zip(self.volumes, self.discounts)]


class DiscountRecord:
    """A user's stored discount and the epoch that set it."""

    __slots__ = ('user', 'discount', 'epoch')

    def __init__(self, user: bytes, discount: int = 0, epoch: int = 0):
        self.user = user
        self.discount = discount
        self.epoch = epoch

    def to_dict(self) -> dict:
        return {'discount': self.discount, 'epoch': self.epoch}

    @classmethod
    def from_dict(cls, user: bytes, data: dict) -> 'DiscountRecord':
        return cls(user, int(data['discount']), int(data['epoch']))

    def __repr__(self) -> str:
        return f"DiscountRecord(user={self.user.hex()}, discount={self.discount}, epoch={self.epoch})"


# ==============================================================================
# SWAP TYPES
# ==============================================================================

@dataclass(frozen=True)
class PoolKey:
    currency0: bytes
    currency1: bytes
    fee: int
    tick_spacing: int
    hooks: bytes

    def to_id(self) -> bytes:
        """keccak256 of the padded key fields."""
        encoded = (
            address_to_word(self.currency0)
            + address_to_word(self.currency1)
            + int_to_word(self.fee)
            + int_to_word(self.tick_spacing, signed=True)
            + address_to_word(self.hooks)
        )
        return generate_hash(encoded)


@dataclass(frozen=True)
class SwapParams:
    """
    amount_specified < 0 is an exact-input swap of -amount_specified,
    amount_specified > 0 is an exact-output swap.
    """
    zero_for_one: bool
    amount_specified: int

    @property
    def is_exact_input(self) -> bool:
        return self.amount_specified < 0


@dataclass(frozen=True)
class BalanceDelta:
    """Caller-side amounts: negative is owed to the pool, positive is received."""
    amount0: int = 0
    amount1: int = 0

    def __add__(self, other: 'BalanceDelta') -> 'BalanceDelta':
        return BalanceDelta(self.amount0 + other.amount0, self.amount1 + other.amount1)

    def __sub__(self, other: 'BalanceDelta') -> 'BalanceDelta':
        return BalanceDelta(self.amount0 - other.amount0, self.amount1 - other.amount1)


@dataclass(frozen=True)
class BeforeSwapResult:
    fee: int
    specified_delta: int = 0


@dataclass(frozen=True)
class AfterSwapResult:
    unspecified_delta: int = 0


@dataclass
class PoolFeeState:
    base_fee: int = 0
    surge_fee: int = 0
    manual_fee: Optional[int] = None
