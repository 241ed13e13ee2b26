"""
Request-scoped state carried from a swap's pre-swap callback to its
post-swap callback.
"""
from dataclasses import dataclass
from typing import Optional

from .core import PoolKey, SwapParams
from .errors import RelayError

OPEN = "OPEN"
PRE_SWAP = "PRE_SWAP"
PRICE_UPDATE = "PRICE_UPDATE"
SETTLEMENT = "SETTLEMENT"
POST_SWAP = "POST_SWAP"
CLOSED = "CLOSED"

_NEXT = {
    OPEN: PRE_SWAP,
    PRE_SWAP: PRICE_UPDATE,
    PRICE_UPDATE: SETTLEMENT,
    SETTLEMENT: POST_SWAP,
    POST_SWAP: CLOSED,
}


@dataclass(frozen=True)
class RelayState:
    discounted_fee: int
    pre_swap_tick: int
    protocol_cut: int = 0


class SwapContext:
    """
    One swap's relay. Phases advance strictly in order; the relayed state
    can be read once, at POST_SWAP, after which the context is closed.
    """

    def __init__(self, sender: bytes, key: PoolKey, params: SwapParams):
        self.sender = sender
        self.key = key
        self.pool_id = key.to_id()
        self.params = params
        self.phase = OPEN
        self._state: Optional[RelayState] = None

    def advance(self, phase: str):
        expected = _NEXT.get(self.phase)
        if phase != expected:
            raise RelayError(f"Cannot enter {phase} from {self.phase}")
        self.phase = phase

    def stash(self, discounted_fee: int, pre_swap_tick: int):
        if self.phase != PRE_SWAP:
            raise RelayError(f"Relay can only be written during {PRE_SWAP}, not {self.phase}")
        self._state = RelayState(discounted_fee, pre_swap_tick)

    def record_cut(self, cut: int):
        if self._state is None:
            raise RelayError("No relay state to update")
        self._state = RelayState(self._state.discounted_fee, self._state.pre_swap_tick, cut)

    @property
    def state(self) -> RelayState:
        if self._state is None:
            raise RelayError(f"No relay state in phase {self.phase}")
        return self._state

    def consume(self) -> RelayState:
        """Read the relay at POST_SWAP and discard it."""
        if self.phase != POST_SWAP:
            raise RelayError(f"Relay can only be consumed during {POST_SWAP}, not {self.phase}")
        state = self.state
        self._state = None
        return state

    def close(self):
        """End the swap from any phase, discarding the relay."""
        self._state = None
        self.phase = CLOSED

    @property
    def is_open(self) -> bool:
        return self.phase not in (OPEN, CLOSED)
