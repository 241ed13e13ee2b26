"""
VIP discount hook.

Composes the capability objects: the authenticity gateway writes attested
discounts into the discount store, the fee blender reads them at swap time,
and a SwapContext carries the fee and pre-swap tick from the pre-swap
callback to the post-swap callback.

Swap phases:
    PRE_SWAP      compute the discounted fee, read the tick, stash both
    PRICE_UPDATE  push the tick to the observer (best effort)
    SETTLEMENT    exact input: withhold the protocol cut of the input
    POST_SWAP     consume the relay; exact output: withhold the cut of the
                  now-known input amount
"""
import logging
from typing import Optional

from .admin import AdminConfig
from .config import Config
from .core import (
    AfterSwapResult,
    BalanceDelta,
    BeforeSwapResult,
    PoolKey,
    SwapParams,
)
from .discount_store import DiscountStore
from .errors import AuthenticationError, RelayError
from .fees import FeeBlender, protocol_cut
from .gateway import AuthenticityGateway
from .interfaces import FeeRecipient, FeeStateSource, PriceObserver, SwapHost
from .monitoring import HookMonitor
from .relay import SwapContext, PRE_SWAP, PRICE_UPDATE, SETTLEMENT, POST_SWAP, CLOSED

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VipDiscountHook:
    def __init__(self, db, address: bytes, owner: bytes,
                 fee_source: FeeStateSource,
                 fee_recipient: FeeRecipient,
                 pool_manager: SwapHost,
                 observer: Optional[PriceObserver] = None,
                 config: Optional[Config] = None,
                 monitor: Optional[HookMonitor] = None):
        self.config = config or Config.default()
        self.address = address
        self.pool_manager = pool_manager
        self.fee_recipient = fee_recipient
        self.observer = observer
        self.monitor = monitor or HookMonitor(self.config.monitoring.host, self.config.monitoring.port)
        if self.config.monitoring.enabled and self.monitor.server is None:
            self.monitor.start_server()

        self.admin = AdminConfig(db, owner, self.config.fees.default_protocol_share_ppm)
        self.store = DiscountStore(db, enforce_epoch_order=self.config.fees.enforce_epoch_order)
        self.gateway = AuthenticityGateway(
            self.admin, self.store, self.monitor,
            entries=self.config.batch.max_users,
            isolate_failures=self.config.fees.isolate_batch_failures,
        )
        self.blender = FeeBlender(self.store, fee_source, self.admin)

        self._active: Optional[SwapContext] = None

        logger.info(f"VIP hook initialized at {address.hex()}")

    # ==========================================================================
    # ATTESTATIONS
    # ==========================================================================

    def _check_source(self, sender: bytes):
        source = self.admin.authenticity_source
        if source is None or sender != source:
            raise AuthenticationError(f"Callback from unauthorized source {sender.hex()}")

    def attestation_callback(self, sender: bytes, fingerprint: bytes, payload: bytes) -> int:
        """Entry point for the authenticity source."""
        self._check_source(sender)
        return self.gateway.apply_attestation(fingerprint, payload)

    def attestation_batch_callback(self, sender: bytes, fingerprints: list, payloads: list) -> list:
        self._check_source(sender)
        return self.gateway.apply_attestation_batch(fingerprints, payloads)

    # ==========================================================================
    # FEES
    # ==========================================================================

    def get_discount(self, user: bytes) -> int:
        return self.store.get_discount(user)

    def get_fee(self, user: bytes, pool_id: bytes) -> int:
        return self.blender.compute_fee(pool_id, user)

    def _credit(self, pool_id: bytes, zero: bool, amount: int):
        """Hand this swap's withheld fee to the recipient. Not retried on failure."""
        amount0, amount1 = (amount, 0) if zero else (0, amount)
        try:
            self.fee_recipient.notify_fee(pool_id, amount0, amount1)
        except Exception as e:
            self.monitor.record_notification_failure('fee_recipient')
            logger.warning(f"notify_fee failed for pool {pool_id.hex()[:16]}, dropped ({amount0}, {amount1}): {e}")

    def _observe(self, pool_id: bytes, tick: int):
        if self.observer is None:
            return
        try:
            self.observer.record_observation(pool_id, tick)
        except Exception as e:
            self.monitor.record_notification_failure('observer')
            logger.warning(f"record_observation failed for pool {pool_id.hex()[:16]}: {e}")

    # ==========================================================================
    # SWAP CALLBACKS
    # ==========================================================================

    def before_swap(self, sender: bytes, key: PoolKey, params: SwapParams) -> tuple[BeforeSwapResult, SwapContext]:
        """
        Returns the fee to charge, the amount of the specified currency the
        hook withholds, and the context to hand back to after_swap.
        """
        if self._active is not None and self._active.is_open:
            raise RelayError("Previous swap has not completed POST_SWAP")

        ctx = SwapContext(sender, key, params)
        self._active = ctx
        try:
            ctx.advance(PRE_SWAP)
            fee = self.blender.compute_fee(ctx.pool_id, sender)
            tick = self.pool_manager.current_tick(ctx.pool_id)
            ctx.stash(fee, tick)

            ctx.advance(PRICE_UPDATE)
            self._observe(ctx.pool_id, tick)

            ctx.advance(SETTLEMENT)
            withheld = 0
            if params.is_exact_input:
                share = self.admin.get_protocol_share(ctx.pool_id)
                _, withheld = protocol_cut(-params.amount_specified, fee, share)
                # credited at POST_SWAP, once the swap can no longer revert
                ctx.record_cut(withheld)
        except Exception:
            self.abort(ctx)
            raise

        logger.debug(f"before_swap {sender.hex()}: fee {fee}, tick {tick}, withheld {withheld}")
        return BeforeSwapResult(fee=fee, specified_delta=withheld), ctx

    def after_swap(self, ctx: SwapContext, delta: BalanceDelta) -> AfterSwapResult:
        """
        Args:
            ctx: Context returned by before_swap for this swap
            delta: The pool's swap delta for the caller (negative = paid in)

        Returns:
            Amount of the unspecified currency the hook withholds
        """
        try:
            ctx.advance(POST_SWAP)
            state = ctx.consume()
        except RelayError:
            self.abort(ctx)
            raise
        params = ctx.params

        withheld = 0
        if not params.is_exact_input:
            # exact output: the unspecified currency is the input
            amount_in = -(delta.amount0 if params.zero_for_one else delta.amount1)
            share = self.admin.get_protocol_share(ctx.pool_id)
            _, withheld = protocol_cut(amount_in, state.discounted_fee, share)

        cut = state.protocol_cut + withheld
        if cut > 0:
            # both directions take the cut in the input currency
            self._credit(ctx.pool_id, params.zero_for_one, cut)

        tick = self.pool_manager.current_tick(ctx.pool_id)
        if tick != state.pre_swap_tick:
            self._observe(ctx.pool_id, tick)

        ctx.advance(CLOSED)
        self._active = None
        self.monitor.record_swap(params.is_exact_input, state.discounted_fee, cut)
        return AfterSwapResult(unspecified_delta=withheld)

    def abort(self, ctx: SwapContext):
        """Drop a swap's context after the host reverted it."""
        ctx.close()
        if self._active is ctx:
            self._active = None
        logger.debug(f"Swap by {ctx.sender.hex()} aborted")
