"""
Owner-controlled hook configuration: fingerprint whitelist, per-pool manual
fees and protocol shares, and the authenticity source address.
"""
import logging
from typing import Optional

import msgpack

from .core import MAX_LP_FEE, PPM
from .errors import Unauthorized, ValidationError

logger = logging.getLogger(__name__)

WHITELIST_PREFIX = b"WHITELIST:"
ADMIN_KEY = b"ADMIN"


class AdminConfig:
    """
    Every mutation takes the caller's address and fails with Unauthorized
    unless it is the owner. Reads are open.
    """

    def __init__(self, db, owner: bytes, default_protocol_share_ppm: int = 0):
        self.db = db
        self.default_protocol_share_ppm = default_protocol_share_ppm
        state = self._load()
        if state is None:
            state = {
                'owner': owner,
                'authenticity_source': None,
                'manual_fees': {},
                'protocol_shares': {},
            }
            self._save(state)
        self._state = state

    def _load(self) -> Optional[dict]:
        raw = self.db.get(ADMIN_KEY)
        if raw:
            return msgpack.unpackb(raw, raw=False)
        return None

    def _save(self, state: dict):
        self.db.put(ADMIN_KEY, msgpack.packb(state, use_bin_type=True))

    def _only_owner(self, caller: bytes):
        if caller != self._state['owner']:
            raise Unauthorized(f"{caller.hex()} is not the owner")

    @property
    def owner(self) -> bytes:
        return self._state['owner']

    def transfer_ownership(self, caller: bytes, new_owner: bytes):
        self._only_owner(caller)
        self._state['owner'] = new_owner
        self._save(self._state)
        logger.info(f"Ownership transferred to {new_owner.hex()}")

    # ==========================================================================
    # FINGERPRINT WHITELIST
    # ==========================================================================

    def add_fingerprint(self, caller: bytes, fingerprint: bytes):
        self._only_owner(caller)
        if len(fingerprint) != 32:
            raise ValidationError(f"Fingerprint must be 32 bytes, got {len(fingerprint)}")
        self.db.put(WHITELIST_PREFIX + fingerprint, msgpack.packb(True))
        logger.info(f"Fingerprint {fingerprint.hex()} whitelisted")

    def remove_fingerprint(self, caller: bytes, fingerprint: bytes):
        self._only_owner(caller)
        self.db.delete(WHITELIST_PREFIX + fingerprint)
        logger.info(f"Fingerprint {fingerprint.hex()} removed from whitelist")

    def is_whitelisted(self, fingerprint: bytes) -> bool:
        raw = self.db.get(WHITELIST_PREFIX + fingerprint)
        return bool(raw) and msgpack.unpackb(raw) is True

    # ==========================================================================
    # AUTHENTICITY SOURCE
    # ==========================================================================

    def set_authenticity_source(self, caller: bytes, source: bytes):
        self._only_owner(caller)
        self._state['authenticity_source'] = source
        self._save(self._state)
        logger.info(f"Authenticity source set to {source.hex()}")

    @property
    def authenticity_source(self) -> Optional[bytes]:
        return self._state['authenticity_source']

    # ==========================================================================
    # PER-POOL FEES
    # ==========================================================================

    def set_manual_fee(self, caller: bytes, pool_id: bytes, fee: int):
        self._only_owner(caller)
        if not 0 <= fee <= MAX_LP_FEE:
            raise ValidationError(f"Manual fee {fee} out of range [0, {MAX_LP_FEE}]")
        self._state['manual_fees'][pool_id.hex()] = fee
        self._save(self._state)
        logger.info(f"Manual fee for pool {pool_id.hex()[:16]} set to {fee}")

    def clear_manual_fee(self, caller: bytes, pool_id: bytes):
        self._only_owner(caller)
        self._state['manual_fees'].pop(pool_id.hex(), None)
        self._save(self._state)

    def get_manual_fee(self, pool_id: bytes) -> tuple[int, bool]:
        """(fee, is_set) for the pool."""
        fee = self._state['manual_fees'].get(pool_id.hex())
        if fee is None:
            return 0, False
        return fee, True

    def set_protocol_share(self, caller: bytes, pool_id: bytes, share_ppm: int):
        self._only_owner(caller)
        if not 0 <= share_ppm <= PPM:
            raise ValidationError(f"Protocol share {share_ppm} out of range [0, {PPM}]")
        self._state['protocol_shares'][pool_id.hex()] = share_ppm
        self._save(self._state)
        logger.info(f"Protocol share for pool {pool_id.hex()[:16]} set to {share_ppm} ppm")

    def get_protocol_share(self, pool_id: bytes) -> int:
        return self._state['protocol_shares'].get(pool_id.hex(), self.default_protocol_share_ppm)
