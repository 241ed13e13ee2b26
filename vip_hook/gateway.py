"""
Authenticity gateway: accepts attested discount payloads whose key
fingerprint is whitelisted and writes the decoded discounts to the store.
"""
import logging
from typing import Optional

from .core import ZERO_ADDRESS, DISCOUNT_DENOMINATOR, MAX_USERS
from .errors import AuthenticationError, ValidationError
from .utils.encoding import decode_batch

logger = logging.getLogger(__name__)


class AuthenticityGateway:
    def __init__(self, admin, store, monitor=None, entries: int = MAX_USERS,
                 isolate_failures: bool = False):
        """
        Args:
            admin: Whitelist holder (is_whitelisted)
            store: DiscountStore receiving the updates
            monitor: Optional HookMonitor
            entries: (user, discount) pairs per payload
            isolate_failures: Batch calls apply valid entries and report
                failed ones instead of aborting the whole call
        """
        self.admin = admin
        self.store = store
        self.monitor = monitor
        self.entries = entries
        self.isolate_failures = isolate_failures

    def _record(self, status: str, updates: int = 0):
        if self.monitor:
            self.monitor.record_attestation(status, updates)

    def _authenticate(self, fingerprint: bytes):
        if not self.admin.is_whitelisted(fingerprint):
            raise AuthenticationError(f"Fingerprint {fingerprint.hex()} is not whitelisted")

    def _decode(self, payload: bytes) -> tuple[int, list[tuple[bytes, int]]]:
        try:
            epoch, entries = decode_batch(payload, self.entries)
        except ValueError as e:
            raise ValidationError(f"Malformed attestation payload: {e}") from e
        for user, discount in entries:
            if discount > DISCOUNT_DENOMINATOR:
                raise ValidationError(f"Discount {discount} for {user.hex()} exceeds {DISCOUNT_DENOMINATOR}")
        # zero-address entries are unused user slots
        return epoch, [(user, discount) for user, discount in entries if user != ZERO_ADDRESS]

    def _verify(self, fingerprint: bytes, payload: bytes) -> tuple[int, list[tuple[bytes, int]]]:
        try:
            self._authenticate(fingerprint)
            return self._decode(payload)
        except ValidationError as e:
            self._record('rejected')
            logger.warning(f"Attestation rejected: {e}")
            raise

    def _apply(self, epoch: int, updates: list[tuple[bytes, int]]) -> int:
        written = self.store.upsert_many(epoch, updates)
        self._record('applied', written)
        logger.info(f"Attestation for epoch {epoch} applied: {written} discounts updated")
        return written

    def apply_attestation(self, fingerprint: bytes, payload: bytes) -> int:
        """
        Authenticate and apply one payload.

        Returns:
            Number of discount records written

        Raises:
            AuthenticationError: fingerprint not whitelisted (nothing written)
            ValidationError: payload malformed (nothing written)
        """
        epoch, updates = self._verify(fingerprint, payload)
        return self._apply(epoch, updates)

    def apply_attestation_batch(self, fingerprints: list, payloads: list,
                                isolate_failures: Optional[bool] = None) -> list:
        """
        Apply several payloads.

        By default every entry is authenticated and decoded before any is
        applied, and one bad entry aborts the call with nothing written.
        With isolate_failures, good entries are applied and the result list
        holds None for each failed entry.

        Returns:
            Per-entry written counts (None for failed entries when isolating)
        """
        if len(fingerprints) != len(payloads):
            raise ValidationError(
                f"Got {len(fingerprints)} fingerprints for {len(payloads)} payloads"
            )
        isolate = self.isolate_failures if isolate_failures is None else isolate_failures

        if not isolate:
            verified = [self._verify(fp, payload) for fp, payload in zip(fingerprints, payloads)]
            return [self._apply(epoch, updates) for epoch, updates in verified]

        results = []
        for index, (fp, payload) in enumerate(zip(fingerprints, payloads)):
            try:
                results.append(self.apply_attestation(fp, payload))
            except ValidationError as e:
                logger.warning(f"Batch entry {index} skipped: {e}")
                results.append(None)
        return results
