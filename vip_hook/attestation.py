"""
Producing and delivering signed batch attestations.

The prover aggregates a batch off the settlement path, encodes the result
and signs it. The source checks the signature, derives the key fingerprint
and hands (fingerprint, payload) to the hook. Nothing downstream re-runs
the aggregation: trust rests on the fingerprint being whitelisted.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import nacl.signing

from .aggregator import run_batch
from .config import BatchConfig
from .core import BatchInput, BatchResult
from .crypto import generate_hash, key_fingerprint, sign, verify_signature
from .errors import AuthenticationError
from .utils.encoding import encode_batch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedAttestation:
    payload: bytes
    verify_key: bytes
    signature: bytes

    @property
    def fingerprint(self) -> bytes:
        return key_fingerprint(self.verify_key)

    def to_dict(self) -> dict:
        return {
            'payload': self.payload.hex(),
            'verify_key': self.verify_key.hex(),
            'signature': self.signature.hex(),
            'fingerprint': self.fingerprint.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SignedAttestation':
        return cls(
            payload=bytes.fromhex(data['payload']),
            verify_key=bytes.fromhex(data['verify_key']),
            signature=bytes.fromhex(data['signature']),
        )


class BatchProver:
    """Runs aggregation for a batch and signs the encoded result."""

    def __init__(self, signing_key: nacl.signing.SigningKey, config: Optional[BatchConfig] = None):
        self.signing_key = signing_key
        self.config = config or BatchConfig()

    @property
    def fingerprint(self) -> bytes:
        return key_fingerprint(self.signing_key.verify_key)

    def prove(self, batch: BatchInput, segments: list) -> tuple[BatchResult, SignedAttestation]:
        result = run_batch(batch, segments, self.config)
        payload = encode_batch(result.epoch, result.entries, self.config.max_users)
        attestation = SignedAttestation(
            payload=payload,
            verify_key=bytes(self.signing_key.verify_key),
            signature=sign(self.signing_key, payload),
        )
        logger.info(
            f"Proved epoch {batch.epoch} for pool {batch.pool_id.hex()[:16]}: "
            f"payload {generate_hash(payload).hex()[:16]}"
        )
        return result, attestation


class AttestationSource:
    """
    Verifies signed attestations and forwards them to a hook's callback.

    The hook accepts callbacks only from the source address it has been
    configured with.
    """

    def __init__(self, address: bytes):
        self.address = address

    def submit(self, attestation: SignedAttestation, hook) -> int:
        if not verify_signature(attestation.verify_key, attestation.signature, attestation.payload):
            raise AuthenticationError("Invalid attestation signature")
        return hook.attestation_callback(self.address, attestation.fingerprint, attestation.payload)

    def submit_many(self, attestations: list, hook) -> list:
        for attestation in attestations:
            if not verify_signature(attestation.verify_key, attestation.signature, attestation.payload):
                raise AuthenticationError("Invalid attestation signature")
        return hook.attestation_batch_callback(
            self.address,
            [a.fingerprint for a in attestations],
            [a.payload for a in attestations],
        )
