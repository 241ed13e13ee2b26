"""
Hashing and signing primitives used by attestations and pool identities.
"""
from Crypto.Hash import keccak
import nacl.signing
import nacl.exceptions

WORD_SIZE = 32
ADDRESS_SIZE = 20


def generate_hash(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    return keccak.new(digest_bits=256, data=data).digest()


def generate_signing_key() -> tuple[nacl.signing.SigningKey, nacl.signing.VerifyKey]:
    """Generates an ed25519 key pair for signing attestations."""
    signing_key = nacl.signing.SigningKey.generate()
    return signing_key, signing_key.verify_key


def key_fingerprint(verify_key: nacl.signing.VerifyKey | bytes) -> bytes:
    """The 32-byte fingerprint a key is whitelisted under."""
    raw = bytes(verify_key)
    return generate_hash(raw)


def sign(signing_key: nacl.signing.SigningKey, data: bytes) -> bytes:
    """Signs byte data, returning the detached signature."""
    return signing_key.sign(data).signature


def verify_signature(verify_key: nacl.signing.VerifyKey | bytes, signature: bytes, data: bytes) -> bool:
    """Verifies a detached ed25519 signature."""
    try:
        if not isinstance(verify_key, nacl.signing.VerifyKey):
            verify_key = nacl.signing.VerifyKey(bytes(verify_key))
        verify_key.verify(data, signature)
        return True
    except (nacl.exceptions.BadSignatureError, ValueError):
        # Catch both cryptographic failures and format/length errors
        return False


# --- 32-byte word helpers ---

def int_to_word(value: int, signed: bool = False) -> bytes:
    """Encode an integer as a big-endian 32-byte word."""
    return value.to_bytes(WORD_SIZE, 'big', signed=signed)


def word_to_int(word: bytes, signed: bool = False) -> int:
    """Decode a big-endian 32-byte word."""
    return int.from_bytes(word, 'big', signed=signed)


def address_to_word(address: bytes) -> bytes:
    """Left-pad a 20-byte address into a 32-byte word."""
    if len(address) != ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(address)}")
    return b'\x00' * (WORD_SIZE - ADDRESS_SIZE) + address


def word_to_address(word: bytes) -> bytes:
    """Take the low 20 bytes of a 32-byte word."""
    return bytes(word[-ADDRESS_SIZE:])
