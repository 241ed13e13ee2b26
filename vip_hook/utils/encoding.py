"""
Fixed-width attestation payload encoding.

Layout (big-endian):
    epoch       uint32
    32 x (user 20 bytes, discount uint16)
"""
import struct

EPOCH_SIZE = 4
USER_SIZE = 20
DISCOUNT_SIZE = 2
ENTRY_SIZE = USER_SIZE + DISCOUNT_SIZE
DEFAULT_ENTRIES = 32


def payload_size(entries: int = DEFAULT_ENTRIES) -> int:
    return EPOCH_SIZE + entries * ENTRY_SIZE


def encode_batch(epoch: int, users: list[tuple[bytes, int]], entries: int = DEFAULT_ENTRIES) -> bytes:
    """
    Pack an epoch and (user, discount) pairs.

    Fewer than `entries` pairs are padded with zero entries.
    """
    if not 0 <= epoch <= 0xFFFFFFFF:
        raise ValueError(f"Epoch {epoch} does not fit in uint32")
    if len(users) > entries:
        raise ValueError(f"At most {entries} entries, got {len(users)}")

    out = bytearray(struct.pack('>I', epoch))
    for user, discount in users:
        if len(user) != USER_SIZE:
            raise ValueError(f"User must be {USER_SIZE} bytes, got {len(user)}")
        if not 0 <= discount <= 0xFFFF:
            raise ValueError(f"Discount {discount} does not fit in uint16")
        out += user
        out += struct.pack('>H', discount)
    out += b'\x00' * (ENTRY_SIZE * (entries - len(users)))
    return bytes(out)


def decode_batch(payload: bytes, entries: int = DEFAULT_ENTRIES) -> tuple[int, list[tuple[bytes, int]]]:
    """
    Unpack a payload into (epoch, [(user, discount), ...]).
    """
    expected = payload_size(entries)
    if len(payload) != expected:
        raise ValueError(f"Payload must be {expected} bytes, got {len(payload)}")

    epoch = struct.unpack_from('>I', payload, 0)[0]
    users = []
    offset = EPOCH_SIZE
    for _ in range(entries):
        user = bytes(payload[offset:offset + USER_SIZE])
        discount = struct.unpack_from('>H', payload, offset + USER_SIZE)[0]
        users.append((user, discount))
        offset += ENTRY_SIZE
    return epoch, users


def hex_to_bytes(s: str) -> bytes:
    """Decode hex with optional 0x prefix; odd lengths get a leading zero."""
    if len(s) >= 2 and s[0] == '0' and s[1] in 'xX':
        s = s[2:]
    if len(s) % 2 == 1:
        s = "0" + s
    return bytes.fromhex(s)
