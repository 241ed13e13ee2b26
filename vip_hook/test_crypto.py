# vip_hook/test_crypto.py
import pytest

from vip_hook.crypto import (
    address_to_word,
    generate_hash,
    generate_signing_key,
    int_to_word,
    key_fingerprint,
    sign,
    verify_signature,
    word_to_address,
    word_to_int,
)


def test_keccak_256():
    assert generate_hash(b'').hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_sign_and_verify():
    signing_key, verify_key = generate_signing_key()
    signature = sign(signing_key, b'payload')

    assert verify_signature(verify_key, signature, b'payload')
    assert verify_signature(bytes(verify_key), signature, b'payload')
    assert not verify_signature(verify_key, signature, b'payload!')
    assert not verify_signature(b'\x00' * 3, signature, b'payload')


def test_fingerprint_is_hash_of_key_bytes():
    _, verify_key = generate_signing_key()
    assert key_fingerprint(verify_key) == generate_hash(bytes(verify_key))
    assert key_fingerprint(bytes(verify_key)) == key_fingerprint(verify_key)


def test_words():
    assert word_to_int(int_to_word(-5, signed=True), signed=True) == -5
    assert int_to_word(1)[-1] == 1
    address = b'\x77' * 20
    word = address_to_word(address)
    assert word[:12] == b'\x00' * 12
    assert word_to_address(word) == address
    with pytest.raises(ValueError):
        address_to_word(b'\x77' * 19)
