"""
Batch Attestation Tool

Runs the volume aggregation for a batch described in a JSON file, signs the
encoded result and writes the attestation, so the whole off-chain half can
be reproduced and audited from the command line.
"""
import argparse
import json
import os
import random

import nacl.signing

from vip_hook.attestation import BatchProver
from vip_hook.config import BatchConfig
from vip_hook.core import BatchInput, DiscountTier, PoolKey, Receipt
from vip_hook.crypto import key_fingerprint
from vip_hook.utils.encoding import decode_batch, hex_to_bytes


def load_batch(path: str) -> tuple[BatchInput, list]:
    with open(path, 'r') as f:
        data = json.load(f)
    batch = BatchInput.from_dict(data['batch'])
    segments = [[Receipt.from_dict(r) for r in segment] for segment in data.get('segments', [])]
    return batch, segments


def load_signing_key(path: str) -> nacl.signing.SigningKey:
    with open(path, 'r') as f:
        return nacl.signing.SigningKey(hex_to_bytes(f.read().strip()))


def prove_batch(input_path: str, key_path: str, output_path: str, strict: bool = False):
    """
    Aggregate, encode and sign one batch.

    Args:
        input_path (str): Batch JSON (public inputs and receipt segments).
        key_path (str): File holding the hex ed25519 seed.
        output_path (str): Where to write the signed attestation JSON.
    """
    print(f"Loading batch from: {input_path}")
    batch, segments = load_batch(input_path)
    prover = BatchProver(load_signing_key(key_path), BatchConfig(strict=strict))

    result, attestation = prover.prove(batch, segments)

    print(f"Epoch {result.epoch}:")
    for volume, discount in zip(result.volumes, result.discounts):
        if volume.volume or discount:
            print(f"  - {volume.user.hex()}: volume {volume.volume}, discount {discount}")

    with open(output_path, 'w') as f:
        json.dump(attestation.to_dict(), f, indent=2)

    print(f"\nAttestation written to: {output_path}")
    print(f"  - Fingerprint: {attestation.fingerprint.hex()}")


def decode_payload(payload_hex: str):
    epoch, entries = decode_batch(hex_to_bytes(payload_hex))
    print(f"Epoch: {epoch}")
    for user, discount in entries:
        if any(user):
            print(f"  - {user.hex()}: {discount}")


def generate_sample_input(output_path: str, key_path: str, users: int = 3, swaps_per_user: int = 4):
    """Generates a sample batch JSON and a fresh signing key."""
    pool_addr = os.urandom(20)
    hook_addr = os.urandom(20)
    key = PoolKey(os.urandom(20), os.urandom(20), 3000, 60, hook_addr)
    pool_id = key.to_id()

    traders = [os.urandom(20) for _ in range(users)]
    segments = []
    block = 100
    for trader in traders:
        segment = []
        for _ in range(swaps_per_user):
            block += 1
            amount = -random.randint(1, 1000) * 10**15
            segment.append(Receipt.for_swap(block, 1, pool_addr, hook_addr, pool_id, trader, amount))
        segments.append(segment)

    batch = BatchInput(
        epoch=1,
        pool_addr=pool_addr,
        hook_addr=hook_addr,
        pool_id=pool_id,
        block_start=100,
        block_end=block + 1,
        tiers=[
            DiscountTier(10**17, 500),
            DiscountTier(10**18, 1000),
            DiscountTier(2 * 10**18, 2000),
            DiscountTier(3 * 10**18, 3000),
            DiscountTier(5 * 10**18, 5000),
        ],
        users=traders,
    )

    with open(output_path, 'w') as f:
        json.dump({
            'batch': batch.to_dict(),
            'segments': [[r.to_dict() for r in segment] for segment in segments],
        }, f, indent=2)

    signing_key = nacl.signing.SigningKey.generate()
    with open(key_path, 'w') as f:
        f.write(bytes(signing_key).hex())

    print(f"\nGenerated sample batch at: {output_path}")
    print(f"Signing key written to: {key_path} (DO NOT USE IN PRODUCTION)")
    print(f"  - Fingerprint to whitelist: {key_fingerprint(signing_key.verify_key).hex()}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Batch Attestation Tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_sample = subparsers.add_parser("sample-input", help="Generate a sample batch.json and key")
    parser_sample.add_argument("--output", type=str, default="batch.json", help="Output file path")
    parser_sample.add_argument("--key-output", type=str, default="attestor.key", help="Signing key path")
    parser_sample.add_argument("--users", type=int, default=3, help="Number of traders")

    parser_prove = subparsers.add_parser("prove", help="Aggregate and sign a batch")
    parser_prove.add_argument("--input", type=str, default="batch.json", help="Batch JSON path")
    parser_prove.add_argument("--key", type=str, required=True, help="Signing key path")
    parser_prove.add_argument("--output", type=str, default="attestation.json", help="Attestation output path")
    parser_prove.add_argument("--strict", action="store_true", help="Reject invalid receipts and tiers")

    parser_decode = subparsers.add_parser("decode", help="Decode an attestation payload")
    parser_decode.add_argument("payload", type=str, help="Payload hex")

    args = parser.parse_args(argv)

    if args.command == "sample-input":
        generate_sample_input(args.output, args.key_output, users=args.users)
    elif args.command == "prove":
        prove_batch(args.input, args.key, args.output, strict=args.strict)
    elif args.command == "decode":
        decode_payload(args.payload)


if __name__ == '__main__':
    main()
