"""
pqwallet command line: ML-DSA key generation, signing, verification and
user operation hashing.
"""
import argparse
import json
import os
import pathlib
import sys
from typing import Any, Dict, List, Optional

from . import crypto, hexcodec
from .config import DEFAULT_CHAIN_ID
from .crypto import SecurityLevel
from .exceptions import PQWalletError
from .models import PackedUserOperation
from .signer.base import require_hash_length
from .userop import ENTRY_POINT_V07, OperationCodec, compute_user_op_hash


def _read_hash(value: str) -> bytes:
    return require_hash_length(hexcodec.decode(value))


def _load_operation(record: Dict[str, Any]) -> PackedUserOperation:
    """Accept either the packed (accountGasLimits/gasFees) or relay (unpacked) JSON shape."""
    if "accountGasLimits" in record:
        return PackedUserOperation(
            sender=record["sender"],
            nonce=record["nonce"],
            init_code=record.get("initCode") or "0x",
            call_data=record["callData"],
            account_gas_limits=record["accountGasLimits"],
            pre_verification_gas=record["preVerificationGas"],
            gas_fees=record["gasFees"],
            paymaster_and_data=record.get("paymasterAndData") or "0x",
            signature=record.get("signature") or "0x",
        )
    return OperationCodec.from_relay_format(record)


def cmd_keygen(args: argparse.Namespace) -> int:
    level = SecurityLevel(args.level)
    seed = hexcodec.decode(args.seed) if args.seed else os.urandom(crypto.SEED_LENGTH)
    public_key, _ = crypto.derive_mldsa_keypair(seed, level)

    output = pathlib.Path(args.output)
    output.mkdir(parents=True, exist_ok=True)
    pk_path = output / "pk.bin"
    sk_path = output / "sk.bin"
    pk_path.write_bytes(public_key)
    sk_path.write_bytes(seed)
    print(f"Public key:  {pk_path} ({len(public_key)} bytes)")
    print(f"Seed:        {sk_path} ({len(seed)} bytes)")
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    level = SecurityLevel(args.level)
    seed = pathlib.Path(args.key).read_bytes()
    _, secret_key = crypto.derive_mldsa_keypair(seed, level)
    signature = crypto.mldsa_sign(secret_key, _read_hash(args.hash), level)
    pathlib.Path(args.output).write_bytes(signature)
    print(f"Signature written to {args.output} ({len(signature)} bytes)")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    public_key = pathlib.Path(args.key).read_bytes()
    signature = pathlib.Path(args.sig).read_bytes()
    # Without --level the signature size decides
    level = SecurityLevel(args.level) if args.level else crypto.level_for_signature(signature)
    if crypto.mldsa_verify(public_key, _read_hash(args.hash), signature, level):
        print("Valid")
        return 0
    print("Invalid")
    return 1


def cmd_hash(args: argparse.Namespace) -> int:
    with open(args.op) as f:
        op = _load_operation(json.load(f))
    print(hexcodec.encode(compute_user_op_hash(op, args.entry_point, args.chain_id)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pqwallet",
        description="ML-DSA tooling for ERC-4337 user operations"
    )
    sub = parser.add_subparsers(dest="command", required=True)
    levels = [level.value for level in SecurityLevel]

    keygen = sub.add_parser("keygen", help="Generate an ML-DSA keypair from a random or given seed")
    keygen.add_argument("--output", required=True, help="Directory for pk.bin and sk.bin")
    keygen.add_argument("--seed", help="32-byte hex seed (random when omitted)")
    keygen.add_argument("--level", choices=levels, default=crypto.DEFAULT_LEVEL.value)
    keygen.set_defaults(func=cmd_keygen)

    sign = sub.add_parser("sign", help="Sign a 32-byte hash")
    sign.add_argument("--key", required=True, help="Seed file (sk.bin)")
    sign.add_argument("--hash", required=True, help="32-byte hash as hex")
    sign.add_argument("--output", required=True, help="Signature output file")
    sign.add_argument("--level", choices=levels, default=crypto.DEFAULT_LEVEL.value)
    sign.set_defaults(func=cmd_sign)

    verify = sub.add_parser("verify", help="Verify a signature; exits 1 when invalid")
    verify.add_argument("--key", required=True, help="Public key file (pk.bin)")
    verify.add_argument("--hash", required=True, help="32-byte hash as hex")
    verify.add_argument("--sig", required=True, help="Signature file")
    verify.add_argument("--level", choices=levels, help="Defaults to the level matching the signature size")
    verify.set_defaults(func=cmd_verify)

    op_hash = sub.add_parser("hash", help="Compute the EntryPoint hash of a user operation JSON file")
    op_hash.add_argument("--op", required=True, help="User operation JSON (packed or relay shape)")
    op_hash.add_argument("--entry-point", default=ENTRY_POINT_V07)
    op_hash.add_argument("--chain-id", type=int, default=DEFAULT_CHAIN_ID)
    op_hash.set_defaults(func=cmd_hash)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (PQWalletError, OSError, ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
