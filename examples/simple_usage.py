#!/usr/bin/env python3
"""
Simple example of using the pqwallet SDK.
"""
import logging
import os

from pqwallet_sdk import Intent, PQWalletError, ReceiptTimeout, SeedSigner, WalletClient


def main():
    """
    Demonstrate basic usage of the WalletClient.

    This example shows how to:
    1. Load configuration from PQWALLET_* environment variables
    2. Load an ML-DSA seed into the in-memory signer
    3. Send 0.001 ETH through the smart account and wait for inclusion
    """
    logging.basicConfig(level=logging.INFO)

    seed = os.environ.get("PQWALLET_SEED")
    if not seed:
        print("ERROR: PQWALLET_SEED environment variable is required (32-byte hex)")
        return 1

    signer = SeedSigner()
    public_key = signer.configure(seed)
    print(f"Loaded ML-DSA key ({len(public_key)} bytes)")

    try:
        client = WalletClient.from_env(signer=signer)
    except PQWalletError as e:
        print(f"ERROR: {e}")
        return 1

    intent = Intent(
        destination=os.environ.get("DESTINATION", "0x1111111111111111111111111111111111111111"),
        value=10**15,  # 0.001 ETH
    )

    try:
        tx_hash = client.send_transaction(intent)
    except ReceiptTimeout as e:
        print(f"Submitted {e.user_op_hash} but no receipt yet; check the bundler later")
        return 1
    except PQWalletError as e:
        print(f"Transaction failed: {e}")
        return 1

    print(f"Included in transaction {tx_hash}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
