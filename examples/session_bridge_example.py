#!/usr/bin/env python3
"""
Drive the SDK through the session message-passing boundary.

A wallet session layer (pairing UI, relay of dapp requests) would push
requests onto the bridge and drain responses; this script stands in for it
and approves every transaction after printing it.
"""
import logging
import os

from pqwallet_sdk import SeedSigner, SessionRequest, WalletClient


def approve(request: SessionRequest, intent) -> bool:
    print(f"Request {request.id}: send {intent.value} wei to {intent.destination}")
    return True


def main():
    logging.basicConfig(level=logging.INFO)

    signer = SeedSigner()
    signer.configure(os.environ["PQWALLET_SEED"])
    client = WalletClient.from_env(signer=signer)

    bridge = client.session_bridge(approver=approve)
    bridge.start()
    try:
        bridge.submit({
            "id": 1,
            "method": "eth_sendTransaction",
            "params": [{"to": "0x1111111111111111111111111111111111111111", "value": "0x38d7ea4c68000"}],
        })
        bridge.submit({"id": 2, "method": "personal_sign", "params": ["0x00"]})
        bridge.requests.join()
    finally:
        bridge.stop()

    for response in bridge.drain():
        print(response.model_dump_json())


if __name__ == "__main__":
    main()
