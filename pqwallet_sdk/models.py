"""
Data models for the pqwallet SDK.
"""
from typing import Any, Dict, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import hexcodec

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _as_bytes(value: Any) -> Any:
    if isinstance(value, str):
        return hexcodec.decode(value)
    return value


def _as_int(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text[:2] in ("0x", "0X"):
            return int(text, 16) if len(text) > 2 else 0
        return int(text)
    return value


def _as_address(value: Any) -> str:
    if isinstance(value, bytes):
        value = hexcodec.encode(value)
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


class Intent(BaseModel):
    """A single user action: send `value` wei and `data` to `destination`."""
    destination: str
    value: int = Field(default=0, ge=0, lt=2**256)
    data: bytes = b""

    @field_validator("destination", mode="before")
    @classmethod
    def _check_destination(cls, value):
        return _as_address(value)

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value):
        return _as_int(value)

    @field_validator("data", mode="before")
    @classmethod
    def _parse_data(cls, value):
        if value is None:
            return b""
        return _as_bytes(value)

    @classmethod
    def from_transaction(cls, tx: Dict[str, Any]) -> "Intent":
        """
        Build an intent from an eth_sendTransaction params object.

        Missing fields default to the zero address, zero value and empty data.
        """
        return cls(
            destination=tx.get("to") or ZERO_ADDRESS,
            value=tx.get("value") or 0,
            data=tx.get("data") or b"",
        )


class PackedUserOperation(BaseModel):
    """ERC-4337 v0.7 PackedUserOperation"""
    model_config = ConfigDict(frozen=True)

    sender: str
    nonce: int = Field(ge=0, lt=2**256)
    init_code: bytes = b""
    call_data: bytes
    account_gas_limits: bytes
    pre_verification_gas: int = Field(ge=0, lt=2**256)
    gas_fees: bytes
    paymaster_and_data: bytes = b""
    signature: bytes = b""

    @field_validator("sender", mode="before")
    @classmethod
    def _check_sender(cls, value):
        return _as_address(value)

    @field_validator("nonce", "pre_verification_gas", mode="before")
    @classmethod
    def _parse_uint(cls, value):
        return _as_int(value)

    @field_validator(
        "init_code", "call_data", "account_gas_limits", "gas_fees",
        "paymaster_and_data", "signature", mode="before"
    )
    @classmethod
    def _parse_bytes(cls, value):
        return _as_bytes(value)

    @field_validator("account_gas_limits", "gas_fees")
    @classmethod
    def _check_packed_width(cls, value: bytes) -> bytes:
        if len(value) != 32:
            raise ValueError(f"Packed gas field must be 32 bytes, got {len(value)}")
        return value

    def to_hex_dict(self) -> Dict[str, str]:
        """Render the packed shape as the EntryPoint ABI tuple fields (hex strings)."""
        return {
            "sender": self.sender,
            "nonce": hexcodec.quantity(self.nonce),
            "initCode": hexcodec.encode(self.init_code),
            "callData": hexcodec.encode(self.call_data),
            "accountGasLimits": hexcodec.encode(self.account_gas_limits),
            "preVerificationGas": hexcodec.quantity(self.pre_verification_gas),
            "gasFees": hexcodec.encode(self.gas_fees),
            "paymasterAndData": hexcodec.encode(self.paymaster_and_data),
            "signature": hexcodec.encode(self.signature),
        }


class UserOperationReceipt(BaseModel):
    """Receipt returned by eth_getUserOperationReceipt"""
    model_config = ConfigDict(populate_by_name=True)

    user_op_hash: Optional[str] = Field(None, alias="userOpHash")
    transaction_hash: str = Field(..., alias="transactionHash")
    gas_used: Optional[int] = Field(None, alias="actualGasUsed")
    success: bool = True
    reason: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        result = dict(data)
        # Bundlers nest the bundle transaction receipt under "receipt"
        nested = result.get("receipt")
        if "transactionHash" not in result and isinstance(nested, dict):
            result["transactionHash"] = nested.get("transactionHash")
        if result.get("actualGasUsed") is not None:
            result["actualGasUsed"] = _as_int(result["actualGasUsed"])
        return result


class PluginInfo(BaseModel):
    """Diagnostic status reported by the remote signing plugin"""
    model_config = ConfigDict(populate_by_name=True)

    has_keypair: bool = Field(False, alias="hasKeypair")
    level: Optional[str] = None
    nonce: int = 0
    public_key_prefix: Optional[str] = Field(None, alias="publicKeyPrefix")

    @field_validator("has_keypair", mode="before")
    @classmethod
    def _coerce_bool(cls, value):
        return bool(value)

    @field_validator("nonce", mode="before")
    @classmethod
    def _default_nonce(cls, value):
        return 0 if value is None else value
