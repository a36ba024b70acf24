"""
Tests for user operation construction, hashing and relay formatting.
"""
from unittest.mock import MagicMock

import pydantic
import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from pqwallet_sdk import hexcodec
from pqwallet_sdk.exceptions import InvalidPackedField, NonceQueryFailed, ValidationError
from pqwallet_sdk.models import Intent, PackedUserOperation
from pqwallet_sdk.userop import (
    DEFAULT_GAS_POLICY, EXECUTE_SELECTOR, EntryPointNonceSource, GasPolicy,
    OperationCodec, SignerType, compute_user_op_hash, encode_execute_calldata,
    encode_nonce_key, pack_uint128_pair, unpack_uint128_pair
)
from conftest import (
    ACCOUNT, CHAIN_ID, DESTINATION, ENTRY_POINT, HAPPY_PATH_HASH, MODULE_NONCE_KEY,
    TEST_VALUE, VALIDATOR_MODULE
)

uint128 = st.integers(min_value=0, max_value=2**128 - 1)


@pytest.fixture
def intent():
    return Intent(destination=DESTINATION, value=TEST_VALUE, data=b"")


def test_happy_path_hash_matches_oracle(codec, nonce_source, intent):
    op, op_hash = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID, SignerType.MODULE)

    assert hexcodec.encode(op_hash) == HAPPY_PATH_HASH
    assert op.nonce == MODULE_NONCE_KEY << 64
    assert op.signature == b""
    nonce_source.get_nonce.assert_called_once_with(ACCOUNT, MODULE_NONCE_KEY)


def test_hash_is_deterministic_and_ignores_signature(codec, intent):
    op, op_hash = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)

    assert compute_user_op_hash(op, ENTRY_POINT, CHAIN_ID) == op_hash
    signed = op.model_copy(update={"signature": b"\x01" * 3309})
    assert compute_user_op_hash(signed, ENTRY_POINT, CHAIN_ID) == op_hash


def test_hash_depends_on_chain_and_entry_point(codec, intent):
    op, op_hash = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)

    assert compute_user_op_hash(op, ENTRY_POINT, CHAIN_ID + 1) != op_hash
    assert compute_user_op_hash(op, DESTINATION, CHAIN_ID) != op_hash


def test_zero_operation_hash():
    op = PackedUserOperation(
        sender="0x0000000000000000000000000000000000000001",
        nonce=0,
        call_data=b"",
        account_gas_limits=bytes(32),
        pre_verification_gas=0,
        gas_fees=bytes(32),
    )
    assert hexcodec.encode(compute_user_op_hash(op, ENTRY_POINT, CHAIN_ID)) == (
        "0x177b9bcac364623ecfaadabff394e2b3d3e6c6f7e216d0a0aa0590ee6cfbb150"
    )


def test_execute_calldata_layout(intent):
    call_data = encode_execute_calldata(intent)

    assert call_data[:4] == EXECUTE_SELECTOR == bytes.fromhex("e9ae5c53")
    assert call_data[4:36] == bytes(32)  # single-call execution mode
    assert int.from_bytes(call_data[36:68], "big") == 0x40
    assert int.from_bytes(call_data[68:100], "big") == 52
    assert call_data[100:120] == bytes.fromhex("11" * 20)
    assert int.from_bytes(call_data[120:152], "big") == TEST_VALUE
    assert call_data[152:] == bytes(12)


def test_execute_calldata_carries_inner_data():
    call_data = encode_execute_calldata(
        Intent(destination=DESTINATION, value=0, data="0xa9059cbb")
    )
    assert int.from_bytes(call_data[68:100], "big") == 56
    assert call_data[152:156] == bytes.fromhex("a9059cbb")


def test_nonce_keys_per_signer_type():
    assert encode_nonce_key(SignerType.ROOT) == 0
    assert encode_nonce_key(SignerType.ROOT, VALIDATOR_MODULE) == 0
    assert encode_nonce_key(SignerType.MODULE, VALIDATOR_MODULE) == MODULE_NONCE_KEY
    # validation type byte sits directly above the 20-byte validator
    assert MODULE_NONCE_KEY >> 176 == 0x01
    assert MODULE_NONCE_KEY < 2**192


def test_module_key_requires_validator():
    with pytest.raises(ValidationError):
        encode_nonce_key(SignerType.MODULE)


def test_root_signer_uses_root_namespace(codec, nonce_source, intent):
    _, root_hash = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID, SignerType.ROOT)

    nonce_source.get_nonce.assert_called_once_with(ACCOUNT, 0)
    assert hexcodec.encode(root_hash) != HAPPY_PATH_HASH


def test_nonce_failure_raises_nonce_query_failed(codec, nonce_source, intent):
    nonce_source.get_nonce.side_effect = RuntimeError("connection refused")

    with pytest.raises(NonceQueryFailed, match="connection refused"):
        codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)


def test_entry_point_nonce_source_queries_contract():
    w3 = MagicMock()
    get_nonce = w3.eth.contract.return_value.functions.getNonce
    get_nonce.return_value.call.return_value = 7

    source = EntryPointNonceSource(w3, ENTRY_POINT)

    assert source.get_nonce(ACCOUNT, MODULE_NONCE_KEY) == 7
    get_nonce.assert_called_once_with(ACCOUNT, MODULE_NONCE_KEY)
    assert w3.eth.contract.call_args.kwargs["address"] == ENTRY_POINT


def test_entry_point_nonce_source_wraps_errors():
    w3 = MagicMock()
    w3.eth.contract.return_value.functions.getNonce.return_value.call.side_effect = ValueError("execution reverted")

    with pytest.raises(NonceQueryFailed, match="execution reverted"):
        EntryPointNonceSource(w3).get_nonce(ACCOUNT, 0)


def test_default_gas_policy_packing(codec, intent):
    op, _ = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)

    assert unpack_uint128_pair(op.account_gas_limits) == (2_000_000, 100_000)
    assert unpack_uint128_pair(op.gas_fees) == (10**9, 10 * 10**9)
    assert op.account_gas_limits.hex() == "000000000000000000000000001e8480000000000000000000000000000186a0"
    assert op.gas_fees.hex() == "0000000000000000000000003b9aca00000000000000000000000002540be400"
    assert op.pre_verification_gas == 100_000


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(high=uint128, low=uint128)
def test_pack_unpack_inverse(high, low):
    packed = pack_uint128_pair(high, low)
    assert len(packed) == 32
    assert unpack_uint128_pair(packed) == (high, low)


@pytest.mark.parametrize("width", [0, 16, 31, 33, 64])
def test_unpack_rejects_other_widths(width):
    with pytest.raises(InvalidPackedField):
        unpack_uint128_pair(bytes(width))


def test_pack_rejects_out_of_range():
    with pytest.raises(ValidationError):
        pack_uint128_pair(2**128, 0)
    with pytest.raises(ValidationError):
        pack_uint128_pair(0, -1)


def test_packed_operation_rejects_short_gas_field():
    with pytest.raises(pydantic.ValidationError):
        PackedUserOperation(
            sender=ACCOUNT, nonce=0, call_data=b"",
            account_gas_limits=bytes(31), pre_verification_gas=0, gas_fees=bytes(32),
        )


def test_finalize_attaches_signature(codec, intent):
    op, _ = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)

    signed = codec.finalize(op, b"\x05" * 65)

    assert signed.signature == b"\x05" * 65
    assert op.signature == b""
    assert signed.call_data == op.call_data


def test_finalize_rejects_empty_signature(codec, intent):
    op, _ = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)
    with pytest.raises(ValidationError):
        codec.finalize(op, b"")


def test_relay_format_unpacks_gas_fields(codec, intent):
    op, _ = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)
    record = codec.to_relay_format(codec.finalize(op, b"\xaa\xbb"))

    assert record["sender"] == ACCOUNT
    assert record["nonce"] == hex(MODULE_NONCE_KEY << 64)
    assert record["verificationGasLimit"] == "0x1e8480"
    assert record["callGasLimit"] == "0x186a0"
    assert record["preVerificationGas"] == "0x186a0"
    assert record["maxPriorityFeePerGas"] == "0x3b9aca00"
    assert record["maxFeePerGas"] == "0x2540be400"
    assert record["callData"].startswith("0xe9ae5c53")
    assert record["signature"] == "0xaabb"
    for field in ("factory", "factoryData", "paymaster", "paymasterVerificationGasLimit",
                  "paymasterPostOpGasLimit", "paymasterData"):
        assert record[field] is None


def test_relay_format_renders_zero_halves_as_single_digit(nonce_source, intent):
    policy = GasPolicy(
        verification_gas_limit=0, call_gas_limit=5,
        pre_verification_gas=0, max_priority_fee_per_gas=0, max_fee_per_gas=0,
    )
    codec = OperationCodec(nonce_source, VALIDATOR_MODULE, gas_policy=policy)
    op, _ = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID, SignerType.ROOT)
    record = codec.to_relay_format(codec.finalize(op, b"\x01"))

    assert record["verificationGasLimit"] == "0x0"
    assert record["callGasLimit"] == "0x5"
    assert record["preVerificationGas"] == "0x0"
    assert record["maxPriorityFeePerGas"] == "0x0"
    assert record["maxFeePerGas"] == "0x0"
    assert record["nonce"] == "0x0"


def test_from_relay_format_restores_packed_operation(codec, intent):
    op, _ = codec.build_unsigned(intent, ACCOUNT, ENTRY_POINT, CHAIN_ID)
    signed = codec.finalize(op, b"\x01" * 3309)

    assert OperationCodec.from_relay_format(codec.to_relay_format(signed)) == signed


def test_from_relay_format_packs_factory_and_paymaster():
    factory = "0x" + "22" * 20
    paymaster = "0x" + "33" * 20
    record = {
        "sender": ACCOUNT,
        "nonce": "0x1",
        "factory": factory,
        "factoryData": "0xabcd",
        "callData": "0x",
        "callGasLimit": "0x1",
        "verificationGasLimit": "0x2",
        "preVerificationGas": "0x3",
        "maxFeePerGas": "0x4",
        "maxPriorityFeePerGas": "0x5",
        "paymaster": paymaster,
        "paymasterVerificationGasLimit": "0x6",
        "paymasterPostOpGasLimit": "0x7",
        "paymasterData": "0xff",
        "signature": "0x01",
    }
    op = OperationCodec.from_relay_format(record)

    assert op.init_code == bytes.fromhex("22" * 20 + "abcd")
    assert op.paymaster_and_data == (
        bytes.fromhex("33" * 20) + (6).to_bytes(16, "big") + (7).to_bytes(16, "big") + b"\xff"
    )
    assert unpack_uint128_pair(op.account_gas_limits) == (2, 1)
    assert unpack_uint128_pair(op.gas_fees) == (5, 4)


def test_from_relay_format_rejects_bad_quantity():
    with pytest.raises(ValidationError):
        OperationCodec.from_relay_format({"sender": ACCOUNT, "nonce": "0xzz"})


def test_gas_policy_defaults():
    assert DEFAULT_GAS_POLICY.verification_gas_limit == 2_000_000
    assert DEFAULT_GAS_POLICY.max_fee_per_gas == 10 * DEFAULT_GAS_POLICY.max_priority_fee_per_gas
