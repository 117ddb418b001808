import pytest
from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from orchestrator.abi import (
    InvalidArguments,
    encode_call,
    get_method_abis,
    merge_abis,
    validate_method_args,
    validate_named_args,
)
from tests.conftest import POOL, PROXY_ABI, STRATEGY_ABI, SWAPPER

SWAP_PARAMS = {
    "name": "params_",
    "type": "tuple",
    "components": [
        {"name": "tokenIn", "type": "address"},
        {"name": "amountIn", "type": "uint256"},
    ],
}

ROUTER_ABI = [
    {
        "type": "function",
        "name": "swap",
        "stateMutability": "nonpayable",
        "inputs": [SWAP_PARAMS],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "swapAll",
        "stateMutability": "nonpayable",
        "inputs": [dict(SWAP_PARAMS, type="tuple[]")],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setFee",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "fee_", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setFee",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "token_", "type": "address"}, {"name": "fee_", "type": "uint256"}],
        "outputs": [],
    },
]


def test_validate_method_args_names_arguments():
    method_abis = get_method_abis(STRATEGY_ABI, "initialize")
    named_args = validate_method_args(method_abis, [POOL, SWAPPER, "Yearn_vUSDC"])
    assert list(named_args.items()) == [
        ("pool_", POOL),
        ("swapper_", SWAPPER),
        ("name_", "Yearn_vUSDC"),
    ]


def test_validate_method_args_picks_matching_overload():
    method_abis = get_method_abis(ROUTER_ABI, "setFee")
    assert list(validate_method_args(method_abis, [10])) == ["fee_"]
    assert list(validate_method_args(method_abis, [POOL, 10])) == ["token_", "fee_"]


@pytest.mark.parametrize("args", [[], [POOL], [POOL, SWAPPER, 1], [1, SWAPPER, "name"]])
def test_validate_method_args_rejects_mismatches(args):
    with pytest.raises(InvalidArguments):
        validate_method_args(get_method_abis(STRATEGY_ABI, "initialize"), args)


def test_validate_method_args_without_abi():
    with pytest.raises(InvalidArguments):
        validate_method_args([], [])


def test_validate_named_args():
    (method_abi,) = get_method_abis(STRATEGY_ABI, "initialize")
    named = {"pool_": POOL, "swapper_": SWAPPER, "name_": "Yearn_vUSDC"}
    assert validate_named_args("Yearn", method_abi, named) == [POOL, SWAPPER, "Yearn_vUSDC"]

    with pytest.raises(InvalidArguments, match="length mismatch"):
        validate_named_args("Yearn", method_abi, {"pool_": POOL})
    with pytest.raises(InvalidArguments, match="does not match the expected ABI name"):
        validate_named_args("Yearn", method_abi, {"pool_": POOL, "name_": "x", "swapper_": SWAPPER})
    with pytest.raises(InvalidArguments, match="does not match expected ABI type"):
        validate_named_args("Yearn", method_abi, {"pool_": POOL, "swapper_": 1, "name_": "x"})


def test_struct_arguments_given_as_mappings():
    struct = {"tokenIn": POOL, "amountIn": 5}
    selector = function_signature_to_4byte_selector("swap((address,uint256))")
    expected = selector + encode(["(address,uint256)"], [(POOL, 5)])
    assert encode_call(ROUTER_ABI, "swap", [struct]) == expected
    assert encode_call(ROUTER_ABI, "swap", [[POOL, 5]]) == expected

    selector = function_signature_to_4byte_selector("swapAll((address,uint256)[])")
    expected = selector + encode(["(address,uint256)[]"], [[(POOL, 5), (SWAPPER, 6)]])
    structs = [struct, {"tokenIn": SWAPPER, "amountIn": 6}]
    assert encode_call(ROUTER_ABI, "swapAll", [structs]) == expected


def test_struct_missing_field():
    with pytest.raises(InvalidArguments):
        encode_call(ROUTER_ABI, "swap", [{"tokenIn": POOL}])


def test_encode_call_unknown_method():
    with pytest.raises(InvalidArguments, match="not found"):
        encode_call(ROUTER_ABI, "unknown", [])


def test_merge_abis_first_fragment_wins():
    upgraded = {
        "type": "event",
        "name": "Upgraded",
        "anonymous": False,
        "inputs": [{"name": "newImplementation", "type": "address", "indexed": True}],
    }
    merged = merge_abis([PROXY_ABI, STRATEGY_ABI + [upgraded]])

    assert merged[: len(PROXY_ABI)] == PROXY_ABI
    events = [entry for entry in merged if entry["type"] == "event"]
    assert events == [PROXY_ABI[1]]
    assert len(merged) == len(PROXY_ABI) + len(STRATEGY_ABI)


def test_merge_abis_check():
    supports_interface = get_method_abis(STRATEGY_ABI, "supportsInterface")
    assert merge_abis([STRATEGY_ABI, supports_interface], check=True) == STRATEGY_ABI

    with pytest.raises(ValueError, match="supportsInterface"):
        merge_abis([STRATEGY_ABI, supports_interface], check=True, skip_supports_interface=False)
    with pytest.raises(ValueError, match="initialize"):
        merge_abis([STRATEGY_ABI, get_method_abis(STRATEGY_ABI, "initialize")], check=True)
