import typing
from collections import OrderedDict
from typing import Any, Dict, List

from eth_abi import encode
from eth_utils import function_abi_to_4byte_selector
from eth_utils.abi import collapse_if_tuple
from web3.auto import w3

ABI = List[Dict[str, Any]]

SUPPORTS_INTERFACE = "supportsInterface"


class InvalidArguments(ValueError):
    """Raised when call arguments do not match the target ABI"""


def get_method_abis(abi: ABI, method_name: str) -> ABI:
    return [
        entry
        for entry in abi
        if entry.get("type") == "function" and entry.get("name") == method_name
    ]


def _normalize_arg(abi_input: Dict[str, Any], value: Any) -> Any:
    """Converts struct arguments given as mappings into positional tuples."""
    abi_type = abi_input["type"]
    components = abi_input.get("components")
    if not components:
        return value

    if abi_type.endswith("]"):
        element_input = dict(abi_input, type=abi_type[: abi_type.rindex("[")])
        return [_normalize_arg(element_input, item) for item in value]

    if isinstance(value, dict):
        missing = [c["name"] for c in components if c["name"] not in value]
        if missing:
            raise InvalidArguments(
                f"Struct parameter '{abi_input.get('name')}' is missing field(s) {missing}"
            )
        value = [value[c["name"]] for c in components]

    return tuple(_normalize_arg(c, v) for c, v in zip(components, value))


def _input_types(method_abi: Dict[str, Any]) -> List[str]:
    return [collapse_if_tuple(abi_input) for abi_input in method_abi.get("inputs", [])]


def _match_method_abi(
    method_abis: ABI, args: typing.Sequence[Any]
) -> typing.Tuple[Dict[str, Any], List[Any]]:
    """Returns the first method ABI able to encode `args`, plus the normalized args."""
    if len(method_abis) == 0:
        raise InvalidArguments("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi["inputs"]) == len(args)]
    for abi in abis_matching_args_length:
        normalized_args = list()
        for arg, abi_input in zip(args, abi["inputs"]):
            try:
                normalized = _normalize_arg(abi_input, arg)
            except (InvalidArguments, TypeError):
                break
            if not w3.is_encodable(collapse_if_tuple(abi_input), normalized):
                break
            normalized_args.append(normalized)
        else:
            return abi, normalized_args
    raise InvalidArguments(
        f"Could not find ABI for '{method_abis[0]['name']}' with {len(args)} arg(s) "
        f"and given type(s)"
    )


def validate_method_args(method_abis: ABI, args: typing.Sequence[Any]) -> Dict[str, Any]:
    """
    Validates the transaction arguments against the function ABI.
    Returns the arguments keyed by ABI input name.
    """
    abi, normalized_args = _match_method_abi(method_abis=method_abis, args=args)
    named_args = OrderedDict()
    for position, (abi_input, value) in enumerate(zip(abi["inputs"], normalized_args)):
        named_args[abi_input["name"] or f"arg{position}"] = value
    return named_args


def validate_named_args(
    contract_name: str, method_abi: Dict[str, Any], named_args: typing.Mapping[str, Any]
) -> List[Any]:
    """
    Validates a named parameter record against a single method ABI and returns
    the positional arguments in ABI order.
    """
    abi_inputs = method_abi["inputs"]
    if len(named_args) != len(abi_inputs):
        raise InvalidArguments(
            f"{contract_name}.{method_abi['name']} parameters length mismatch - "
            f"ABI requires {len(abi_inputs)}, got {len(named_args)}."
        )

    codex = enumerate(zip(abi_inputs, named_args.items()), start=0)
    positional = list()
    for position, (abi_input, (name, value)) in codex:
        if abi_input["name"] != name:
            raise InvalidArguments(
                f"{contract_name}.{method_abi['name']} parameter '{name}' at position "
                f"{position} does not match the expected ABI name '{abi_input['name']}'."
            )
        normalized = _normalize_arg(abi_input, value)
        if not w3.is_encodable(collapse_if_tuple(abi_input), normalized):
            raise InvalidArguments(
                f"Parameter '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input['type']}'"
            )
        positional.append(normalized)
    return positional


def encode_call(abi: ABI, method_name: str, args: typing.Sequence[Any]) -> bytes:
    """Returns the selector-prefixed calldata for calling `method_name` with `args`."""
    method_abis = get_method_abis(abi, method_name)
    if not method_abis:
        raise InvalidArguments(f"Method '{method_name}' not found in ABI")
    method_abi, normalized_args = _match_method_abi(method_abis=method_abis, args=args)
    selector = function_abi_to_4byte_selector(method_abi)
    return selector + encode(_input_types(method_abi), normalized_args)


def _fragment_key(entry: Dict[str, Any]) -> typing.Tuple:
    entry_type = entry.get("type", "function")
    if entry_type in ("function", "event", "error"):
        return entry_type, entry["name"], tuple(_input_types(entry))
    # constructor, fallback and receive are unique per contract
    return (entry_type,)


def merge_abis(abis: List[ABI], check: bool = False, skip_supports_interface: bool = True) -> ABI:
    """
    Merges several ABIs into one. The first fragment seen for a given signature
    is kept. With `check`, a shadowed fragment raises unless it is
    `supportsInterface` and `skip_supports_interface` is set.
    """
    if not abis:
        return list()

    result = [dict(entry) for entry in abis[0]]
    seen = {_fragment_key(entry) for entry in result}
    for abi in abis[1:]:
        for fragment in abi:
            key = _fragment_key(fragment)
            if key not in seen:
                result.append(dict(fragment))
                seen.add(key)
                continue
            if check:
                if skip_supports_interface and fragment.get("name") == SUPPORTS_INTERFACE:
                    continue
                raise ValueError(
                    f"{fragment.get('type')} '{fragment.get('name')}' shadows an existing "
                    f"fragment with the same signature"
                )
    return result
