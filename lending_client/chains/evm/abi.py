"""Pure ABI helpers — calldata encoding and return-data decoding, no I/O."""
from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address


def arg_types(signature: str) -> list[str]:
    """Extract the argument types from a function signature.

    Examples:
        "approve(address,uint256)" → ["address", "uint256"]
        "getActiveBorrowers()" → []
    """
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t.strip() for t in inner.split(",")] if inner.strip() else []


def _normalize(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return to_checksum_address(value)
    return value


def encode_call(signature: str, args: Sequence[Any] = ()) -> str:
    """Encode a function call into 0x-prefixed calldata."""
    types = arg_types(signature)
    if len(types) != len(args):
        raise ValueError(
            f"{signature} expects {len(types)} arguments, got {len(args)}"
        )
    values = [_normalize(t, v) for t, v in zip(types, args)]
    data = function_signature_to_4byte_selector(signature) + encode(types, values)
    return "0x" + data.hex()


def decode_result(types: Sequence[str], data: str) -> tuple[Any, ...]:
    """Decode 0x-prefixed return data into a tuple of Python values."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if not raw:
        raise ValueError("Empty return data")
    return decode(list(types), raw)
