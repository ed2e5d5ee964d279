"""
Calldata encoding helpers.

Values are encoded into hex strings without the ``0x`` prefix. Composite
values are passed to ``encode_tuple`` as ``(is_dynamic, encoded)`` pairs so
heads and tails are laid out per the Solidity ABI.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from eth_utils import keccak

Part = Tuple[bool, str]

WORD_HEX = 64


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def encode_uint(value: int) -> str:
    if value < 0:
        raise ValueError("Value must be non-negative")
    if value >= 2**256:
        raise ValueError("Value does not fit in uint256")
    return hex(value)[2:].rjust(WORD_HEX, "0")


def encode_int(value: int) -> str:
    """Two's complement int256 word."""
    if not -(2**255) <= value < 2**255:
        raise ValueError("Value does not fit in int256")
    return encode_uint(value % 2**256)


def encode_bool(value: bool) -> str:
    return encode_uint(1 if value else 0)


def encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(WORD_HEX, "0")


def encode_bytes(data: str | bytes) -> str:
    """Dynamic ``bytes``: length word followed by right-padded data."""
    hex_data = data.hex() if isinstance(data, (bytes, bytearray)) else _strip_0x(data)
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    data_len = len(hex_data) // 2
    padded_len = ((data_len + 31) // 32) * 32
    padding = "0" * ((padded_len - data_len) * 2)
    return encode_uint(data_len) + hex_data + padding


def encode_tuple(parts: Sequence[Part]) -> str:
    """Lay out static parts inline and dynamic parts behind offsets."""
    head_size = sum(32 if dynamic else len(encoded) // 2 for dynamic, encoded in parts)
    head: List[str] = []
    tail: List[str] = []
    tail_size = 0
    for dynamic, encoded in parts:
        if dynamic:
            head.append(encode_uint(head_size + tail_size))
            tail.append(encoded)
            tail_size += len(encoded) // 2
        else:
            head.append(encoded)
    return "".join(head) + "".join(tail)


def encode_bytes_array(items: Iterable[str | bytes]) -> str:
    """Dynamic ``bytes[]``."""
    encoded = [(True, encode_bytes(item)) for item in items]
    return encode_uint(len(encoded)) + encode_tuple(encoded)


def static(*words: str) -> Part:
    return (False, "".join(words))


def dynamic(encoded: str) -> Part:
    return (True, encoded)


def selector(signature: str) -> str:
    return f"0x{keccak(text=signature)[:4].hex()}"


def encode_call(signature: str, parts: Sequence[Part]) -> str:
    return selector(signature) + encode_tuple(parts)


def decode_words(result: str) -> List[int]:
    """Split return data into 32-byte words as unsigned ints."""
    data = _strip_0x(result or "")
    if len(data) % WORD_HEX != 0:
        raise ValueError("Return data is not word aligned")
    return [int(data[i:i + WORD_HEX], 16) for i in range(0, len(data), WORD_HEX)]
