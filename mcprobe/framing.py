"""Null-terminated string framing shared by the legacy status and Query protocols."""

import re

from .errors import MalformedResponse


def split_nulls(data: bytes | bytearray) -> list[bytes]:
    """
    Split `data` into its null-terminated values.

    Trailing bytes without a terminating null are not a value and are dropped.
    """
    values = []
    current = bytearray()

    for byte in data:
        if byte == 0:
            values.append(bytes(current))
            current.clear()
        else:
            current.append(byte)

    return values


def split_paired_nulls(data: bytes | bytearray) -> list[bytes]:
    """
    Split `data` on pairs of null bytes.

    A single null byte is not a terminator and is dropped from the value, which
    turns the ASCII range of an UTF-16BE string into plain bytes.
    The final value is appended even though it is not double-terminated.
    """
    values = []
    current = bytearray()
    # Set when the previous byte was a lone null.
    pending_null = False

    for byte in data:
        if byte == 0:
            if pending_null:
                values.append(bytes(current))
                current.clear()
                pending_null = False
            else:
                pending_null = True
        else:
            current.append(byte)
            pending_null = False

    values.append(bytes(current))
    return values


def split_names(data: bytes | bytearray) -> list[bytes]:
    """Read null-terminated names until the first empty one."""
    names = []
    current = bytearray()

    for byte in data:
        if byte != 0:
            current.append(byte)
            continue
        # An empty name marks the end of the list.
        if not current:
            break
        names.append(bytes(current))
        current.clear()

    return names


def parse_key_values(data: bytes | bytearray) -> dict[bytes, bytes]:
    """Decode alternating null-terminated keys and values into a mapping."""
    fields = split_nulls(data)
    # A key without its value is not part of the mapping.
    return dict(zip(fields[0::2], fields[1::2]))


def parse_int(value: bytes | str) -> int:
    """Parse a signed 32-bit decimal number sent as text."""
    if isinstance(value, bytes):
        value = value.decode("ascii", "replace")

    if not re.fullmatch(r"[+-]?[0-9]+", value):
        raise MalformedResponse(f"invalid response: {value!r} is not a number")

    number = int(value)
    if not -(2**31) <= number < 2**31:
        raise MalformedResponse(f"invalid response: {value!r} is out of range")

    return number
