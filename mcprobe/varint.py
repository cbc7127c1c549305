# minestat.py - A Minecraft server status checker
# Copyright (C) 2016-2023 Lloyd Dilley, Felix Ern (MindSolve)
# http://www.dilley.me/
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License along
# with this program; if not, write to the Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA.
#
# Derived from MineStat, reworked into mcprobe.

"""
VarInt codec used by the modern (1.7+) SLP protocol.

See https://minecraft.wiki/w/Java_Edition_protocol/Data_types#VarInt_and_VarLong
"""

import struct
from typing import TYPE_CHECKING

from .errors import ResponseTooShort, VarIntTooLarge

if TYPE_CHECKING:
    from .connection import Connection

MAX_VARINT_BYTES = 5
"""A VarInt never spans more than 5 bytes (35 bits)"""


def pack_varint(data: int) -> bytes:
    """Small helper method for packing a varint from an int."""
    ordinal = b""

    while True:
        byte = data & 0x7F
        data >>= 7
        ordinal += struct.pack("B", byte | (0x80 if data > 0 else 0))

        if data == 0:
            break

    return ordinal


def unpack_varint(data: bytes | bytearray, offset: int = 0) -> tuple[int, int]:
    """
    Unpack a varint starting at `offset`.

    :param data: Buffer holding the varint
    :param offset: Index of the first varint byte
    :return: The decoded value and the index right after the varint
    """
    number = 0
    bit_offset = 0
    index = offset

    while True:
        if bit_offset == 7 * MAX_VARINT_BYTES:
            raise VarIntTooLarge
        if index >= len(data):
            raise ResponseTooShort

        byte = data[index]
        index += 1
        number |= (byte & 0x7F) << bit_offset

        if not byte & 0x80:
            return number, index
        bit_offset += 7


def decode_varint(data: bytes | bytearray) -> int:
    """Decode the varint at the start of `data`, ignoring anything after it."""
    return unpack_varint(data)[0]


def read_varint(conn: "Connection") -> int:
    """Small helper method for unpacking an int from a varint (streamed from a connection)."""
    raw = bytearray()

    # One byte at a time: the varint is immediately followed by the payload.
    while True:
        if len(raw) == MAX_VARINT_BYTES:
            raise VarIntTooLarge
        byte = conn.read_exact(1)[0]
        raw.append(byte)
        if not byte & 0x80:
            break

    return decode_varint(raw)
