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
Pre-1.7 status protocols: legacy (1.4 - 1.6) and beta (Beta 1.8 - 1.3).

See https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping#1.6
"""

import struct
from collections.abc import Callable
from time import perf_counter

from loguru import logger

from .config import config
from .connection import open_tcp
from .errors import MalformedResponse, MissingInformation, ResponseTooShort
from .framing import parse_int, split_paired_nulls
from .models import BetaFields, BetaStatusResult, LegacyStatusResult, PlayerCount, Version
from .motd import strip_formatting
from .status import DEFAULT_TCP_PORT
from .utils import resolve_srv

LEGACY_REQUEST = bytes([0xFE, 0x01, 0xFA])
"""0xFE server list ping, 0x01 ping payload, 0xFA plugin message id"""
LEGACY_HEADER_SIZE = 9
"""Kick packet id, string length and the '§1' prefix, all ahead of the first field"""
LEGACY_FIELDS = ("protocol version", "version name", "description", "online players", "max players")

BETA_REQUEST = bytes([0xFE])

BetaDecoder = Callable[[bytes], BetaFields]


def parse_legacy_payload(
    address: str, port: int, latency: int, response: bytes | bytearray
) -> LegacyStatusResult:
    """
    Internal helper method for parsing the legacy SLP payload.

    After the header the response holds five fields, delimited by a pair of null bytes:
    - the protocol version
    - the server version
    - the MOTD
    - the online player count
    - the max player count
    """
    if len(response) <= LEGACY_HEADER_SIZE:
        raise ResponseTooShort

    # The single null bytes dropped by the split were the high bytes of UTF-16BE,
    # what remains is one latin-1 byte per character.
    payload_list = [
        value.decode("latin-1") for value in split_paired_nulls(response[LEGACY_HEADER_SIZE:])
    ]

    if len(payload_list) < len(LEGACY_FIELDS):
        raise MissingInformation("status legacy", LEGACY_FIELDS[len(payload_list)])

    return LegacyStatusResult(
        address=address,
        port=port,
        latency=latency,
        description=payload_list[2],
        stripped_motd=strip_formatting(payload_list[2]),
        version=Version(name=payload_list[1], protocol=parse_int(payload_list[0])),
        players=PlayerCount(online=parse_int(payload_list[3]), max=parse_int(payload_list[4])),
    )


def status_legacy(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    connect_timeout: float | None = None,
    io_timeout: float | None = None,
    *,
    srv: bool = False,
) -> LegacyStatusResult:
    """
    Minecraft 1.4-1.6 SLP query, server response contains more info than beta SLP.

    :param host: Hostname or IP address
    :param port: Server port
    :param connect_timeout: Timeout for establishing the connection, `config.connect_timeout` if None
    :param io_timeout: Timeout for each read and write, `config.io_timeout` if None
    :param srv: Follow the `_minecraft._tcp` SRV record of `host` first
    """
    connect_timeout, io_timeout = config.timeouts(connect_timeout, io_timeout)
    if srv:
        host, port = resolve_srv(host, port, connect_timeout)

    conn = open_tcp(host, port, connect_timeout, io_timeout)
    try:
        address = conn.remote_address
        start_time = perf_counter()
        conn.write(LEGACY_REQUEST)
        response = conn.read_available(config.legacy_buffer_size)
        latency = round((perf_counter() - start_time) * 1000)
    finally:
        conn.abort()

    result = parse_legacy_payload(address, port, latency, response)
    logger.debug(f"legacy status of {host}:{port}: version {result.version.name!r}")
    return result


def decode_beta_payload(payload: bytes | bytearray) -> BetaFields:
    """
    Decoder for the Beta 1.8 to 1.3 payload, to be passed to `status_beta()`.

    The payload is UTF-16BE text holding three values separated by '§':
    the MOTD, the online player count, and the max player count.
    """
    try:
        payload_str = bytes(payload).decode("utf-16-be")
    except UnicodeDecodeError as e:
        raise MalformedResponse(f"invalid status beta response: {e}") from e

    payload_list = payload_str.split("§")

    # A single part is most probably an error message, e.g. ['Protocol error']
    if len(payload_list) < 3:
        raise MissingInformation("status beta", "player counts")

    return BetaFields(
        # The MOTD could contain '§' itself, thats the reason for the join here
        description="§".join(payload_list[:-2]),
        players=PlayerCount(online=parse_int(payload_list[-2]), max=parse_int(payload_list[-1])),
    )


def status_beta(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    connect_timeout: float | None = None,
    io_timeout: float | None = None,
    *,
    decoder: BetaDecoder | None = None,
    srv: bool = False,
) -> BetaStatusResult:
    """
    Minecraft Beta 1.8 to Release 1.3 SLP protocol.

    Only the response framing is handled here: the result carries the raw
    payload. Pass a `decoder` (e.g. `decode_beta_payload`) to fill in the
    description and player counts.
    `srv` has the same meaning as for `status_legacy()`.
    """
    connect_timeout, io_timeout = config.timeouts(connect_timeout, io_timeout)
    if srv:
        host, port = resolve_srv(host, port, connect_timeout)

    conn = open_tcp(host, port, connect_timeout, io_timeout)
    try:
        address = conn.remote_address
        start_time = perf_counter()
        conn.write(BETA_REQUEST)

        # Kick packet id (ignored) and payload length as big-endian short.
        # The length counts UTF-16 code units, hence the doubling.
        content_len = struct.unpack(">xH", conn.read_exact(3))[0] * 2
        payload = bytes(conn.read_exact(content_len))
        latency = round((perf_counter() - start_time) * 1000)
    finally:
        conn.abort()

    logger.debug(f"beta status of {host}:{port}: {len(payload)} bytes of payload")

    if decoder is None:
        return BetaStatusResult(address=address, port=port, latency=latency, payload=payload)

    fields = decoder(payload)
    return BetaStatusResult(
        address=address,
        port=port,
        latency=latency,
        payload=payload,
        description=fields.description,
        stripped_motd=strip_formatting(fields.description),
        players=fields.players,
    )
