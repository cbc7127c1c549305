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
Modern (Minecraft Java >= 1.7) Server List Ping: status request and ping.

See https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping#Current_(1.7+)
"""

import struct
from time import perf_counter
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
import ujson

from .config import config
from .connection import Connection, open_tcp
from .errors import InvalidPong, InvalidSizeInfo, MalformedResponse, MissingInformation, ResponseTooShort
from .models import ModInfo, Player, Players, StatusResult, Version
from .motd import pretty_description, strip_formatting
from .utils import resolve_srv
from .varint import pack_varint, read_varint, unpack_varint

DEFAULT_TCP_PORT = 25565
"""Default TCP port for SLP queries"""

PACKET_ID = 0x00
"""Handshake and status request packet id"""
PROTOCOL_VERSION = 47
"""Advertised client protocol version (1.8); any valid version gets a status answer"""
NEXT_STATE = 0x01
"""Next state after the handshake: 1 for status, 2 for login"""

REQUEST_PACKET = bytes([0x01, PACKET_ID])
"""Empty status request: varint length 1, packet id 0x00"""
PING_PACKET = bytes([0x09, 0x01, 0x07, 0x07, 0x07, 0x07, 0x07, 0x07, 0x07, 0x07])
"""Ping packet (length 9, id 0x01, 8 byte payload), echoed verbatim by the server"""


class _Payload(BaseModel):
    # JSON types must match exactly, "20" is not a player count.
    model_config = ConfigDict(strict=True)


class _VersionPayload(_Payload):
    name: str | None = None
    protocol: int | None = None


class _SamplePayload(_Payload):
    name: str
    id: str


class _PlayersPayload(_Payload):
    max: int | None = None
    online: int | None = None
    sample: list[_SamplePayload] | None = None


class _ModPayload(_Payload):
    modid: str
    version: str = ""


class _ModInfoPayload(_Payload):
    type: str = ""
    mod_list: list[_ModPayload] = Field(default_factory=list, alias="modList")


class _StatusPayload(_Payload):
    """Status JSON as sent by the server, every field optional."""

    description: Any = None
    players: _PlayersPayload | None = None
    version: _VersionPayload | None = None
    favicon: str | None = None
    modinfo: _ModInfoPayload | None = None


def build_handshake(host: str, port: int) -> bytes:
    """
    Construct the Handshake packet, prefixed with its length.

    See https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping#Handshake
    """
    host_bytes = host.encode("utf8")

    req_data = bytearray([PACKET_ID])
    # Protocol version, a single byte as long as it stays below 128
    req_data += pack_varint(PROTOCOL_VERSION)
    # Server address, encoded with UTF8 and prefixed with its length
    req_data += pack_varint(len(host_bytes))
    req_data += host_bytes
    # Server port
    req_data += struct.pack(">H", port)
    req_data += bytearray([NEXT_STATE])

    # Prepend full packet length
    return pack_varint(len(req_data)) + bytes(req_data)


def unwrap_status_frame(frame: bytes | bytearray) -> bytes:
    """
    Strip the packet id and the JSON length from a status response.

    :param frame: Response packet, without its leading length varint
    :return: The raw JSON payload
    """
    if len(frame) < 4:
        raise ResponseTooShort

    json_len, offset = unpack_varint(frame, 1)
    payload = bytes(frame[offset:])

    if json_len != len(payload):
        raise InvalidSizeInfo

    return payload


def _check_required(payload: _StatusPayload) -> None:
    players = payload.players or _PlayersPayload()
    version = payload.version or _VersionPayload()

    for field, value in (
        ("description", payload.description),
        ("max players", players.max),
        ("online players", players.online),
        ("version name", version.name),
        ("version protocol", version.protocol),
    ):
        if value is None:
            raise MissingInformation("status", field)


def parse_status_payload(
    address: str, port: int, latency: int | None, payload_raw: bytes | bytearray
) -> StatusResult:
    """
    Helper method for parsing the modern JSON-based SLP payload.

    :param payload_raw: The raw SLP payload, without header and string length
    """
    try:
        payload_obj = ujson.loads(bytes(payload_raw).decode("utf8"))
    except (UnicodeDecodeError, ujson.JSONDecodeError) as e:
        raise MalformedResponse(f"invalid status response: {e}") from e

    if not isinstance(payload_obj, dict):
        raise MalformedResponse("invalid status response: payload is not a JSON object")

    try:
        payload = _StatusPayload.model_validate(payload_obj)
    except ValidationError as e:
        raise MalformedResponse(f"invalid status response: {e}") from e

    _check_required(payload)

    mod_info = ModInfo()
    if payload.modinfo is not None:
        mod_info = ModInfo(
            type=payload.modinfo.type,
            mod_list=[{mod.modid: mod.version} for mod in payload.modinfo.mod_list],
        )

    return StatusResult(
        address=address,
        port=port,
        latency=latency,
        description=pretty_description(payload.description),
        stripped_motd=strip_formatting(payload.description),
        favicon=payload.favicon or "",
        version=Version(name=payload.version.name, protocol=payload.version.protocol),
        players=Players(
            max=payload.players.max,
            online=payload.players.online,
            sample=[
                Player(name=player.name, id=player.id) for player in payload.players.sample or []
            ],
        ),
        mod_info=mod_info,
    )


def _request_status(conn: Connection, host: str, port: int) -> bytearray:
    conn.write(build_handshake(host, port) + REQUEST_PACKET)

    # Receive answer: full packet length as varint, then the packet itself
    packet_len = read_varint(conn)
    logger.debug(f"status response announces {packet_len} bytes")
    if packet_len > config.max_packet_size:
        raise InvalidSizeInfo(
            f"invalid status response: packet of {packet_len} bytes exceeds {config.max_packet_size}"
        )
    return conn.read_exact(packet_len)


def _measure_latency(conn: Connection) -> int:
    start_time = perf_counter()
    conn.write(PING_PACKET)
    pong = conn.read_exact(len(PING_PACKET))
    latency = round((perf_counter() - start_time) * 1000)

    if pong != PING_PACKET:
        raise InvalidPong

    return latency


def status(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    connect_timeout: float | None = None,
    io_timeout: float | None = None,
    *,
    with_latency: bool = True,
    srv: bool = False,
) -> StatusResult:
    """
    Request the status of a modern (MC Java >= 1.7) server.

    :param host: Hostname or IP address, also sent in the handshake
    :param port: Server port
    :param connect_timeout: Timeout for establishing the connection, `config.connect_timeout` if None
    :param io_timeout: Timeout for each read and write, `config.io_timeout` if None
    :param with_latency: Send a ping after the status and report its round trip
    :param srv: Follow the `_minecraft._tcp` SRV record of `host` first, as the game client does
    """
    connect_timeout, io_timeout = config.timeouts(connect_timeout, io_timeout)
    if srv:
        host, port = resolve_srv(host, port, connect_timeout)

    conn = open_tcp(host, port, connect_timeout, io_timeout)
    try:
        address = conn.remote_address
        frame = _request_status(conn, host, port)
        latency = _measure_latency(conn) if with_latency else None
    finally:
        conn.abort()

    result = parse_status_payload(address, port, latency, unwrap_status_frame(frame))
    logger.debug(f"status of {host}:{port}: {result.players.online}/{result.players.max} online")
    return result


def ping(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    connect_timeout: float | None = None,
    io_timeout: float | None = None,
    *,
    srv: bool = False,
) -> int:
    """
    Measure the ping round trip to a modern server, in milliseconds.

    The status response is read and its framing checked, but its JSON is not parsed.
    `srv` has the same meaning as for `status()`.
    """
    connect_timeout, io_timeout = config.timeouts(connect_timeout, io_timeout)
    if srv:
        host, port = resolve_srv(host, port, connect_timeout)

    conn = open_tcp(host, port, connect_timeout, io_timeout)
    try:
        unwrap_status_frame(_request_status(conn, host, port))
        latency = _measure_latency(conn)
    finally:
        conn.abort()

    logger.debug(f"ping to {host}:{port}: {latency}ms")
    return latency
