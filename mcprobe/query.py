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
Query / GameSpot4 / UT3 protocol for Minecraft Java servers, basic and full stat.

Needs to be enabled on the Minecraft server by adding `enable-query=true`
to its "server.properties".

See https://minecraft.wiki/w/Query
"""

import random
import struct
from time import perf_counter

from loguru import logger
from pydantic import BaseModel

from .config import config
from .connection import Connection, open_udp
from .errors import (
    ChallengeTokenMissingTerminator,
    ChallengeTokenTooShort,
    MalformedResponse,
    MissingInformation,
    PlayerTokenMissing,
    ResponseTooShort,
)
from .framing import parse_int, parse_key_values, split_names, split_nulls
from .models import BasicQueryResult, FullQueryResult, ModInfo, PlayerCount, QueryPlayers, QueryVersion
from .status import DEFAULT_TCP_PORT

MAGIC = b"\xfe\xfd"
"""Prefix of every packet sent by the client"""
HANDSHAKE_TYPE = 0x09
STAT_TYPE = 0x00
SESSION_ID_MASK = 0x0F0F0F0F
FULL_STAT_PADDING = b"\x00\x00\x00\x00"
"""Appended to the stat request to ask for the full stat (a basic stat request does not include these bytes)"""
PLAYER_TOKEN = b"\x00\x01player_\x00\x00"
"""Separates the key-value section of a full stat response from the player list"""

RESPONSE_HEADER_SIZE = 5
"""Type byte and echoed session id"""
KEY_VALUE_HEADER_SIZE = 16
"""Type, session id and the constant 'splitnum\\x00\\x80\\x00' padding"""
QUERY_KEYS = ("hostname", "gametype", "game_id", "version", "plugins", "map", "numplayers", "maxplayers")


class _KeyValueSection(BaseModel):
    """Full stat key-value section, every key optional until checked."""

    hostname: bytes | None = None
    gametype: bytes | None = None
    game_id: bytes | None = None
    version: bytes | None = None
    plugins: bytes | None = None
    map: bytes | None = None
    numplayers: bytes | None = None
    maxplayers: bytes | None = None


def create_session_id(rng: random.Random | None = None) -> bytes:
    """
    Generate a session id, masked so the server echoes it back unchanged.

    See https://minecraft.wiki/w/Query#Generating_a_Session_ID
    """
    rng = rng or random.SystemRandom()
    return struct.pack(">I", rng.getrandbits(32) & SESSION_ID_MASK)


def build_handshake_packet(session_id: bytes) -> bytes:
    return MAGIC + bytes([HANDSHAKE_TYPE]) + session_id


def parse_challenge_token(response: bytes | bytearray) -> bytes:
    """
    Extract the challenge token from a handshake response.

    The token is sent as a null-terminated decimal string, after the type byte
    and the session id, and is returned packed into a big-endian int32.
    """
    if len(response) < 7:
        raise ChallengeTokenTooShort

    # The beginning of the packet (type, session id) can be ignored.
    token = bytes(response[RESPONSE_HEADER_SIZE:])
    if token[-1] != 0:
        raise ChallengeTokenMissingTerminator

    token_str = token.replace(b"\x00", b"").decode("ascii", "replace")
    negative = token_str.startswith("-")
    magnitude = parse_int(token_str[1:] if negative else token_str)

    return struct.pack(">i", -magnitude if negative else magnitude)


def build_stat_packet(session_id: bytes, challenge_token: bytes, full: bool) -> bytes:
    """
    Stat request packet:
      contains 0xFE0xFD as a prefix
      contains type of the packet, 0 for stat
      contains the session id
      contains the challenge token received during the handshake
      contains 0x00 0x00 0x00 0x00 as padding for a full stat
    """
    packet = MAGIC + bytes([STAT_TYPE]) + session_id + challenge_token
    if full:
        packet += FULL_STAT_PADDING
    return packet


def _decode(value: bytes, key: str) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedResponse(f"invalid query response: {key} is not valid UTF-8") from e


def parse_basic_response(
    address: str, port: int, latency: int, response: bytes | bytearray
) -> BasicQueryResult:
    """
    Parse a basic stat response.

    After the header it holds null-terminated values: the MOTD, the game type,
    the map, the online and the max player count (then host port and ip, ignored here).
    """
    if len(response) < RESPONSE_HEADER_SIZE:
        raise ResponseTooShort

    values = split_nulls(response[RESPONSE_HEADER_SIZE:])
    if len(values) < 5:
        raise ResponseTooShort

    return BasicQueryResult(
        address=address,
        port=port,
        latency=latency,
        # The MOTD is sent as ISO-8859-1
        description=values[0].decode("iso_8859_1"),
        game_type=_decode(values[1], "gametype"),
        map_name=_decode(values[2], "map"),
        players=PlayerCount(online=parse_int(values[3]), max=parse_int(values[4])),
    )


def parse_plugins(raw_plugins: str) -> ModInfo:
    """
    Parse the `plugins` value of a full stat response.

    Format: "<server mod>: <name> <version>; <name> <version>; ..."
    There may be only the server mod name, and a plugin may come without a version.
    """
    # The server is vanilla or doesn't send plugin information.
    if not raw_plugins:
        return ModInfo()

    server_mod, separator, plugin_string = raw_plugins.partition(": ")
    if not separator:
        return ModInfo(type=server_mod)

    mod_list = []
    if plugin_string:
        for plugin in plugin_string.split("; "):
            name, _, version = plugin.partition(" ")
            mod_list.append({name: version})

    return ModInfo(type=server_mod, mod_list=mod_list)


def _parse_key_value_section(section: bytes) -> _KeyValueSection:
    if len(section) < KEY_VALUE_HEADER_SIZE:
        raise ResponseTooShort

    stats = {
        key.decode("latin-1"): value
        for key, value in parse_key_values(section[KEY_VALUE_HEADER_SIZE:]).items()
    }
    kv = _KeyValueSection(**{key: stats.get(key) for key in QUERY_KEYS})

    for key, value in (
        ("hostname", kv.hostname),
        ("gametype", kv.gametype),
        ("game_id", kv.game_id),
        ("version", kv.version),
        ("plugins", kv.plugins),
        ("map", kv.map),
        ("numplayers", kv.numplayers),
        ("maxplayers", kv.maxplayers),
    ):
        if value is None:
            raise MissingInformation("query", key)

    return kv


def parse_full_response(
    address: str, port: int, latency: int, response: bytes | bytearray
) -> FullQueryResult:
    """Parse a full stat response: a key-value section, the player token, then the player list."""
    sections = bytes(response).split(PLAYER_TOKEN)
    if len(sections) != 2:
        raise PlayerTokenMissing

    raw_stats, raw_players = sections
    kv = _parse_key_value_section(raw_stats)

    # A section this short cannot hold a single player name.
    player_list = []
    if len(raw_players) >= 4:
        player_list = [_decode(player, "player") for player in split_names(raw_players)]

    return FullQueryResult(
        address=address,
        port=port,
        latency=latency,
        # The MOTD is named "hostname" in the Query protocol
        description=kv.hostname.decode("iso_8859_1"),
        game_type=_decode(kv.gametype, "gametype"),
        game_id=_decode(kv.game_id, "game_id"),
        map_name=_decode(kv.map, "map"),
        version=QueryVersion(name=_decode(kv.version, "version")),
        players=QueryPlayers(
            online=parse_int(kv.numplayers),
            max=parse_int(kv.maxplayers),
            player_list=player_list,
        ),
        mod_info=parse_plugins(_decode(kv.plugins, "plugins")),
    )


def _request_stat(conn: Connection, full: bool, rng: random.Random | None) -> tuple[bytes, int]:
    # protocol:
    #   send handshake request
    #   receive challenge token
    #   send stat request
    #   receive status data
    session_id = create_session_id(rng)
    conn.write(build_handshake_packet(session_id))
    challenge_token = parse_challenge_token(conn.read_available(config.challenge_buffer_size))

    start_time = perf_counter()
    conn.write(build_stat_packet(session_id, challenge_token, full))
    response = conn.read_available(config.query_buffer_size)
    latency = round((perf_counter() - start_time) * 1000)

    return response, latency


def basic_query(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    connect_timeout: float | None = None,
    io_timeout: float | None = None,
    *,
    rng: random.Random | None = None,
) -> BasicQueryResult:
    """
    Request the basic stat of a server over Query.

    :param host: Hostname or IP address
    :param port: Query port (`query.port` in server.properties)
    :param connect_timeout: Timeout for resolving and connecting the socket, `config.connect_timeout` if None
    :param io_timeout: Timeout for each send and receive, `config.io_timeout` if None
    :param rng: Random source for the session id, a fresh `random.SystemRandom` if None
    """
    connect_timeout, io_timeout = config.timeouts(connect_timeout, io_timeout)

    conn = open_udp(host, port, connect_timeout, io_timeout)
    try:
        address = conn.remote_address
        response, latency = _request_stat(conn, False, rng)
    finally:
        conn.close()

    result = parse_basic_response(address, port, latency, response)
    logger.debug(f"basic query of {host}:{port}: {result.players.online}/{result.players.max} online")
    return result


def full_query(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    connect_timeout: float | None = None,
    io_timeout: float | None = None,
    *,
    rng: random.Random | None = None,
) -> FullQueryResult:
    """
    Request the full stat of a server over Query, including plugins and the player list.

    Parameters are the same as for `basic_query()`.
    """
    connect_timeout, io_timeout = config.timeouts(connect_timeout, io_timeout)

    conn = open_udp(host, port, connect_timeout, io_timeout)
    try:
        address = conn.remote_address
        response, latency = _request_stat(conn, True, rng)
    finally:
        conn.close()

    result = parse_full_response(address, port, latency, response)
    logger.debug(f"full query of {host}:{port}: {len(result.players.player_list)} players listed")
    return result
