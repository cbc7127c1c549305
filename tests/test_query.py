"""
Tests for the UDP Query protocol (basic and full stat)
"""

import random
import struct

import pytest

from mcprobe.errors import (
    ChallengeTokenMissingTerminator,
    ChallengeTokenTooShort,
    MalformedResponse,
    MissingInformation,
    PlayerTokenMissing,
    ResponseTooShort,
)
from mcprobe.models import SlpProtocols
from mcprobe.query import (
    PLAYER_TOKEN,
    basic_query,
    build_handshake_packet,
    build_stat_packet,
    create_session_id,
    full_query,
    parse_basic_response,
    parse_challenge_token,
    parse_full_response,
    parse_plugins,
)

SESSION_ID = b"\x01\x02\x03\x04"
KEY_VALUE_HEADER = b"\x00" + SESSION_ID + b"splitnum\x00\x80\x00"

BASIC_BODY = b"A Minecraft Server\x00SMP\x00world\x002\x0020\x00" + struct.pack("<H", 25565) + b"127.0.0.1\x00"

STATS = {
    "hostname": "A Minecraft Server",
    "gametype": "SMP",
    "game_id": "MINECRAFT",
    "version": "1.20.4",
    "plugins": "CraftBukkit on Bukkit 1.20.4: WorldEdit 7.2; NoCheatPlus",
    "map": "world",
    "numplayers": "2",
    "maxplayers": "20",
    "hostport": "25565",
    "hostip": "127.0.0.1",
}


class FixedBits(random.Random):
    """Random source always returning the same bits"""

    def __init__(self, bits: int) -> None:
        super().__init__()
        self.bits = bits

    def getrandbits(self, k: int) -> int:
        return self.bits


def key_values(stats: dict) -> bytes:
    return b"".join(f"{key}\x00{value}\x00".encode("utf8") for key, value in stats.items())


def full_response(stats: dict = STATS, players: bytes = b"Alice\x00Bob\x00\x00") -> bytes:
    return KEY_VALUE_HEADER + key_values(stats) + PLAYER_TOKEN + players


class TestSessionId:
    def test_masked(self):
        assert create_session_id(FixedBits(0xFFFFFFFF)) == b"\x0f\x0f\x0f\x0f"

    def test_big_endian(self):
        assert create_session_id(FixedBits(0x01020304)) == SESSION_ID

    def test_default_random_source(self):
        session_id = create_session_id()
        assert len(session_id) == 4
        assert all(byte & 0xF0 == 0 for byte in session_id)


class TestPackets:
    def test_handshake(self):
        assert build_handshake_packet(SESSION_ID) == b"\xfe\xfd\x09\x01\x02\x03\x04"

    def test_basic_stat(self):
        packet = build_stat_packet(SESSION_ID, b"\x00\x91\x29\x5b", full=False)
        assert packet == b"\xfe\xfd\x00" + SESSION_ID + b"\x00\x91\x29\x5b"

    def test_full_stat_is_padded(self):
        packet = build_stat_packet(SESSION_ID, b"\x00\x91\x29\x5b", full=True)
        assert packet == b"\xfe\xfd\x00" + SESSION_ID + b"\x00\x91\x29\x5b" + b"\x00" * 4


class TestChallengeToken:
    def test_positive(self):
        assert parse_challenge_token(b"\x09" + SESSION_ID + b"9513307\x00") == struct.pack(">i", 9513307)

    def test_negative(self):
        assert parse_challenge_token(b"\x09" + SESSION_ID + b"-12345\x00") == b"\xff\xff\xcf\xc7"

    def test_too_short(self):
        with pytest.raises(ChallengeTokenTooShort):
            parse_challenge_token(b"\x09" + SESSION_ID + b"\x00")

    def test_missing_terminator(self):
        with pytest.raises(ChallengeTokenMissingTerminator):
            parse_challenge_token(b"\x09" + SESSION_ID + b"123")

    def test_not_a_number(self):
        with pytest.raises(MalformedResponse):
            parse_challenge_token(b"\x09" + SESSION_ID + b"abc\x00")


class TestParseBasicResponse:
    def test_fields(self):
        result = parse_basic_response("127.0.0.1", 25565, 3, b"\x00" + SESSION_ID + BASIC_BODY)

        assert result.description == "A Minecraft Server"
        assert result.game_type == "SMP"
        assert result.map_name == "world"
        assert result.players.online == 2
        assert result.players.max == 20
        assert result.latency == 3
        assert result.slp_protocol is SlpProtocols.QUERY_BASIC

    def test_latin1_description(self):
        body = "Caf\xe9".encode("iso_8859_1") + b"\x00SMP\x00world\x000\x0010\x00"
        result = parse_basic_response("127.0.0.1", 25565, 0, b"\x00" + SESSION_ID + body)
        assert result.description == "Café"

    def test_too_few_fields(self):
        with pytest.raises(ResponseTooShort):
            parse_basic_response("127.0.0.1", 25565, 0, b"\x00" + SESSION_ID + b"MOTD\x00SMP\x00world\x00")

    def test_same_bytes_same_result(self):
        response = b"\x00" + SESSION_ID + BASIC_BODY

        first = parse_basic_response("127.0.0.1", 25565, 1, response)
        second = parse_basic_response("127.0.0.1", 25565, 1, response)

        assert first == second

    def test_bad_player_count(self):
        body = b"MOTD\x00SMP\x00world\x00two\x0020\x00"
        with pytest.raises(MalformedResponse):
            parse_basic_response("127.0.0.1", 25565, 0, b"\x00" + SESSION_ID + body)


class TestParsePlugins:
    def test_server_mod_and_plugins(self):
        mod_info = parse_plugins("CraftBukkit: WorldEdit 5.0; NoCheatPlus")

        assert mod_info.type == "CraftBukkit"
        assert mod_info.mod_list == [{"WorldEdit": "5.0"}, {"NoCheatPlus": ""}]

    def test_server_mod_only(self):
        mod_info = parse_plugins("Paper on Bukkit 1.20.4")
        assert mod_info.type == "Paper on Bukkit 1.20.4"
        assert mod_info.mod_list == []

    def test_no_plugins_after_separator(self):
        mod_info = parse_plugins("Forge: ")
        assert mod_info.type == "Forge"
        assert mod_info.mod_list == []

    def test_vanilla(self):
        mod_info = parse_plugins("")
        assert mod_info.type == ""
        assert mod_info.mod_list == []


class TestParseFullResponse:
    def test_fields(self):
        result = parse_full_response("127.0.0.1", 25565, 7, full_response())

        assert result.description == "A Minecraft Server"
        assert result.game_type == "SMP"
        assert result.game_id == "MINECRAFT"
        assert result.map_name == "world"
        assert result.version.name == "1.20.4"
        assert result.players.online == 2
        assert result.players.max == 20
        assert result.players.player_list == ["Alice", "Bob"]
        assert result.mod_info.type == "CraftBukkit on Bukkit 1.20.4"
        assert result.mod_info.mod_list == [{"WorldEdit": "7.2"}, {"NoCheatPlus": ""}]
        assert result.latency == 7
        assert result.slp_protocol is SlpProtocols.QUERY_FULL

    def test_same_bytes_same_result(self):
        response = full_response()

        first = parse_full_response("127.0.0.1", 25565, 1, response)
        second = parse_full_response("127.0.0.1", 25565, 1, response)

        assert first == second

    def test_empty_player_section(self):
        result = parse_full_response("127.0.0.1", 25565, 0, full_response(players=b"\x00"))
        assert result.players.player_list == []

    def test_player_list_stops_at_empty_name(self):
        result = parse_full_response("127.0.0.1", 25565, 0, full_response(players=b"Alice\x00\x00Bob\x00"))
        assert result.players.player_list == ["Alice"]

    def test_missing_player_token(self):
        with pytest.raises(PlayerTokenMissing):
            parse_full_response("127.0.0.1", 25565, 0, KEY_VALUE_HEADER + key_values(STATS))

    def test_player_token_twice(self):
        with pytest.raises(PlayerTokenMissing):
            parse_full_response("127.0.0.1", 25565, 0, full_response() + PLAYER_TOKEN)

    @pytest.mark.parametrize("key", ["hostname", "game_id", "plugins", "maxplayers"])
    def test_missing_key(self, key):
        stats = {name: value for name, value in STATS.items() if name != key}

        with pytest.raises(MissingInformation) as exc_info:
            parse_full_response("127.0.0.1", 25565, 0, full_response(stats))
        assert exc_info.value == MissingInformation("query", key)

    def test_key_value_section_too_short(self):
        with pytest.raises(ResponseTooShort):
            parse_full_response("127.0.0.1", 25565, 0, b"\x00" + SESSION_ID + PLAYER_TOKEN)


def query_handler(response_body: bytes, token: bytes = b"9513307\x00"):
    def handler(server, sock):
        handshake, client = sock.recvfrom(1024)
        server.received.append(handshake)
        session_id = handshake[3:7]
        sock.sendto(b"\x09" + session_id + token, client)

        stat, client = sock.recvfrom(1024)
        server.received.append(stat)
        sock.sendto(b"\x00" + session_id + response_body, client)

    return handler


class TestQueryExchange:
    def test_basic_query(self, udp_server):
        server = udp_server(query_handler(BASIC_BODY))

        result = basic_query("127.0.0.1", server.port, 2, 2, rng=FixedBits(0x01020304))

        assert result.address == "127.0.0.1"
        assert result.port == server.port
        assert result.description == "A Minecraft Server"
        assert result.players.max == 20
        server.close()
        assert server.received == [
            b"\xfe\xfd\x09" + SESSION_ID,
            b"\xfe\xfd\x00" + SESSION_ID + struct.pack(">i", 9513307),
        ]

    def test_full_query(self, udp_server):
        body = full_response()[len(b"\x00" + SESSION_ID) :]
        server = udp_server(query_handler(body, token=b"-12345\x00"))

        result = full_query("127.0.0.1", server.port, 2, 2, rng=FixedBits(0x01020304))

        assert result.players.player_list == ["Alice", "Bob"]
        assert result.game_id == "MINECRAFT"
        server.close()
        assert server.received[1] == b"\xfe\xfd\x00" + SESSION_ID + b"\xff\xff\xcf\xc7" + b"\x00" * 4

    def test_no_answer(self, udp_server):
        def handler(server, sock):
            server.received.append(sock.recvfrom(1024)[0])

        server = udp_server(handler)

        with pytest.raises(TimeoutError):
            basic_query("127.0.0.1", server.port, 2, 0.2)
