from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SlpProtocols(Enum):
    """
    Protocols a result can come from.

    - `JSON`: The newest and currently supported SLP protocol.

      Uses (wrapped) JSON as payload, see `mcprobe.status`.

      *Available since Minecraft 1.7*
    - `LEGACY`: The legacy SLP protocol.

      Simple 3 byte request, fields separated by double null bytes.

      *Available since Minecraft 1.4*
    - `BETA`: The first SLP protocol.

      Contains very few information, no server version, only MOTD, max and online player counts.

      *Available since Minecraft Beta 1.8*
    - `QUERY_BASIC` / `QUERY_FULL`: The Query / GameSpot4 / UT3 protocol over UDP.

      Needs to be enabled on the Minecraft server (`enable-query=true`).

      *Available since Minecraft 1.9pre4*
    """

    def __str__(self) -> str:
        return str(self.name)

    BETA = 0
    LEGACY = 1
    JSON = 3
    QUERY_BASIC = 6
    QUERY_FULL = 7


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)


class Player(_Result):
    name: str
    id: str


class Version(_Result):
    name: str
    """Version of Minecraft running on the server"""
    protocol: int
    """Protocol version the server speaks"""


class QueryVersion(_Result):
    name: str


class PlayerCount(_Result):
    max: int
    """Maximum number of players the server supports"""
    online: int
    """Current number of players on the server"""


class Players(PlayerCount):
    sample: list[Player] = Field(default_factory=list)
    """Random sample of online players, may be empty even if `online` is greater than 0"""


class QueryPlayers(PlayerCount):
    player_list: list[str] = Field(default_factory=list)


class ModInfo(_Result):
    type: str = ""
    """Server mod (e.g. FML, CraftBukkit) running on the server"""
    mod_list: list[dict[str, str]] = Field(default_factory=list)
    """Ordered mods/plugins, one {name: version} mapping each"""


class StatusResult(_Result):
    address: str
    port: int
    latency: int | None = None
    """Ping round trip in milliseconds, None if no ping was sent"""
    description: str
    """Description as pretty-printed JSON"""
    stripped_motd: str
    """Description with all formatting removed (human readable)"""
    favicon: str = ""
    """Base64 encoded PNG data URI"""
    version: Version
    players: Players
    mod_info: ModInfo = Field(default_factory=ModInfo)
    slp_protocol: SlpProtocols = SlpProtocols.JSON


class LegacyStatusResult(_Result):
    address: str
    port: int
    latency: int
    description: str
    stripped_motd: str
    version: Version
    players: PlayerCount
    slp_protocol: SlpProtocols = SlpProtocols.LEGACY


class BetaFields(_Result):
    description: str
    players: PlayerCount


class BetaStatusResult(_Result):
    address: str
    port: int
    latency: int
    payload: bytes
    """Raw response payload, without the kick packet id and length"""
    description: str | None = None
    stripped_motd: str | None = None
    players: PlayerCount | None = None
    slp_protocol: SlpProtocols = SlpProtocols.BETA


class BasicQueryResult(_Result):
    address: str
    port: int
    latency: int
    description: str
    game_type: str
    """Usually 'SMP'"""
    map_name: str
    players: PlayerCount
    slp_protocol: SlpProtocols = SlpProtocols.QUERY_BASIC


class FullQueryResult(_Result):
    address: str
    port: int
    latency: int
    description: str
    game_type: str
    game_id: str
    """Usually 'MINECRAFT'"""
    map_name: str
    version: QueryVersion
    players: QueryPlayers
    mod_info: ModInfo = Field(default_factory=ModInfo)
    slp_protocol: SlpProtocols = SlpProtocols.QUERY_FULL
