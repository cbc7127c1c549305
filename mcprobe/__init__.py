"""
Minecraft Java Edition server status client.

Every function performs exactly one exchange with the server and either
returns an immutable result or raises:

- `status()` / `ping()`: modern Server List Ping (1.7+)
- `status_legacy()`: legacy Server List Ping (1.4 - 1.6)
- `status_beta()`: Beta 1.8 - 1.3 Server List Ping
- `basic_query()` / `full_query()`: UDP Query protocol

Logging goes through loguru and is disabled by default, enable it with
`logger.enable("mcprobe")`.
"""

from loguru import logger

from .config import ProbeConfig, config
from .errors import (
    ChallengeTokenMissingTerminator,
    ChallengeTokenTooShort,
    ConnStatus,
    InvalidPong,
    InvalidSizeInfo,
    MalformedResponse,
    McProbeError,
    MissingInformation,
    PlayerTokenMissing,
    ResponseTooShort,
    VarIntTooLarge,
    classify,
)
from .legacy import decode_beta_payload, status_beta, status_legacy
from .models import (
    BasicQueryResult,
    BetaStatusResult,
    FullQueryResult,
    LegacyStatusResult,
    SlpProtocols,
    StatusResult,
)
from .query import basic_query, full_query
from .status import DEFAULT_TCP_PORT, ping, status

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TCP_PORT",
    "BasicQueryResult",
    "BetaStatusResult",
    "ChallengeTokenMissingTerminator",
    "ChallengeTokenTooShort",
    "ConnStatus",
    "FullQueryResult",
    "InvalidPong",
    "InvalidSizeInfo",
    "LegacyStatusResult",
    "MalformedResponse",
    "McProbeError",
    "MissingInformation",
    "PlayerTokenMissing",
    "ProbeConfig",
    "ResponseTooShort",
    "SlpProtocols",
    "StatusResult",
    "VarIntTooLarge",
    "basic_query",
    "classify",
    "config",
    "decode_beta_payload",
    "full_query",
    "ping",
    "status",
    "status_beta",
    "status_legacy",
]

logger.disable(__name__)
