from enum import Enum


class ConnStatus(Enum):
    """
    Coarse outcome of a probe, for callers that only care whether a server answered.

    - `SUCCESS`: The exchange succeeded (request & response parsing OK)
    - `CONNFAIL`: The socket to the server could not be established. Server offline, wrong hostname or port?
    - `TIMEOUT`: The connection timed out. (Server under too much load? Firewall rules OK?)
    - `UNKNOWN`: The connection was established, but the server answered with something we could not parse.
    """

    def __str__(self) -> str:
        return str(self.name)

    SUCCESS = 0
    """The exchange succeeded (request & response parsing OK)"""

    CONNFAIL = -1
    """The socket to the server could not be established. (Server offline, wrong hostname or port?)"""

    TIMEOUT = -2
    """The connection timed out. (Server under too much load? Firewall rules OK?)"""

    UNKNOWN = -3
    """The connection was established, but the server spoke an unknown/unsupported protocol."""


class McProbeError(Exception):
    """Base class of every protocol error raised by mcprobe."""

    message = "invalid response"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class ResponseTooShort(McProbeError):
    message = "invalid response: response is too small to contain valid data"


class InvalidSizeInfo(McProbeError):
    message = "invalid status response: JSON size information is invalid"


class VarIntTooLarge(McProbeError):
    message = "invalid status response: varint sent by server exceeds size limit"


class InvalidPong(McProbeError):
    message = "invalid status response: pong sent by server does not match ping packet"


class ChallengeTokenTooShort(McProbeError):
    message = "invalid query response: challenge token is too small"


class ChallengeTokenMissingTerminator(McProbeError):
    message = "invalid query response: challenge token doesn't contain a null-terminator"


class PlayerTokenMissing(McProbeError):
    message = "invalid query response: player token not in response"


class MalformedResponse(McProbeError, ValueError):
    """A field was present but could not be decoded (bad JSON, text or number)."""

    message = "invalid response: malformed value"


class MissingInformation(McProbeError):
    """
    The response was framed correctly but a mandatory value was left out.

    :param protocol: `status`, `status legacy`, `status beta` or `query`
    :param field: name of the missing value
    """

    def __init__(self, protocol: str, field: str) -> None:
        self.protocol = protocol
        self.field = field
        super().__init__(f"invalid {protocol} response: {field} missing from response")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MissingInformation):
            return NotImplemented
        return (self.protocol, self.field) == (other.protocol, other.field)

    def __hash__(self) -> int:
        return hash((self.protocol, self.field))


def classify(exc: BaseException | None) -> ConnStatus:
    """
    Map the outcome of a probe to a `ConnStatus`.

    :param exc: The exception raised by a probe, or None if it returned normally
    """
    if exc is None:
        return ConnStatus.SUCCESS
    if isinstance(exc, TimeoutError):
        return ConnStatus.TIMEOUT
    # Reset/aborted connections mean the server accepted us and then choked on the request.
    if isinstance(exc, (McProbeError, ConnectionResetError, ConnectionAbortedError)):
        return ConnStatus.UNKNOWN
    if isinstance(exc, OSError):
        return ConnStatus.CONNFAIL
    return ConnStatus.UNKNOWN
