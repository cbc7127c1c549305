from pydantic import BaseModel, Field


class ProbeConfig(BaseModel):
    connect_timeout: float = Field(default=5, gt=0)
    """Timeout for establishing the connection (seconds)"""
    io_timeout: float = Field(default=5, gt=0)
    """Timeout applied to each individual read or write (seconds)"""
    legacy_buffer_size: int = Field(default=512, gt=0)
    """Upper bound for the single read of a legacy status response"""
    challenge_buffer_size: int = Field(default=32, gt=0)
    """Upper bound for the Query handshake (challenge token) response"""
    query_buffer_size: int = Field(default=8192, gt=0)
    """Upper bound for the Query stat response datagram"""
    max_packet_size: int = Field(default=2**21, gt=0)
    """Largest status response packet accepted, the game caps packets at 2^21 bytes"""

    def timeouts(
        self, connect_timeout: float | None = None, io_timeout: float | None = None
    ) -> tuple[float, float]:
        """Fill in the configured defaults for timeouts left as None."""
        return (
            self.connect_timeout if connect_timeout is None else connect_timeout,
            self.io_timeout if io_timeout is None else io_timeout,
        )


config = ProbeConfig()
