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
Blocking socket transport used by every protocol handler.

A `Connection` wraps one connected TCP or UDP socket. The connect timeout only
bounds `open_tcp`/`open_udp`; every later write or read gets its own I/O
deadline, so a server that accepts the connection and then stalls is caught by
the I/O timeout instead.

Name resolution goes through the system resolver, which cannot be interrupted.
For UDP the time it takes is deducted from the connect timeout, for TCP
`socket.create_connection` resolves before its connect timeout starts.
"""

import contextlib
import socket
import struct
from time import monotonic

from loguru import logger


class Connection:
    def __init__(self, sock: socket.socket, io_timeout: float) -> None:
        self.sock = sock
        self.io_timeout = io_timeout

    @property
    def remote_address(self) -> str:
        """IP address of the peer, as connected to."""
        return self.sock.getpeername()[0]

    def _deadline(self) -> float:
        return monotonic() + self.io_timeout

    @staticmethod
    def _arm(sock: socket.socket, deadline: float) -> None:
        remaining = deadline - monotonic()
        if remaining <= 0:
            raise TimeoutError("timed out")
        sock.settimeout(remaining)

    def write(self, data: bytes | bytearray) -> None:
        self._arm(self.sock, self._deadline())
        self.sock.sendall(data)
        logger.trace(f"sent {len(data)} bytes: {bytes(data)!r}")

    def read_exact(self, size: int) -> bytearray:
        """
        Helper function for receiving a specific amount of data. Works around the problems of `socket.recv`.
        Throws a ConnectionAbortedError if the connection was closed while waiting for data.

        All receives share a single deadline.

        :param size: Amount of bytes of data to receive
        :return: bytearray with the received data
        """
        data = bytearray(size)
        view = memoryview(data)
        received = 0
        deadline = self._deadline()

        while received < size:
            self._arm(self.sock, deadline)
            if not (count := self.sock.recv_into(view[received:], size - received)):
                raise ConnectionAbortedError("connection closed while waiting for data")
            received += count

        logger.trace(f"received {size} bytes")
        return data

    def read_available(self, max_bytes: int) -> bytes:
        """Single receive of at most `max_bytes` bytes (one datagram for UDP)."""
        self._arm(self.sock, self._deadline())
        data = self.sock.recv(max_bytes)
        logger.trace(f"received {len(data)} bytes: {data!r}")
        return data

    def close(self) -> None:
        self.sock.close()

    def abort(self) -> None:
        """Close the TCP connection with a RST instead of the FIN handshake."""
        # The peer may already have reset the connection.
        with contextlib.suppress(OSError):
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
        self.sock.close()


def open_tcp(host: str, port: int, connect_timeout: float, io_timeout: float) -> Connection:
    logger.debug(f"connecting to {host}:{port} over TCP")
    sock = socket.create_connection((host, port), timeout=connect_timeout)
    return Connection(sock, io_timeout)


def open_udp(host: str, port: int, connect_timeout: float, io_timeout: float) -> Connection:
    """
    Resolve `host` and bind a UDP socket to it, so plain send/recv can be used.

    Resolving and connecting share the `connect_timeout` deadline.
    """
    logger.debug(f"connecting to {host}:{port} over UDP")
    deadline = monotonic() + connect_timeout
    family, type_, proto, _, sockaddr = socket.getaddrinfo(
        host, port, type=socket.SOCK_DGRAM
    )[0]
    sock = socket.socket(family, type_, proto)
    try:
        Connection._arm(sock, deadline)
        sock.connect(sockaddr)
    except OSError:
        sock.close()
        raise
    return Connection(sock, io_timeout)
