"""
SSH transport handshake
by BitSpectreLabs

Opens a connection to an SSH server, exchanges protocol version banners
(RFC 4253 §4.2) and reads the server's first binary packet, which carries
its SSH_MSG_KEXINIT. Nothing past that packet is ever negotiated.

By default the banner and the packet are each taken from a single read
call. Strict read mode instead reads the banner up to its line terminator
and keeps reading until the packet's declared length is buffered.
"""

import logging
import re
import socket
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from sshscan.core.kexinit import MAX_PACKET_SIZE, read_packet_length

logger = logging.getLogger(__name__)


DEFAULT_PORT = "22"
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_OPERATION_TIMEOUT = 30.0
CLIENT_BANNER = "SSH-2.0-sshscan"

# Maximum identification string length including CR LF
MAX_BANNER_SIZE = 255

BANNER_PATTERN = re.compile(r"^SSH-([^-\s]+)-(\S+)(?:\s+(.*))?$")


class HandshakeError(Exception):
    """Connection, read or write failure during the handshake."""
    pass


@dataclass
class HandshakeResponse:
    """What the server sent before key exchange."""
    banner: str
    packet: bytes


@dataclass
class ProtocolBanner:
    """Parsed SSH identification string."""
    proto_version: str
    software_version: str
    comments: Optional[str] = None


def parse_protocol_banner(banner: Optional[str]) -> Optional[ProtocolBanner]:
    """
    Parse an identification string of the form
    ``SSH-protoversion-softwareversion[ comments]``.

    Args:
        banner: Raw banner, trailing CR LF allowed

    Returns:
        ProtocolBanner or None if the banner is not an SSH identification string

    Examples:
        >>> parse_protocol_banner("SSH-2.0-OpenSSH_9.6 Ubuntu\\r\\n").software_version
        'OpenSSH_9.6'
    """
    if not banner:
        return None

    match = BANNER_PATTERN.match(banner.strip())
    if not match:
        return None

    return ProtocolBanner(
        proto_version=match.group(1),
        software_version=match.group(2),
        comments=match.group(3),
    )


class _Deadline:
    """Remaining share of one overall operation budget."""

    def __init__(self, budget: Optional[float]):
        self.expires = time.monotonic() + budget if budget else None

    def remaining(self) -> Optional[float]:
        if self.expires is None:
            return None
        remaining = self.expires - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("operation deadline exceeded")
        return remaining


class TransportHandshaker:
    """
    Performs the banner exchange and retrieves the raw KEXINIT packet.

    One instance may be reused for any number of hosts; it holds no
    per-connection state.
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        operation_timeout: Optional[float] = DEFAULT_OPERATION_TIMEOUT,
        strict: bool = False,
        client_banner: str = CLIENT_BANNER
    ):
        """
        Initialize handshaker.

        Args:
            connect_timeout: Connect timeout in seconds
            operation_timeout: Budget in seconds for all reads and writes after
                connecting; None or 0 leaves them unbounded
            strict: Loop until banner line and declared packet are fully read
            client_banner: Identification string sent to the server (no CR LF)
        """
        self.connect_timeout = connect_timeout
        self.operation_timeout = operation_timeout
        self.strict = strict
        self.client_banner = client_banner

    def handshake(self, host: str, port: str = DEFAULT_PORT) -> HandshakeResponse:
        """
        Connect, exchange banners and read the server's KEXINIT packet.

        Args:
            host: Target hostname or IP address
            port: Target port

        Returns:
            HandshakeResponse with the server banner and raw packet bytes

        Raises:
            HandshakeError: On any transport failure
        """
        try:
            port_number = int(port)
        except (TypeError, ValueError):
            raise HandshakeError(f"invalid port: {port!r}")

        logger.debug("Connecting to %s:%s (timeout %.1fs)", host, port, self.connect_timeout)
        try:
            sock = socket.create_connection((host, port_number), timeout=self.connect_timeout)
        # UnicodeError (a ValueError) for bad idna labels, ValueError for negative timeouts
        except (OSError, ValueError) as e:
            logger.debug("Connection to %s:%s failed: %s", host, port, e)
            raise HandshakeError(str(e) or e.__class__.__name__) from e

        with sock:
            deadline = _Deadline(self.operation_timeout)
            try:
                if self.strict:
                    banner, leftover = self._read_banner_line(sock, deadline)
                else:
                    banner, leftover = self._recv(sock, MAX_BANNER_SIZE, deadline), b""
                logger.debug("Server banner from %s: %r", host, banner)

                self._send(sock, f"{self.client_banner}\r\n".encode("ascii"), deadline)

                if self.strict:
                    packet = self._read_packet(sock, leftover, deadline)
                else:
                    packet = self._recv(sock, MAX_PACKET_SIZE, deadline)
            except OSError as e:
                logger.debug("Handshake with %s:%s failed: %s", host, port, e)
                raise HandshakeError(str(e) or e.__class__.__name__) from e

        logger.debug("Received %d byte packet from %s:%s", len(packet), host, port)
        return HandshakeResponse(
            banner=banner.decode("utf-8", errors="replace"),
            packet=packet,
        )

    def _recv(self, sock: socket.socket, size: int, deadline: _Deadline) -> bytes:
        sock.settimeout(deadline.remaining())
        data = sock.recv(size)
        if not data:
            raise ConnectionError("connection closed by peer (EOF)")
        return data

    def _send(self, sock: socket.socket, data: bytes, deadline: _Deadline) -> None:
        sock.settimeout(deadline.remaining())
        sock.sendall(data)

    def _read_banner_line(self, sock: socket.socket, deadline: _Deadline) -> Tuple[bytes, bytes]:
        """Read until the banner's LF; return (banner, bytes read past it)."""
        buffer = b""
        while b"\n" not in buffer:
            if len(buffer) >= MAX_BANNER_SIZE:
                raise ConnectionError(
                    f"no banner terminator within {MAX_BANNER_SIZE} bytes"
                )
            buffer += self._recv(sock, MAX_BANNER_SIZE, deadline)

        end = buffer.index(b"\n") + 1
        return buffer[:end], buffer[end:]

    def _read_packet(self, sock: socket.socket, buffer: bytes, deadline: _Deadline) -> bytes:
        """Read until the declared packet length is buffered or the peer closes."""
        while len(buffer) < 4:
            buffer += self._recv(sock, MAX_PACKET_SIZE - len(buffer), deadline)

        expected = min(read_packet_length(buffer) + 4, MAX_PACKET_SIZE)
        while len(buffer) < expected:
            sock.settimeout(deadline.remaining())
            data = sock.recv(expected - len(buffer))
            if not data:
                logger.debug("Peer closed with %d of %d packet bytes read", len(buffer), expected)
                break
            buffer += data

        return buffer[:MAX_PACKET_SIZE]
