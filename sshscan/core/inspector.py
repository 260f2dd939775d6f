"""
SSH key exchange inspection
by BitSpectreLabs

Runs a single-round SSH handshake against a server and reports the
algorithms it offers in its KEXINIT. See https://tools.ietf.org/html/rfc4253
and https://www.ietf.org/rfc/rfc4251.txt.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from sshscan.core.handshake import (
    CLIENT_BANNER,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_PORT,
    HandshakeError,
    ProtocolBanner,
    TransportHandshaker,
    parse_protocol_banner,
)
from sshscan.core.kexinit import (
    COOKIE_SIZE,
    KEXINIT_FIELDS,
    KexInitError,
    KexInitMessage,
    decode_kexinit,
)

logger = logging.getLogger(__name__)


@dataclass
class HandshakeResult:
    """
    Parameters exchanged between server and client during connection
    setup and key exchange algorithm negotiation.

    If the inspection fails ``failed`` is set and ``fail_reason`` holds the
    cause. Name-lists after the failing step are left empty.
    """
    server: str
    port: str
    protocol_version: str = ""
    cookie: bytes = bytes(COOKIE_SIZE)
    kex_algorithms: List[str] = field(default_factory=list)
    server_host_key_algorithms: List[str] = field(default_factory=list)
    encryption_algorithms_c2s: List[str] = field(default_factory=list)
    encryption_algorithms_s2c: List[str] = field(default_factory=list)
    mac_algorithms_c2s: List[str] = field(default_factory=list)
    mac_algorithms_s2c: List[str] = field(default_factory=list)
    compression_algorithms_c2s: List[str] = field(default_factory=list)
    compression_algorithms_s2c: List[str] = field(default_factory=list)
    languages_c2s: List[str] = field(default_factory=list)
    languages_s2c: List[str] = field(default_factory=list)
    failed: bool = False
    fail_reason: str = ""

    @property
    def banner_info(self) -> Optional[ProtocolBanner]:
        """Parsed form of ``protocol_version``."""
        return parse_protocol_banner(self.protocol_version)

    def apply_kexinit(self, message: KexInitMessage) -> None:
        """Copy cookie and name-lists from a (possibly partial) KEXINIT."""
        self.cookie = message.cookie
        for name in KEXINIT_FIELDS:
            setattr(self, name, list(getattr(message, name)))

    def fail(self, reason: str) -> None:
        """Mark the inspection as failed."""
        self.failed = True
        self.fail_reason = reason

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data: Dict[str, Any] = {
            "server": self.server,
            "port": self.port,
            "protocol_version": self.protocol_version,
            "cookie": self.cookie.hex(),
        }
        for name in KEXINIT_FIELDS:
            data[name] = list(getattr(self, name))
        data["failed"] = self.failed
        data["fail_reason"] = self.fail_reason
        return data


class SSHInspector:
    """
    SSH key exchange inspector.

    Provides:
    - Protocol version banner retrieval
    - KEXINIT cookie and algorithm name-list extraction
    - Failure reporting through the result record
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        operation_timeout: Optional[float] = DEFAULT_OPERATION_TIMEOUT,
        strict: bool = False,
        client_banner: str = CLIENT_BANNER
    ):
        """
        Initialize inspector.

        Args:
            connect_timeout: Connect timeout in seconds
            operation_timeout: Budget for reads and writes after connecting
            strict: Read the banner line and the full declared packet
            client_banner: Identification string sent to the server
        """
        self.handshaker = TransportHandshaker(
            connect_timeout=connect_timeout,
            operation_timeout=operation_timeout,
            strict=strict,
            client_banner=client_banner,
        )

    def inspect(self, host: str, port: Union[str, int] = DEFAULT_PORT) -> HandshakeResult:
        """
        Inspect the key exchange settings of an SSH server.

        Args:
            host: Target hostname or IP address
            port: Target port

        Returns:
            HandshakeResult; failures are reported in ``failed``/``fail_reason``
        """
        result = HandshakeResult(server=host, port=str(port))

        try:
            response = self.handshaker.handshake(host, result.port)
        except HandshakeError as e:
            logger.warning("SSH handshake with %s:%s failed: %s", host, result.port, e)
            result.fail(str(e))
            return result

        result.protocol_version = response.banner

        try:
            message = decode_kexinit(response.packet, host)
        except KexInitError as e:
            logger.warning("Invalid KEXINIT from %s:%s: %s", host, result.port, e.reason)
            if e.partial is not None:
                result.apply_kexinit(e.partial)
            result.fail(e.reason)
            return result

        result.apply_kexinit(message)
        return result


def inspect(
    host: str,
    port: Union[str, int] = DEFAULT_PORT,
    timeout: float = DEFAULT_CONNECT_TIMEOUT
) -> HandshakeResult:
    """
    Convenience function for SSH key exchange inspection.

    Args:
        host: Target hostname or IP address
        port: Target port (default 22)
        timeout: Connect timeout in seconds

    Returns:
        HandshakeResult
    """
    inspector = SSHInspector(connect_timeout=timeout)
    return inspector.inspect(host, port)
