"""
SSH_MSG_KEXINIT decoder
by BitSpectreLabs

Walks the raw bytes of a server's first binary packet and extracts the
random cookie and the ten algorithm name-lists defined in RFC 4253 §7.1.

Packet layout:
    uint32    packet_length
    byte      padding_length
    byte      SSH_MSG_KEXINIT (20)
    byte[16]  cookie
    name-list x 10
    boolean   first_kex_packet_follows   (not extracted)
    uint32    reserved                   (not extracted)
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


# Read max of 35k bytes, see https://tools.ietf.org/html/rfc4253#section-6.1
MAX_PACKET_SIZE = 35000
SSH_MSG_KEXINIT = 20

MESSAGE_TYPE_OFFSET = 5
COOKIE_OFFSET = 6
COOKIE_SIZE = 16
# uint32 length + byte padding length + byte message type + 16 byte cookie
PAYLOAD_BEGIN = 22

# Name-lists in wire order
KEXINIT_FIELDS = (
    "kex_algorithms",
    "server_host_key_algorithms",
    "encryption_algorithms_c2s",
    "encryption_algorithms_s2c",
    "mac_algorithms_c2s",
    "mac_algorithms_s2c",
    "compression_algorithms_c2s",
    "compression_algorithms_s2c",
    "languages_c2s",
    "languages_s2c",
)


class KexInitError(Exception):
    """
    Base error for KEXINIT decoding failures.

    ``partial`` holds whatever was decoded before the failure.
    """

    def __init__(self, reason: str, partial: Optional["KexInitMessage"] = None):
        super().__init__(reason)
        self.reason = reason
        self.partial = partial


class PacketFramingError(KexInitError):
    """Packet is too short to hold the header, cookie or a name-list."""


class UnexpectedMessageTypeError(KexInitError):
    """First message is not an SSH_MSG_KEXINIT."""

    def __init__(self, actual: int, partial: Optional["KexInitMessage"] = None):
        super().__init__(
            f"expected message type {SSH_MSG_KEXINIT}, got {actual}", partial
        )
        self.actual = actual


class OversizedFieldError(KexInitError):
    """A declared name-list length runs past the maximum packet size."""

    def __init__(self, host: str, end: int, partial: Optional["KexInitMessage"] = None):
        super().__init__(
            f"Server {host} is attempting to overflow the maximum expected packet size: "
            f"the key exchange should not exceed {MAX_PACKET_SIZE} bytes, "
            f"but the server is trying to access byte {end}",
            partial,
        )
        self.host = host
        self.end = end


@dataclass
class KexInitMessage:
    """Decoded SSH_MSG_KEXINIT content."""
    packet_length: int = 0
    padding_length: int = 0
    message_type: int = 0
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

    def name_lists(self) -> List[List[str]]:
        """Return the ten name-lists in wire order."""
        return [getattr(self, name) for name in KEXINIT_FIELDS]


class ParseCursor:
    """
    Forward-only cursor over a KEXINIT packet buffer.

    ``begin`` and ``end`` bound the most recently read field. Each read
    starts at ``end`` and only ever moves it forward.
    """

    def __init__(
        self,
        buffer: bytes,
        host: str,
        offset: int = PAYLOAD_BEGIN,
        limit: int = MAX_PACKET_SIZE
    ):
        """
        Initialize cursor.

        Args:
            buffer: Raw packet bytes as received
            host: Server the packet came from (used in error reasons)
            offset: Offset of the first name-list
            limit: Byte offset no field may extend past
        """
        self.buffer = buffer
        self.host = host
        self.begin = offset
        self.end = offset
        self.limit = limit

    def read_uint32(self) -> int:
        """Read a big-endian uint32 at ``end`` without consuming it."""
        if self.end + 4 > len(self.buffer):
            raise PacketFramingError(
                f"truncated name-list length at byte {self.end}: "
                f"packet holds only {len(self.buffer)} bytes"
            )
        return struct.unpack_from(">I", self.buffer, self.end)[0]

    def read_name_list(self) -> List[str]:
        """
        Read the next length-prefixed, comma-separated name-list.

        Returns:
            Ordered algorithm names; empty list for a zero-length field

        Raises:
            OversizedFieldError: Field would end past the packet size limit
            PacketFramingError: Field is truncated in the received bytes
        """
        length = self.read_uint32()
        begin = self.end + 4
        end = begin + length

        if end > self.limit:
            raise OversizedFieldError(self.host, end)
        if end > len(self.buffer):
            raise PacketFramingError(
                f"truncated name-list: field ends at byte {end} "
                f"but packet holds only {len(self.buffer)} bytes"
            )

        self.begin = begin
        self.end = end

        if begin == end:
            return []
        return self.buffer[begin:end].decode("utf-8", errors="replace").split(",")


def read_packet_length(packet: bytes) -> int:
    """Return the big-endian packet length from the first 4 bytes."""
    if len(packet) < 4:
        raise PacketFramingError(
            f"unable to read packet length: received only {len(packet)} bytes"
        )
    return struct.unpack_from(">I", packet, 0)[0]


def decode_kexinit(packet: bytes, host: str) -> KexInitMessage:
    """
    Decode the server's KEXINIT packet.

    Args:
        packet: Raw bytes of the first binary packet
        host: Server the packet came from

    Returns:
        Fully decoded KexInitMessage

    Raises:
        KexInitError: On the first malformed field. Fields decoded before
            the failure are available on ``error.partial``.
    """
    message = KexInitMessage()

    try:
        message.packet_length = read_packet_length(packet)

        if len(packet) <= MESSAGE_TYPE_OFFSET:
            raise PacketFramingError(
                f"packet truncated before message type: received only {len(packet)} bytes"
            )
        message.padding_length = packet[4]
        message.message_type = packet[MESSAGE_TYPE_OFFSET]
        if message.message_type != SSH_MSG_KEXINIT:
            raise UnexpectedMessageTypeError(message.message_type)

        if len(packet) < PAYLOAD_BEGIN:
            raise PacketFramingError(
                f"packet truncated inside cookie: received only {len(packet)} bytes"
            )
        message.cookie = bytes(packet[COOKIE_OFFSET:PAYLOAD_BEGIN])

        cursor = ParseCursor(packet, host)
        for name in KEXINIT_FIELDS:
            setattr(message, name, cursor.read_name_list())

    except KexInitError as e:
        e.partial = message
        logger.debug("KEXINIT from %s rejected: %s", host, e.reason)
        raise

    logger.debug(
        "Decoded KEXINIT from %s: packet_length=%d, %d kex algorithms",
        host, message.packet_length, len(message.kex_algorithms)
    )
    return message


def encode_name_list(names: List[str]) -> bytes:
    """Encode a name-list as a length-prefixed, comma-separated field."""
    data = ",".join(names).encode("utf-8")
    return struct.pack(">I", len(data)) + data
