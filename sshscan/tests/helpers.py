"""
Test helpers: KEXINIT packet builder and a loopback fake SSH server
by BitSpectreLabs
"""

import socket
import struct
import threading
import time
from typing import List, Optional, Sequence

from sshscan.core.kexinit import SSH_MSG_KEXINIT, encode_name_list


OPENSSH_BANNER = b"SSH-2.0-OpenSSH_9.6p1 Ubuntu-3ubuntu13\r\n"

OPENSSH_NAME_LISTS = [
    ["curve25519-sha256", "curve25519-sha256@libssh.org", "diffie-hellman-group14-sha256"],
    ["rsa-sha2-512", "rsa-sha2-256", "ssh-ed25519"],
    ["chacha20-poly1305@openssh.com", "aes256-gcm@openssh.com", "aes128-ctr"],
    ["chacha20-poly1305@openssh.com", "aes256-gcm@openssh.com", "aes128-ctr"],
    ["umac-128-etm@openssh.com", "hmac-sha2-256-etm@openssh.com"],
    ["umac-128-etm@openssh.com", "hmac-sha2-256-etm@openssh.com"],
    ["none", "zlib@openssh.com"],
    ["none", "zlib@openssh.com"],
    [],
    [],
]


def build_kexinit_packet(
    name_lists: Sequence[List[str]],
    cookie: bytes = bytes(16),
    message_type: int = SSH_MSG_KEXINIT,
    padding: bytes = b"",
    trailer: bool = True
) -> bytes:
    """Build an unencrypted SSH binary packet carrying a KEXINIT payload."""
    payload = bytes([message_type]) + cookie
    payload += b"".join(encode_name_list(names) for names in name_lists)
    if trailer:
        # first_kex_packet_follows + reserved
        payload += b"\x00" + b"\x00\x00\x00\x00"
    packet_length = 1 + len(payload) + len(padding)
    return struct.pack(">I", packet_length) + bytes([len(padding)]) + payload + padding


def empty_lists(count: int = 10) -> List[List[str]]:
    return [[] for _ in range(count)]


class FakeSSHServer:
    """
    Single-connection SSH server stand-in on 127.0.0.1.

    Sends ``greeting``, waits for the client banner, then sends each of
    ``chunks`` with a short pause before each. With ``hold_open`` the
    connection stays up until the client closes it.
    """

    def __init__(
        self,
        greeting: bytes = OPENSSH_BANNER,
        chunks: Optional[Sequence[bytes]] = None,
        pause: float = 0.2,
        hold_open: bool = True
    ):
        self.greeting = greeting
        self.chunks = list(chunks or [])
        self.pause = pause
        self.hold_open = hold_open
        self.client_banner = b""

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(1)
        self._sock.settimeout(5.0)
        self.port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self) -> "FakeSSHServer":
        self._thread.start()
        return self

    def __exit__(self, *exc) -> None:
        self._thread.join(timeout=5.0)
        self._sock.close()

    def _serve(self) -> None:
        try:
            conn, _ = self._sock.accept()
        except OSError:
            return

        with conn:
            conn.settimeout(5.0)
            try:
                if self.greeting:
                    conn.sendall(self.greeting)
                self.client_banner = conn.recv(255)
                for chunk in self.chunks:
                    time.sleep(self.pause)
                    conn.sendall(chunk)
                if self.hold_open:
                    # Wait for the client to hang up
                    conn.recv(1)
            except OSError:
                pass


def closed_port() -> int:
    """Return a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
