"""Core handshake and decoding modules."""

from sshscan.core.handshake import (
    TransportHandshaker,
    HandshakeResponse,
    HandshakeError,
    ProtocolBanner,
    parse_protocol_banner,
)
from sshscan.core.kexinit import (
    KexInitMessage,
    ParseCursor,
    KexInitError,
    PacketFramingError,
    UnexpectedMessageTypeError,
    OversizedFieldError,
    KEXINIT_FIELDS,
    MAX_PACKET_SIZE,
    SSH_MSG_KEXINIT,
    decode_kexinit,
)
from sshscan.core.inspector import (
    SSHInspector,
    HandshakeResult,
    inspect,
)
from sshscan.core.config import (
    ConfigManager,
    SshscanConfig,
    ProbeConfig,
    OutputConfig,
    AdvancedConfig,
    ConfigError,
    get_config,
    get_config_manager,
    reload_config,
)

__all__ = [
    # Handshake
    "TransportHandshaker",
    "HandshakeResponse",
    "HandshakeError",
    "ProtocolBanner",
    "parse_protocol_banner",
    # KEXINIT
    "KexInitMessage",
    "ParseCursor",
    "KexInitError",
    "PacketFramingError",
    "UnexpectedMessageTypeError",
    "OversizedFieldError",
    "KEXINIT_FIELDS",
    "MAX_PACKET_SIZE",
    "SSH_MSG_KEXINIT",
    "decode_kexinit",
    # Inspector
    "SSHInspector",
    "HandshakeResult",
    "inspect",
    # Config
    "ConfigManager",
    "SshscanConfig",
    "ProbeConfig",
    "OutputConfig",
    "AdvancedConfig",
    "ConfigError",
    "get_config",
    "get_config_manager",
    "reload_config",
]
