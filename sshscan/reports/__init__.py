"""
Report generation modules for SSHScan
by BitSpectreLabs
"""

import json
from pathlib import Path
from typing import List

from sshscan.core.inspector import HandshakeResult


# Rendered sections: (label, attribute). Only the server-to-client
# variants are shown; the client-to-server lists stay in the JSON form.
TEXT_SECTIONS = (
    ("Key Exchange Algorithms", "kex_algorithms"),
    ("Server Host Key Algorithms", "server_host_key_algorithms"),
    ("Server Encryption Algorithms", "encryption_algorithms_s2c"),
    ("Server MAC Algorithms", "mac_algorithms_s2c"),
    ("Server Compression Algorithms", "compression_algorithms_s2c"),
    ("Server Languages", "languages_s2c"),
)


def format_failure(result: HandshakeResult) -> str:
    """One-line description of a failed inspection."""
    return (
        f"SSH Scan of {result.server}:{result.port} failed with error: "
        f"{result.fail_reason}"
    )


def format_text_report(result: HandshakeResult) -> str:
    """
    Render an inspection result as human readable text.

    Each algorithm list is printed with its size, one algorithm per
    tab-indented line.

    Args:
        result: Inspection result

    Returns:
        Report text
    """
    if result.failed:
        return format_failure(result) + "\n"

    lines = [
        f"Server: {result.server}",
        f"Port: {result.port}",
        f"Server Version: {result.protocol_version.strip()}",
    ]

    banner = result.banner_info
    if banner:
        lines.append(f"Server Software: {banner.software_version}")

    lines.append(f"Random Cookie: {result.cookie.hex()}")

    for label, attribute in TEXT_SECTIONS:
        algorithms = getattr(result, attribute)
        lines.append(f"{label}: ({len(algorithms)})")
        lines.append("\t" + "\n\t".join(algorithms))

    return "\n".join(lines) + "\n"


def format_json_report(result: HandshakeResult, indent: int = 2) -> str:
    """Serialize an inspection result to JSON."""
    return json.dumps(result.to_dict(), indent=indent)


def generate_json_report(results: List[HandshakeResult], output_path: Path) -> None:
    """
    Generate JSON report.

    A single result is written as an object, several as a list.

    Args:
        results: Inspection results
        output_path: Output file path
    """
    if len(results) == 1:
        data = results[0].to_dict()
    else:
        data = [result.to_dict() for result in results]

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def generate_text_report(results: List[HandshakeResult], output_path: Path) -> None:
    """
    Generate plain text report.

    Args:
        results: Inspection results
        output_path: Output file path
    """
    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(format_text_report(result) for result in results))


__all__ = [
    "TEXT_SECTIONS",
    "format_failure",
    "format_text_report",
    "format_json_report",
    "generate_json_report",
    "generate_text_report",
]
