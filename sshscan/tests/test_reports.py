"""
Tests for report generation
by BitSpectreLabs
"""

import json

from sshscan.core.inspector import HandshakeResult
from sshscan.reports import (
    TEXT_SECTIONS,
    format_failure,
    format_json_report,
    format_text_report,
    generate_json_report,
    generate_text_report,
)


def _sample_result() -> HandshakeResult:
    result = HandshakeResult(
        server="ssh.example.com",
        port="22",
        protocol_version="SSH-2.0-OpenSSH_9.6p1 Ubuntu-3ubuntu13\r\n",
        cookie=bytes.fromhex("00112233445566778899aabbccddeeff"),
    )
    result.kex_algorithms = ["curve25519-sha256", "diffie-hellman-group14-sha256"]
    result.server_host_key_algorithms = ["ssh-ed25519"]
    result.encryption_algorithms_c2s = ["aes128-ctr"]
    result.encryption_algorithms_s2c = ["chacha20-poly1305@openssh.com", "aes256-gcm@openssh.com"]
    result.mac_algorithms_s2c = ["hmac-sha2-256"]
    result.compression_algorithms_s2c = ["none"]
    return result


class TestTextReport:
    """Tests for format_text_report."""

    def test_header_lines(self):
        """Server, port, stripped banner and hex cookie."""
        text = format_text_report(_sample_result())
        lines = text.splitlines()
        assert lines[0] == "Server: ssh.example.com"
        assert lines[1] == "Port: 22"
        assert lines[2] == "Server Version: SSH-2.0-OpenSSH_9.6p1 Ubuntu-3ubuntu13"
        assert "Server Software: OpenSSH_9.6p1" in lines
        assert "Random Cookie: 00112233445566778899aabbccddeeff" in lines

    def test_algorithm_lists_indented(self):
        """Each list shows its size and one tab-indented name per line."""
        text = format_text_report(_sample_result())
        assert "Key Exchange Algorithms: (2)\n\tcurve25519-sha256\n\tdiffie-hellman-group14-sha256\n" in text
        assert "Server Encryption Algorithms: (2)\n\tchacha20-poly1305@openssh.com\n" in text
        assert "Server Languages: (0)\n\t\n" in text

    def test_server_to_client_only(self):
        """Client-to-server lists are not rendered as text."""
        text = format_text_report(_sample_result())
        assert "aes128-ctr" not in text
        assert len(TEXT_SECTIONS) == 6

    def test_failure(self):
        """Failed results render a single error line."""
        result = HandshakeResult(server="host", port="2222")
        result.fail("timed out")
        assert format_text_report(result) == "SSH Scan of host:2222 failed with error: timed out\n"
        assert format_failure(result) == "SSH Scan of host:2222 failed with error: timed out"


class TestJsonReport:
    """Tests for JSON output."""

    def test_format_json_report(self):
        """JSON carries every list including client-to-server ones."""
        data = json.loads(format_json_report(_sample_result()))
        assert data["server"] == "ssh.example.com"
        assert data["cookie"] == "00112233445566778899aabbccddeeff"
        assert data["encryption_algorithms_c2s"] == ["aes128-ctr"]
        assert data["languages_s2c"] == []
        assert data["failed"] is False

    def test_generate_single(self, tmp_path):
        """One result is written as an object."""
        path = tmp_path / "scan.json"
        generate_json_report([_sample_result()], path)
        assert json.loads(path.read_text())["port"] == "22"

    def test_generate_many(self, tmp_path):
        """Several results are written as a list."""
        path = tmp_path / "scan.json"
        generate_json_report([_sample_result(), HandshakeResult(server="b", port="22")], path)
        data = json.loads(path.read_text())
        assert [entry["server"] for entry in data] == ["ssh.example.com", "b"]


class TestGenerateTextReport:
    """Tests for generate_text_report."""

    def test_writes_file(self, tmp_path):
        """The file holds the rendered text."""
        path = tmp_path / "scan.txt"
        generate_text_report([_sample_result()], path)
        assert path.read_text() == format_text_report(_sample_result())
