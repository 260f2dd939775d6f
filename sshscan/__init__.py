"""
SSHScan - SSH Key Exchange Auditor
by BitSpectreLabs

Audits the key exchange algorithms and settings an SSH server offers.
"""

__version__ = "1.0.0"
__author__ = "BitSpectreLabs"
__license__ = "MIT"

from sshscan.core.inspector import SSHInspector, HandshakeResult, inspect

__all__ = ["SSHInspector", "HandshakeResult", "inspect"]
