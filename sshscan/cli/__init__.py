"""Command line interface for SSHScan."""
