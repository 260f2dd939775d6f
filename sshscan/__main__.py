"""Allow running SSHScan with ``python -m sshscan``."""

from sshscan.cli.main import main

if __name__ == "__main__":
    main()
