"""Entry point for File Sync.

Usage:
    python -m file_sync [options] <local_path> <remote_host> <remote_path>
"""

import sys


def main() -> None:
    """Run the command-line front end and exit with its status."""
    from file_sync.cli import main as cli_main

    sys.exit(cli_main())


if __name__ == "__main__":
    main()
