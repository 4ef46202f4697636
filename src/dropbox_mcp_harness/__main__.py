#!/usr/bin/env python3
"""
Dropbox MCP Harness - Main entry point for python -m dropbox_mcp_harness
"""

import sys


def main():
    """Main entry point for python -m dropbox_mcp_harness"""
    from dropbox_mcp_harness.cli import main as cli_main
    try:
        cli_main()
    except KeyboardInterrupt:
        print("\nDropbox MCP harness stopped by user", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
