"""CLI entry point for gitnexus-bridge.

Usage:
    python -m gitnexus_bridge augment Vault
    python -m gitnexus_bridge impact withdraw --depth 2
    git diff HEAD | python -m gitnexus_bridge detect-changes
"""

import sys


def main() -> int:
    """Main entry point for gitnexus-bridge CLI."""
    from gitnexus_bridge.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
