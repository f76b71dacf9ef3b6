"""Device-attributes CLI - Main entrypoint.

Usage:
    device-attributes reconcile --dry-run
    device-attributes status --admin-user amadmin --admin-password secret
"""

from __future__ import annotations

from amplugins.device_attributes.cli.commands import app


def create_app() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    create_app()
