"""Command line interface for the research schema migrations.

Usage:
    mobility-db status                    # Check migration status
    mobility-db upgrade [REVISION]        # Apply migrations (default: head)
    mobility-db downgrade [REVISION]      # Revert migrations (default: one step)
    mobility-db current                   # Show the applied revision
    mobility-db history                   # List all revisions
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from mobility_db.core.logging import get_logger, sanitize_error, setup_logging
from mobility_db.core.runner import MigrationRunner

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mobility-db",
        description="Mobility research database migrations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mobility-db status
  mobility-db upgrade
  mobility-db upgrade 0004
  mobility-db downgrade base
  mobility-db --database-url mysql+pymysql://user:pass@db/mobility current
        """,
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (defaults to DATABASE_URL from the environment/.env)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upgrade = subparsers.add_parser("upgrade", help="Apply migrations")
    upgrade.add_argument("revision", nargs="?", default="head")

    downgrade = subparsers.add_parser("downgrade", help="Revert migrations")
    downgrade.add_argument("revision", nargs="?", default="-1")

    subparsers.add_parser("current", help="Show the applied revision")
    subparsers.add_parser("history", help="List all revisions")
    subparsers.add_parser("status", help="Show applied and pending revisions")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``mobility-db`` command."""
    args = build_parser().parse_args(argv)

    try:
        setup_logging()
        runner = MigrationRunner(args.database_url)

        if args.command == "upgrade":
            revision = runner.upgrade(args.revision)
            print(f"Database at revision: {revision or 'base'}")

        elif args.command == "downgrade":
            revision = runner.downgrade(args.revision)
            print(f"Database at revision: {revision or 'base'}")

        elif args.command == "current":
            print(runner.current() or "base")

        elif args.command == "history":
            for rev in runner.history():
                marker = "x" if rev.is_applied else " "
                summary = rev.description.splitlines()[0] if rev.description else ""
                print(f"[{marker}] {rev.revision}  {summary}")

        elif args.command == "status":
            status = runner.status()
            print(f"\nCurrent:  {status['current'] or 'base'}")
            print(f"Applied:  {status['applied_count']} migrations")
            print(f"Pending:  {status['pending_count']} migrations")
            if status["pending_revisions"]:
                print("\nPending migrations:")
                for revision in status["pending_revisions"]:
                    print(f"  {revision}")
            print(f"\nDatabase is {'current' if status['is_current'] else 'OUT OF DATE'}")

    except Exception as e:
        logger.error(f"Command '{args.command}' failed: {sanitize_error(e)}")
        print(f"Error: {sanitize_error(e)}", file=sys.stderr)
        return 1

    return 0
