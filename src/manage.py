"""Threadworks database management CLI.

Provides commands to create and drop the database schema of the orders
domain, using the setup_db/drop_db utilities in ``orders.utils.db``.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_databases():
    """Create database schemas for every SQL provider of the orders domain."""
    from orders.domain import orders
    from orders.utils.db import setup_db

    print("Initializing orders domain...")
    orders.init()
    print("Creating orders database schema...")
    touched = setup_db(orders)
    if not touched:
        print("  No SQL providers configured; nothing to create.")
    for name in touched:
        print(f"  {name} schema ready.")

    print("Done.")


def drop_databases():
    """Drop database schemas for every SQL provider of the orders domain."""
    from orders.domain import orders
    from orders.utils.db import drop_db

    print("Initializing orders domain...")
    orders.init()
    print("Dropping orders database schema...")
    for name in drop_db(orders):
        print(f"  {name} schema dropped.")

    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Threadworks database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
