"""OrderDesk database management CLI.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

from orderdesk.domain import orderdesk
from orderdesk.utils.db import drop_db, setup_db


def setup_databases():
    print("Initializing orderdesk domain...")
    orderdesk.init()
    touched = setup_db(orderdesk)
    if touched:
        print(f"  schema ready for: {', '.join(touched)}")
    else:
        print("  no relational database configured; nothing to create.")
    print("Done.")


def drop_databases():
    print("Initializing orderdesk domain...")
    orderdesk.init()
    touched = drop_db(orderdesk)
    if touched:
        print(f"  schema dropped for: {', '.join(touched)}")
    else:
        print("  no relational database configured; nothing to drop.")
    print("Done.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="OrderDesk database management")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("setup-db", help="Create database tables")
    subparsers.add_parser("drop-db", help="Drop database tables")

    args = parser.parse_args(argv)
    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
