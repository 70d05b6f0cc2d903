"""Protean Engine runner for OrderDesk.

Processes events asynchronously (projections and notifications) when the
domain is configured for async event processing.

Usage:
    python src/server.py
    python src/server.py --test-mode   # drain pending messages and exit
"""

import argparse
import asyncio

from protean.server.engine import Engine

from orderdesk.domain import orderdesk
from orderdesk.utils.logging import configure_logging


async def run(test_mode: bool = False):
    orderdesk.init()
    engine = Engine(orderdesk, test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="OrderDesk Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()
