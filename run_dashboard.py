#!/usr/bin/env python
"""
Run the order dashboard client against the order store
"""

import asyncio
import logging
import sys

from app.core.config import settings
from app.ledger.dashboard import Dashboard

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - [%(levelname)s] - %(name)s - %(message)s",
)

logger = logging.getLogger("run_dashboard")


async def report(dashboard: Dashboard):
    while True:
        await asyncio.sleep(settings.POLL_INTERVAL_SECONDS)
        state = dashboard.state()
        logger.info(
            f"{len(state.pending)} active, {state.revenue.completed_count} completed, "
            f"revenue ${state.revenue.total_revenue}, average ${state.revenue.average_order_value}"
        )


async def main():
    dashboard = Dashboard(settings)
    reporter = asyncio.create_task(report(dashboard))
    try:
        await dashboard.run()
    finally:
        reporter.cancel()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Dashboard stopped.")
    sys.exit(0)
