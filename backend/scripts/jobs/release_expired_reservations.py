#!/usr/bin/env python3
"""
Release Expired Stock Reservations
Cancels pending, unpaid orders older than RESERVATION_TTL_MINUTES and puts
their stock back (same routine as POST /api/v1/cron/release-reservations)

Usage:
    cd backend
    python scripts/jobs/release_expired_reservations.py [--limit 200]
"""
import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
load_dotenv(Path(__file__).resolve().parents[2] / '.env')

from trendify.core.config import get_settings
from trendify.core.database import session_scope
from trendify.core.logging_config import setup_logging
from trendify.services.order_service import OrderService

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Release expired stock reservations")
    parser.add_argument("--limit", type=int, default=200, help="Maximum orders per run")
    args = parser.parse_args()

    setup_logging(get_settings().LOG_LEVEL)

    with session_scope() as db:
        summary = OrderService(db).release_expired_reservations(limit=args.limit)

    logger.info(f"Checked {summary['checked']} order(s), released {summary['released']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
