# app/scripts/maintenance.py
"""
Operator jobs against the service's own database:

    python -m app.scripts.maintenance purge-idempotency
    python -m app.scripts.maintenance purge-outbox --days 7
    python -m app.scripts.maintenance requeue-failed [--event-id ID ...]
"""
import argparse
import asyncio
import logging
from datetime import timedelta
from uuid import UUID

from app.core.db import close_db, init_db
from app.events.outbox_utility import purge_published, requeue_failed
from app.services.idempotency_service import purge_expired

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("maintenance")


async def run(args: argparse.Namespace) -> int:
    await init_db(generate_schemas=False)
    try:
        if args.command == "purge-idempotency":
            return await purge_expired()
        if args.command == "purge-outbox":
            return await purge_published(timedelta(days=args.days))
        return await requeue_failed(args.event_id or None)
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Checkout saga maintenance jobs.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("purge-idempotency", help="Delete expired idempotency keys.")

    purge_outbox = sub.add_parser("purge-outbox", help="Delete published outbox events.")
    purge_outbox.add_argument("--days", type=int, default=7, help="Keep events published in the last N days.")

    requeue = sub.add_parser("requeue-failed", help="Move FAILED outbox events back to PENDING.")
    requeue.add_argument("--event-id", type=UUID, action="append", help="Only these events (repeatable).")
    return parser


def main() -> None:
    args = build_parser().parse_args()
    count = asyncio.run(run(args))
    log.info(f"{args.command}: {count} row(s) affected.")


if __name__ == "__main__":
    main()
