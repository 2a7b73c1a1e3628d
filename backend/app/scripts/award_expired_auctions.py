"""Award every auction whose bidding window has elapsed.

Meant to be run by an external scheduler (cron, k8s CronJob).
Run with: python -m app.scripts.award_expired_auctions [--dry-run] [--limit N]
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict

from app.database import SessionLocal
from app.services.auction_service import award_expired_auctions


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Expected an integer") from exc
    if n <= 0:
        raise argparse.ArgumentTypeError("--limit must be positive")
    return n


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Close elapsed reverse auctions and award them to the lowest bid."
    )
    parser.add_argument("--dry-run", action="store_true", help="List candidates, change nothing.")
    parser.add_argument("--limit", type=_positive_int, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    db = SessionLocal()
    try:
        summary = award_expired_auctions(db, limit=args.limit, dry_run=bool(args.dry_run))
    finally:
        db.close()

    print(json.dumps({"dry_run": bool(args.dry_run), **asdict(summary)}, indent=2))
    return 1 if summary.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
