#!/usr/bin/env python3
"""DLQ Operations Helper

Ops-friendly CLI to inspect and resolve dead-lettered work.

Examples:
  - Stats:    python scripts/dlq_admin.py --action stats
  - List:     python scripts/dlq_admin.py --action list --queue notifications --limit 20
  - Resolve:  python scripts/dlq_admin.py --action resolve --id <uuid> --by ops@store --type ignored
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from storeops.core.config import settings
from storeops.models.dead_letter import ResolutionType
from storeops.utils.logger import configure_logging, get_logger
from storeops.utils.resilience.dead_letter.queue import DeadLetterQueue

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DLQ operations helper")
    parser.add_argument(
        "--action",
        choices=["stats", "list", "resolve"],
        required=True,
        help="action to perform",
    )
    parser.add_argument("--queue", help="source queue filter for --action list")
    parser.add_argument(
        "--limit", type=int, default=settings.DLQ_DEFAULT_LIMIT, help="max records to list"
    )
    parser.add_argument("--id", dest="dlq_id", help="record id for --action resolve")
    parser.add_argument("--by", dest="resolved_by", help="who is resolving the record")
    parser.add_argument(
        "--type",
        dest="resolution_type",
        choices=[t.value for t in ResolutionType],
        default=ResolutionType.IGNORED.value,
        help="resolution type",
    )
    parser.add_argument("--notes", help="free-form resolution notes")
    return parser


async def run(argv: Optional[List[str]] = None, dlq: Optional[DeadLetterQueue] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    dlq = dlq or DeadLetterQueue()

    if args.action == "stats":
        stats = await dlq.get_dlq_stats()
        logger.info("dlq_stats", queues=len(stats))
        for queue, counts in sorted(stats.items()):
            print(f"queue={queue} pending={counts['pending']} resolved={counts['resolved']}")
        return 0

    if args.action == "list":
        items = await dlq.get_dlq_items(args.queue, args.limit)
        for item in items:
            print(json.dumps(item.to_dict(), default=str))
        print(f"count={len(items)}")
        return 0

    if not args.dlq_id or not args.resolved_by:
        parser.error("--action resolve requires --id and --by")

    resolved = await dlq.resolve_dlq_item(
        args.dlq_id, args.resolved_by, args.resolution_type, args.notes
    )
    print(f"id={args.dlq_id} resolved={str(resolved).lower()}")
    return 0 if resolved else 1


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
