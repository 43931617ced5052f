"""
Blue Horizon sync core CLI.

Usage:
    python -m bluehorizon run
    python -m bluehorizon outbox-stats --owner did:plc:abc123 [--list]
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from .app import application_lifespan, configure_observability
from .config import Settings, get_settings
from .core.outbox import MutationStatus
from .workers.runner import SyncRunner


async def _outbox_stats(settings: Settings, owner: str, show_list: bool, status: Optional[str] = None) -> dict:
    async with application_lifespan(settings, start_scheduler=False) as app:
        result = {"owner": owner, "stats": await app.outbox.get_stats(owner)}
        if show_list:
            entries = await app.outbox.list_entries(
                owner, status=MutationStatus(status) if status else None
            )
            result["entries"] = [
                entry.model_dump(mode="json", exclude={"payload"}) for entry in entries
            ]
        return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="bluehorizon", description="Blue Horizon sync core")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the background sync daemon")

    stats = sub.add_parser("outbox-stats", help="Show queued post counts for an account")
    stats.add_argument("--owner", required=True, help="Account DID")
    stats.add_argument("--list", action="store_true", help="Also list entries, newest first")
    stats.add_argument("--status", choices=[s.value for s in MutationStatus], help="Filter listed entries")

    args = parser.parse_args(argv)
    settings = get_settings()

    if args.command == "run":
        configure_observability(settings)
        asyncio.run(SyncRunner(settings).run())
        return 0

    if args.command == "outbox-stats":
        result = asyncio.run(_outbox_stats(settings, args.owner, args.list, args.status))
        print(json.dumps(result, indent=2))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
