# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from dualstore.app import (
    apply_aggregate,
    initialise_schema,
    open_stores,
    ping_stores,
    run_repair,
    run_sync_check,
)
from dualstore.config import configure_logging
from dualstore.domain.replication import RepairSummary
from dualstore.erp import AGGREGATES
from dualstore.ui.payload import load_payload

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replicate ERP records across two databases")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create missing tables in both stores")
    subparsers.add_parser("ping", help="Check connectivity to both stores")

    check = subparsers.add_parser("check", help="Compare entity tables between the stores")
    check.add_argument(
        "entities",
        nargs="*",
        metavar="ENTITY",
        help="Entities to check (defaults to DUALSTORE_SYNC_ENTITIES or the built-in list)",
    )

    repair = subparsers.add_parser("repair", help="Copy Primary rows over Secondary")
    repair.add_argument("entity", metavar="ENTITY", help="Entity to repair")
    repair.add_argument(
        "--id",
        type=int,
        dest="record_id",
        help="Repair a single record instead of every row",
    )

    apply = subparsers.add_parser("apply", help="Create or update a nested aggregate")
    apply.add_argument("aggregate", choices=sorted(AGGREGATES), help="Aggregate root entity")
    apply.add_argument("file", type=Path, help="JSON payload file")
    apply.add_argument(
        "--id",
        type=int,
        dest="record_id",
        help="Update the aggregate with this id instead of creating one",
    )
    apply.add_argument(
        "--single-store",
        action="store_true",
        help="Write to Primary only",
    )

    return parser.parse_args(list(argv))


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _run(args: argparse.Namespace, payload: dict[str, Any] | None) -> int:
    async with open_stores() as stores:
        if args.command == "init-db":
            await initialise_schema(stores)
            log.info("Schema ready on %s and %s", stores.primary.name, stores.secondary.name)
            return 0

        if args.command == "ping":
            results = await ping_stores(stores)
            _emit(results)
            return 0 if all(results.values()) else 1

        if args.command == "check":
            reports = await run_sync_check(stores, args.entities or None)
            _emit([report.as_dict() for report in reports])
            return 0 if all(report.is_sync for report in reports) else 1

        if args.command == "repair":
            outcome = await run_repair(stores, args.entity, record_id=args.record_id)
            if not isinstance(outcome, RepairSummary):
                _emit({"entity": args.entity, "repaired": args.record_id})
                return 0
            _emit(outcome.as_dict())
            return 0 if outcome.failed == 0 else 1

        if args.command == "apply" and payload is not None:
            result = await apply_aggregate(
                stores,
                args.aggregate,
                payload,
                record_id=args.record_id,
                dual_mode=False if args.single_store else None,
            )
            _emit(result.as_dict())
            return 0

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    payload: dict[str, Any] | None = None
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        if parsed_args.command == "apply":
            payload = load_payload(parsed_args.file, AGGREGATES[parsed_args.aggregate])
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        exit_code = asyncio.run(_run(parsed_args, payload))
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
