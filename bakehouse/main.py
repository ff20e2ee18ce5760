"""
Command-line entry point for Bakehouse inventory.

No UI required - designed for scripting and manual maintenance tasks
(expiry sweeps, archiving) as well as day-to-day stock operations.

Usage Examples:
    # Create the database
    bakehouse init-db

    # Receive 25 kg of flour (material 1), expiring 2026-12-01
    bakehouse receive 1 LOT-042 25 2026-12-01 --supplier 2

    # Release it after QC review
    bakehouse set-qc 7 release

    # Plan, preview and execute a run of 100 loaves from recipe 3
    bakehouse plan 3 100
    bakehouse requirements 3 100
    bakehouse execute 12 96 --rejected 4

    # Archive runs completed more than 30 days ago
    bakehouse archive-runs --days 30
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Optional, Sequence

from bakehouse.services import (
    batch_service,
    product_stock_service,
    production_service,
    qc_service,
    transaction_log_service,
)
from bakehouse.services.database import initialize_app_database, verify_database
from bakehouse.services.exceptions import ServiceError
from bakehouse.models import QcStatus
from bakehouse.utils.constants import DEFAULT_ARCHIVE_DAYS

logger = logging.getLogger(__name__)


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected ISO format (YYYY-MM-DD)")


def _print(result) -> None:
    print(json.dumps(result, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="bakehouse",
        description="Bakery stock, QC and production management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--user", dest="user_id", help="Actor recorded in the transaction log")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create tables and migrate legacy data")

    receive = subparsers.add_parser("receive", help="Receive a raw-material batch (pending QC)")
    receive.add_argument("material_id", type=int)
    receive.add_argument("batch_number")
    receive.add_argument("quantity")
    receive.add_argument("expiry_date", type=_parse_datetime)
    receive.add_argument("--supplier", dest="supplier_id", type=int)

    set_qc = subparsers.add_parser("set-qc", help="Set the QC status of a batch")
    set_qc.add_argument("batch_id", type=int)
    set_qc.add_argument("status", choices=QcStatus.values())
    set_qc.add_argument("--notes")

    mark_expired = subparsers.add_parser("mark-expired", help="Persist expired status")
    mark_expired.add_argument("batch_id", type=int, nargs="?", help="Omit to sweep all batches")

    dispose = subparsers.add_parser("dispose", help="Dispose of a batch as waste")
    dispose.add_argument("batch_id", type=int)
    dispose.add_argument("--notes")

    reserve = subparsers.add_parser("reserve", help="Consume raw material FEFO")
    reserve.add_argument("material_id", type=int)
    reserve.add_argument("quantity")
    reserve.add_argument("--notes")

    deduct = subparsers.add_parser("deduct", help="Deduct finished goods FEFO")
    deduct.add_argument("product_id", type=int)
    deduct.add_argument("quantity")

    plan = subparsers.add_parser("plan", help="Plan a production run")
    plan.add_argument("bom_id", type=int)
    plan.add_argument("target_quantity")
    plan.add_argument("--start", dest="start_date", type=_parse_datetime)
    plan.add_argument("--notes")

    requirements = subparsers.add_parser("requirements", help="Preview material requirements")
    requirements.add_argument("bom_id", type=int)
    requirements.add_argument("target_quantity")

    execute = subparsers.add_parser("execute", help="Execute a planned production run")
    execute.add_argument("run_id", type=int)
    execute.add_argument("produced_quantity")
    execute.add_argument("--rejected", dest="rejected_quantity", default="0")
    execute.add_argument("--notes")

    cancel = subparsers.add_parser("cancel", help="Cancel a planned production run")
    cancel.add_argument("run_id", type=int)

    archive_runs = subparsers.add_parser("archive-runs", help="Archive old completed runs")
    archive_runs.add_argument("--days", type=float, default=DEFAULT_ARCHIVE_DAYS)

    archive_logs = subparsers.add_parser("archive-logs", help="Archive old transaction logs")
    archive_logs.add_argument("--days", type=float, default=DEFAULT_ARCHIVE_DAYS)

    batches = subparsers.add_parser("batches", help="List batches")
    batches.add_argument("--material", dest="material_id", type=int)

    subparsers.add_parser("expired", help="List expired batches awaiting disposal")
    subparsers.add_parser("pending-qc", help="List batches awaiting QC review")

    logs = subparsers.add_parser("logs", help="List transaction log entries")
    logs.add_argument("--material", dest="material_id", type=int)

    return parser


def run_command(args: argparse.Namespace):
    """Dispatch a parsed command to the service layer and return its result.

    The database must already be initialized (see ``main``).
    """
    command = args.command

    if command == "init-db":
        return {"success": verify_database()}
    if command == "receive":
        return batch_service.receive_stock(
            args.material_id,
            args.batch_number,
            args.quantity,
            args.expiry_date,
            supplier_id=args.supplier_id,
            user_id=args.user_id,
        )
    if command == "set-qc":
        return qc_service.set_qc_status(args.batch_id, args.status, notes=args.notes)
    if command == "mark-expired":
        if args.batch_id is None:
            return qc_service.mark_all_expired()
        return qc_service.mark_as_expired(args.batch_id)
    if command == "dispose":
        return batch_service.approve_expired_disposal(
            args.batch_id, args.user_id or "cli", notes=args.notes
        )
    if command == "reserve":
        return batch_service.reserve_stock(
            args.material_id, args.quantity, user_id=args.user_id, notes=args.notes
        )
    if command == "deduct":
        return product_stock_service.deduct_stock(args.product_id, args.quantity)
    if command == "plan":
        return production_service.plan_production(
            args.bom_id, args.target_quantity, start_date=args.start_date, notes=args.notes
        )
    if command == "requirements":
        return production_service.calculate_requirements(args.bom_id, args.target_quantity)
    if command == "execute":
        return production_service.execute_production(
            args.run_id,
            args.produced_quantity,
            args.rejected_quantity,
            notes=args.notes,
            user_id=args.user_id,
        )
    if command == "cancel":
        return production_service.cancel_production(args.run_id)
    if command == "archive-runs":
        return production_service.archive_completed_runs(args.days)
    if command == "archive-logs":
        return transaction_log_service.archive_logs(args.days)
    if command == "batches":
        if args.material_id is not None:
            return batch_service.list_batches_by_material(args.material_id)
        return batch_service.list_all_batches()
    if command == "expired":
        return batch_service.get_expired_batches()
    if command == "pending-qc":
        return batch_service.list_pending_qc()
    if command == "logs":
        if args.material_id is not None:
            return transaction_log_service.list_logs_by_material(args.material_id)
        return transaction_log_service.list_logs()

    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        # Initialize database (required for all operations)
        initialize_app_database()
        _print(run_command(args))
    except ServiceError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
