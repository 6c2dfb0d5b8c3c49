#!/usr/bin/env python3
"""Regenerate the QR code of every employee in the directory.

Run from the backend/ directory:

    python3 scripts/regenerate_qr_codes.py [--dry-run] [--only-missing] [--page-size N] [--verbose]

Walks the directory newest first, page by page, and rewrites ``qrCodeUrl``
from the current employee ID, name and phone number.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from app.core.config import Settings  # noqa: E402
from app.models.employee import EmployeeSummary  # noqa: E402
from app.services.directory import DirectoryPager  # noqa: E402
from app.services.employee_service import EmployeeService, utc_timestamp  # noqa: E402
from app.services.qr_code import generate_qr_data_url  # noqa: E402

logger = logging.getLogger(__name__)


@dataclass
class RegenerationStats:
    updated: int = 0
    skipped: int = 0
    failed: int = 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Regenerate employee QR codes")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )
    parser.add_argument(
        "--only-missing",
        action="store_true",
        help="Only employees without a QR code",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=50,
        help="Employees fetched per page (default: 50)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


async def regenerate_one(
    store: EmployeeService,
    employee: EmployeeSummary,
    *,
    only_missing: bool = False,
    dry_run: bool = False,
) -> bool:
    """True when the employee's QR code was (or would be) rewritten."""
    if only_missing:
        record = await store.get(employee.id)
        if record is None or record.qr_code_url:
            return False
    if not employee.employee_id:
        logger.warning("Employee %s has no employee ID, skipping", employee.id)
        return False

    qr_code_url = generate_qr_data_url(employee.employee_id, employee.full_name, employee.phone_number)
    if dry_run:
        logger.debug("[DRY RUN] Would update QR code of %s", employee.employee_id)
        return True
    await store.patch(employee.id, {"qrCodeUrl": qr_code_url, "updatedAt": utc_timestamp()})
    return True


async def regenerate_all(store: EmployeeService, args: argparse.Namespace) -> RegenerationStats:
    stats = RegenerationStats()
    pager = DirectoryPager(store, args.page_size)
    async for employee in pager.iterate_all():
        try:
            changed = await regenerate_one(
                store,
                employee,
                only_missing=args.only_missing,
                dry_run=args.dry_run,
            )
        except Exception:
            logger.exception("QR regeneration failed for %s — continuing...", employee.id)
            stats.failed += 1
            continue
        if changed:
            stats.updated += 1
        else:
            stats.skipped += 1
    return stats


async def run(args: argparse.Namespace) -> RegenerationStats:
    settings = Settings()
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")

    store = EmployeeService()
    await store.initialize(settings)
    if not store.initialized:
        logger.error("Cosmos DB is not configured. Set COSMOS_DB_ENDPOINT and COSMOS_DB_KEY.")
        return RegenerationStats()

    try:
        stats = await regenerate_all(store, args)
    finally:
        await store.close()

    logger.info("=" * 50)
    logger.info("QR regeneration complete!")
    logger.info("Updated: %d", stats.updated)
    logger.info("Skipped: %d", stats.skipped)
    logger.info("Failed: %d", stats.failed)
    if args.dry_run:
        logger.info("[DRY RUN] No records were changed.")
    return stats


def main() -> None:
    args = parse_args()
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
