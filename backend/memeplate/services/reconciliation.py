"""
Reconciliation - Out-of-band sweep for drift between records and blobs

Request handling never calls this. Run it from a scheduler or by hand:

    python -m memeplate.services.reconciliation [--purge-orphans]
"""

import argparse
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from memeplate.services.blob_store import BlobStore
from memeplate.services.observability import log_asset_deleted, log_compensation_failed, logger
from memeplate.services.storage import TemplateDB


@dataclass
class ReconciliationReport:
    """What the sweep found (and removed)"""

    # (template_id, storage_key) of records whose blob is gone
    missing_blobs: List[Tuple[str, str]] = field(default_factory=list)
    # Blob keys no record points at, older than the grace period
    orphaned_blobs: List[str] = field(default_factory=list)
    # Unreferenced but too new to judge; never purged
    recent_orphans: List[str] = field(default_factory=list)
    purged: List[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.missing_blobs and not self.orphaned_blobs

    def to_dict(self) -> dict:
        return {
            "missing_blobs": [
                {"template_id": template_id, "storage_key": key}
                for template_id, key in self.missing_blobs
            ],
            "orphaned_blobs": self.orphaned_blobs,
            "recent_orphans": self.recent_orphans,
            "purged": self.purged,
        }


class ReconciliationService:
    """
    Compare record store and blob store contents
    """

    def __init__(
        self,
        db: Session,
        blob_store: BlobStore,
        grace_period: timedelta = timedelta(hours=1),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            db: Record store session
            blob_store: Provider holding template images
            grace_period: Unreferenced blobs written more recently than this
                are reported as recent and left alone
            clock: Returns the current UTC time (tz-aware)
        """
        self.db = db
        self.blob_store = blob_store
        self.grace_period = grace_period
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def sweep(self, purge_orphans: bool = False) -> ReconciliationReport:
        """
        Scan both stores

        Blobs are listed before records are read. A create uploads first and
        inserts second, so an in-flight create shows up as an unreferenced
        blob younger than the grace period.

        Args:
            purge_orphans: Delete unreferenced blobs older than the grace
                period. Records with missing blobs are only reported;
                deciding what to do with them is left to an operator.

        Returns:
            ReconciliationReport
        """
        report = ReconciliationReport()

        blobs = await self.blob_store.list_blobs()
        rows = TemplateDB.list_asset_keys(self.db)
        referenced = {storage_key for _, storage_key in rows}
        stored = {blob.storage_key for blob in blobs}

        for template_id, storage_key in rows:
            if storage_key not in stored:
                report.missing_blobs.append((template_id, storage_key))

        cutoff = self.clock() - self.grace_period
        for blob in blobs:
            if blob.storage_key in referenced:
                continue
            if blob.last_modified > cutoff:
                report.recent_orphans.append(blob.storage_key)
            else:
                report.orphaned_blobs.append(blob.storage_key)
        report.orphaned_blobs.sort()
        report.recent_orphans.sort()

        if purge_orphans:
            for storage_key in report.orphaned_blobs:
                try:
                    found = await self.blob_store.delete(storage_key)
                except Exception as e:
                    log_compensation_failed(storage_key, "reconciliation_purge", e)
                    continue
                log_asset_deleted(storage_key, found=found, reason="orphan_purged")
                report.purged.append(storage_key)

        logger.info(
            "reconciliation_completed",
            missing_blobs=len(report.missing_blobs),
            orphaned_blobs=len(report.orphaned_blobs),
            recent_orphans=len(report.recent_orphans),
            purged=len(report.purged),
        )
        return report


async def _run(purge_orphans: bool) -> ReconciliationReport:
    from memeplate.config.settings import settings
    from memeplate.context import create_context

    context = create_context(settings)
    await context.startup()
    db = context.session_factory()
    try:
        service = ReconciliationService(
            db,
            context.blob_store,
            grace_period=timedelta(seconds=settings.orphan_grace_seconds),
        )
        return await service.sweep(purge_orphans=purge_orphans)
    finally:
        db.close()
        await context.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="Find records without blobs and blobs without records")
    parser.add_argument(
        "--purge-orphans",
        action="store_true",
        help="Delete unreferenced blobs older than ORPHAN_GRACE_SECONDS",
    )
    args = parser.parse_args()

    from memeplate.config.settings import settings
    from memeplate.services.observability import configure_logging

    configure_logging(settings.log_level)
    report = asyncio.run(_run(args.purge_orphans))
    logger.info("reconciliation_report", **report.to_dict())


if __name__ == "__main__":
    main()
