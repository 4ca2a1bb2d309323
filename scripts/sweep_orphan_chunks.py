#!/usr/bin/env python3
"""
Orphaned chunk object sweep.

Chunk uploads that fail mid-stream, and chunked files whose descriptor was
never attached, leave objects in the chunk store that nothing references.
This script lists them and, with --apply, deletes them.

Usage:
    python scripts/sweep_orphan_chunks.py
    python scripts/sweep_orphan_chunks.py --min-age-hours 24
    python scripts/sweep_orphan_chunks.py --apply
"""

import argparse
import asyncio
import sys
from datetime import timedelta

# Add the src directory to the Python path
sys.path.insert(0, "src")

from clinicfiles.adapters.db.mongo.models.patient_m import PATIENTS_COLLECTION
from clinicfiles.adapters.storage.mongo_chunk_store import MongoChunkStore
from clinicfiles.adapters.storage.orphan_sweeper import MongoOrphanSweeper
from clinicfiles.bootstrap import create_mongo_client
from clinicfiles.core.config import get_settings
from clinicfiles.core.structured_logger import configure_logging


async def main(min_age_hours: float, apply: bool) -> int:
    settings = get_settings()
    configure_logging(settings.logging)
    client = create_mongo_client(settings.database)
    try:
        db = client[settings.database.db_name]
        chunk_store = MongoChunkStore(db, bucket_name=settings.file_storage.bucket_name)
        sweeper = MongoOrphanSweeper(db, chunk_store, PATIENTS_COLLECTION)

        report = await sweeper.sweep(timedelta(hours=min_age_hours), dry_run=not apply)

        print(f"🔍 Objects older than {report.cutoff.isoformat()}")
        print(f"   Unreferenced: {len(report.unreferenced)}")
        for object_id in report.unreferenced:
            print(f"     - {object_id}")
        print(f"   Unfinished:   {len(report.unfinished)}")
        for object_id in report.unfinished:
            print(f"     - {object_id}")

        if report.dry_run:
            print("ℹ️  Dry run, nothing deleted. Re-run with --apply to delete.")
        else:
            print(f"✅ Deleted {report.deleted} of {report.total} orphaned objects")
        return 0
    finally:
        client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sweep orphaned chunk objects")
    parser.add_argument(
        "--min-age-hours",
        type=float,
        default=1.0,
        help="Only consider objects older than this many hours (default: 1)",
    )
    parser.add_argument("--apply", action="store_true", help="Delete the orphans found")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.min_age_hours, args.apply)))
