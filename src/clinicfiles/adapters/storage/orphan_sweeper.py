"""
Out-of-band cleanup of chunk objects that no stage file references.

Two kinds of orphans exist: finalized objects whose descriptor was never
attached (or was detached after a failed chunk delete), and unfinished
objects whose upload died before finalize. Only objects older than a
cutoff are considered, so uploads still in flight are never touched.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Set

from pymongo.errors import PyMongoError

from clinicfiles.core.exceptions import StorageUnavailableError
from clinicfiles.core.utils.datetime_utils import get_current_timestamp

from .mongo_chunk_store import MongoChunkStore

logger = logging.getLogger("clinicfiles")

REFERENCE_PATH = "episodes.stages.files.file_ref.object_id"


@dataclass
class OrphanReport:
    """Result of one sweep."""

    cutoff: datetime
    unreferenced: List[str] = field(default_factory=list)
    unfinished: List[str] = field(default_factory=list)
    deleted: int = 0
    dry_run: bool = True

    @property
    def total(self) -> int:
        return len(self.unreferenced) + len(self.unfinished)


class MongoOrphanSweeper:
    """Finds and optionally deletes orphaned objects of one chunk store bucket."""

    def __init__(self, database, chunk_store: MongoChunkStore, patients_collection: str = "patients"):
        self._patients = database[patients_collection]
        self._files = database[f"{chunk_store.store_name}.files"]
        self._chunks = database[f"{chunk_store.store_name}.chunks"]
        self._chunk_store = chunk_store

    async def find_orphans(self, min_age: timedelta) -> OrphanReport:
        cutoff = get_current_timestamp() - min_age
        report = OrphanReport(cutoff=cutoff)
        try:
            referenced: Set[str] = {
                str(object_id) for object_id in await self._patients.distinct(REFERENCE_PATH)
            }
            finalized = {str(oid) for oid in await self._files.distinct("_id")}

            cursor = self._files.find({"uploadDate": {"$lt": cutoff}}, projection={"_id": 1})
            async for doc in cursor:
                object_id = str(doc["_id"])
                if object_id not in referenced:
                    report.unreferenced.append(object_id)

            for oid in await self._chunks.distinct("files_id"):
                # Unfinished objects have no files document; the id carries its creation time
                if str(oid) not in finalized and oid.generation_time < cutoff:
                    report.unfinished.append(str(oid))
        except PyMongoError as e:
            logger.error(f"Orphan scan failed: {e}")
            raise StorageUnavailableError("chunk store", str(e)) from e

        logger.info(
            f"Orphan scan (cutoff {cutoff.isoformat()}): {len(report.unreferenced)} unreferenced, "
            f"{len(report.unfinished)} unfinished"
        )
        return report

    async def sweep(self, min_age: timedelta = timedelta(hours=1), dry_run: bool = True) -> OrphanReport:
        report = await self.find_orphans(min_age)
        report.dry_run = dry_run
        if dry_run:
            return report

        for object_id in report.unreferenced + report.unfinished:
            if await self._chunk_store.delete_object(object_id):
                report.deleted += 1
        logger.info(f"Orphan sweep deleted {report.deleted} of {report.total} objects")
        return report
