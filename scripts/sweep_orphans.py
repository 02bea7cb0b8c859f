#!/usr/bin/env python
"""
Reclaim orphaned blobs.

Upload writes the blob before its metadata record and delete removes the
record before the blob, so an interrupted request can leave a blob that no
record references. This script finds such blobs and deletes them.

Run it while no uploads are in flight: a blob whose record is still being
inserted looks the same as an orphan.

Usage:
    PYTHONPATH=.
    python scripts/sweep_orphans.py --dry-run
    python scripts/sweep_orphans.py
"""

import argparse
import sys

from api.files.index import MetadataIndex
from api.files.services import sweep_orphaned_blobs
from core.db import get_session
from core.exceptions import StorageError
from core.logger import logger
from core.storage import get_blob_store


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Delete blobs that have no metadata record",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List orphaned blobs without deleting them",
    )
    args = parser.parse_args(argv)

    try:
        session = next(get_session())
    except Exception as e:
        logger.error(f"Failed to create database session: {e}")
        return 1

    try:
        report = sweep_orphaned_blobs(
            MetadataIndex(session), get_blob_store(), dry_run=args.dry_run
        )
    except StorageError as e:
        logger.error(f"Sweep aborted: {e}")
        return 1
    finally:
        session.close()

    logger.info("=" * 50)
    logger.info("SWEEP SUMMARY")
    logger.info("=" * 50)
    logger.info(f"Orphaned blobs found: {len(report.orphans)}")
    logger.info(f"Deleted: {report.deleted}")
    logger.info(f"Errors: {report.errors}")
    if args.dry_run:
        logger.info("DRY RUN - No changes were made")
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
