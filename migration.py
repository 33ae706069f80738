"""
Migration of cached traffic rows from the primary store to QuestDB.

Rows are paged by creation time in fixed-size batches. A failing batch is
recorded and skipped; the run continues with the next one.
"""

import logging
import math
import time
from typing import Optional

import requests
from sqlalchemy.exc import SQLAlchemyError

from exceptions import ConfigurationError, DestinationError
from questdb import sql_string, sql_timestamp
from schemas import MigrationResult, MigrationStatus

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50

TRAFFIC_ANALYTICS_DDL = """
CREATE TABLE IF NOT EXISTS traffic_analytics (
    route_id INT,
    timestamp TIMESTAMP,
    traffic_density DOUBLE,
    duration INT,
    duration_in_traffic INT,
    distance DOUBLE,
    status SYMBOL,
    created_at TIMESTAMP
) TIMESTAMP(timestamp) PARTITION BY DAY
"""


def _number(value, cast=float):
    if value is None:
        return cast(0)
    try:
        return cast(value)
    except (TypeError, ValueError):
        return cast(0)


def insert_statement(row: dict) -> str:
    """Destination INSERT for one source row; nulls become 0 or ''."""
    return (
        "INSERT INTO traffic_analytics "
        "(route_id, timestamp, traffic_density, duration, duration_in_traffic, distance, status, created_at) "
        f"VALUES ({_number(row.get('route_id'), int)}, "
        f"{sql_timestamp(row.get('timestamp'))}, "
        f"{_number(row.get('traffic_density'))}, "
        f"{_number(row.get('duration'), int)}, "
        f"{_number(row.get('duration_in_traffic'), int)}, "
        f"{_number(row.get('distance'))}, "
        f"{sql_string(row.get('status'))}, "
        f"{sql_timestamp(row.get('created_at'))})"
    )


class MigrationPipeline:
    def __init__(self, store, questdb, batch_size: int = DEFAULT_BATCH_SIZE, timer=time.monotonic):
        self.store = store
        self.questdb = questdb
        self.batch_size = batch_size
        self.timer = timer

    def check_readiness(self) -> MigrationStatus:
        errors = []

        source_configured = self.store is not None
        if not source_configured:
            errors.append("Primary store is not configured")
        else:
            try:
                self.store.ping()
            except SQLAlchemyError as e:
                errors.append(f"Primary store connection test failed: {e}")

        destination_configured = self.questdb is not None and self.questdb.is_configured
        destination_connected = False
        if not destination_configured:
            errors.append("QuestDB URL is not configured")
        else:
            try:
                destination_connected = self.questdb.ping()
            except (requests.RequestException, DestinationError) as e:
                errors.append(f"QuestDB connection error: {e}")

        return MigrationStatus(
            is_ready=source_configured and destination_configured and destination_connected and not errors,
            source_configured=source_configured,
            destination_configured=destination_configured,
            destination_connected=destination_connected,
            errors=errors,
            destination_url=self.questdb.url if self.questdb is not None else None,
        )

    def _write_batch(self, rows):
        for row in rows:
            self.questdb.execute(insert_statement(row))

    def migrate(self, status: Optional[MigrationStatus] = None) -> MigrationResult:
        status = status or self.check_readiness()
        if not status.is_ready:
            logger.warning(f"Migration not started: {'; '.join(status.errors)}")
            return MigrationResult(success=False, ready=False, errors=list(status.errors))

        started = self.timer()
        errors = []
        total = processed = batches = 0

        try:
            self.questdb.execute(TRAFFIC_ANALYTICS_DDL)
            total = self.store.count_traffic_rows()
        except (ConfigurationError, DestinationError, requests.RequestException, SQLAlchemyError) as e:
            logger.error(f"Migration failed before the first batch: {e}")
            errors.append(f"Migration failed: {e}")
            return MigrationResult(
                success=False,
                duration_ms=int((self.timer() - started) * 1000),
                errors=errors,
            )

        total_batches = math.ceil(total / self.batch_size) if total else 0
        logger.info(f"Starting migration of {total} records in {total_batches} batches")

        for offset in range(0, total, self.batch_size):
            batch_number = offset // self.batch_size + 1
            try:
                rows = self.store.fetch_traffic_rows(offset, self.batch_size)
                if not rows:
                    logger.info(f"No data in batch {batch_number}, skipping")
                    continue
                self._write_batch(rows)
            except (DestinationError, requests.RequestException, SQLAlchemyError) as e:
                message = f"Batch {batch_number} failed: {e}"
                logger.error(message)
                errors.append(message)
                continue

            processed += len(rows)
            batches += 1
            logger.info(f"Batch {batch_number}/{total_batches} completed: {len(rows)} records")

        duration_ms = int((self.timer() - started) * 1000)
        logger.info(f"Migration completed: {processed}/{total} records in {batches} batches")
        return MigrationResult(
            success=not errors,
            total_records=total,
            processed_records=processed,
            batches_processed=batches,
            duration_ms=duration_ms,
            errors=errors,
        )
