"""
Cron job run log.

Each run of a scheduled job writes ``started`` and ``success``/``failed``
entries to the ``cron_job_logs`` collection; ``CronLogRepository`` reads them back.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from saasbase.config import logger

COLLECTION = "cron_job_logs"


class CronLogger:
    def __init__(self, db: firestore.Client, job_name: str):
        self.db = db
        self.job_name = job_name
        self._started = time.monotonic()

    def _write(
        self,
        status: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        with_duration: bool = True,
    ) -> None:
        entry: Dict[str, Any] = {
            "job_name": self.job_name,
            "status": status,
            "message": message,
            "details": details,
            "created_at": datetime.now(timezone.utc),
        }
        if with_duration:
            entry["duration_ms"] = int((time.monotonic() - self._started) * 1000)
        try:
            self.db.collection(COLLECTION).add(entry)
        except GoogleAPICallError as e:
            # A lost log entry must not fail the job itself
            logger.error("Failed to log cron job %s (%s): %s", self.job_name, status, e)

    def log_start(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        logger.info("Cron job %s started", self.job_name)
        self._write("started", message, details, with_duration=False)

    def log_success(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        logger.info("Cron job %s succeeded: %s", self.job_name, message)
        self._write("success", message, details)

    def log_failure(self, error: Exception, message: Optional[str] = None) -> None:
        logger.error("Cron job %s failed: %s", self.job_name, error)
        self._write("failed", message or str(error), {"error": str(error), "type": type(error).__name__})


class CronLogRepository:
    """Read side of the job log, newest first."""

    def __init__(self, db: firestore.Client):
        self.db = db

    def list(
        self,
        job_name: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = self.db.collection(COLLECTION)
        if job_name:
            query = query.where(filter=FieldFilter("job_name", "==", job_name))
        if status:
            query = query.where(filter=FieldFilter("status", "==", status))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if offset:
            query = query.offset(offset)
        entries = []
        for doc in query.limit(limit).stream():
            entry = doc.to_dict() or {}
            entry["id"] = doc.id
            entries.append(entry)
        return entries
