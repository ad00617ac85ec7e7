"""Bandwidth accounting repository (daily byte totals for served downloads)."""

from datetime import datetime, timedelta
from typing import Optional

from common.logging_config import get_logger
from server.database import get_db_connection

logger = get_logger(__name__)


class BandwidthRepository:
    @staticmethod
    def record(bytes_served: int, day: Optional[str] = None) -> None:
        """
        Add bytes to the running total for a UTC day.

        Failures are logged and never raised: accounting must not break a download.
        """
        if bytes_served <= 0:
            return

        day = day or datetime.utcnow().date().isoformat()

        try:
            with get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO bandwidth_daily (day, total_bytes)
                    VALUES (?, ?)
                    ON CONFLICT(day) DO UPDATE SET total_bytes = bandwidth_daily.total_bytes + excluded.total_bytes
                    """,
                    (day, bytes_served)
                )
                conn.commit()
        except Exception as e:
            logger.error(f"Failed to record bandwidth [bytes={bytes_served}]: {e}", exc_info=True)

    @staticmethod
    def total_bytes(days: Optional[int] = None) -> int:
        """
        Sum of recorded bytes, optionally limited to the last ``days`` days.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            if days is None:
                cursor.execute("SELECT COALESCE(SUM(total_bytes), 0) AS total FROM bandwidth_daily")
            else:
                since = (datetime.utcnow().date() - timedelta(days=days)).isoformat()
                cursor.execute(
                    "SELECT COALESCE(SUM(total_bytes), 0) AS total FROM bandwidth_daily WHERE day >= ?",
                    (since,)
                )
            return cursor.fetchone()["total"]
