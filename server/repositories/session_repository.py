"""Session repository: read access to login sessions issued by the account service."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from common.logging_config import get_logger
from server.database import get_db_connection

logger = get_logger(__name__)

SESSION_LIFETIME = timedelta(days=7)


@dataclass
class Session:
    session_id: str
    email: str
    user_agent: Optional[str]
    ip: Optional[str]
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at


class SessionRepository:
    @staticmethod
    def create_session(
        session_id: str,
        email: str,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Session:
        created_at = created_at or datetime.utcnow()
        expires_at = created_at + SESSION_LIFETIME

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO sessions (session_id, email, user_agent, ip, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (session_id, email, user_agent, ip, created_at.isoformat(), expires_at.isoformat())
            )
            conn.commit()

        return Session(
            session_id=session_id,
            email=email,
            user_agent=user_agent,
            ip=ip,
            created_at=created_at,
            expires_at=expires_at,
        )

    @staticmethod
    def get_by_id(session_id: str) -> Optional[Session]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT session_id, email, user_agent, ip, created_at, expires_at FROM sessions WHERE session_id = ?",
                (session_id,)
            )
            row = cursor.fetchone()

            if row is None:
                return None

            return Session(
                session_id=row["session_id"],
                email=row["email"],
                user_agent=row["user_agent"],
                ip=row["ip"],
                created_at=datetime.fromisoformat(row["created_at"]),
                expires_at=datetime.fromisoformat(row["expires_at"]),
            )
