"""Transfer metadata repository for database operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from common.logging_config import get_logger
from server.database import get_db_connection

logger = get_logger(__name__)

_COLUMNS = "transfer_id, created_at, password_hash, name, size_bytes, file_count, creator_email"


@dataclass
class TransferMetadata:
    transfer_id: str
    created_at: datetime
    password_hash: Optional[str] = None
    name: Optional[str] = None
    size_bytes: Optional[int] = None
    file_count: Optional[int] = None
    creator_email: Optional[str] = None

    @property
    def is_protected(self) -> bool:
        return bool(self.password_hash)

    def to_document(self) -> Dict[str, Any]:
        """
        Serialize to the camelCase document shape of the legacy ``.metadata.json`` object.
        """
        document = {
            "createdAt": self.created_at.isoformat(),
            "passwordHash": self.password_hash,
            "name": self.name,
            "sizeBytes": self.size_bytes,
            "fileCount": self.file_count,
            "creatorEmail": self.creator_email,
        }
        return {k: v for k, v in document.items() if v is not None}

    @classmethod
    def from_document(cls, transfer_id: str, document: Dict[str, Any]) -> "TransferMetadata":
        """
        Build metadata from a legacy document. Fields of the wrong type are
        dropped, except a password hash: any non-empty value keeps the
        transfer protected. An unreadable ``createdAt`` becomes the current
        time.
        """
        return cls(
            transfer_id=transfer_id,
            created_at=_parse_created_at(document.get("createdAt")),
            password_hash=_password_hash(document.get("passwordHash")),
            name=_typed(document.get("name"), str),
            size_bytes=_typed(document.get("sizeBytes"), int),
            file_count=_typed(document.get("fileCount"), int),
            creator_email=_typed(document.get("creatorEmail"), str),
        )


def _typed(value: Any, kind: type) -> Any:
    if isinstance(value, bool) or not isinstance(value, kind):
        return None
    return value


def _password_hash(value: Any) -> Optional[str]:
    if not value:
        return None
    return value if isinstance(value, str) else str(value)


def _parse_created_at(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unreadable legacy createdAt {value!r}, using current time")
    return datetime.utcnow()


def _row_to_metadata(row) -> TransferMetadata:
    return TransferMetadata(
        transfer_id=row["transfer_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        password_hash=row["password_hash"],
        name=row["name"],
        size_bytes=row["size_bytes"],
        file_count=row["file_count"],
        creator_email=row["creator_email"],
    )


class TransferRepository:
    @staticmethod
    def upsert(
        transfer_id: str,
        created_at: Optional[datetime] = None,
        password_hash: Optional[str] = None,
        name: Optional[str] = None,
        size_bytes: Optional[int] = None,
        file_count: Optional[int] = None,
        creator_email: Optional[str] = None,
    ) -> TransferMetadata:
        """
        Merge-write the supplied fields; fields passed as None keep their stored value.

        ``created_at`` only applies when the row does not exist yet.
        """
        if created_at is None:
            created_at = datetime.utcnow()

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO transfers (transfer_id, created_at, password_hash, name, size_bytes, file_count, creator_email)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(transfer_id) DO UPDATE SET
                    password_hash = COALESCE(excluded.password_hash, transfers.password_hash),
                    name = COALESCE(excluded.name, transfers.name),
                    size_bytes = COALESCE(excluded.size_bytes, transfers.size_bytes),
                    file_count = COALESCE(excluded.file_count, transfers.file_count),
                    creator_email = COALESCE(excluded.creator_email, transfers.creator_email)
                """,
                (transfer_id, created_at.isoformat(), password_hash, name, size_bytes, file_count, creator_email)
            )
            conn.commit()

            cursor.execute(f"SELECT {_COLUMNS} FROM transfers WHERE transfer_id = ?", (transfer_id,))
            row = cursor.fetchone()

        logger.debug(f"Transfer metadata upserted [transfer_id={transfer_id}]")
        return _row_to_metadata(row)

    @staticmethod
    def insert_if_absent(metadata: TransferMetadata) -> TransferMetadata:
        """
        Insert a complete row unless one exists; returns whichever row is stored.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO transfers (transfer_id, created_at, password_hash, name, size_bytes, file_count, creator_email)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(transfer_id) DO NOTHING
                """,
                (
                    metadata.transfer_id,
                    metadata.created_at.isoformat(),
                    metadata.password_hash,
                    metadata.name,
                    metadata.size_bytes,
                    metadata.file_count,
                    metadata.creator_email,
                )
            )
            conn.commit()

            cursor.execute(f"SELECT {_COLUMNS} FROM transfers WHERE transfer_id = ?", (metadata.transfer_id,))
            return _row_to_metadata(cursor.fetchone())

    @staticmethod
    def get_by_id(transfer_id: str) -> Optional[TransferMetadata]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM transfers WHERE transfer_id = ?", (transfer_id,))
            row = cursor.fetchone()

            if row is None:
                return None

            return _row_to_metadata(row)

    @staticmethod
    def delete(transfer_id: str) -> bool:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM transfers WHERE transfer_id = ?", (transfer_id,))
            conn.commit()
            deleted = cursor.rowcount > 0

        logger.info(f"Transfer metadata deleted [transfer_id={transfer_id}] [existed={deleted}]")
        return deleted
