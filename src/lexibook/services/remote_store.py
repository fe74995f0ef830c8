"""Server-side per-user key/value persistence."""
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from lexibook.models.models import UserData
from lexibook.monitoring import remote_rows_upserted

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class RemoteStore:
    """Rows of (user_id, data_key, data_value, updated_at), one per user and key."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        dialect = db.get_bind().dialect.name
        if dialect not in _DIALECT_INSERTS:
            raise ValueError(f"Unsupported database dialect for upserts: {dialect}")
        self._insert = _DIALECT_INSERTS[dialect]

    def _upsert_statement(self, user_id: int, key: str, value: str):
        # Conflicts on (user_id, data_key) are resolved by the database itself
        stmt = self._insert(UserData).values(
            user_id=user_id,
            data_key=key,
            data_value=value,
            updated_at=func.now(),
        )
        return stmt.on_conflict_do_update(
            index_elements=[UserData.user_id, UserData.data_key],
            set_={"data_value": stmt.excluded.data_value, "updated_at": func.now()},
        )

    def upsert(self, user_id: int, key: str, value: str) -> None:
        """Insert or replace one value."""
        self.upsert_many(user_id, {key: value})

    def upsert_many(self, user_id: int, items: Mapping[str, str]) -> int:
        """Insert or replace several values in one transaction."""
        try:
            for key, value in items.items():
                self.db.execute(self._upsert_statement(user_id, key, value))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        remote_rows_upserted.inc(len(items))
        logger.debug("Upserted %d rows for user %d", len(items), user_id)
        return len(items)

    def get_all(self, user_id: int) -> List[Dict[str, Optional[str]]]:
        """Every row of a user."""
        rows = self.db.execute(
            select(UserData.data_key, UserData.data_value, UserData.updated_at)
            .where(UserData.user_id == user_id)
        ).all()
        return [
            {"data_key": key, "data_value": value, "updated_at": _isoformat(updated_at)}
            for key, value, updated_at in rows
        ]

    def get_by_key(self, user_id: int, key: str) -> Optional[Dict[str, Optional[str]]]:
        """One row, or None."""
        row = self.db.execute(
            select(UserData.data_value, UserData.updated_at)
            .where(UserData.user_id == user_id, UserData.data_key == key)
        ).first()
        if row is None:
            return None
        return {"data_value": row.data_value, "updated_at": _isoformat(row.updated_at)}

    def delete_by_key(self, user_id: int, key: str) -> None:
        """Delete one row; a missing key is not an error."""
        self.db.execute(
            delete(UserData).where(UserData.user_id == user_id, UserData.data_key == key)
        )
        self.db.commit()

    def delete_all(self, user_id: int) -> None:
        """Delete every row of a user."""
        self.db.execute(delete(UserData).where(UserData.user_id == user_id))
        self.db.commit()


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.isoformat()
