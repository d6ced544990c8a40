from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from songcraft.db.models import StoreEntry


class KeyValueRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str) -> str | None:
        entry = self.session.scalars(select(StoreEntry).where(StoreEntry.key == key)).first()
        return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        entry = self.session.get(StoreEntry, key)
        if entry is None:
            self.session.add(StoreEntry(key=key, value=value))
        else:
            entry.value = value
        self.session.commit()

    def delete(self, key: str) -> None:
        self.session.execute(delete(StoreEntry).where(StoreEntry.key == key))
        self.session.commit()
