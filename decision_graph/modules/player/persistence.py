from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from decision_graph.db.models import SaveRecord
from decision_graph.utils.time import utc_now_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PersistResult:
    ok: bool
    error: str | None = None
    payload: dict | None = None

    @classmethod
    def success(cls, payload: dict | None = None) -> PersistResult:
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, error: str) -> PersistResult:
        return cls(ok=False, error=error)


class SaveStore(Protocol):
    def load(self, key: str) -> PersistResult:
        ...

    def save(self, key: str, payload: dict[str, Any]) -> PersistResult:
        ...

    def delete(self, key: str) -> PersistResult:
        ...


def slot_key(base_key: str, slot: str | None = None) -> str:
    slot_text = str(slot or "").strip()
    if not slot_text:
        return base_key
    return f"{base_key}:{slot_text}"


class NullSaveStore:
    """Accepts every write and never remembers anything."""

    def load(self, key: str) -> PersistResult:
        return PersistResult.success()

    def save(self, key: str, payload: dict[str, Any]) -> PersistResult:
        return PersistResult.success()

    def delete(self, key: str) -> PersistResult:
        return PersistResult.success()


class InMemorySaveStore:
    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def load(self, key: str) -> PersistResult:
        payload = self._records.get(key)
        return PersistResult.success(copy.deepcopy(payload) if payload is not None else None)

    def save(self, key: str, payload: dict[str, Any]) -> PersistResult:
        self._records[key] = copy.deepcopy(payload)
        return PersistResult.success()

    def delete(self, key: str) -> PersistResult:
        self._records.pop(key, None)
        return PersistResult.success()

    def keys(self) -> list[str]:
        return sorted(self._records)


class SqlSaveStore:
    """Key-value save records in the ``save_records`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def load(self, key: str) -> PersistResult:
        try:
            with self._session_factory() as db:
                row = db.get(SaveRecord, key)
                payload = dict(row.payload or {}) if row is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Failed to load save record %s: %s", key, exc)
            return PersistResult.failure(str(exc))
        return PersistResult.success(payload)

    def save(self, key: str, payload: dict[str, Any]) -> PersistResult:
        try:
            with self._session_factory() as db:
                with db.begin():
                    row = db.get(SaveRecord, key)
                    if row is None:
                        db.add(SaveRecord(key=key, payload=payload))
                    else:
                        row.payload = payload
                        row.updated_at = utc_now_naive()
        except SQLAlchemyError as exc:
            logger.warning("Failed to save record %s: %s", key, exc)
            return PersistResult.failure(str(exc))
        return PersistResult.success()

    def delete(self, key: str) -> PersistResult:
        try:
            with self._session_factory() as db:
                with db.begin():
                    row = db.get(SaveRecord, key)
                    if row is not None:
                        db.delete(row)
        except SQLAlchemyError as exc:
            logger.warning("Failed to delete save record %s: %s", key, exc)
            return PersistResult.failure(str(exc))
        return PersistResult.success()
