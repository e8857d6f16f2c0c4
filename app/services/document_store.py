"""
Document store: named collections of loosely-typed records

Semantics shared by every backend:
- add_record assigns a fresh unique id and never overwrites
- put_record is an upsert that MERGES fields into an existing record
- query_by_equality filters on one field; result order is unspecified
- returned records are copies, so callers cannot mutate storage
"""
import copy
import logging
import secrets
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.models.document import Document

logger = logging.getLogger(__name__)

# Stamped by the store, never taken from caller fields
RESERVED_FIELDS = ("id", "created_at", "updated_at")

MAX_ID_ATTEMPTS = 5


class StoreError(Exception):
    """Raised when the storage backend fails"""


def generate_record_id(collection: str) -> str:
    """Time component plus random component: <collection>_<millis>_<hex>"""
    return f"{collection}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _strip_reserved(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in RESERVED_FIELDS}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops the offset on read; stored times are always UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _match_kind(value: Any) -> Any:
    # JSON has a single number type; booleans stay distinct from numbers
    if isinstance(value, bool):
        return bool
    if isinstance(value, (int, float)):
        return "number"
    return type(value)


def _matches(record: Dict[str, Any], field: str, value: Any) -> bool:
    """Strict equality: missing fields never match, True is not 1, 1 is 1.0"""
    if field not in record:
        return False
    candidate = record[field]
    return _match_kind(candidate) == _match_kind(value) and candidate == value


class DocumentStore(ABC):
    """Interface every storage backend implements"""

    @abstractmethod
    async def add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def get_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def put_record(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def query_by_equality(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_all(self, collection: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def delete_record(self, collection: str, record_id: str) -> bool:
        ...


class MemoryDocumentStore(DocumentStore):
    """Process-local store; records vanish with the process"""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        records = self._collection(collection)

        record_id = generate_record_id(collection)
        while record_id in records:
            record_id = generate_record_id(collection)

        records[record_id] = {
            **copy.deepcopy(_strip_reserved(fields)),
            "id": record_id,
            "created_at": _utcnow(),
            "updated_at": None,
        }
        return record_id

    async def get_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._collection(collection).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put_record(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        records = self._collection(collection)
        now = _utcnow()
        incoming = copy.deepcopy(_strip_reserved(fields))

        if record_id in records:
            records[record_id].update(incoming)
            records[record_id]["updated_at"] = now
        else:
            records[record_id] = {**incoming, "id": record_id, "created_at": now, "updated_at": now}

    async def query_by_equality(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._collection(collection).values()
            if _matches(record, field, value)
        ]

    async def list_all(self, collection: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(record) for record in self._collection(collection).values()]

    async def delete_record(self, collection: str, record_id: str) -> bool:
        return self._collection(collection).pop(record_id, None) is not None


class SQLDocumentStore(DocumentStore):
    """
    Store backed by the SQLAlchemy `documents` table

    Each operation opens its own session from the factory and commits
    before returning. Sessions are synchronous, so the work runs in the
    threadpool rather than on the event loop.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _to_record(doc: Document) -> Dict[str, Any]:
        return {
            **copy.deepcopy(doc.data or {}),
            "id": doc.id,
            "created_at": _as_utc(doc.created_at),
            "updated_at": _as_utc(doc.updated_at),
        }

    def _add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        payload = _strip_reserved(fields)

        for _ in range(MAX_ID_ATTEMPTS):
            record_id = generate_record_id(collection)
            try:
                with self.session_factory() as db:
                    if db.get(Document, (collection, record_id)) is not None:
                        continue
                    db.add(Document(
                        collection=collection,
                        id=record_id,
                        data=payload,
                        created_at=_utcnow(),
                    ))
                    db.commit()
                    return record_id
            except IntegrityError:
                # Lost a race for the same id; draw another
                logger.warning(f"Id collision in {collection}: {record_id}")
                continue
            except SQLAlchemyError as e:
                logger.error(f"Failed to add record to {collection}: {str(e)}")
                raise StoreError(f"add_record failed for {collection}") from e

        raise StoreError(f"Could not allocate a unique id in {collection}")

    def _get_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self.session_factory() as db:
                doc = db.get(Document, (collection, record_id))
                return self._to_record(doc) if doc is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {collection}/{record_id}: {str(e)}")
            raise StoreError(f"get_record failed for {collection}") from e

    def _put_record(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        incoming = _strip_reserved(fields)
        now = _utcnow()

        try:
            with self.session_factory() as db:
                doc = db.get(Document, (collection, record_id))
                if doc is not None:
                    # Reassign so the JSON column is flagged dirty
                    doc.data = {**(doc.data or {}), **incoming}
                    doc.updated_at = now
                else:
                    db.add(Document(
                        collection=collection,
                        id=record_id,
                        data=incoming,
                        created_at=now,
                        updated_at=now,
                    ))
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to put {collection}/{record_id}: {str(e)}")
            raise StoreError(f"put_record failed for {collection}") from e

    def _list_all(self, collection: str) -> List[Dict[str, Any]]:
        try:
            with self.session_factory() as db:
                docs = db.query(Document).filter(Document.collection == collection).all()
                return [self._to_record(doc) for doc in docs]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list {collection}: {str(e)}")
            raise StoreError(f"list_all failed for {collection}") from e

    def _delete_record(self, collection: str, record_id: str) -> bool:
        try:
            with self.session_factory() as db:
                doc = db.get(Document, (collection, record_id))
                if doc is None:
                    return False
                db.delete(doc)
                db.commit()
                return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete {collection}/{record_id}: {str(e)}")
            raise StoreError(f"delete_record failed for {collection}") from e

    async def add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        return await run_in_threadpool(self._add_record, collection, fields)

    async def get_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return await run_in_threadpool(self._get_record, collection, record_id)

    async def put_record(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        await run_in_threadpool(self._put_record, collection, record_id, fields)

    async def query_by_equality(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        # JSON path filtering differs per dialect, so filter the payloads here
        return [
            record for record in await self.list_all(collection)
            if _matches(record, field, value)
        ]

    async def list_all(self, collection: str) -> List[Dict[str, Any]]:
        return await run_in_threadpool(self._list_all, collection)

    async def delete_record(self, collection: str, record_id: str) -> bool:
        return await run_in_threadpool(self._delete_record, collection, record_id)
