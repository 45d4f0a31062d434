"""
SQLAlchemy-backed Document Store

Implements the DocumentStore interface on top of the `documents` table.
Concurrency control is optimistic: every read inside a transaction
records the document version, and commit re-checks those versions and
performs version-conditioned (compare-and-set) writes in a single
database transaction. A mismatch aborts the attempt and the caller's
function is run again from scratch.

Predicates are evaluated on decoded documents after selecting the
collection, so any SQLAlchemy backend works without JSON operators.
"""

import json
import random
import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .database import create_session_factory, init_db
from .document_store import (
    Document,
    DocumentNotFoundError,
    DocumentStore,
    Predicate,
    StoreError,
    Transaction,
    TransientStoreError,
    WriteBatch,
    WriteConflictError,
    matches_all,
    T,
)
from .models import DocumentRecord

logger = structlog.get_logger(__name__)

DocKey = Tuple[str, str]


def _translate(exc: SQLAlchemyError) -> StoreError:
    """Map a driver error onto the store error taxonomy"""
    if isinstance(exc, OperationalError):
        return TransientStoreError(f"Store unavailable: {exc.orig}")
    if isinstance(exc, IntegrityError):
        return WriteConflictError(f"Concurrent create: {exc.orig}")
    return StoreError(f"Store failure: {exc}")


@contextmanager
def _store_errors():
    try:
        yield
    except SQLAlchemyError as exc:
        raise _translate(exc) from exc


def _to_document(record: DocumentRecord) -> Document:
    return Document(
        collection=record.collection,
        id=record.doc_id,
        data=json.loads(record.data),
        version=record.version,
    )


def _key_clause(collection: str, doc_id: str):
    return (DocumentRecord.collection == collection, DocumentRecord.doc_id == doc_id)


class _StagedWrites:
    """Ordered writes keyed by document; later writes fold into earlier ones"""

    def __init__(self):
        self.ops: Dict[DocKey, Tuple[str, Dict[str, Any]]] = {}

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        self.ops[(collection, doc_id)] = ("set", dict(data))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        key = (collection, doc_id)
        if key in self.ops:
            kind, staged = self.ops[key]
            merged = dict(staged)
            merged.update(fields)
            self.ops[key] = (kind, merged)
        else:
            self.ops[key] = ("update", dict(fields))

    def __len__(self) -> int:
        return len(self.ops)


def _current_version(session: Session, collection: str, doc_id: str) -> Optional[int]:
    return session.execute(
        select(DocumentRecord.version).where(*_key_clause(collection, doc_id))
    ).scalar_one_or_none()


def _apply_writes(session: Session, writes: _StagedWrites, expected: Dict[DocKey, Optional[int]]):
    """
    Apply staged writes inside the session's open database transaction

    expected maps documents read by a transaction to the version seen;
    untracked documents are written against whatever version is current.
    """
    for key, (kind, payload) in writes.ops.items():
        collection, doc_id = key
        row = session.execute(
            select(DocumentRecord.version, DocumentRecord.data).where(*_key_clause(collection, doc_id))
        ).first()
        current = row.version if row is not None else None

        if key in expected and expected[key] != current:
            raise WriteConflictError(f"{collection}/{doc_id} changed during transaction")

        if kind == "update":
            if row is None:
                raise DocumentNotFoundError(collection, doc_id)
            body = json.loads(row.data)
            body.update(payload)
        else:
            body = payload
        encoded = json.dumps(body, sort_keys=True)

        if row is None:
            session.execute(
                insert(DocumentRecord).values(
                    collection=collection, doc_id=doc_id, data=encoded, version=1
                )
            )
            continue

        result = session.execute(
            update(DocumentRecord)
            .where(*_key_clause(collection, doc_id), DocumentRecord.version == current)
            .values(data=encoded, version=current + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise WriteConflictError(f"{collection}/{doc_id} changed during commit")


class _SqlTransaction(Transaction):
    """Transaction bound to one session attempt"""

    def __init__(self, session: Session):
        self._session = session
        self._read_versions: Dict[DocKey, Optional[int]] = {}
        self._writes = _StagedWrites()

    def _ensure_reads_allowed(self):
        if len(self._writes):
            raise StoreError("Transaction reads must be performed before writes")

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._ensure_reads_allowed()
        record = self._session.execute(
            select(DocumentRecord).where(*_key_clause(collection, doc_id))
        ).scalar_one_or_none()
        self._read_versions.setdefault((collection, doc_id), record.version if record else None)
        return _to_document(record) if record is not None else None

    def query(self, collection: str, predicates: Sequence[Predicate]) -> List[Document]:
        self._ensure_reads_allowed()
        records = self._session.execute(
            select(DocumentRecord)
            .where(DocumentRecord.collection == collection)
            .order_by(DocumentRecord.doc_id)
        ).scalars().all()
        found = []
        for record in records:
            document = _to_document(record)
            if matches_all(document.data, predicates):
                self._read_versions.setdefault((collection, record.doc_id), record.version)
                found.append(document)
        return found

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        self._writes.set(collection, doc_id, data)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        self._writes.update(collection, doc_id, fields)

    def commit(self):
        for key, seen in self._read_versions.items():
            if key in self._writes.ops:
                continue
            if _current_version(self._session, *key) != seen:
                raise WriteConflictError(f"{key[0]}/{key[1]} changed during transaction")
        _apply_writes(self._session, self._writes, self._read_versions)
        self._session.commit()


class _SqlWriteBatch(WriteBatch):
    def __init__(self):
        self.writes = _StagedWrites()

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        self.writes.set(collection, doc_id, data)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        self.writes.update(collection, doc_id, fields)

    @property
    def size(self) -> int:
        return len(self.writes)


class SqlDocumentStore(DocumentStore):
    """
    Document store on a SQLAlchemy engine

    Args:
        engine: SQLAlchemy engine (see create_store_engine)
        clock: Callable returning epoch seconds (default time.time)
        max_transaction_attempts: Default bound for run_transaction retries
        backoff_seconds: Base delay between transaction attempts
        id_factory: Callable returning new document ids
    """

    def __init__(
        self,
        engine: Engine,
        clock: Optional[Callable[[], float]] = None,
        max_transaction_attempts: int = 5,
        backoff_seconds: float = 0.01,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.engine = engine
        self._session_factory = create_session_factory(engine)
        self._clock = clock or time.time
        self.max_transaction_attempts = max(1, int(max_transaction_attempts))
        self.backoff_seconds = backoff_seconds
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex[:20])

    def init_schema(self):
        init_db(self.engine)

    # ----------------------------------------
    # Reads
    # ----------------------------------------

    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        with _store_errors(), self._session_factory() as session:
            record = session.execute(
                select(DocumentRecord).where(*_key_clause(collection, doc_id))
            ).scalar_one_or_none()
            return _to_document(record) if record is not None else None

    def query_documents(self, collection: str, predicates: Sequence[Predicate] = ()) -> List[Document]:
        with _store_errors(), self._session_factory() as session:
            records = session.execute(
                select(DocumentRecord)
                .where(DocumentRecord.collection == collection)
                .order_by(DocumentRecord.doc_id)
            ).scalars().all()
            documents = [_to_document(r) for r in records]
        return [d for d in documents if matches_all(d.data, predicates)]

    # ----------------------------------------
    # Transactions and batches
    # ----------------------------------------

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: Optional[int] = None) -> T:
        attempts = max_attempts or self.max_transaction_attempts
        last_error: Optional[StoreError] = None

        for attempt in range(1, attempts + 1):
            session = self._session_factory()
            try:
                tx = _SqlTransaction(session)
                result = fn(tx)
                tx.commit()
                return result
            except (WriteConflictError, TransientStoreError) as exc:
                session.rollback()
                last_error = exc
            except SQLAlchemyError as exc:
                session.rollback()
                error = _translate(exc)
                if not isinstance(error, (WriteConflictError, TransientStoreError)):
                    raise error from exc
                last_error = error
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

            logger.info(
                "transaction_retry",
                attempt=attempt,
                max_attempts=attempts,
                reason=last_error.detail,
            )
            if attempt < attempts:
                self._backoff(attempt)

        if isinstance(last_error, TransientStoreError):
            raise TransientStoreError(f"Transaction failed after {attempts} attempts: {last_error.detail}")
        raise WriteConflictError(f"Transaction aborted after {attempts} attempts: {last_error.detail}")

    def run_batch(self, fn: Callable[[WriteBatch], Any]) -> int:
        batch = _SqlWriteBatch()
        fn(batch)
        if batch.size == 0:
            return 0

        for attempt in range(1, self.max_transaction_attempts + 1):
            session = self._session_factory()
            try:
                _apply_writes(session, batch.writes, {})
                session.commit()
                return batch.size
            except SQLAlchemyError as exc:
                session.rollback()
                error = _translate(exc)
                if not isinstance(error, TransientStoreError) or attempt == self.max_transaction_attempts:
                    raise error from exc
                logger.info("batch_retry", attempt=attempt, reason=error.detail)
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()
            self._backoff(attempt)
        return 0

    def _backoff(self, attempt: int):
        if self.backoff_seconds > 0:
            time.sleep(self.backoff_seconds * (2 ** (attempt - 1)) * random.uniform(0.5, 1.0))

    # ----------------------------------------
    # Ids and time
    # ----------------------------------------

    def new_document_id(self, collection: str) -> str:
        return self._id_factory()

    def now(self) -> float:
        return float(self._clock())
