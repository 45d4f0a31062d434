"""
Document Store Adapter Interface

The sanction engine talks to persistence only through this interface:
per-document reads, flat predicate queries, optimistic transactions
(reads + staged writes, committed atomically, re-run on conflict) and
write-only batches committed all-or-nothing.

Collections are plain names ("vehicles", "violations", "sanctions");
document bodies are JSON-compatible dicts with timestamps stored as
epoch seconds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

T = TypeVar("T")

VEHICLES = "vehicles"
VIOLATIONS = "violations"
SANCTIONS = "sanctions"


# ============================================
# Store Errors
# ============================================

class StoreError(Exception):
    """Underlying store failure"""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.detail = message


class TransientStoreError(StoreError):
    """Busy/locked/timed-out store call; safe to retry"""


class WriteConflictError(StoreError):
    """A document read by a transaction changed before it committed"""


class DocumentNotFoundError(StoreError):
    """Update targeted a document that does not exist"""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document not found: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


# ============================================
# Documents and Predicates
# ============================================

@dataclass
class Document:
    """Snapshot of one stored document"""
    collection: str
    id: str
    data: Dict[str, Any] = field(default_factory=dict)
    version: int = 1

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
}

RANGE_OPERATORS = ("<", "<=", ">", ">=")


@dataclass(frozen=True)
class Predicate:
    """
    Filter on one top-level field

    Range comparisons never match a missing or null field.
    """
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def matches(self, data: Dict[str, Any]) -> bool:
        actual = data.get(self.field)
        if self.op in RANGE_OPERATORS:
            if actual is None or self.value is None:
                return False
            try:
                return _OPERATORS[self.op](actual, self.value)
            except TypeError:
                return False
        return _OPERATORS[self.op](actual, self.value)


def where(field_name: str, op: str, value: Any) -> Predicate:
    """Shorthand constructor: where("status", "==", "active")"""
    return Predicate(field_name, op, value)


def matches_all(data: Dict[str, Any], predicates: Sequence[Predicate]) -> bool:
    return all(p.matches(data) for p in predicates)


# ============================================
# Adapter Interface
# ============================================

class Transaction(ABC):
    """
    Unit of read-decide-write work

    All reads must happen before the first staged write. Staged writes
    become visible only when the enclosing run_transaction() returns.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Read one document (None if absent) and track its version"""

    @abstractmethod
    def query(self, collection: str, predicates: Sequence[Predicate]) -> List[Document]:
        """Read all matching documents and track their versions"""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        """Stage a create-or-replace"""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        """Stage a merge of top-level fields into an existing document"""


class WriteBatch(ABC):
    """Write-only group of changes committed all-or-nothing"""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        """Stage a create-or-replace"""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        """Stage a merge of top-level fields into an existing document"""

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of staged writes"""


class DocumentStore(ABC):
    """Abstract document store used by every sanction component"""

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        """Strongly consistent single-document read"""

    @abstractmethod
    def query_documents(self, collection: str, predicates: Sequence[Predicate] = ()) -> List[Document]:
        """Documents of collection matching every predicate"""

    @abstractmethod
    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: Optional[int] = None) -> T:
        """
        Run fn inside a transaction and commit its staged writes

        On a write conflict the whole of fn is re-run, up to max_attempts
        times; WriteConflictError is raised when attempts run out.
        Exceptions raised by fn abort the transaction with no writes.
        """

    @abstractmethod
    def run_batch(self, fn: Callable[[WriteBatch], Any]) -> int:
        """Stage writes through fn and commit them atomically; returns write count"""

    @abstractmethod
    def new_document_id(self, collection: str) -> str:
        """Fresh unique id for a document of collection"""

    @abstractmethod
    def now(self) -> float:
        """Physical wall-clock time (epoch seconds)"""

    def server_timestamp(self) -> float:
        """Store-assigned commit timestamp (epoch seconds)"""
        return self.now()

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]):
        """Single-document create-or-replace"""
        self.run_batch(lambda batch: batch.set(collection, doc_id, data))

    def update_document(self, collection: str, doc_id: str, fields: Dict[str, Any]):
        """Single-document field merge"""
        self.run_batch(lambda batch: batch.update(collection, doc_id, fields))

    def ping(self) -> bool:
        """True when the store answers a trivial read"""
        try:
            self.get_document(VEHICLES, "__ping__")
        except StoreError:
            return False
        return True
