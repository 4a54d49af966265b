"""
Document store abstraction consumed by the invoice service.

Documents are flat JSON objects; the store adds ``$id``, ``$createdAt`` and
``$updatedAt``. Two implementations ship here: a SQLAlchemy one persisting
into the ``documents`` table and an in-memory one used for local runs and
tests.
"""

import copy
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .identifiers import generate_document_id
from .logging_config import get_logger

logger = get_logger("store")

Document = Dict[str, Any]

# Fields whose values must be unique within a collection
DEFAULT_UNIQUE_KEYS: Dict[str, Tuple[str, ...]] = {
    "invoices": ("invoiceNumber", "bookingId"),
}

# Fields compared and ordered as numbers by the SQL store
DEFAULT_NUMERIC_FIELDS: Dict[str, Tuple[str, ...]] = {
    "invoices": (
        "subtotal", "taxRate", "taxAmount", "discountAmount", "totalAmount",
        "paidAmount", "balancedue", "numberOfTravelers", "reminderCount",
    ),
    "bookings": ("numberOfTravelers", "totalAmount"),
    "packages": ("price",),
}

# Store metadata lives in columns rather than in the JSON payload
METADATA_COLUMNS = {"$id": "id", "$createdAt": "created_at", "$updatedAt": "updated_at"}


class DocumentStoreError(Exception):
    """Underlying store failure."""


class DocumentNotFound(DocumentStoreError):
    pass


class DocumentConflict(DocumentStoreError):
    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.field_name = field_name


class InvalidDocumentStructure(DocumentStoreError):
    pass


@dataclass(frozen=True)
class Filter:
    """Predicate on one document field. ``op`` is eq, in, gte, lte or search."""

    field: str
    value: Any
    op: str = "eq"

    def matches(self, document: Mapping[str, Any]) -> bool:
        actual = document.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        try:
            if self.op == "gte":
                return actual >= self.value
            if self.op == "lte":
                return actual <= self.value
        except TypeError:
            return False
        if self.op == "search":
            return str(self.value).lower() in str(actual).lower()
        raise ValueError(f"Unsupported filter operation: {self.op}")


@dataclass
class DocumentPage:
    documents: List[Document] = field(default_factory=list)
    total: int = 0


def check_fields(fields: Mapping[str, Any]) -> None:
    for key in fields:
        if not isinstance(key, str) or not key or key.startswith("$"):
            raise InvalidDocumentStructure(f"Invalid document structure: bad attribute name {key!r}")
    try:
        json.dumps(fields)
    except (TypeError, ValueError) as exc:
        raise InvalidDocumentStructure(f"Invalid document structure: {exc}") from exc


def select_documents(
    documents: Sequence[Document],
    filters: Optional[Sequence[Filter]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> DocumentPage:
    """Filter, order and paginate documents in process."""
    matched = [doc for doc in documents if all(f.matches(doc) for f in filters or ())]

    if order_by:
        present = [doc for doc in matched if doc.get(order_by) is not None]
        missing = [doc for doc in matched if doc.get(order_by) is None]
        present.sort(key=lambda doc: doc[order_by], reverse=descending)
        matched = present + missing

    total = len(matched)
    end = None if limit is None else offset + limit
    return DocumentPage(documents=matched[offset:end], total=total)


def _unique_values(
    unique_keys: Mapping[str, Tuple[str, ...]], collection: str, fields: Mapping[str, Any]
) -> List[Tuple[str, str]]:
    values = []
    for field_name in unique_keys.get(collection, ()):
        value = fields.get(field_name)
        if value is not None and value != "":
            values.append((field_name, str(value)))
    return values


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


class DocumentStore(ABC):
    """Async document store contract: get, list, create, update."""

    def __init__(self, unique_keys: Optional[Mapping[str, Tuple[str, ...]]] = None):
        self.unique_keys = dict(DEFAULT_UNIQUE_KEYS if unique_keys is None else unique_keys)

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> Document:
        """Return the document or raise DocumentNotFound."""

    @abstractmethod
    async def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> DocumentPage:
        """Return matching documents and the total match count."""

    @abstractmethod
    async def create(self, collection: str, document_id: Optional[str], fields: Mapping[str, Any]) -> Document:
        """Insert a document; a None id lets the store assign one."""

    @abstractmethod
    async def update(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> Document:
        """Merge ``fields`` into an existing document."""


class InMemoryDocumentStore(DocumentStore):
    """Process-local store. Check and insert run without awaiting, so unique
    keys hold across concurrent requests on one event loop."""

    def __init__(self, unique_keys: Optional[Mapping[str, Tuple[str, ...]]] = None):
        super().__init__(unique_keys)
        self._collections: Dict[str, Dict[str, Document]] = {}

    def seed(self, collection: str, documents: Sequence[Document]) -> None:
        now = _isoformat(_utcnow())
        bucket = self._collections.setdefault(collection, {})
        for document in documents:
            stored = copy.deepcopy(dict(document))
            stored.setdefault("$id", generate_document_id())
            stored.setdefault("$createdAt", now)
            stored.setdefault("$updatedAt", now)
            bucket[stored["$id"]] = stored

    def _ensure_unique(self, collection: str, fields: Mapping[str, Any], exclude_id: Optional[str]) -> None:
        for field_name, value in _unique_values(self.unique_keys, collection, fields):
            for doc_id, document in self._collections.get(collection, {}).items():
                if doc_id != exclude_id and document.get(field_name) is not None and str(document[field_name]) == value:
                    raise DocumentConflict(f"Unique constraint violated on {field_name}", field_name=field_name)

    async def get(self, collection: str, document_id: str) -> Document:
        document = self._collections.get(collection, {}).get(document_id)
        if document is None:
            raise DocumentNotFound(f"Document with the requested ID could not be found: {collection}/{document_id}")
        return copy.deepcopy(document)

    async def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> DocumentPage:
        documents = list(self._collections.get(collection, {}).values())
        page = select_documents(documents, filters, order_by, descending, limit, offset)
        page.documents = copy.deepcopy(page.documents)
        return page

    async def create(self, collection: str, document_id: Optional[str], fields: Mapping[str, Any]) -> Document:
        check_fields(fields)
        bucket = self._collections.setdefault(collection, {})
        document_id = document_id or generate_document_id()
        if document_id in bucket:
            raise DocumentConflict(f"Document with the requested ID already exists: {document_id}", field_name="$id")
        self._ensure_unique(collection, fields, exclude_id=None)

        now = _isoformat(_utcnow())
        document = copy.deepcopy(dict(fields))
        document.update({"$id": document_id, "$createdAt": now, "$updatedAt": now})
        bucket[document_id] = document
        return copy.deepcopy(document)

    async def update(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> Document:
        existing = await self.get(collection, document_id)
        check_fields(fields)
        merged = {**existing, **copy.deepcopy(dict(fields))}
        self._ensure_unique(collection, merged, exclude_id=document_id)
        merged["$updatedAt"] = _isoformat(_utcnow())
        self._collections[collection][document_id] = merged
        return copy.deepcopy(merged)


class SQLDocumentStore(DocumentStore):
    """Documents persisted as JSON rows; unique keys backed by a DB constraint."""

    def __init__(
        self,
        db: AsyncSession,
        unique_keys: Optional[Mapping[str, Tuple[str, ...]]] = None,
        numeric_fields: Optional[Mapping[str, Tuple[str, ...]]] = None,
    ):
        super().__init__(unique_keys)
        self.db = db
        self.numeric_fields = dict(DEFAULT_NUMERIC_FIELDS if numeric_fields is None else numeric_fields)

    def _field_expression(self, collection: str, field_name: str, sample: Any = None):
        """Column or typed JSON element for ``field_name``; the type follows ``sample``."""
        column = METADATA_COLUMNS.get(field_name)
        if column is not None:
            return getattr(models.Document, column)

        element = models.Document.data[field_name]
        if isinstance(sample, bool):
            return element.as_boolean()
        if isinstance(sample, (int, float)):
            return element.as_float()
        if sample is None and field_name in self.numeric_fields.get(collection, ()):
            return element.as_float()
        return element.as_string()

    @staticmethod
    def _bind_value(field_name: str, value: Any) -> Any:
        if field_name in ("$createdAt", "$updatedAt") and isinstance(value, str):
            return datetime.fromisoformat(value)
        return value

    def _condition(self, collection: str, predicate: Filter):
        """SQL counterpart of ``Filter.matches``."""
        field_name, value = predicate.field, predicate.value

        if (
            predicate.op == "eq"
            and value not in (None, "")
            and field_name in self.unique_keys.get(collection, ())
        ):
            return models.Document.id.in_(
                select(models.DocumentUniqueKey.document_id).where(
                    and_(
                        models.DocumentUniqueKey.collection == collection,
                        models.DocumentUniqueKey.field == field_name,
                        models.DocumentUniqueKey.value == str(value),
                    )
                )
            )

        if predicate.op == "in":
            values = [self._bind_value(field_name, item) for item in value if item is not None]
            sample = values[0] if values else None
            return self._field_expression(collection, field_name, sample).in_(values)

        expression = self._field_expression(collection, field_name, value)
        if predicate.op == "eq":
            if value is None:
                return expression.is_(None)
            return expression == self._bind_value(field_name, value)
        if predicate.op == "gte":
            return expression >= self._bind_value(field_name, value)
        if predicate.op == "lte":
            return expression <= self._bind_value(field_name, value)
        if predicate.op == "search":
            return models.Document.data[field_name].as_string().icontains(str(value), autoescape=True)
        raise ValueError(f"Unsupported filter operation: {predicate.op}")

    def _ordering(self, collection: str, order_by: Optional[str], descending: bool) -> list:
        insertion_order = [models.Document.created_at, models.Document.id]
        if not order_by:
            return insertion_order

        expression = self._field_expression(collection, order_by)
        # Documents without the field go last in either direction
        missing_last = case((expression.is_(None), 1), else_=0)
        direction = expression.desc() if descending else expression.asc()
        return [missing_last, direction, *insertion_order]

    @staticmethod
    def _to_document(row: models.Document) -> Document:
        document = dict(row.data or {})
        document["$id"] = row.id
        document["$createdAt"] = _isoformat(row.created_at)
        document["$updatedAt"] = _isoformat(row.updated_at)
        return document

    async def _get_row(self, collection: str, document_id: str) -> models.Document:
        try:
            result = await self.db.execute(
                select(models.Document).where(
                    and_(models.Document.collection == collection, models.Document.id == document_id)
                )
            )
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Failed to read {collection}/{document_id}") from exc
        row = result.scalar_one_or_none()
        if row is None:
            raise DocumentNotFound(f"Document with the requested ID could not be found: {collection}/{document_id}")
        return row

    async def _ensure_unique(self, collection: str, fields: Mapping[str, Any], exclude_id: Optional[str]) -> None:
        for field_name, value in _unique_values(self.unique_keys, collection, fields):
            query = select(models.DocumentUniqueKey.document_id).where(
                and_(
                    models.DocumentUniqueKey.collection == collection,
                    models.DocumentUniqueKey.field == field_name,
                    models.DocumentUniqueKey.value == value,
                )
            )
            if exclude_id is not None:
                query = query.where(models.DocumentUniqueKey.document_id != exclude_id)
            result = await self.db.execute(query)
            if result.first() is not None:
                raise DocumentConflict(f"Unique constraint violated on {field_name}", field_name=field_name)

    def _add_unique_keys(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        for field_name, value in _unique_values(self.unique_keys, collection, fields):
            self.db.add(
                models.DocumentUniqueKey(
                    collection=collection,
                    field=field_name,
                    value=value,
                    document_id=document_id,
                )
            )

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            # Lost a race against a concurrent writer holding the same key
            raise DocumentConflict(f"Unique constraint violated while trying to {action}") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Store failure while trying to {action}: {exc}")
            raise DocumentStoreError(f"Failed to {action}") from exc

    async def get(self, collection: str, document_id: str) -> Document:
        row = await self._get_row(collection, document_id)
        return self._to_document(row)

    async def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> DocumentPage:
        conditions = [models.Document.collection == collection]
        conditions.extend(self._condition(collection, predicate) for predicate in filters or ())

        query = (
            select(models.Document)
            .where(*conditions)
            .order_by(*self._ordering(collection, order_by, descending))
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)

        try:
            total = await self.db.scalar(
                select(func.count()).select_from(models.Document).where(*conditions)
            )
            result = await self.db.execute(query)
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Failed to list {collection}") from exc
        documents = [self._to_document(row) for row in result.scalars().all()]
        return DocumentPage(documents=documents, total=total or 0)

    async def create(self, collection: str, document_id: Optional[str], fields: Mapping[str, Any]) -> Document:
        check_fields(fields)
        document_id = document_id or generate_document_id()

        existing = await self.db.execute(
            select(models.Document.id).where(
                and_(models.Document.collection == collection, models.Document.id == document_id)
            )
        )
        if existing.first() is not None:
            raise DocumentConflict(f"Document with the requested ID already exists: {document_id}", field_name="$id")
        await self._ensure_unique(collection, fields, exclude_id=None)

        now = _utcnow()
        row = models.Document(
            collection=collection,
            id=document_id,
            data=dict(fields),
            created_at=now,
            updated_at=now,
        )
        document = self._to_document(row)
        self.db.add(row)
        self._add_unique_keys(collection, document_id, fields)
        await self._commit(f"create {collection} document")
        return document

    async def update(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> Document:
        row = await self._get_row(collection, document_id)
        check_fields(fields)
        merged = {**(row.data or {}), **dict(fields)}
        await self._ensure_unique(collection, merged, exclude_id=document_id)

        row.data = merged
        row.updated_at = _utcnow()
        document = self._to_document(row)
        await self.db.execute(
            delete(models.DocumentUniqueKey).where(
                and_(
                    models.DocumentUniqueKey.collection == collection,
                    models.DocumentUniqueKey.document_id == document_id,
                )
            )
        )
        self._add_unique_keys(collection, document_id, merged)
        await self._commit(f"update {collection} document")
        return document
