import copy
import inspect
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional

from sqlalchemy import JSON, BigInteger, Column, DateTime, Index, Integer, String, delete, func, select, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from mini_server.database.base_database import BaseDocumentStore, Mutator, Payload
from mini_server.database.locks import KeyedLocks, ResetGate
from mini_server.exceptions import NotFoundError, StorageError
from mini_server.models.documents import ChangeAction, ChangeEvent, Document, QueryResult

logger = logging.getLogger(__name__)
Base = declarative_base()

ChangeListener = Callable[[ChangeEvent], Any]


class DocumentModel(Base):
    """SQLAlchemy model for stored documents."""

    __tablename__ = "documents"

    # Insertion sequence; SQLite only autoincrements INTEGER primary keys
    seq = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    collection = Column(String, nullable=False)
    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_documents_collection", "collection"),
        Index("idx_documents_collection_seq", "collection", "seq"),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SQLDocumentStore(BaseDocumentStore):
    """Document store backed by a single SQL table (SQLite or PostgreSQL)."""

    def __init__(
        self,
        uri: str,
        listeners: Optional[Iterable[ChangeListener]] = None,
        list_limit_default: int = 100,
        list_limit_max: int = 1000,
        pool_size: int = 20,
        max_overflow: int = 30,
        pool_recycle: int = 3600,
        pool_timeout: int = 10,
        pool_pre_ping: bool = True,
        echo: bool = False,
    ):
        self.uri = uri
        self.list_limit_default = list_limit_default
        self.list_limit_max = list_limit_max
        self._listeners: List[ChangeListener] = list(listeners or [])
        self._document_locks = KeyedLocks()
        self._caller_locks = KeyedLocks()
        self._gate = ResetGate()

        if uri.startswith("sqlite"):
            logger.info(f"Opening SQLite document store at {uri}")
            self.engine = create_async_engine(uri, echo=echo, connect_args={"timeout": 30})
        else:
            logger.info(
                f"Initializing SQL connection pool with size={pool_size}, "
                f"max_overflow={max_overflow}, pool_recycle={pool_recycle}s"
            )
            self.engine = create_async_engine(
                uri,
                pool_pre_ping=pool_pre_ping,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=pool_recycle,
                pool_timeout=pool_timeout,
                echo=echo,
            )
        self.async_session = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the documents table and its indexes."""
        if self._initialized:
            return

        try:
            logger.info("Initializing document store tables and indexes...")
            async with self.engine.begin() as conn:
                await conn.run_sync(lambda conn: Base.metadata.create_all(conn, checkfirst=True))
            self._initialized = True
            logger.info("Document store initialized")
        except SQLAlchemyError as e:
            logger.error(f"Error creating document store tables: {str(e)}")
            raise StorageError("Failed to initialize document store", {"reason": str(e)}) from e

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Document store connections closed")

    async def ping(self) -> bool:
        try:
            async with self.async_session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except SQLAlchemyError as e:
            logger.error(f"Document store ping failed: {str(e)}")
            raise StorageError("Document store is unreachable", {"reason": str(e)}) from e

    # ------------------------------------------------------------------
    # Change listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify(self, action: ChangeAction, collection: Optional[str] = None, document_id: Optional[str] = None):
        event = ChangeEvent(action=action, collection=collection, document_id=document_id)
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Change listener {listener!r} failed on {action.value} event: {str(e)}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_document(model: DocumentModel) -> Document:
        return Document(
            id=model.id,
            collection=model.collection,
            data=copy.deepcopy(model.data or {}),
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )

    @staticmethod
    def _refreshed_at(created_at: datetime) -> datetime:
        now = datetime.now(UTC)
        created_at = _as_utc(created_at)
        return now if now >= created_at else created_at

    def _storage_error(self, operation: str, error: SQLAlchemyError, **details: Any) -> StorageError:
        logger.error(f"Storage failure during {operation}: {str(error)}")
        return StorageError(f"Storage failure during {operation}", {"reason": str(error), **details})

    def page_bounds(self, limit: Optional[int], offset: int) -> tuple[int, int]:
        if limit is None:
            limit = self.list_limit_default
        return max(0, min(limit, self.list_limit_max)), max(0, offset)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(self, collection: str, data: Payload) -> Document:
        now = datetime.now(UTC)
        model = DocumentModel(
            id=str(uuid.uuid4()),
            collection=collection,
            data=copy.deepcopy(data),
            created_at=now,
            updated_at=now,
        )
        async with self._gate.shared():
            try:
                async with self.async_session() as session:
                    session.add(model)
                    await session.commit()
            except SQLAlchemyError as e:
                raise self._storage_error("create", e, collection=collection) from e

        logger.info(f"Created document {model.id} in collection {collection}")
        await self._notify(ChangeAction.created, collection, model.id)
        return self._to_document(model)

    async def get(self, collection: str, document_id: str) -> Document:
        async with self._gate.shared():
            try:
                async with self.async_session() as session:
                    result = await session.execute(
                        select(DocumentModel).where(
                            DocumentModel.collection == collection, DocumentModel.id == document_id
                        )
                    )
                    model = result.scalar_one_or_none()
            except SQLAlchemyError as e:
                raise self._storage_error("get", e, collection=collection, id=document_id) from e

        if model is None:
            raise NotFoundError("Document", f"{collection}/{document_id}")
        return self._to_document(model)

    async def update(self, collection: str, document_id: str, data: Payload) -> Document:
        replacement = copy.deepcopy(data)
        return await self.mutate(collection, document_id, lambda _: replacement)

    async def mutate(self, collection: str, document_id: str, fn: Mutator) -> Document:
        async with self._gate.shared(), self._document_locks.hold((collection, document_id)):
            try:
                async with self.async_session() as session:
                    async with session.begin():
                        result = await session.execute(
                            select(DocumentModel)
                            .where(DocumentModel.collection == collection, DocumentModel.id == document_id)
                            .with_for_update()
                        )
                        model = result.scalar_one_or_none()
                        if model is None:
                            raise NotFoundError("Document", f"{collection}/{document_id}")

                        # fn gets a private copy; raising aborts the transaction
                        model.data = fn(copy.deepcopy(model.data or {}))
                        model.updated_at = self._refreshed_at(model.created_at)
            except SQLAlchemyError as e:
                raise self._storage_error("update", e, collection=collection, id=document_id) from e

        logger.debug(f"Updated document {document_id} in collection {collection}")
        await self._notify(ChangeAction.updated, collection, document_id)
        return self._to_document(model)

    async def delete(self, collection: str, document_id: str) -> bool:
        async with self._gate.shared(), self._document_locks.hold((collection, document_id)):
            try:
                async with self.async_session() as session:
                    async with session.begin():
                        result = await session.execute(
                            delete(DocumentModel).where(
                                DocumentModel.collection == collection, DocumentModel.id == document_id
                            )
                        )
                        deleted = result.rowcount > 0
            except SQLAlchemyError as e:
                raise self._storage_error("delete", e, collection=collection, id=document_id) from e

        if deleted:
            logger.info(f"Deleted document {document_id} from collection {collection}")
            await self._notify(ChangeAction.deleted, collection, document_id)
        return deleted

    async def list(self, collection: str, limit: Optional[int] = None, offset: int = 0) -> QueryResult:
        limit, offset = self.page_bounds(limit, offset)
        async with self._gate.shared():
            try:
                async with self.async_session() as session:
                    count = await session.scalar(
                        select(func.count()).select_from(DocumentModel).where(DocumentModel.collection == collection)
                    )
                    models: List[DocumentModel] = []
                    if limit > 0:
                        result = await session.execute(
                            select(DocumentModel)
                            .where(DocumentModel.collection == collection)
                            .order_by(DocumentModel.seq.asc())
                            .limit(limit)
                            .offset(offset)
                        )
                        models = list(result.scalars().all())
            except SQLAlchemyError as e:
                raise self._storage_error("list", e, collection=collection) from e

        return QueryResult(documents=[self._to_document(m) for m in models], count=count or 0)

    async def collections(self) -> List[str]:
        async with self._gate.shared():
            try:
                async with self.async_session() as session:
                    result = await session.execute(
                        select(DocumentModel.collection).distinct().order_by(DocumentModel.collection)
                    )
                    return [row[0] for row in result.all()]
            except SQLAlchemyError as e:
                raise self._storage_error("collections", e) from e

    async def reset(self) -> None:
        async with self._gate.exclusive():
            try:
                async with self.async_session() as session:
                    async with session.begin():
                        result = await session.execute(delete(DocumentModel))
                        removed = result.rowcount
            except SQLAlchemyError as e:
                raise self._storage_error("reset", e) from e

        logger.info(f"Reset document store, removed {removed} documents")
        await self._notify(ChangeAction.reset)

    # ------------------------------------------------------------------
    # Payload lookups and coordination
    # ------------------------------------------------------------------

    async def find(self, collection: str, field: str, value: str) -> List[Document]:
        async with self._gate.shared():
            try:
                async with self.async_session() as session:
                    result = await session.execute(
                        select(DocumentModel)
                        .where(DocumentModel.collection == collection, DocumentModel.data[field].as_string() == value)
                        .order_by(DocumentModel.seq.asc())
                    )
                    models = list(result.scalars().all())
            except SQLAlchemyError as e:
                raise self._storage_error("find", e, collection=collection, field=field) from e

        return [self._to_document(m) for m in models]

    async def find_one(self, collection: str, field: str, value: str) -> Optional[Document]:
        matches = await self.find(collection, field, value)
        return matches[0] if matches else None

    @asynccontextmanager
    async def lock(self, collection: str, key: str) -> AsyncIterator[None]:
        async with self._caller_locks.hold((collection, key)):
            yield
