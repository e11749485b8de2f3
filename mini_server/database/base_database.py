from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Dict, List, Optional

from mini_server.models.documents import Document, QueryResult

Payload = Dict[str, Any]
Mutator = Callable[[Payload], Payload]


class BaseDocumentStore(ABC):
    """Base class for collection-partitioned JSON document stores."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes if they do not exist."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def create(self, collection: str, data: Payload) -> Document:
        """Store ``data`` as a new document with a freshly generated id."""
        pass

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> Document:
        """Return the document or raise NotFoundError."""
        pass

    @abstractmethod
    async def update(self, collection: str, document_id: str, data: Payload) -> Document:
        """Replace the whole payload of an existing document.

        Raises:
            NotFoundError: If the document does not exist in ``collection``.
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> bool:
        """Delete a document. Returns False if nothing was deleted."""
        pass

    @abstractmethod
    async def list(self, collection: str, limit: Optional[int] = None, offset: int = 0) -> QueryResult:
        """Return one page of a collection in insertion order along with its total size."""
        pass

    @abstractmethod
    async def collections(self) -> List[str]:
        """Return the names of all collections holding at least one document."""
        pass

    @abstractmethod
    async def reset(self) -> None:
        """Delete every document in every collection."""
        pass

    @abstractmethod
    async def find(self, collection: str, field: str, value: str) -> List[Document]:
        """Return documents whose top-level payload ``field`` equals ``value``."""
        pass

    @abstractmethod
    async def find_one(self, collection: str, field: str, value: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def mutate(self, collection: str, document_id: str, fn: Mutator) -> Document:
        """Apply ``fn`` to the current payload and store its result atomically.

        Concurrent calls for the same document are serialized, so no update is lost.
        """
        pass

    @abstractmethod
    def lock(self, collection: str, key: str) -> AbstractAsyncContextManager:
        """Serialize a caller-defined critical section over ``(collection, key)``."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass
