from contextlib import AbstractAsyncContextManager
from typing import List, Optional

from mini_server.database.base_database import BaseDocumentStore, Mutator, Payload
from mini_server.models.documents import Document, QueryResult


class CollectionAccessor:
    """Document store operations bound to a single collection name."""

    def __init__(self, store: BaseDocumentStore, name: str):
        self.store = store
        self.name = name

    async def create(self, data: Payload) -> Document:
        return await self.store.create(self.name, data)

    async def get(self, document_id: str) -> Document:
        return await self.store.get(self.name, document_id)

    async def update(self, document_id: str, data: Payload) -> Document:
        return await self.store.update(self.name, document_id, data)

    async def delete(self, document_id: str) -> bool:
        return await self.store.delete(self.name, document_id)

    async def list(self, limit: Optional[int] = None, offset: int = 0) -> QueryResult:
        return await self.store.list(self.name, limit=limit, offset=offset)

    async def count(self) -> int:
        return (await self.store.list(self.name, limit=0)).count

    async def all(self, page_size: int = 500) -> List[Document]:
        """Read the whole collection page by page."""
        documents: List[Document] = []
        offset = 0
        while True:
            page = await self.store.list(self.name, limit=page_size, offset=offset)
            documents.extend(page.documents)
            offset += len(page.documents)
            if not page.documents or offset >= page.count:
                return documents

    async def find(self, field: str, value: str) -> List[Document]:
        return await self.store.find(self.name, field, value)

    async def find_one(self, field: str, value: str) -> Optional[Document]:
        return await self.store.find_one(self.name, field, value)

    async def mutate(self, document_id: str, fn: Mutator) -> Document:
        return await self.store.mutate(self.name, document_id, fn)

    def lock(self, key: str) -> AbstractAsyncContextManager:
        return self.store.lock(self.name, key)
