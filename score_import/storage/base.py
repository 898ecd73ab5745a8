"""
Document store interface consumed by the pipeline.

The pipeline never talks to a global database handle; a DocumentStore is
passed in explicitly and must be opened before use and closed at shutdown.
Stores can be used as async context managers:

    async with MemoryStore() as store:
        ...
"""

from abc import ABC, abstractmethod


class StoreClosedError(RuntimeError):
    """Raised when a store is used outside its open/close lifecycle"""
    pass


class DocumentStore(ABC):
    """
    Key/value + filtered-query store over named collections of documents.

    Queries are dicts keyed by (dotted) field paths. Supported operators:
    equality, $in, $ne, $gt, $gte, $lt, $lte, $exists and a top-level $or.
    Sorts are lists of (path, 1 | -1) pairs.
    """

    @abstractmethod
    async def open(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def find(self, collection: str, query: dict, sort=None, limit=None) -> list:
        ...

    @abstractmethod
    async def insert_many(self, collection: str, docs: list) -> None:
        ...

    @abstractmethod
    async def update_one(self, collection: str, query: dict, set_fields: dict, upsert: bool = False) -> bool:
        """
        Set fields on the first document matching query.

        Returns:
            True if a document was updated or inserted
        """
        ...

    async def find_one(self, collection: str, query: dict, sort=None):
        docs = await self.find(collection, query, sort=sort, limit=1)
        return docs[0] if docs else None

    async def insert(self, collection: str, doc: dict) -> None:
        await self.insert_many(collection, [doc])

    async def count(self, collection: str, query: dict) -> int:
        return len(await self.find(collection, query))

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
