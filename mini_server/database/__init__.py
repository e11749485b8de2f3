from mini_server.database.base_database import BaseDocumentStore
from mini_server.database.sql_document_store import SQLDocumentStore

__all__ = ["BaseDocumentStore", "SQLDocumentStore"]
