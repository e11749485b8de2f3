from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class Document(BaseModel):
    """A stored payload together with its identity and timestamps."""

    id: str
    collection: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class QueryResult(BaseModel):
    """One page of a collection listing.

    ``count`` is the size of the whole collection, not of ``documents``.
    """

    documents: List[Document]
    count: int


class ChangeAction(str, Enum):
    created = "created"
    updated = "updated"
    deleted = "deleted"
    reset = "reset"


class ChangeEvent(BaseModel):
    """Notification handed to store listeners after a committed mutation."""

    action: ChangeAction
    collection: str | None = None
    document_id: str | None = None
