from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from mini_server.exceptions import InvalidDocumentError
from mini_server.models.documents import Document


class ProjectStatus(str, Enum):
    draft = "draft"
    published = "published"


class ProjectVersion(BaseModel):
    """Immutable snapshot of generated source code."""

    id: str
    project_id: str
    version_number: int
    prompt: str = ""
    source_code: str = ""
    model: Optional[str] = None
    created_at: datetime


class Project(BaseModel):
    """Code-generation workspace stored as one document in the ``projects`` collection.

    Versions are embedded in the document so that appending, switching and
    deleting a version are single-document read-modify-write operations.
    """

    id: str
    name: str = "Untitled Project"
    description: str = ""
    icon: str = "📋"
    status: ProjectStatus = ProjectStatus.draft
    current_version: int = Field(default=0, ge=0)
    initial_prompt: str = ""
    initial_model: Optional[str] = None
    versions: List[ProjectVersion] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, doc: Document) -> "Project":
        # Payloads written by hand through /api/db may carry explicit nulls
        data = {key: value for key, value in doc.data.items() if value is not None}
        data.setdefault("id", doc.id)
        data.setdefault("created_at", doc.created_at)
        data.setdefault("updated_at", doc.updated_at)
        try:
            return cls(**data)
        except ValidationError as e:
            raise InvalidDocumentError(doc.collection, doc.id, e.errors(include_url=False, include_context=False)) from e

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def get_version(self, version_number: int) -> Optional[ProjectVersion]:
        for version in self.versions:
            if version.version_number == version_number:
                return version
        return None

    @property
    def latest_version_number(self) -> int:
        return max((v.version_number for v in self.versions), default=0)
