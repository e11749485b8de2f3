from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from mini_server.exceptions import InvalidDocumentError
from mini_server.models.documents import Document


class PublishedApp(BaseModel):
    """Installable artifact stored in the ``apps`` collection.

    ``source_code`` is a frozen copy taken at conversion time; built-in catalogue
    entries have none.
    """

    id: str
    name: str = "Untitled App"
    description: str = ""
    version: str = "1"
    price: float = Field(default=0, ge=0)
    icon: str = "📱"
    installed: int = 0
    source_code: Optional[str] = None
    prompt: Optional[str] = None
    model: Optional[str] = None
    status: str = "draft"
    project_id: Optional[str] = None
    project_version: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_string(cls, value: Any) -> Any:
        # Older payloads stored the project version number here
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("installed", mode="before")
    @classmethod
    def _installed_as_flag(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        return value

    @classmethod
    def from_document(cls, doc: Document) -> "PublishedApp":
        data = {key: value for key, value in doc.data.items() if value is not None}
        data.setdefault("id", doc.id)
        data.setdefault("created_at", doc.created_at)
        try:
            return cls(**data)
        except ValidationError as e:
            raise InvalidDocumentError(doc.collection, doc.id, e.errors(include_url=False, include_context=False)) from e

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @property
    def is_installed(self) -> bool:
        return self.installed == 1
