"""
Exceptions raised by the document store and the registries built on it.
"""
from typing import Any, Dict, List, Optional


class MiniServerError(Exception):
    """Base exception for all mini-server errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(MiniServerError):
    """A document, project or app lookup missed."""

    status_code = 404

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} not found", {"kind": kind, "key": key})
        self.kind = kind
        self.key = key


class VersionNotFoundError(NotFoundError):
    """The project exists but has no usable version with that number."""

    def __init__(self, project_id: str, version_number: int):
        super().__init__("Version", f"{version_number} of project {project_id}")
        self.details.update({"project_id": project_id, "version_number": version_number})
        self.project_id = project_id
        self.version_number = version_number


class InvalidDocumentError(MiniServerError):
    """A stored payload does not have the shape its registry expects."""

    status_code = 500

    def __init__(self, collection: str, document_id: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            f"Document {collection}/{document_id} is malformed",
            {"collection": collection, "document_id": document_id, "errors": errors or []},
        )
        self.collection = collection
        self.document_id = document_id


class InvalidOperationError(MiniServerError):
    """The requested change would break an invariant of the resource."""

    status_code = 409


class StorageError(MiniServerError):
    """The storage backend failed or is unreachable."""

    status_code = 500


class GenerationError(MiniServerError):
    """The language model used for generation failed or returned garbage."""

    status_code = 502
