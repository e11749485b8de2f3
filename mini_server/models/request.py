from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from mini_server.models.dashboard import DashboardWidget
from mini_server.models.projects import ProjectStatus


class CreateDocumentRequest(BaseModel):
    data: Dict[str, Any]


class UpdateDocumentRequest(BaseModel):
    data: Dict[str, Any]


class CreateProjectRequest(BaseModel):
    prompt: str
    model: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class UpdateProjectRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    status: Optional[ProjectStatus] = None


class CreateVersionRequest(BaseModel):
    """A new version, given as finished source code or as raw generator output.

    Exactly one of ``source_code``, ``raw_output`` (the final generated text) or
    ``stream`` (the captured ``data:`` lines of the generation stream) is required.
    """

    prompt: str
    source_code: Optional[str] = None
    raw_output: Optional[str] = None
    stream: Optional[List[str]] = None
    model: Optional[str] = None

    @model_validator(mode="after")
    def _one_source(self) -> "CreateVersionRequest":
        given = [name for name in ("source_code", "raw_output", "stream") if getattr(self, name) is not None]
        if len(given) != 1:
            raise ValueError("Provide exactly one of source_code, raw_output or stream")
        return self


class ConvertToAppRequest(BaseModel):
    version: int
    price: Optional[float] = Field(default=None, ge=0)


class ReleaseVersionRequest(BaseModel):
    version_number: int
    price: Optional[float] = Field(default=None, ge=0)


class CreateAppRequest(BaseModel):
    name: str
    description: str = ""
    version: str = "1.0.0"
    price: float = Field(default=0, ge=0)
    icon: str = "📱"
    source_code: Optional[str] = None
    prompt: Optional[str] = None
    model: Optional[str] = None


class UpdateAppSourceCodeRequest(BaseModel):
    source_code: str


class SaveDashboardLayoutRequest(BaseModel):
    widgets: List[DashboardWidget]


class AddWidgetRequest(BaseModel):
    app_id: str
    w: int = Field(default=4, ge=1, le=12)
    h: int = Field(default=2, ge=1)
