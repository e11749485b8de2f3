from typing import Any, Optional

from pydantic import BaseModel, field_validator


class AppMetadata(BaseModel):
    """Presentation metadata produced alongside generated code."""

    name: str = "Generated App"
    description: str = "AI-generated application"
    icon: str = "🪄"
    price: float = 0
    version: str = "1.0.0"
    id: Optional[str] = None

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_string(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value


class TokenUsage(BaseModel):
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str = ""
    icon: str = "🤖"
    speed: int = 3
    power: int = 3
    cost: int = 3
    special_label: Optional[str] = None
