from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_LAYOUT_ID = "default_layout"
GRID_COLUMNS = 12


class DashboardWidget(BaseModel):
    """Grid placement of a published app; ``id`` is the app id."""

    id: str
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    w: int = Field(ge=1)
    h: int = Field(ge=1)
    min_w: Optional[int] = None
    min_h: Optional[int] = None
    max_w: Optional[int] = None
    max_h: Optional[int] = None
    no_resize: Optional[bool] = None
    no_move: Optional[bool] = None

    def overlaps(self, x: int, y: int, w: int, h: int) -> bool:
        return x < self.x + self.w and self.x < x + w and y < self.y + self.h and self.y < y + h


class DashboardLayout(BaseModel):
    id: str = DEFAULT_LAYOUT_ID
    widgets: List[DashboardWidget] = Field(default_factory=list)
    updated_at: Optional[datetime] = None
