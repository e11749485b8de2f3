import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from mini_server.database.base_database import BaseDocumentStore
from mini_server.exceptions import InvalidOperationError, NotFoundError
from mini_server.models.dashboard import DEFAULT_LAYOUT_ID, GRID_COLUMNS, DashboardLayout, DashboardWidget
from mini_server.models.documents import Document
from mini_server.services.collection import CollectionAccessor

logger = logging.getLogger(__name__)

DASHBOARD_COLLECTION = "dashboard_layout"
DEFAULT_WIDGET_WIDTH = 4
DEFAULT_WIDGET_HEIGHT = 2


def next_free_position(
    widgets: Iterable[DashboardWidget], w: int, h: int, columns: int = GRID_COLUMNS
) -> Tuple[int, int]:
    """Return the first (x, y) where a w×h widget fits, scanning rows top to bottom, left to right."""
    placed = list(widgets)
    w = min(w, columns)
    y = 0
    while True:
        for x in range(columns - w + 1):
            if not any(widget.overlaps(x, y, w, h) for widget in placed):
                return x, y
        y += 1


def prune_orphans(layout: DashboardLayout, known_app_ids: Iterable[str]) -> DashboardLayout:
    """Drop widgets whose app no longer exists. Does not touch storage."""
    known = set(known_app_ids)
    return layout.model_copy(update={"widgets": [w for w in layout.widgets if w.id in known]})


class DashboardLayoutStore:
    """The single persisted dashboard layout."""

    def __init__(self, store: BaseDocumentStore, layout_id: str = DEFAULT_LAYOUT_ID):
        self.layouts = CollectionAccessor(store, DASHBOARD_COLLECTION)
        self.layout_id = layout_id

    @staticmethod
    def _from_document(doc: Document) -> DashboardLayout:
        return DashboardLayout(
            id=doc.data.get("id", DEFAULT_LAYOUT_ID),
            widgets=doc.data.get("widgets") or [],
            updated_at=doc.data.get("updated_at") or doc.updated_at,
        )

    async def _read(self) -> Tuple[Optional[Document], DashboardLayout]:
        doc = await self.layouts.find_one("id", self.layout_id)
        if doc is None:
            return None, DashboardLayout(id=self.layout_id)
        return doc, self._from_document(doc)

    async def _write(self, doc: Optional[Document], widgets: List[DashboardWidget]) -> DashboardLayout:
        duplicates = [widget_id for widget_id, n in Counter(w.id for w in widgets).items() if n > 1]
        if duplicates:
            raise InvalidOperationError("Widget ids must be unique within a layout", {"duplicates": duplicates})

        layout = DashboardLayout(id=self.layout_id, widgets=widgets, updated_at=datetime.now(UTC))
        payload = layout.model_dump(mode="json", exclude_none=True)

        if doc is None:
            saved = await self.layouts.create(payload)
        else:

            def replace(_: Dict[str, Any]) -> Dict[str, Any]:
                return payload

            saved = await self.layouts.mutate(doc.id, replace)
        return self._from_document(saved)

    async def get_layout(self) -> DashboardLayout:
        _, layout = await self._read()
        return layout

    async def save_layout(self, widgets: List[DashboardWidget]) -> DashboardLayout:
        async with self.layouts.lock(self.layout_id):
            doc, _ = await self._read()
            layout = await self._write(doc, list(widgets))
        logger.info(f"Saved dashboard layout with {len(layout.widgets)} widgets")
        return layout

    async def add_widget(
        self, app_id: str, w: int = DEFAULT_WIDGET_WIDTH, h: int = DEFAULT_WIDGET_HEIGHT
    ) -> DashboardLayout:
        """Place an app on the first free grid slot. Adding an app twice is a no-op."""
        async with self.layouts.lock(self.layout_id):
            doc, layout = await self._read()
            if any(widget.id == app_id for widget in layout.widgets):
                return layout

            w = min(w, GRID_COLUMNS)
            x, y = next_free_position(layout.widgets, w, h)
            widgets = layout.widgets + [DashboardWidget(id=app_id, x=x, y=y, w=w, h=h)]
            layout = await self._write(doc, widgets)
        logger.info(f"Added widget {app_id} at ({x}, {y})")
        return layout

    async def remove_widget(self, widget_id: str) -> DashboardLayout:
        async with self.layouts.lock(self.layout_id):
            doc, layout = await self._read()
            remaining = [widget for widget in layout.widgets if widget.id != widget_id]
            if doc is None or len(remaining) == len(layout.widgets):
                raise NotFoundError("Widget", widget_id)
            layout = await self._write(doc, remaining)
        logger.info(f"Removed widget {widget_id}")
        return layout

    async def prune_orphans(self, known_app_ids: Iterable[str]) -> DashboardLayout:
        return prune_orphans(await self.get_layout(), known_app_ids)
