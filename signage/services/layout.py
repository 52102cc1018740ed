from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from signage.services.template import EDGES, Coordinate, Field, Template

logger = logging.getLogger(__name__)

CoordinateTable = Dict[str, float]


@dataclass(frozen=True)
class Box:
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


# Called once per renderable field; may add derived keys to the table.
RenderField = Callable[[Field, Box, CoordinateTable], None]


def lookup(value: Coordinate, table: CoordinateTable) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return table.get(str(value))


class CoordinateResolver:
    """Resolve symbolic field geometry by repeated passes.

    Fields may point at edges of other fields, including edges only known
    once that field has been drawn (``"PRICE.separator"``). Each pass visits
    the pending fields in declaration order and renders those whose four
    edges are known. Resolution stops when every field is done or a pass
    makes no progress; the remaining fields are dropped.
    """

    def __init__(self, template: Template, render_field: RenderField, order: Iterable[str] | None = None) -> None:
        self.template = template
        self.render_field = render_field
        self.order = list(order) if order is not None else list(template.fields.keys())
        self.table: CoordinateTable = {
            "width": float(template.width),
            "height": float(template.height),
        }
        self.resolved: list[str] = []

    def _try_field(self, field_id: str) -> bool:
        field_ = self.template.fields[field_id]
        edges = {edge: lookup(getattr(field_, edge), self.table) for edge in EDGES}

        for edge, value in edges.items():
            if value is not None:
                self.table[f"{field_id}.{edge}"] = value
        if edges["left"] is not None and edges["right"] is not None:
            self.table[f"{field_id}.width"] = edges["right"] - edges["left"]
        if edges["top"] is not None and edges["bottom"] is not None:
            self.table[f"{field_id}.height"] = edges["bottom"] - edges["top"]

        if any(value is None for value in edges.values()):
            return False

        box = Box(left=edges["left"], top=edges["top"], right=edges["right"], bottom=edges["bottom"])
        self.render_field(field_, box, self.table)
        return True

    def run(self) -> list[str]:
        """Resolve to fixpoint, return the ids that were never rendered."""
        pending = list(self.order)
        while pending:
            progress = False
            for field_id in list(pending):
                if self._try_field(field_id):
                    pending.remove(field_id)
                    self.resolved.append(field_id)
                    progress = True
            if not progress:
                break

        if pending:
            logger.warning(
                "FIELDS_UNRESOLVED",
                extra={"template": self.template.name, "fields": list(pending)},
            )
        return pending
