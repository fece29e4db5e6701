# apps/board/collision.py

"""
Detecção de colisão para clientes que enviam geometria

Implementa a estratégia de "cantos mais próximos": o alvo é o droppable
cujos quatro cantos estão, em média, mais perto dos cantos do card ativo.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def corners(self) -> Tuple[Tuple[float, float], ...]:
        return (
            (self.x, self.y),
            (self.x + self.width, self.y),
            (self.x, self.y + self.height),
            (self.x + self.width, self.y + self.height),
        )

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    def translated(self, dx: float, dy: float) -> 'Rect':
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Rect':
        return cls(
            float(data.get('x', 0)),
            float(data.get('y', 0)),
            float(data.get('width', 0)),
            float(data.get('height', 0)),
        )


def _corner_distance(a: Rect, b: Rect) -> float:
    total = 0.0
    for (ax, ay), (bx, by) in zip(a.corners, b.corners):
        total += math.hypot(ax - bx, ay - by)
    return total / 4


def closest_corners(active: Rect, droppables: Mapping[str, Rect]) -> List[str]:
    """Ids dos droppables ordenados do mais próximo ao mais distante"""
    distances = sorted(
        (_corner_distance(active, rect), droppable_id)
        for droppable_id, rect in droppables.items()
    )
    return [droppable_id for _, droppable_id in distances]


def insertion_index(pointer_y: float, item_rects: Sequence[Rect]) -> int:
    """Índice de inserção numa coluna pela altura do ponteiro"""
    for idx, rect in enumerate(item_rects):
        if pointer_y < rect.center_y:
            return idx
    return len(item_rects)


class Layout:
    """
    Geometria atual do board enviada pelo cliente

    droppables: colunas e cards com seus retângulos
    """

    def __init__(self, droppables: Optional[Dict[str, Rect]] = None):
        self.droppables: Dict[str, Rect] = dict(droppables or {})

    @classmethod
    def from_payload(cls, payload: Mapping) -> 'Layout':
        return cls({
            str(droppable_id): Rect.from_dict(rect)
            for droppable_id, rect in (payload or {}).items()
        })

    def rect(self, droppable_id: str) -> Optional[Rect]:
        return self.droppables.get(droppable_id)

    def over(self, active_id: str, dx: float, dy: float) -> Optional[str]:
        """Droppable sob o card ativo deslocado por (dx, dy)"""
        origin = self.droppables.get(active_id)
        if origin is None:
            return None
        candidates = {k: v for k, v in self.droppables.items() if k != active_id}
        if not candidates:
            return None
        return closest_corners(origin.translated(dx, dy), candidates)[0]

    def index_in(self, item_ids: Sequence[str], pointer_y: float, active_id: str) -> int:
        """Posição do ponteiro entre os cards de uma coluna (sem o ativo)"""
        rects = [
            self.droppables[i] for i in item_ids
            if i != active_id and i in self.droppables
        ]
        return insertion_index(pointer_y, rects)
