# apps/board/registry.py

"""
Registro de containers (colunas) e dos itens atribuídos a cada um

Guarda o último snapshot materializado a partir do servidor e o
snapshot "confirmado" usado para reverter um arraste cancelado.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    """Coluna ou raia de status. capacity == 0 significa sem limite WIP"""

    id: str
    order: int = 0
    capacity: int = 0
    title: str = ''


@dataclass(frozen=True)
class Item:
    """Card arrastável (tarefa ou projeto)"""

    id: str
    container_id: Optional[str]
    position: int = 0
    revision: int = 0
    payload: Dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def placed(self) -> bool:
        return self.container_id is not None


@dataclass(frozen=True)
class Snapshot:
    """
    Estado imutável do board: ordem das colunas + ids ordenados por coluna

    Dois snapshots são iguais quando colunas e listas de itens coincidem.
    """

    columns: Tuple[str, ...] = ()
    lanes: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    def items_in(self, container_id: str) -> Tuple[str, ...]:
        for cid, ids in self.lanes:
            if cid == container_id:
                return ids
        raise KeyError(container_id)

    def as_dict(self) -> Dict[str, List[str]]:
        return {cid: list(ids) for cid, ids in self.lanes}


class ContainerRegistry:
    """
    Snapshot em memória do board

    - get(container_id): itens ordenados de uma coluna
    - apply(patch): troca completa de uma ou duas listas
    - reload(containers, items): ressincroniza com o backend
    - subscribe(callback): notificação a cada mudança de snapshot
    """

    def __init__(self, containers: Iterable[Container] = (), items: Iterable[Item] = ()):
        self._containers: Dict[str, Container] = {}
        self._items: Dict[str, Item] = {}
        self._columns: List[str] = []
        self._lanes: Dict[str, Tuple[str, ...]] = {}
        self._membership: Dict[str, str] = {}
        self._committed = Snapshot()
        self._last_notified: Optional[Snapshot] = None
        self._listeners: List[Callable[[Snapshot], None]] = []
        self.reload(containers, items)

    # === Carga ===

    def reload(self, containers: Iterable[Container], items: Iterable[Item]) -> Snapshot:
        """
        Reconstrói o snapshot a partir do estado do backend

        Itens sem coluna (ou com coluna desconhecida) ficam fora do board.
        A ordem vem da posição persistida, nunca do índice no transporte.
        """
        ordered = sorted(containers, key=lambda c: (c.order, c.id))
        self._containers = {c.id: c for c in ordered}
        self._columns = [c.id for c in ordered]

        lanes: Dict[str, List[Item]] = {cid: [] for cid in self._columns}
        self._items = {}
        for item in items:
            if item.container_id in lanes:
                lanes[item.container_id].append(item)
                self._items[item.id] = item

        self._lanes = {}
        for cid, lane in lanes.items():
            lane.sort(key=lambda i: (i.position, i.id))
            self._lanes[cid] = tuple(i.id for i in lane)
        self._rebuild_membership()

        self._committed = self.snapshot()
        logger.debug(f"Registro recarregado: {len(self._columns)} colunas, {len(self._items)} itens")
        # payloads podem ter mudado mesmo com a mesma ordem
        self._last_notified = None
        self._notify()
        return self._committed

    # === Consultas ===

    def snapshot(self) -> Snapshot:
        return Snapshot(
            columns=tuple(self._columns),
            lanes=tuple((cid, self._lanes[cid]) for cid in self._columns),
        )

    @property
    def committed(self) -> Snapshot:
        """Último snapshot confirmado (carga do servidor ou commit local)"""
        return self._committed

    def get(self, container_id: str) -> Tuple[Item, ...]:
        return tuple(self._items[i] for i in self._lanes[container_id])

    def ids(self, container_id: str) -> Tuple[str, ...]:
        return self._lanes[container_id]

    def containers(self) -> Tuple[Container, ...]:
        return tuple(self._containers[cid] for cid in self._columns)

    def container(self, container_id: str) -> Container:
        return self._containers[container_id]

    def item(self, item_id: str) -> Item:
        return self._items[item_id]

    def has_container(self, container_id) -> bool:
        return container_id in self._containers

    def has_item(self, item_id) -> bool:
        return item_id in self._items

    def container_of(self, item_id: str) -> Optional[str]:
        return self._membership.get(item_id)

    def index_of(self, item_id: str) -> int:
        return self._lanes[self._membership[item_id]].index(item_id)

    def column_index(self, container_id: str) -> int:
        return self._columns.index(container_id)

    def capacity_of(self, container_id: str) -> int:
        return self._containers[container_id].capacity

    def is_full(self, container_id: str, excluding: Optional[str] = None) -> bool:
        """Verifica se a coluna atingiu o limite WIP (ignorando um item)"""
        capacity = self.capacity_of(container_id)
        if capacity == 0:
            return False
        count = sum(1 for i in self._lanes[container_id] if i != excluding)
        return count >= capacity

    # === Mutações ===

    def apply(self, patch: Mapping[str, Sequence[str]]) -> Snapshot:
        """
        Substitui por completo as listas de uma ou duas colunas

        O patch precisa conter exatamente os mesmos itens que as colunas
        afetadas já continham: mover é reatribuir, nunca copiar ou perder.
        """
        if not 1 <= len(patch) <= 2:
            raise ValueError("Patch deve afetar uma ou duas colunas")

        for cid in patch:
            if cid not in self._lanes:
                raise KeyError(cid)

        before = {i for cid in patch for i in self._lanes[cid]}
        after = [i for ids in patch.values() for i in ids]
        if len(after) != len(set(after)):
            raise ValueError("Patch repete itens")
        if set(after) != before:
            raise ValueError("Patch adiciona ou remove itens das colunas afetadas")

        for cid, ids in patch.items():
            self._lanes[cid] = tuple(ids)
            for item_id in ids:
                self._membership[item_id] = cid
                item = self._items[item_id]
                if item.container_id != cid:
                    self._items[item_id] = dataclasses.replace(item, container_id=cid)

        self._notify()
        return self.snapshot()

    def apply_columns(self, order: Sequence[str]) -> Snapshot:
        """Troca a ordem de exibição das colunas"""
        if sorted(order) != sorted(self._columns) or len(set(order)) != len(order):
            raise ValueError("Nova ordem precisa ser uma permutação das colunas")
        self._columns = list(order)
        self._notify()
        return self.snapshot()

    def commit(self) -> Snapshot:
        """Marca o snapshot atual como confirmado"""
        self._committed = self.snapshot()
        return self._committed

    def restore(self) -> Snapshot:
        """
        Reaplica o snapshot confirmado

        Reaplicação pura do estado salvo, nunca transformação inversa dos
        estados intermediários.
        """
        committed = self._committed
        self._columns = list(committed.columns)
        self._lanes = dict(committed.lanes)
        self._rebuild_membership()
        for item_id, cid in self._membership.items():
            item = self._items[item_id]
            if item.container_id != cid:
                self._items[item_id] = dataclasses.replace(item, container_id=cid)
        self._notify()
        return self.snapshot()

    def replace_item(self, item: Item) -> None:
        """Atualiza o registro de um item já presente (ex: nova revisão)"""
        if item.id in self._items:
            self._items[item.id] = dataclasses.replace(
                item, container_id=self._items[item.id].container_id
            )

    def append(self, item: Item) -> Snapshot:
        """Adiciona item recém criado ao fim da sua coluna"""
        if item.container_id not in self._lanes:
            raise KeyError(item.container_id)
        if item.id in self._items:
            raise ValueError(f"Item {item.id} já está no board")

        self._items[item.id] = item
        self._lanes[item.container_id] = self._lanes[item.container_id] + (item.id,)
        self._membership[item.id] = item.container_id
        self._committed = self._with_item(self._committed, item.container_id, item.id)
        self._notify()
        return self.snapshot()

    def discard(self, item_id: str) -> Snapshot:
        """Remove item excluído externamente, deixando lacuna nas posições"""
        cid = self._membership.pop(item_id, None)
        if cid is None:
            return self.snapshot()

        self._items.pop(item_id, None)
        self._lanes[cid] = tuple(i for i in self._lanes[cid] if i != item_id)
        self._committed = Snapshot(
            columns=self._committed.columns,
            lanes=tuple(
                (c, tuple(i for i in ids if i != item_id))
                for c, ids in self._committed.lanes
            ),
        )
        self._notify()
        return self.snapshot()

    # === Notificações ===

    def subscribe(self, callback: Callable[[Snapshot], None]) -> Callable[[], None]:
        """Registra callback chamado a cada mudança; retorna função para cancelar"""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        if snapshot == self._last_notified:
            return
        self._last_notified = snapshot
        for callback in list(self._listeners):
            callback(snapshot)

    # === Métodos auxiliares ===

    def _rebuild_membership(self) -> None:
        self._membership = {
            item_id: cid
            for cid, ids in self._lanes.items()
            for item_id in ids
        }

    @staticmethod
    def _with_item(snapshot: Snapshot, container_id: str, item_id: str) -> Snapshot:
        return Snapshot(
            columns=snapshot.columns,
            lanes=tuple(
                (cid, ids + (item_id,) if cid == container_id else ids)
                for cid, ids in snapshot.lanes
            ),
        )
