# apps/board/tests/fakes.py

import dataclasses

from apps.board.persistence import PersistenceGateway, PlacementNotFound
from apps.board.registry import Container, ContainerRegistry, Item


def make_registry(lanes, capacities=None):
    """
    Registro a partir de {coluna: [ids]}

    make_registry({'todo': ['t1', 't2'], 'doing': []})
    """
    capacities = capacities or {}
    containers = [
        Container(cid, order=idx, capacity=capacities.get(cid, 0), title=cid.title())
        for idx, cid in enumerate(lanes)
    ]
    items = [
        Item(item_id, cid, position=(pos + 1) * 1000, payload={'titulo': item_id.upper()})
        for cid, ids in lanes.items()
        for pos, item_id in enumerate(ids)
    ]
    return ContainerRegistry(containers, items)


class FakePersistence(PersistenceGateway):
    """Gateway em memória que registra as chamadas recebidas"""

    def __init__(self, lanes, capacities=None):
        capacities = capacities or {}
        self.containers = [
            Container(cid, order=idx, capacity=capacities.get(cid, 0), title=cid.title())
            for idx, cid in enumerate(lanes)
        ]
        self.items = {}
        for cid, ids in lanes.items():
            for pos, item_id in enumerate(ids):
                self.items[item_id] = Item(
                    item_id, cid, position=(pos + 1) * 1000, payload={'titulo': item_id.upper()}
                )
        self.calls = []
        self.fail_with = None
        self._next_id = 1

    def fetch_containers(self):
        return list(self.containers)

    def fetch_items(self):
        return list(self.items.values())

    def persist_item_placement(self, item_id, container_id, position, expected_revision=None):
        self.calls.append(('persist', item_id, container_id, position, expected_revision))
        if self.fail_with is not None:
            raise self.fail_with
        if item_id not in self.items:
            raise PlacementNotFound(item_id)

        lane = sorted(
            (i for i in self.items.values() if i.container_id == container_id and i.id != item_id),
            key=lambda i: (i.position, i.id),
        )
        moved = dataclasses.replace(
            self.items[item_id],
            container_id=container_id,
            revision=self.items[item_id].revision + 1,
        )
        lane.insert(min(position, len(lane)), moved)
        for idx, item in enumerate(lane):
            self.items[item.id] = dataclasses.replace(item, position=(idx + 1) * 1000)
        return self.items[item_id]

    def create_item(self, container_id, **fields):
        item_id = f'novo-{self._next_id}'
        self._next_id += 1
        last = max((i.position for i in self.items.values() if i.container_id == container_id), default=0)
        item = Item(item_id, container_id, position=last + 1000, payload=dict(fields))
        self.items[item_id] = item
        return item

    def delete_item(self, item_id):
        self.calls.append(('delete', item_id))
        self.items.pop(item_id, None)

    def reorder_containers(self, container_ids):
        self.calls.append(('reorder', list(container_ids)))
        if self.fail_with is not None:
            raise self.fail_with
        self.containers = [
            dataclasses.replace(c, order=container_ids.index(c.id))
            for c in self.containers
        ]
