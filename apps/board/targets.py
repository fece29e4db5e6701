# apps/board/targets.py

"""
Alvos de um arraste: coluna ou item

União com duas variantes, resolvida uma única vez a cada troca de alvo.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .registry import ContainerRegistry

# Zonas de drop dentro das colunas usam esse prefixo no id
DROPPABLE_PREFIX = 'droppable-'


@dataclass(frozen=True)
class ContainerTarget:
    """Espaço vazio de uma coluna; index é a posição do ponteiro, se conhecida"""

    container_id: str
    index: Optional[int] = None


@dataclass(frozen=True)
class ItemTarget:
    """Card sob o ponteiro/foco"""

    item_id: str
    container_id: str


Target = Union[ContainerTarget, ItemTarget]


def resolve_container_id(registry: ContainerRegistry, raw_id) -> Optional[str]:
    """Aceita o id da coluna puro ou com prefixo de zona de drop"""
    if raw_id is None:
        return None
    raw_id = str(raw_id)
    if registry.has_container(raw_id):
        return raw_id
    if raw_id.startswith(DROPPABLE_PREFIX):
        stripped = raw_id[len(DROPPABLE_PREFIX):]
        if registry.has_container(stripped):
            return stripped
    return None


def resolve_target(registry: ContainerRegistry, raw_id, index: Optional[int] = None) -> Optional[Target]:
    """
    Converte o id sob o ponteiro em alvo tipado

    Retorna None para ids desconhecidos (alvo inválido).
    """
    container_id = resolve_container_id(registry, raw_id)
    if container_id is not None:
        return ContainerTarget(container_id, index)

    if raw_id is not None and registry.has_item(str(raw_id)):
        item_id = str(raw_id)
        return ItemTarget(item_id, registry.container_of(item_id))

    return None
