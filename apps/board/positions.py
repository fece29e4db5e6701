# apps/board/positions.py

"""
Regras puras de ordenação dos itens de um container

Duas famílias de funções:
- reordenação em memória (move_within / move_across), usada pelo redutor
- posições persistidas esparsas (spaced_positions / position_between),
  usadas pela camada de persistência para não reescrever vizinhos
"""

from typing import Hashable, List, Optional, Sequence, Tuple

DEFAULT_SPACING = 1000


def _clamp(index: int, size: int) -> int:
    if index < 0:
        return 0
    if index > size:
        return size
    return index


def move_within(ids: Sequence[Hashable], from_index: int, to_index: int) -> Tuple:
    """
    Move um item dentro da mesma lista (semântica de array move)

    Ex: move_within(('a', 'b', 'c'), 0, 2) -> ('b', 'c', 'a')
    """
    ordered = list(ids)
    if not ordered:
        return tuple()

    if from_index < 0 or from_index >= len(ordered):
        raise IndexError(f"Índice de origem fora da lista: {from_index}")

    to_index = _clamp(to_index, len(ordered) - 1)
    if from_index == to_index:
        return tuple(ordered)

    item = ordered.pop(from_index)
    ordered.insert(to_index, item)
    return tuple(ordered)


def move_across(source: Sequence[Hashable], destination: Sequence[Hashable],
                item_id: Hashable, to_index: int) -> Tuple[Tuple, Tuple]:
    """
    Remove o item da lista de origem e insere na lista de destino

    Container vazio recebe sempre no índice 0; índices além do fim
    viram append.
    """
    if item_id not in source:
        raise ValueError(f"Item {item_id!r} não está na lista de origem")

    remaining = [i for i in source if i != item_id]
    target = [i for i in destination if i != item_id]

    index = 0 if not target else _clamp(to_index, len(target))
    target.insert(index, item_id)
    return tuple(remaining), tuple(target)


def spaced_positions(count: int, spacing: int = DEFAULT_SPACING) -> List[int]:
    """Posições espaçadas para semear ou renumerar um container"""
    return [(idx + 1) * spacing for idx in range(count)]


def position_between(before: Optional[int], after: Optional[int],
                     spacing: int = DEFAULT_SPACING) -> Optional[int]:
    """
    Posição inteira entre dois vizinhos

    Retorna None quando não há espaço livre entre eles (renumerar).
    """
    if before is None and after is None:
        return spacing
    if before is None:
        # posições negativas são válidas, só a ordem relativa importa
        return after - spacing
    if after is None:
        return before + spacing

    if after - before < 2:
        return None
    return before + (after - before) // 2


def needs_renumber(positions: Sequence[int]) -> bool:
    """Verifica se há posições repetidas ou fora de ordem"""
    return any(b <= a for a, b in zip(positions, positions[1:]))
