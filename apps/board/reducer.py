# apps/board/reducer.py

"""
Redutor especulativo

Recalcula a ordem em memória a cada troca de alvo, sem esperar o
backend. Só as uma ou duas colunas afetadas são substituídas no registro.
"""

import logging

from .gestures import DragKind
from .positions import move_across, move_within
from .targets import ContainerTarget, ItemTarget

logger = logging.getLogger(__name__)


class SpeculativeReducer:
    """Não guarda estado próprio: lê a sessão e escreve no registro"""

    def reduce(self, session, target) -> bool:
        """
        Aplica o alvo à ordem especulativa

        Retorna False quando o alvo é recusado (ex: limite WIP) e o alvo
        anterior deve ser mantido.
        """
        if session.kind is DragKind.COLUMN:
            return self._reduce_column(session, target)

        if isinstance(target, ContainerTarget):
            return self._onto_container(session, target)
        if isinstance(target, ItemTarget):
            return self._onto_item(session, target)
        return False

    # === Cards ===

    def _onto_container(self, session, target: ContainerTarget) -> bool:
        registry = session.registry
        active_id = session.active_id
        source = registry.container_of(active_id)
        destination = target.container_id

        if source == destination:
            if target.index is None:
                # já está nessa coluna: mantém a última posição
                return True
            current = registry.index_of(active_id)
            ids = move_within(registry.ids(source), current, target.index)
            if ids != registry.ids(source):
                registry.apply({source: ids})
            return True

        if registry.is_full(destination, excluding=active_id):
            logger.debug(f"Coluna {destination} no limite WIP, alvo recusado")
            return False

        if target.index is not None:
            index = target.index
        elif destination in session.touched:
            # voltando a uma coluna já visitada: retoma a última posição nela
            index = session.touched[destination]
        else:
            # coluna ainda não tocada nesta sessão: vai para o fim
            index = len(registry.ids(destination))

        new_source, new_destination = move_across(
            registry.ids(source), registry.ids(destination), active_id, index
        )
        registry.apply({source: new_source, destination: new_destination})
        return True

    def _onto_item(self, session, target: ItemTarget) -> bool:
        registry = session.registry
        active_id = session.active_id

        if target.item_id == active_id:
            return True

        source = registry.container_of(active_id)
        destination = registry.container_of(target.item_id)
        over_index = registry.index_of(target.item_id)

        if source == destination:
            ids = move_within(registry.ids(source), registry.index_of(active_id), over_index)
            registry.apply({source: ids})
            return True

        if registry.is_full(destination, excluding=active_id):
            logger.debug(f"Coluna {destination} no limite WIP, alvo recusado")
            return False

        new_source, new_destination = move_across(
            registry.ids(source), registry.ids(destination), active_id, over_index
        )
        registry.apply({source: new_source, destination: new_destination})
        return True

    # === Colunas ===

    def _reduce_column(self, session, target) -> bool:
        registry = session.registry
        if isinstance(target, ContainerTarget):
            over = target.container_id
        else:
            over = registry.container_of(target.item_id)

        columns = registry.snapshot().columns
        new_order = move_within(columns, columns.index(session.active_id), columns.index(over))
        if new_order != columns:
            registry.apply_columns(new_order)
        return True
