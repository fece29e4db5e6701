# apps/board/composition.py

"""
Composição do board

Monta o estado exibido (colunas, overlay do card arrastado e aviso) e
reconcilia commits que falharam.
"""

import logging
from typing import Callable, Dict, Optional

from .gestures import DragKind, GestureSession
from .positions import move_across, move_within
from .registry import ContainerRegistry
from .synchronizer import ColumnOrder, CommitResult, CommitSynchronizer, Placement

logger = logging.getLogger(__name__)

MENSAGENS_ERRO = {
    'conflict': 'Este card foi alterado por outra pessoa. O board foi recarregado.',
    'capacity': 'A coluna de destino atingiu o limite WIP.',
    'not_found': 'O card ou a coluna não existe mais.',
    'error': 'Não foi possível salvar a nova posição.',
}


def wip_status(total: int, limite_wip: int, alerta_percent: int = 80) -> str:
    """
    Status do limite WIP de uma coluna

    ok, alerta (a partir de alerta_percent) ou critico (limite atingido)
    """
    if not limite_wip:
        return 'ok'
    percentual = total * 100 / limite_wip
    if percentual >= 100:
        return 'critico'
    if percentual >= alerta_percent:
        return 'alerta'
    return 'ok'


class BoardComposition:
    """Lê registro e sessão; nunca altera a ordem por conta própria, exceto no retry"""

    def __init__(self, registry: ContainerRegistry, session: GestureSession,
                 synchronizer: CommitSynchronizer, reload: Callable[[], object],
                 alerta_percent: int = 80):
        self.registry = registry
        self.session = session
        self.synchronizer = synchronizer
        self._reload = reload
        self.alerta_percent = alerta_percent
        self.aviso: Optional[Dict] = None
        self.failed = None

    # === Renderização ===

    def render(self) -> Dict:
        registry = self.registry
        colunas = []
        for container in registry.containers():
            itens = [self._item_data(item) for item in registry.get(container.id)]
            colunas.append({
                'id': container.id,
                'titulo': container.title,
                'limite_wip': container.capacity,
                'total': len(itens),
                'status_wip': wip_status(len(itens), container.capacity, self.alerta_percent),
                'itens': itens,
            })

        return {
            'colunas': colunas,
            'arrastando': self.session.active,
            'overlay': self.overlay(),
            'aviso': self.aviso,
        }

    def overlay(self) -> Optional[Dict]:
        """Cópia do card/coluna que segue o ponteiro"""
        session = self.session
        if not session.active:
            return None
        if session.kind is DragKind.COLUMN:
            container = self.registry.container(session.active_id)
            return {'tipo': 'coluna', 'id': container.id, 'titulo': container.title}
        data = self._item_data(self.registry.item(session.active_id))
        data['tipo'] = 'item'
        return data

    # === Reconciliação ===

    def reconcile(self, result: CommitResult) -> None:
        """Falha vira aviso + recarga; sucesso limpa o aviso anterior"""
        if result.ok:
            if self.failed == result.request:
                self.failed = None
                self.aviso = None
            return

        self.failed = result.request
        self.aviso = {
            'tipo': result.kind,
            'mensagem': MENSAGENS_ERRO.get(result.kind, MENSAGENS_ERRO['error']),
            'detalhe': result.error,
            'acoes': ['retry', 'reload'],
        }
        logger.warning(f"⚠️ Commit falhou ({result.kind}), recarregando board")
        self._reload()

    def dismiss(self) -> None:
        self.aviso = None
        self.failed = None

    def reload(self):
        self.dismiss()
        return self._reload()

    def retry(self):
        """
        Refaz a última movimentação que falhou sobre o estado recarregado

        Retorna o novo pedido de commit, ou None se não há o que refazer.
        """
        request = self.failed
        if request is None or self.session.active:
            return None

        self.aviso = None
        registry = self.registry
        if isinstance(request, ColumnOrder):
            if sorted(request.container_ids) != sorted(registry.snapshot().columns):
                logger.warning("⚠️ Colunas mudaram no servidor, retry descartado")
                self.failed = None
                return None
            registry.apply_columns(request.container_ids)
        elif isinstance(request, Placement):
            if not (registry.has_item(request.item_id) and registry.has_container(request.container_id)):
                logger.warning(f"⚠️ {request.item_id} não está mais no board, retry descartado")
                self.failed = None
                return None
            self._place(request)

        # a persistência é idempotente: reenviar a mesma posição é seguro
        registry.commit()
        if isinstance(request, Placement):
            retried = self.synchronizer.placement_for(request.item_id)
        else:
            retried = ColumnOrder(registry.snapshot().columns)
        self.failed = retried
        self.synchronizer.dispatch(retried)
        return retried

    # === Métodos auxiliares ===

    def _place(self, request: Placement) -> None:
        registry = self.registry
        source = registry.container_of(request.item_id)
        destination = request.container_id
        if source == destination:
            ids = move_within(registry.ids(source), registry.index_of(request.item_id), request.position)
            if ids != registry.ids(source):
                registry.apply({source: ids})
            return
        new_source, new_destination = move_across(
            registry.ids(source), registry.ids(destination), request.item_id, request.position
        )
        registry.apply({source: new_source, destination: new_destination})

    @staticmethod
    def _item_data(item) -> Dict:
        data = dict(item.payload)
        data.update({'id': item.id, 'revisao': item.revision})
        return data
