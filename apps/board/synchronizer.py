# apps/board/synchronizer.py

"""
Sincronizador de commit

No drop calcula o par (coluna, índice) final do item ativo e dispara uma
única chamada de persistência. A chamada é "fire-and-forget" em relação à
interface: dentro de um event loop roda numa task; fora dele roda direto.
O resultado é sempre entregue explicitamente como CommitResult.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from channels.db import database_sync_to_async

from .gestures import DragKind
from .persistence import PersistenceError, PersistenceGateway
from .registry import ContainerRegistry, Item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Placement:
    """Pedido de persistência de um card: índice final, sem vizinhos"""

    item_id: str
    container_id: str
    position: int
    expected_revision: Optional[int] = None


@dataclass(frozen=True)
class ColumnOrder:
    """Pedido de persistência da ordem das colunas"""

    container_ids: Tuple[str, ...]


CommitRequest = Union[Placement, ColumnOrder]


@dataclass(frozen=True)
class CommitResult:
    request: CommitRequest
    ok: bool
    item: Optional[Item] = None
    kind: str = 'ok'
    error: str = ''

    def to_dict(self) -> Dict:
        data = {'ok': self.ok, 'kind': self.kind, 'error': self.error}
        if isinstance(self.request, Placement):
            data.update({
                'item_id': self.request.item_id,
                'container_id': self.request.container_id,
                'position': self.request.position,
            })
        else:
            data['container_ids'] = list(self.request.container_ids)
        return data


class CommitSynchronizer:
    """Único escritor de (coluna, posição) no backend"""

    def __init__(self, registry: ContainerRegistry, persistence: PersistenceGateway,
                 optimistic_locking: bool = True):
        self.registry = registry
        self.persistence = persistence
        self.optimistic_locking = optimistic_locking
        self.last_result: Optional[CommitResult] = None
        self._listeners: List[Callable[[CommitResult], None]] = []
        self._pending: Dict[asyncio.Task, CommitRequest] = {}
        self._inflight: Dict[str, int] = {}

    def subscribe(self, callback: Callable[[CommitResult], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @property
    def pending(self) -> int:
        """Quantidade de commits ainda sem resposta do backend"""
        return len(self._pending)

    async def wait_pending(self) -> None:
        """Aguarda os commits em voo (ex: antes de fechar a conexão)"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # === Commit ===

    def commit(self, session) -> Optional[CommitRequest]:
        """
        Finaliza a sessão de gesto

        Retorna o pedido disparado, ou None quando nada mudou (drop na
        posição original não gera escrita).
        """
        registry = self.registry
        current = registry.snapshot()
        if current == registry.committed:
            logger.debug(f"Drop sem mudança para {session.active_id}, nada a persistir")
            return None

        if session.kind is DragKind.COLUMN:
            request = ColumnOrder(current.columns)
        else:
            request = self.placement_for(session.active_id)

        registry.commit()
        self.dispatch(request)
        return request

    def placement_for(self, item_id: str) -> Placement:
        registry = self.registry
        expected = None
        if self.optimistic_locking:
            # commits anteriores ainda em voo vão incrementar a revisão
            expected = registry.item(item_id).revision + self._inflight.get(item_id, 0)
        return Placement(
            item_id=item_id,
            container_id=registry.container_of(item_id),
            position=registry.index_of(item_id),
            expected_revision=expected,
        )

    def dispatch(self, request: CommitRequest):
        """
        Dispara a persistência sem bloquear a interface

        Com event loop rodando retorna a task; sem loop executa na hora e
        retorna o CommitResult.
        """
        if isinstance(request, Placement):
            self._inflight[request.item_id] = self._inflight.get(request.item_id, 0) + 1

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            result = self._execute(request)
            self._deliver(result)
            return result

        task = loop.create_task(database_sync_to_async(self._execute)(request))
        self._pending[task] = request
        task.add_done_callback(self._on_done)
        return task

    # === Métodos auxiliares ===

    def _execute(self, request: CommitRequest) -> CommitResult:
        try:
            if isinstance(request, ColumnOrder):
                self.persistence.reorder_containers(list(request.container_ids))
                logger.info(f"✅ Ordem das colunas salva: {list(request.container_ids)}")
                return CommitResult(request, True)

            item = self.persistence.persist_item_placement(
                request.item_id,
                request.container_id,
                request.position,
                expected_revision=request.expected_revision,
            )
            logger.info(f"✅ {request.item_id} salvo em {request.container_id}[{request.position}]")
            return CommitResult(request, True, item=item)

        except PersistenceError as e:
            logger.warning(f"⚠️ Falha ao salvar posição: {str(e)}")
            return CommitResult(request, False, kind=e.kind, error=str(e))
        except Exception as e:
            logger.exception(f"❌ Erro ao salvar posição: {str(e)}")
            return CommitResult(request, False, kind='error', error=str(e))

    def _on_done(self, task: asyncio.Task) -> None:
        request = self._pending.pop(task)
        if task.cancelled():
            self._release(request)
            return

        error = task.exception()
        if error is not None:
            # falhou antes de chegar em _execute (ex: conexão com o banco)
            logger.error(f"❌ Erro ao disparar persistência: {str(error)}")
            self._deliver(CommitResult(request, False, kind='error', error=str(error)))
            return
        self._deliver(task.result())

    def _release(self, request: CommitRequest) -> None:
        if isinstance(request, Placement):
            remaining = self._inflight.get(request.item_id, 1) - 1
            if remaining > 0:
                self._inflight[request.item_id] = remaining
            else:
                self._inflight.pop(request.item_id, None)

    def _deliver(self, result: CommitResult) -> None:
        self._release(result.request)

        if result.ok and result.item is not None:
            self.registry.replace_item(result.item)

        self.last_result = result
        for callback in list(self._listeners):
            callback(result)
