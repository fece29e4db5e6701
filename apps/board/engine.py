# apps/board/engine.py

"""
Motor de arraste de um board para um cliente

Liga registro, sessão de gesto, redutor, sincronizador, sensores e
composição. O consumer WebSocket cria um DragEngine por conexão.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from channels.db import database_sync_to_async
from django.conf import settings

from .composition import BoardComposition
from .gestures import Cancel, Drop, GestureSession, InputSource, MoveTo, PickUp
from .persistence import PersistenceGateway, ProjectBoardPersistence, TaskBoardPersistence
from .reducer import SpeculativeReducer
from .registry import ContainerRegistry, Item, Snapshot
from .sensors import KeyboardSensor, PointerSensor, TouchSensor
from .synchronizer import CommitResult, CommitSynchronizer

logger = logging.getLogger(__name__)


class DragEngine:
    """
    Fachada do motor de reordenação

    - begin_drag / update_target / end_drag / cancel_drag
    - pointer / touch / keyboard: sensores ligados à mesma sessão
    - subscribe(callback): recebe o board renderizado a cada mudança
    - reload(): ressincroniza com o backend (adiado durante um arraste)
    """

    def __init__(self, persistence: PersistenceGateway, pointer_distance: float = 10,
                 touch_delay_ms: int = 250, touch_tolerance: float = 5,
                 optimistic_locking: bool = True, alerta_percent: int = 80):
        self.persistence = persistence
        self.registry = ContainerRegistry(persistence.fetch_containers(), persistence.fetch_items())
        self.synchronizer = CommitSynchronizer(self.registry, persistence, optimistic_locking)
        self.session = GestureSession(self.registry, SpeculativeReducer(), self.synchronizer)
        self.composition = BoardComposition(
            self.registry, self.session, self.synchronizer, self.reload, alerta_percent
        )

        self.pointer = PointerSensor(self.session, pointer_distance, dispatch=self.dispatch)
        self.touch = TouchSensor(self.session, touch_delay_ms, touch_tolerance, dispatch=self.dispatch)
        self.keyboard = KeyboardSensor(self.session, dispatch=self.dispatch)

        self._listeners: List[Callable[[Dict], None]] = []
        self._last_rendered: Optional[Dict] = None
        self._reload_pending = False
        self._reload_task: Optional[asyncio.Task] = None

        self.registry.subscribe(lambda snapshot: self._emit())
        self.synchronizer.subscribe(self._on_commit)

    # === Construtores ===

    @classmethod
    def _from_settings(cls, persistence, pointer_distance):
        return cls(
            persistence,
            pointer_distance=pointer_distance,
            touch_delay_ms=getattr(settings, 'AUTOFLOW_TOUCH_DELAY_MS', 250),
            touch_tolerance=getattr(settings, 'AUTOFLOW_TOUCH_TOLERANCE', 5),
            optimistic_locking=getattr(settings, 'AUTOFLOW_OPTIMISTIC_LOCKING', True),
            alerta_percent=getattr(settings, 'AUTOFLOW_WIP_ALERT_PERCENT', 80),
        )

    @classmethod
    def for_tasks(cls, board) -> 'DragEngine':
        """Board de tarefas por coluna"""
        return cls._from_settings(
            TaskBoardPersistence(board),
            getattr(settings, 'AUTOFLOW_POINTER_DISTANCE_TASKS', 10),
        )

    @classmethod
    def for_projects(cls) -> 'DragEngine':
        """Board de projetos por status"""
        return cls._from_settings(
            ProjectBoardPersistence(),
            getattr(settings, 'AUTOFLOW_POINTER_DISTANCE_PROJECTS', 8),
        )

    # === Interface para a UI ===

    @property
    def snapshot(self) -> Snapshot:
        return self.registry.snapshot()

    def render(self) -> Dict:
        return self.composition.render()

    def begin_drag(self, active_id: str, source: InputSource = InputSource.API) -> bool:
        return self.dispatch(PickUp(active_id, source))

    def update_target(self, raw_id, index: Optional[int] = None) -> bool:
        return self.dispatch(MoveTo(raw_id, index))

    def end_drag(self):
        return self.dispatch(Drop())

    def cancel_drag(self, reason: str = '') -> bool:
        return self.dispatch(Cancel(reason))

    def dispatch(self, event):
        """Repassa o evento à sessão e aplica uma recarga adiada ao final do gesto"""
        try:
            return self.session.dispatch(event)
        finally:
            if not self.session.active and self._reload_pending:
                self._reload_pending = False
                self.reload()
            self._emit()

    def subscribe(self, callback: Callable[[Dict], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def retry(self):
        return self.composition.retry()

    def dismiss(self) -> None:
        self.composition.dismiss()
        self._emit()

    # === Recarga ===

    def reload(self):
        """
        Busca colunas e itens de novo no backend

        Durante um arraste a recarga fica pendente até o gesto terminar.
        Dentro de um event loop a busca roda numa task; fora dele é direta.
        """
        if self.session.active:
            self._reload_pending = True
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            return self._apply_reload(self._fetch())

        if self._reload_task is not None and not self._reload_task.done():
            return self._reload_task
        self._reload_task = loop.create_task(database_sync_to_async(self._fetch)())
        self._reload_task.add_done_callback(self._on_fetched)
        return self._reload_task

    def _fetch(self):
        return self.persistence.fetch_containers(), self.persistence.fetch_items()

    def _on_fetched(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"❌ Erro ao recarregar board: {str(task.exception())}")
            return
        self._apply_reload(task.result())

    def _apply_reload(self, data) -> Optional[Snapshot]:
        if self.session.active:
            # chegou no meio de um arraste novo: busca de novo no fim do gesto
            self._reload_pending = True
            return None
        containers, items = data
        snapshot = self.registry.reload(containers, items)
        self._emit()
        return snapshot

    # === Criação/exclusão fora de event loop ===

    def create_item(self, container_id: str, **fields) -> Item:
        item = self.persistence.create_item(container_id, **fields)
        self.registry.append(item)
        return item

    def delete_item(self, item_id: str) -> None:
        self.persistence.delete_item(item_id)
        if self.session.active and self.session.active_id == item_id:
            # a sessão não pode apontar para um card que saiu do registro
            self.cancel_drag('item excluído')
        self.registry.discard(item_id)

    # === Métodos auxiliares ===

    def _on_commit(self, result: CommitResult) -> None:
        self.composition.reconcile(result)
        self._emit()

    def _emit(self) -> None:
        rendered = self.render()
        if rendered == self._last_rendered:
            return
        self._last_rendered = rendered
        for callback in list(self._listeners):
            callback(rendered)
