# apps/board/gestures.py

"""
Sessão de gesto: estado efêmero de um único arraste

Máquina de estados IDLE -> ACTIVE -> COMMITTING -> IDLE alimentada por
quatro eventos (PickUp, MoveTo, Drop, Cancel). Ponteiro, toque e teclado
produzem os mesmos eventos, então a lógica de transição existe uma vez só.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .registry import ContainerRegistry
from .targets import Target, resolve_target

logger = logging.getLogger(__name__)


class GestureError(Exception):
    """Evento incompatível com o estado atual da sessão"""


class GestureState(enum.Enum):
    IDLE = 'idle'
    ACTIVE = 'active'
    COMMITTING = 'committing'


class DragKind(enum.Enum):
    ITEM = 'item'
    COLUMN = 'column'


class InputSource(enum.Enum):
    POINTER = 'pointer'
    TOUCH = 'touch'
    KEYBOARD = 'keyboard'
    API = 'api'


# === Eventos ===

@dataclass(frozen=True)
class PickUp:
    active_id: str
    source: InputSource = InputSource.API


@dataclass(frozen=True)
class MoveTo:
    raw_target: Optional[str]
    index: Optional[int] = None


@dataclass(frozen=True)
class Drop:
    pass


@dataclass(frozen=True)
class Cancel:
    reason: str = ''


GestureEvent = Union[PickUp, MoveTo, Drop, Cancel]


@dataclass
class GestureSession:
    """
    Estado de um arraste em andamento

    O redutor recalcula a ordem especulativa a cada novo alvo; o
    sincronizador persiste no drop. Cancelar reaplica o snapshot confirmado.
    """

    registry: ContainerRegistry
    reducer: object
    synchronizer: object
    state: GestureState = GestureState.IDLE
    active_id: Optional[str] = None
    kind: Optional[DragKind] = None
    source: Optional[InputSource] = None
    target: Optional[Target] = None
    origin_container: Optional[str] = None
    # coluna tocada -> última posição do card ativo nela
    touched: Dict[str, int] = field(default_factory=dict)

    @property
    def active(self) -> bool:
        return self.state is GestureState.ACTIVE

    def dispatch(self, event: GestureEvent):
        """Ponto único de entrada dos eventos de todos os sensores"""
        if isinstance(event, PickUp):
            return self._pick_up(event)
        if isinstance(event, MoveTo):
            return self._move_to(event)
        if isinstance(event, Drop):
            return self._drop()
        if isinstance(event, Cancel):
            return self._cancel(event.reason)
        raise GestureError(f"Evento desconhecido: {event!r}")

    # === Transições ===

    def _pick_up(self, event: PickUp) -> bool:
        if self.state is not GestureState.IDLE:
            raise GestureError(f"Arraste já em andamento ({self.active_id})")

        active_id = str(event.active_id)
        if self.registry.has_item(active_id):
            self.kind = DragKind.ITEM
            self.origin_container = self.registry.container_of(active_id)
            self.touched = {self.origin_container: self.registry.index_of(active_id)}
        elif self.registry.has_container(active_id):
            self.kind = DragKind.COLUMN
            self.origin_container = active_id
            self.touched = {}
        else:
            raise GestureError(f"Nada arrastável com id {active_id}")

        self.active_id = active_id
        self.source = event.source
        self.target = None
        self.state = GestureState.ACTIVE
        logger.debug(f"Arraste iniciado: {self.kind.value} {active_id} via {event.source.value}")
        return True

    def _move_to(self, event: MoveTo) -> bool:
        """Retorna True quando o snapshot especulativo mudou"""
        self._require_active()

        target = resolve_target(self.registry, event.raw_target, event.index)
        if target is None:
            logger.debug(f"Alvo inválido ignorado: {event.raw_target}")
            return False
        if target == self.target:
            return False

        accepted = self.reducer.reduce(self, target)
        if not accepted:
            return False

        self.target = target
        if self.kind is DragKind.ITEM:
            self._touch()
        return True

    def _drop(self):
        self._require_active()
        self.state = GestureState.COMMITTING
        try:
            return self.synchronizer.commit(self)
        finally:
            self._reset()

    def _cancel(self, reason: str = '') -> bool:
        self._require_active()
        self.state = GestureState.COMMITTING
        try:
            self.registry.restore()
            logger.debug(f"Arraste cancelado: {self.active_id} {reason}".rstrip())
            return True
        finally:
            self._reset()

    # === Métodos auxiliares ===

    def _require_active(self) -> None:
        if self.state is not GestureState.ACTIVE:
            raise GestureError("Nenhum arraste ativo")

    def _touch(self) -> None:
        container_id = self.registry.container_of(self.active_id)
        self.touched[container_id] = self.registry.index_of(self.active_id)

    def _reset(self) -> None:
        self.state = GestureState.IDLE
        self.active_id = None
        self.kind = None
        self.source = None
        self.target = None
        self.origin_container = None
        self.touched = {}
