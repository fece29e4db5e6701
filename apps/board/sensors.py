# apps/board/sensors.py

"""
Sensores de entrada

Traduzem ponteiro, toque e teclado nos mesmos quatro eventos da sessão
de gesto. Os limiares de ativação resolvem a ambiguidade entre clique e
arraste, nunca geram erro.
"""

import logging
import math
from typing import Callable, Optional

from .collision import Layout
from .gestures import Cancel, Drop, DragKind, GestureSession, InputSource, MoveTo, PickUp

logger = logging.getLogger(__name__)

_UNSET = object()


class BaseSensor:
    """Guarda a sessão compartilhada e a função de despacho"""

    source = InputSource.API

    def __init__(self, session: GestureSession, dispatch: Optional[Callable] = None):
        self.session = session
        self.dispatch = dispatch or session.dispatch

    @property
    def owns_session(self) -> bool:
        return self.session.active and self.session.source is self.source


class PointerSensor(BaseSensor):
    """
    Mouse/caneta

    O arraste só começa depois de o ponteiro andar activation_distance
    pixels. Soltar antes disso é um clique. Com um Layout a posição do
    card é resolvida por colisão; sem ele o cliente informa o id sob o
    ponteiro.
    """

    source = InputSource.POINTER

    def __init__(self, session, activation_distance: float = 10, layout: Optional[Layout] = None,
                 dispatch=None):
        super().__init__(session, dispatch)
        self.activation_distance = activation_distance
        self.layout = layout
        self._pending: Optional[str] = None
        self._origin = (0.0, 0.0)
        self._over = None

    def down(self, active_id: str, x: float, y: float) -> bool:
        if self.session.active:
            return False
        self._pending = str(active_id)
        self._origin = (float(x), float(y))
        self._over = None
        return True

    def move(self, x: float, y: float, over=_UNSET, index: Optional[int] = None) -> bool:
        """Retorna True quando o snapshot especulativo mudou"""
        dx, dy = float(x) - self._origin[0], float(y) - self._origin[1]

        if self._pending is not None and not self.session.active:
            if math.hypot(dx, dy) < self.activation_distance:
                return False
            active_id, self._pending = self._pending, None
            self.dispatch(PickUp(active_id, self.source))

        if not self.owns_session:
            return False

        if over is _UNSET:
            over, index = self._collide(dx, dy, float(y))
        self._over = over
        if over is None:
            return False
        return bool(self.dispatch(MoveTo(over, index)))

    def up(self, over=_UNSET):
        """
        Solta o ponteiro

        Antes do limiar é clique (None). Fora de qualquer alvo cancela;
        caso contrário faz o drop e retorna o pedido de commit.
        """
        if self._pending is not None:
            self._pending = None
            return None
        if not self.owns_session:
            return None

        if over is not _UNSET:
            self._over = over
        if self._over is None:
            self.dispatch(Cancel('solto fora de um alvo'))
            return None
        return self.dispatch(Drop())

    def _collide(self, dx, dy, pointer_y):
        if self.layout is None:
            return None, None
        active_id = self.session.active_id
        over = self.layout.over(active_id, dx, dy)
        if over is None:
            return None, None

        registry = self.session.registry
        if self.session.kind is DragKind.ITEM and registry.has_container(over):
            return over, self.layout.index_in(registry.ids(over), pointer_y, active_id)
        return over, None


class TouchSensor(BaseSensor):
    """
    Toque

    Ativa depois de segurar delay_ms; andar mais que tolerance pixels
    durante a espera aborta a ativação (é rolagem, não arraste).
    Os tempos vêm do cliente, em milissegundos.
    """

    source = InputSource.TOUCH

    def __init__(self, session, delay_ms: int = 250, tolerance: float = 5, dispatch=None):
        super().__init__(session, dispatch)
        self.delay_ms = delay_ms
        self.tolerance = tolerance
        self._pending: Optional[str] = None
        self._origin = (0.0, 0.0)
        self._started_at = 0.0
        self._over = None

    def start(self, active_id: str, x: float, y: float, timestamp: float) -> bool:
        if self.session.active:
            return False
        self._pending = str(active_id)
        self._origin = (float(x), float(y))
        self._started_at = float(timestamp)
        self._over = None
        return True

    def hold(self, timestamp: float) -> bool:
        """Ativa se o dedo ficou parado tempo suficiente"""
        if self._pending is None or self.session.active:
            return False
        if float(timestamp) - self._started_at < self.delay_ms:
            return False
        active_id, self._pending = self._pending, None
        self.dispatch(PickUp(active_id, self.source))
        return True

    def move(self, x: float, y: float, timestamp: float, over=None, index: Optional[int] = None) -> bool:
        if self._pending is not None and not self.session.active:
            if not self.hold(timestamp):
                distance = math.hypot(float(x) - self._origin[0], float(y) - self._origin[1])
                if distance > self.tolerance:
                    logger.debug(f"Toque em {self._pending} virou rolagem, arraste abortado")
                    self._pending = None
                return False

        if not self.owns_session:
            return False

        self._over = over
        if over is None:
            return False
        return bool(self.dispatch(MoveTo(over, index)))

    def end(self, timestamp: Optional[float] = None, over=_UNSET):
        if self._pending is not None:
            self._pending = None
            return None
        if not self.owns_session:
            return None

        if over is not _UNSET:
            self._over = over
        if self._over is None:
            self.dispatch(Cancel('toque terminou fora de um alvo'))
            return None
        return self.dispatch(Drop())


class KeyboardSensor(BaseSensor):
    """
    Teclado (acessibilidade)

    Espaço/Enter pega e solta, Esc cancela, setas para cima/baixo trocam
    de posição na coluna e esquerda/direita trocam de coluna.
    """

    source = InputSource.KEYBOARD

    PICK_KEYS = {' ', 'Space', 'Spacebar', 'Enter'}
    CANCEL_KEYS = {'Escape', 'Esc'}
    VERTICAL = {'ArrowUp': -1, 'ArrowDown': 1}
    HORIZONTAL = {'ArrowLeft': -1, 'ArrowRight': 1}

    def key(self, key: str, focus_id: Optional[str] = None):
        session = self.session
        if session.active and not self.owns_session:
            # arraste de ponteiro/toque em andamento
            return False

        if key in self.PICK_KEYS:
            if not session.active:
                if focus_id is None:
                    return False
                return self.dispatch(PickUp(str(focus_id), self.source))
            return self.dispatch(Drop())

        if not session.active:
            return False

        if key in self.CANCEL_KEYS:
            return self.dispatch(Cancel('tecla Esc'))
        if key in self.VERTICAL:
            return self._vertical(self.VERTICAL[key])
        if key in self.HORIZONTAL:
            return self._horizontal(self.HORIZONTAL[key])
        return False

    def _vertical(self, step: int) -> bool:
        session = self.session
        if session.kind is not DragKind.ITEM:
            return False

        registry = session.registry
        container_id = registry.container_of(session.active_id)
        current = registry.index_of(session.active_id)
        index = current + step
        if index < 0 or index >= len(registry.ids(container_id)):
            return False
        return bool(self.dispatch(MoveTo(container_id, index)))

    def _horizontal(self, step: int) -> bool:
        session = self.session
        registry = session.registry
        columns = registry.snapshot().columns

        if session.kind is DragKind.COLUMN:
            position = columns.index(session.active_id) + step
            if position < 0 or position >= len(columns):
                return False
            # o índice diferencia idas e voltas sobre a mesma coluna vizinha
            return bool(self.dispatch(MoveTo(columns[position], position)))

        # pula colunas no limite WIP, como o ponteiro passando por cima delas
        active_id = session.active_id
        position = registry.column_index(registry.container_of(active_id)) + step
        while 0 <= position < len(columns):
            destination = columns[position]
            if not registry.is_full(destination, excluding=active_id):
                # mantém a mesma altura na coluna de destino
                index = min(registry.index_of(active_id), len(registry.ids(destination)))
                return bool(self.dispatch(MoveTo(destination, index)))
            position += step
        return False
