# apps/board/consumers.py

import asyncio
import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from apps.core.models import Board

from .collision import Layout
from .engine import DragEngine
from .gestures import GestureError

logger = logging.getLogger(__name__)


class BoardConsumer(AsyncWebsocketConsumer):
    """
    Consumer WebSocket do board Kanban

    Funcionalidades:
    - Um DragEngine por conexão, alimentado pelos eventos de gesto
    - board_snapshot enviado a cada mudança do estado exibido
    - Recarga quando outro cliente (ou uma view HTTP) altera o board
    """

    async def connect(self):
        """
        Conecta usuário ao grupo do board
        Monta o motor de arraste antes de aceitar a conexão
        """
        self.user = self.scope['user']
        self.board_group_name = self.get_group_name()
        self._tasks = set()

        # Verificar se usuário está autenticado
        if not self.user.is_authenticated:
            logger.warning("❌ Conexão WebSocket rejeitada - usuário não autenticado")
            await self.close()
            return

        self.engine = await self.build_engine()
        if self.engine is None:
            logger.warning(f"❌ Conexão WebSocket rejeitada - board {self.board_group_name} não encontrado")
            await self.close()
            return

        await self.channel_layer.group_add(
            self.board_group_name,
            self.channel_name
        )
        await self.accept()

        self.unsubscribe = self.engine.subscribe(self.on_render)
        self.engine.synchronizer.subscribe(self.on_commit)
        await self.send_snapshot()

        logger.info(f"✅ WebSocket conectado - {self.user.username} em {self.board_group_name}")

    async def disconnect(self, close_code):
        if getattr(self, 'engine', None) is not None:
            self.unsubscribe()
            # commits em voo ainda precisam chegar ao banco e aos outros clientes
            await self.engine.synchronizer.wait_pending()
            await self.channel_layer.group_discard(
                self.board_group_name,
                self.channel_name
            )

        logger.info(f"🔌 WebSocket desconectado - {self.user.username} de {self.board_group_name}")

    async def receive(self, text_data):
        """
        Recebe eventos de gesto do cliente
        Todos os sensores alimentam a mesma sessão de arraste
        """
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            logger.error(f"❌ JSON inválido recebido via WebSocket de {self.user.username}")
            return

        message_type = data.get('type')
        engine = self.engine

        try:
            # Heartbeat/Ping
            if message_type == 'ping':
                await self.send(text_data=json.dumps({
                    'type': 'pong',
                    'timestamp': self.get_timestamp()
                }))

            elif message_type == 'pointer_down':
                if 'layout' in data:
                    engine.pointer.layout = Layout.from_payload(data['layout'])
                engine.pointer.down(data['id'], data.get('x', 0), data.get('y', 0))

            elif message_type == 'pointer_move':
                kwargs = {}
                if 'over' in data:
                    kwargs = {'over': data['over'], 'index': data.get('index')}
                engine.pointer.move(data.get('x', 0), data.get('y', 0), **kwargs)

            elif message_type == 'pointer_up':
                if 'over' in data:
                    engine.pointer.up(data['over'])
                else:
                    engine.pointer.up()

            elif message_type == 'touch_start':
                engine.touch.start(data['id'], data.get('x', 0), data.get('y', 0), data.get('timestamp', 0))

            elif message_type == 'touch_move':
                engine.touch.move(
                    data.get('x', 0), data.get('y', 0), data.get('timestamp', 0),
                    over=data.get('over'), index=data.get('index')
                )

            elif message_type == 'touch_end':
                if 'over' in data:
                    engine.touch.end(data.get('timestamp'), data['over'])
                else:
                    engine.touch.end(data.get('timestamp'))

            elif message_type == 'key':
                engine.keyboard.key(data.get('key', ''), data.get('focus'))

            elif message_type == 'cancel':
                if engine.session.active:
                    engine.cancel_drag('cliente')

            elif message_type == 'retry':
                engine.retry()

            elif message_type == 'sync_board':
                await self.reload_engine()
                await self.send_snapshot()

            else:
                logger.debug(f"Evento WebSocket ignorado: {message_type}")

        except GestureError as e:
            logger.warning(f"⚠️ Gesto inválido de {self.user.username}: {str(e)}")
            await self.send(text_data=json.dumps({
                'type': 'erro',
                'error': str(e),
                'timestamp': self.get_timestamp()
            }))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"❌ Evento WebSocket malformado ({message_type}): {str(e)}")

    # === Handlers para eventos do grupo ===

    async def item_moved(self, event):
        await self.relay('item_moved', event['message'])

    async def item_created(self, event):
        await self.relay('item_created', event['message'])

    async def item_deleted(self, event):
        await self.relay('item_deleted', event['message'])

    async def columns_reordered(self, event):
        await self.relay('columns_reordered', event['message'])

    async def board_refresh(self, event):
        """
        Força refresh do board (colunas criadas, limite WIP alterado)
        """
        await self.relay('board_refresh', event['message'])

    # === Callbacks do motor ===

    def on_render(self, rendered):
        """Chamado pelo motor a cada mudança; o envio é agendado no loop"""
        self.schedule(self.send_snapshot(rendered))

    def on_commit(self, result):
        if not result.ok:
            return
        message = result.to_dict()
        message['origem'] = self.channel_name
        message['usuario'] = self.user.get_full_name() or self.user.username
        message['timestamp'] = self.get_timestamp()
        tipo = 'columns_reordered' if 'container_ids' in message else 'item_moved'
        self.schedule(self.channel_layer.group_send(
            self.board_group_name,
            {'type': tipo, 'message': message}
        ))

    # === Métodos auxiliares ===

    def get_group_name(self):
        self.board_id = self.scope['url_route']['kwargs']['board_id']
        return f'board_{self.board_id}'

    @database_sync_to_async
    def build_engine(self):
        """
        Monta o motor com o estado atual do board
        """
        try:
            board = Board.objects.get(id=self.board_id, ativo=True)
        except Board.DoesNotExist:
            return None
        return DragEngine.for_tasks(board)

    async def relay(self, tipo, message):
        """Repassa o evento ao cliente e ressincroniza, exceto o próprio commit"""
        await self.send(text_data=json.dumps({
            'type': tipo,
            'message': message
        }))
        if message.get('origem') != self.channel_name:
            await self.reload_engine()

    async def reload_engine(self):
        task = self.engine.reload()
        if isinstance(task, asyncio.Future):
            await task

    async def send_snapshot(self, rendered=None):
        if rendered is None:
            rendered = self.engine.render()
        await self.send(text_data=json.dumps({
            'type': 'board_snapshot',
            'board': rendered,
            'timestamp': self.get_timestamp()
        }))

    def schedule(self, coro):
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def get_timestamp(self):
        """
        Retorna timestamp atual em formato ISO
        """
        return timezone.now().isoformat()


class ProjectBoardConsumer(BoardConsumer):
    """Board de projetos por status, compartilhado por todos os usuários"""

    def get_group_name(self):
        return 'board_projetos'

    @database_sync_to_async
    def build_engine(self):
        return DragEngine.for_projects()
