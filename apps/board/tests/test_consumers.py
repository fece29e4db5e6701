# apps/board/tests/test_consumers.py

"""
Consumers WebSocket com WebsocketCommunicator

TransactionTestCase: o motor grava via database_sync_to_async e os
dados precisam estar visíveis fora da transação do teste.
"""

from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser, User
from django.test import TransactionTestCase

from apps.board.routing import websocket_urlpatterns
from apps.core.models import Board, Projeto, Tarefa

application = URLRouter(websocket_urlpatterns)


class ConsumerTestCase(TransactionTestCase):

    def setUp(self):
        self.user = User.objects.create_user('carla', password='senha-forte')
        self.board = Board.objects.create(titulo='Operações')
        self.todo, self.doing, self.done = self.board.colunas.order_by('ordem')
        self.t1 = Tarefa.objects.create(board=self.board, coluna=self.todo, titulo='Backup', ordem=1000)
        self.t2 = Tarefa.objects.create(board=self.board, coluna=self.todo, titulo='Monitoria', ordem=2000)

    async def conectar(self, path=None, user=None):
        communicator = WebsocketCommunicator(application, path or f'/ws/board/{self.board.id}/')
        communicator.scope['user'] = user or self.user
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        snapshot = await communicator.receive_json_from(timeout=3)
        self.assertEqual(snapshot['type'], 'board_snapshot')
        return communicator, snapshot

    async def receber_ate(self, communicator, tipo):
        while True:
            message = await communicator.receive_json_from(timeout=3)
            if message['type'] == tipo:
                return message

    def lane(self, snapshot, coluna):
        for col in snapshot['board']['colunas']:
            if col['id'] == f'coluna-{coluna.pk}':
                return [item['id'] for item in col['itens']]
        raise KeyError(coluna.pk)


class BoardConsumerTests(ConsumerTestCase):

    async def test_connect_sends_snapshot(self):
        communicator, snapshot = await self.conectar()
        self.assertEqual(len(snapshot['board']['colunas']), 3)
        self.assertEqual(self.lane(snapshot, self.todo), [f'tarefa-{self.t1.pk}', f'tarefa-{self.t2.pk}'])
        self.assertIsNone(snapshot['board']['aviso'])
        await communicator.disconnect()

    async def test_anonymous_is_rejected(self):
        communicator = WebsocketCommunicator(application, f'/ws/board/{self.board.id}/')
        communicator.scope['user'] = AnonymousUser()
        connected, _ = await communicator.connect()
        self.assertFalse(connected)

    async def test_unknown_board_is_rejected(self):
        communicator = WebsocketCommunicator(application, '/ws/board/9999/')
        communicator.scope['user'] = self.user
        connected, _ = await communicator.connect()
        self.assertFalse(connected)

    async def test_ping(self):
        communicator, _ = await self.conectar()
        await communicator.send_json_to({'type': 'ping'})
        resposta = await communicator.receive_json_from(timeout=3)
        self.assertEqual(resposta['type'], 'pong')
        await communicator.disconnect()

    async def test_pointer_drag_is_persisted_and_broadcast(self):
        communicator, _ = await self.conectar()
        t1 = f'tarefa-{self.t1.pk}'

        await communicator.send_json_to({'type': 'pointer_down', 'id': t1, 'x': 0, 'y': 0})
        await communicator.send_json_to({'type': 'pointer_move', 'x': 0, 'y': 20, 'over': t1})
        await communicator.send_json_to({
            'type': 'pointer_move', 'x': 240, 'y': 20, 'over': f'droppable-coluna-{self.doing.pk}',
        })
        await communicator.send_json_to({'type': 'pointer_up'})

        evento = await self.receber_ate(communicator, 'item_moved')
        self.assertEqual(evento['message']['item_id'], t1)
        self.assertEqual(evento['message']['container_id'], f'coluna-{self.doing.pk}')
        self.assertTrue(evento['message']['ok'])

        tarefa = await database_sync_to_async(Tarefa.objects.get)(pk=self.t1.pk)
        self.assertEqual(tarefa.coluna_id, self.doing.pk)
        self.assertEqual(tarefa.revisao, 1)
        await communicator.disconnect()

    async def test_keyboard_drag(self):
        communicator, _ = await self.conectar()
        t2 = f'tarefa-{self.t2.pk}'

        await communicator.send_json_to({'type': 'key', 'key': 'Enter', 'focus': t2})
        await communicator.send_json_to({'type': 'key', 'key': 'ArrowUp'})
        await communicator.send_json_to({'type': 'key', 'key': 'Enter'})

        evento = await self.receber_ate(communicator, 'item_moved')
        self.assertEqual(evento['message']['position'], 0)
        await communicator.disconnect()

        ordem = await database_sync_to_async(
            lambda: list(self.todo.tarefas.order_by('ordem').values_list('titulo', flat=True))
        )()
        self.assertEqual(ordem, ['Monitoria', 'Backup'])

    async def test_invalid_gesture_reports_error(self):
        communicator, _ = await self.conectar()
        await communicator.send_json_to({'type': 'key', 'key': 'Enter', 'focus': 'tarefa-9999'})
        resposta = await self.receber_ate(communicator, 'erro')
        self.assertIn('tarefa-9999', resposta['error'])
        await communicator.disconnect()

    async def test_remote_change_triggers_reload(self):
        communicator, _ = await self.conectar()

        # outro cliente moveu a tarefa e avisou o grupo
        await database_sync_to_async(
            Tarefa.objects.filter(pk=self.t1.pk).update
        )(coluna=self.doing, revisao=1)
        await get_channel_layer().group_send(f'board_{self.board.id}', {
            'type': 'item_moved',
            'message': {'item_id': f'tarefa-{self.t1.pk}', 'usuario': 'outra pessoa'},
        })

        evento = await self.receber_ate(communicator, 'item_moved')
        self.assertEqual(evento['message']['usuario'], 'outra pessoa')
        snapshot = await self.receber_ate(communicator, 'board_snapshot')
        self.assertEqual(self.lane(snapshot, self.doing), [f'tarefa-{self.t1.pk}'])
        await communicator.disconnect()

    async def test_sync_board(self):
        communicator, _ = await self.conectar()
        nova = await database_sync_to_async(Tarefa.objects.create)(
            board=self.board, coluna=self.done, titulo='Auditoria', ordem=1000
        )
        await communicator.send_json_to({'type': 'sync_board'})
        snapshot = await self.receber_ate(communicator, 'board_snapshot')
        self.assertEqual(self.lane(snapshot, self.done), [f'tarefa-{nova.pk}'])
        await communicator.disconnect()


class ProjectBoardConsumerTests(ConsumerTestCase):

    async def test_connect(self):
        await database_sync_to_async(Projeto.objects.create)(nome='ERP', status='planning', ordem=1000)
        communicator, snapshot = await self.conectar('/ws/projetos/')
        colunas = snapshot['board']['colunas']
        self.assertEqual([c['id'] for c in colunas], Projeto.STATUS_BOARD)
        self.assertEqual([i['nome'] for i in colunas[1]['itens']], ['ERP'])
        await communicator.disconnect()
