# apps/board/tests/test_engine.py

import asyncio

from django.test import SimpleTestCase, TransactionTestCase

from apps.board.composition import MENSAGENS_ERRO, wip_status
from apps.board.engine import DragEngine
from apps.board.persistence import CapacityExceeded, RevisionConflict
from apps.board.synchronizer import ColumnOrder, Placement
from apps.board.tests.fakes import FakePersistence


def ids_da_coluna(rendered, indice):
    return [item['id'] for item in rendered['colunas'][indice]['itens']]


class WipStatusTests(SimpleTestCase):

    def test_without_limit(self):
        self.assertEqual(wip_status(50, 0), 'ok')

    def test_thresholds(self):
        self.assertEqual(wip_status(3, 5), 'ok')
        self.assertEqual(wip_status(4, 5), 'alerta')
        self.assertEqual(wip_status(5, 5), 'critico')
        self.assertEqual(wip_status(6, 5), 'critico')

    def test_custom_alert_percent(self):
        self.assertEqual(wip_status(3, 5, alerta_percent=50), 'alerta')


class BoardCompositionTests(SimpleTestCase):

    def setUp(self):
        self.persistence = FakePersistence({'todo': ['t1', 't2'], 'doing': ['t3']}, {'doing': 2})
        self.engine = DragEngine(self.persistence)

    def test_render_structure(self):
        rendered = self.engine.render()
        self.assertFalse(rendered['arrastando'])
        self.assertIsNone(rendered['overlay'])
        self.assertIsNone(rendered['aviso'])
        self.assertEqual(rendered['colunas'][0], {
            'id': 'todo',
            'titulo': 'Todo',
            'limite_wip': 0,
            'total': 2,
            'status_wip': 'ok',
            'itens': [
                {'titulo': 'T1', 'id': 't1', 'revisao': 0},
                {'titulo': 'T2', 'id': 't2', 'revisao': 0},
            ],
        })
        self.assertEqual(rendered['colunas'][1]['status_wip'], 'ok')

    def test_wip_status_follows_speculative_state(self):
        self.engine.begin_drag('t1')
        self.engine.update_target('t3')
        self.assertEqual(self.engine.render()['colunas'][1]['status_wip'], 'critico')

    def test_item_overlay(self):
        self.engine.begin_drag('t1')
        rendered = self.engine.render()
        self.assertTrue(rendered['arrastando'])
        self.assertEqual(rendered['overlay'], {'titulo': 'T1', 'id': 't1', 'revisao': 0, 'tipo': 'item'})

    def test_column_overlay(self):
        self.engine.begin_drag('doing')
        self.assertEqual(self.engine.render()['overlay'], {'tipo': 'coluna', 'id': 'doing', 'titulo': 'Doing'})
        self.engine.cancel_drag()
        self.assertIsNone(self.engine.render()['overlay'])


class FailedCommitTests(SimpleTestCase):

    def setUp(self):
        self.persistence = FakePersistence({'todo': ['t1', 't2'], 'doing': ['t3']})
        self.engine = DragEngine(self.persistence)

    def arrastar(self, item_id, alvo):
        self.engine.begin_drag(item_id)
        self.engine.update_target(alvo)
        return self.engine.end_drag()

    def test_failure_reloads_server_state_and_shows_notice(self):
        self.persistence.fail_with = RevisionConflict('revisão 3 esperada')
        with self.assertLogs('apps.board.composition', level='WARNING'):
            self.arrastar('t1', 't3')

        self.assertEqual(self.engine.snapshot.as_dict(), {'todo': ['t1', 't2'], 'doing': ['t3']})
        aviso = self.engine.render()['aviso']
        self.assertEqual(aviso['tipo'], 'conflict')
        self.assertEqual(aviso['mensagem'], MENSAGENS_ERRO['conflict'])
        self.assertEqual(aviso['detalhe'], 'revisão 3 esperada')
        self.assertEqual(aviso['acoes'], ['retry', 'reload'])

    def test_capacity_message(self):
        self.persistence.fail_with = CapacityExceeded('cheia')
        self.arrastar('t1', 't3')
        self.assertEqual(self.engine.render()['aviso']['mensagem'], MENSAGENS_ERRO['capacity'])

    def test_retry_replays_the_failed_move(self):
        self.persistence.fail_with = RevisionConflict('x')
        self.arrastar('t1', 't3')
        self.persistence.fail_with = None

        request = self.engine.retry()

        self.assertEqual(request, Placement('t1', 'doing', 0, expected_revision=0))
        self.assertEqual(self.persistence.calls[-1], ('persist', 't1', 'doing', 0, 0))
        self.assertEqual(self.engine.snapshot.as_dict(), {'todo': ['t2'], 'doing': ['t1', 't3']})
        self.assertIsNone(self.engine.render()['aviso'])
        self.assertIsNone(self.engine.composition.failed)

    def test_retry_column_order(self):
        self.persistence.fail_with = RevisionConflict('x')
        self.engine.begin_drag('doing')
        self.engine.update_target('todo')
        self.engine.end_drag()
        self.assertEqual(self.engine.snapshot.columns, ('todo', 'doing'))

        self.persistence.fail_with = None
        self.assertEqual(self.engine.retry(), ColumnOrder(('doing', 'todo')))
        self.assertEqual(self.persistence.calls[-1], ('reorder', ['doing', 'todo']))
        self.assertEqual(self.engine.snapshot.columns, ('doing', 'todo'))

    def test_retry_discarded_when_item_is_gone(self):
        self.persistence.fail_with = RevisionConflict('x')
        self.arrastar('t1', 't3')
        self.persistence.fail_with = None
        self.engine.delete_item('t1')

        self.assertIsNone(self.engine.retry())
        self.assertIsNone(self.engine.composition.failed)

    def test_retry_without_failure(self):
        self.assertIsNone(self.engine.retry())

    def test_dismiss(self):
        self.persistence.fail_with = RevisionConflict('x')
        self.arrastar('t1', 't3')
        self.engine.dismiss()
        self.assertIsNone(self.engine.render()['aviso'])
        self.assertIsNone(self.engine.retry())


class DragEngineTests(SimpleTestCase):

    def setUp(self):
        self.persistence = FakePersistence({'todo': ['t1', 't2'], 'doing': ['t3']})
        self.engine = DragEngine(self.persistence)

    def test_successful_drag(self):
        self.engine.begin_drag('t2')
        self.engine.update_target('droppable-doing')
        request = self.engine.end_drag()
        self.assertEqual(request, Placement('t2', 'doing', 1, expected_revision=0))
        self.assertEqual(self.engine.registry.item('t2').revision, 1)
        self.assertIsNone(self.engine.render()['aviso'])

    def test_reload_is_deferred_during_a_drag(self):
        self.engine.begin_drag('t1')
        self.engine.update_target('t3')

        # outro cliente cria um card enquanto o arraste acontece
        self.persistence.create_item('todo', titulo='Externo')
        self.assertIsNone(self.engine.reload())
        self.assertNotIn('novo-1', self.engine.snapshot.items_in('todo'))
        self.assertEqual(self.engine.snapshot.items_in('doing'), ('t1', 't3'))

        self.engine.cancel_drag('esc')
        self.assertEqual(self.engine.snapshot.as_dict(), {'todo': ['t1', 't2', 'novo-1'], 'doing': ['t3']})

    def test_reload_when_idle_is_immediate(self):
        self.persistence.create_item('doing', titulo='Externo')
        snapshot = self.engine.reload()
        self.assertEqual(snapshot.items_in('doing'), ('t3', 'novo-1'))
        self.assertEqual(self.engine.registry.item('novo-1').payload, {'titulo': 'Externo'})

    def test_subscribers_receive_each_change_once(self):
        recebidos = []
        unsubscribe = self.engine.subscribe(recebidos.append)

        self.engine.begin_drag('t1')
        self.engine.update_target('t3')
        self.engine.update_target('t3')

        self.assertEqual(len(recebidos), 2)
        self.assertTrue(recebidos[0]['arrastando'])
        self.assertEqual(ids_da_coluna(recebidos[-1], 1), ['t1', 't3'])

        unsubscribe()
        self.engine.cancel_drag()
        self.assertEqual(len(recebidos), 2)

    def test_create_and_delete_item(self):
        item = self.engine.create_item('doing', titulo='Nova')
        self.assertEqual(item.id, 'novo-1')
        self.assertEqual(self.engine.snapshot.items_in('doing'), ('t3', 'novo-1'))
        # o card novo faz parte do estado confirmado
        self.assertEqual(self.engine.registry.committed, self.engine.snapshot)

        self.engine.delete_item('t1')
        self.assertEqual(self.persistence.calls, [('delete', 't1')])
        self.assertEqual(self.engine.snapshot.items_in('todo'), ('t2',))

    def test_deleting_the_dragged_item_cancels_the_drag(self):
        self.engine.begin_drag('t1')
        self.engine.update_target('t3')

        self.engine.delete_item('t1')

        self.assertFalse(self.engine.session.active)
        self.assertEqual(self.engine.snapshot.as_dict(), {'todo': ['t2'], 'doing': ['t3']})
        rendered = self.engine.render()
        self.assertIsNone(rendered['overlay'])
        self.assertFalse(rendered['arrastando'])

        # o próximo arraste funciona normalmente
        self.engine.begin_drag('t2')
        self.engine.update_target('t3')
        self.engine.end_drag()
        self.assertEqual(self.persistence.calls[-1], ('persist', 't2', 'doing', 0, 0))

    def test_sensors_share_the_engine_dispatch(self):
        recebidos = []
        self.engine.subscribe(recebidos.append)
        self.engine.keyboard.key('Enter', focus_id='t2')
        self.engine.keyboard.key('ArrowRight')
        self.engine.keyboard.key('Enter')
        self.assertEqual(self.persistence.calls, [('persist', 't2', 'doing', 1, 0)])
        self.assertFalse(recebidos[-1]['arrastando'])


class AsyncReloadTests(TransactionTestCase):
    """A busca roda via database_sync_to_async, que toca nas conexões do banco"""

    async def test_reload_runs_in_a_task(self):
        persistence = FakePersistence({'todo': ['t1'], 'doing': []})
        engine = DragEngine(persistence)
        persistence.create_item('doing', titulo='Externo')

        task = engine.reload()
        self.assertIsInstance(task, asyncio.Task)
        # uma segunda chamada reaproveita a busca em andamento
        self.assertIs(engine.reload(), task)
        await task
        await asyncio.sleep(0)

        self.assertEqual(engine.snapshot.items_in('doing'), ('novo-1',))
