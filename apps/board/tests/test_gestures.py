# apps/board/tests/test_gestures.py

"""
Sessão de gesto + redutor especulativo + sincronizador

Cobre as propriedades do motor: unicidade, ordem total, drop sem
mudança, movimento atômico entre colunas, cancelamento e limite WIP.
"""

from django.test import SimpleTestCase

from apps.board.gestures import (
    Cancel,
    DragKind,
    Drop,
    GestureError,
    GestureSession,
    GestureState,
    InputSource,
    MoveTo,
    PickUp,
)
from apps.board.reducer import SpeculativeReducer
from apps.board.registry import ContainerRegistry
from apps.board.synchronizer import ColumnOrder, CommitSynchronizer, Placement
from apps.board.targets import ItemTarget
from apps.board.tests.fakes import FakePersistence


def montar(lanes, capacities=None):
    persistence = FakePersistence(lanes, capacities)
    registry = ContainerRegistry(persistence.fetch_containers(), persistence.fetch_items())
    synchronizer = CommitSynchronizer(registry, persistence)
    session = GestureSession(registry, SpeculativeReducer(), synchronizer)
    return session, persistence


class ExampleScenarioTests(SimpleTestCase):

    def test_drag_t1_onto_t4(self):
        session, persistence = montar({'todo': ['t1', 't2', 't3'], 'doing': ['t4']})

        session.dispatch(PickUp('t1', InputSource.POINTER))
        session.dispatch(MoveTo('t4'))

        self.assertEqual(session.registry.snapshot().as_dict(), {
            'todo': ['t2', 't3'],
            'doing': ['t1', 't4'],
        })

        request = session.dispatch(Drop())

        self.assertEqual(request, Placement('t1', 'doing', 0, expected_revision=0))
        self.assertEqual(persistence.calls, [('persist', 't1', 'doing', 0, 0)])
        self.assertEqual(session.registry.committed, session.registry.snapshot())
        self.assertEqual(session.registry.item('t1').revision, 1)
        self.assertIs(session.state, GestureState.IDLE)


class GestureSessionTests(SimpleTestCase):

    def setUp(self):
        self.session, self.persistence = montar({'todo': ['t1', 't2', 't3'], 'doing': ['t4'], 'done': []})
        self.registry = self.session.registry

    def test_pick_up_records_kind_and_source(self):
        self.session.dispatch(PickUp('t2', InputSource.KEYBOARD))
        self.assertTrue(self.session.active)
        self.assertIs(self.session.kind, DragKind.ITEM)
        self.assertIs(self.session.source, InputSource.KEYBOARD)
        self.assertEqual(self.session.origin_container, 'todo')
        self.assertEqual(self.session.touched, {'todo': 1})

    def test_pick_up_column(self):
        self.session.dispatch(PickUp('doing'))
        self.assertIs(self.session.kind, DragKind.COLUMN)

    def test_pick_up_unknown_id(self):
        with self.assertRaises(GestureError):
            self.session.dispatch(PickUp('fantasma'))
        self.assertIs(self.session.state, GestureState.IDLE)

    def test_illegal_transitions(self):
        with self.assertRaises(GestureError):
            self.session.dispatch(Drop())
        with self.assertRaises(GestureError):
            self.session.dispatch(MoveTo('t1'))
        with self.assertRaises(GestureError):
            self.session.dispatch(Cancel())

        self.session.dispatch(PickUp('t1'))
        with self.assertRaises(GestureError):
            self.session.dispatch(PickUp('t2'))

    def test_invalid_target_keeps_previous(self):
        self.session.dispatch(PickUp('t1'))
        self.session.dispatch(MoveTo('t4'))
        antes = self.registry.snapshot()

        self.assertFalse(self.session.dispatch(MoveTo('nao-existe')))
        self.assertFalse(self.session.dispatch(MoveTo(None)))
        self.assertEqual(self.registry.snapshot(), antes)
        self.assertEqual(self.session.target, ItemTarget('t4', 'doing'))

    def test_same_target_is_a_noop(self):
        self.session.dispatch(PickUp('t1'))
        self.assertTrue(self.session.dispatch(MoveTo('t3')))
        self.assertFalse(self.session.dispatch(MoveTo('t3')))

    def test_drop_without_change_does_not_persist(self):
        self.session.dispatch(PickUp('t2'))
        self.session.dispatch(MoveTo('t2'))
        self.session.dispatch(MoveTo('todo'))

        self.assertIsNone(self.session.dispatch(Drop()))
        self.assertEqual(self.persistence.calls, [])

    def test_drag_away_and_back_does_not_persist(self):
        self.session.dispatch(PickUp('t1'))
        self.session.dispatch(MoveTo('t4'))
        self.session.dispatch(MoveTo('t2'))
        self.session.dispatch(MoveTo('t1'))
        self.session.dispatch(MoveTo('todo', 0))

        self.assertEqual(self.registry.ids('todo'), ('t1', 't2', 't3'))
        self.assertIsNone(self.session.dispatch(Drop()))
        self.assertEqual(self.persistence.calls, [])

    def test_cancel_restores_committed_snapshot(self):
        inicial = self.registry.committed
        self.session.dispatch(PickUp('t1'))
        self.session.dispatch(MoveTo('t4'))
        self.session.dispatch(MoveTo('droppable-done'))
        self.session.dispatch(Cancel('esc'))

        self.assertEqual(self.registry.snapshot(), inicial)
        self.assertEqual(self.registry.item('t1').container_id, 'todo')
        self.assertEqual(self.persistence.calls, [])
        self.assertIs(self.session.state, GestureState.IDLE)

    def test_uniqueness_and_total_order_through_a_long_drag(self):
        todos = {'t1', 't2', 't3', 't4'}
        self.session.dispatch(PickUp('t2'))
        for alvo in ['t4', 'droppable-done', 't1', 'doing', 't3', 'done', 't4']:
            self.session.dispatch(MoveTo(alvo))
            snapshot = self.registry.snapshot()
            vistos = [i for _, ids in snapshot.lanes for i in ids]
            self.assertEqual(len(vistos), len(set(vistos)))
            self.assertEqual(set(vistos), todos)

        self.session.dispatch(Drop())
        self.assertEqual(len(self.persistence.calls), 1)
        snapshot = self.registry.snapshot()
        self.assertEqual(self.registry.ids('todo'), ('t1', 't3'))
        self.assertEqual(sorted(i for _, ids in snapshot.lanes for i in ids), sorted(todos))


class ReducerTests(SimpleTestCase):

    def setUp(self):
        self.session, self.persistence = montar({'todo': ['t1', 't2', 't3'], 'doing': ['t4']})
        self.registry = self.session.registry

    def test_within_container_uses_target_index(self):
        self.session.dispatch(PickUp('t1'))
        self.session.dispatch(MoveTo('t3'))
        self.assertEqual(self.registry.ids('todo'), ('t2', 't3', 't1'))

        request = self.session.dispatch(Drop())
        self.assertEqual(request.container_id, 'todo')
        self.assertEqual(request.position, 2)

    def test_untouched_container_appends(self):
        self.session.dispatch(PickUp('t1'))
        self.session.dispatch(MoveTo('droppable-doing'))
        self.assertEqual(self.registry.ids('doing'), ('t4', 't1'))
        self.assertEqual(self.session.touched['doing'], 1)

    def test_touched_container_takes_back_last_position(self):
        self.session.dispatch(PickUp('t1'))
        self.session.dispatch(MoveTo('droppable-doing'))
        self.assertEqual(self.registry.ids('todo'), ('t2', 't3'))

        # de volta à coluna de origem sem índice: retoma o topo, não o fim
        self.session.dispatch(MoveTo('droppable-todo'))
        self.assertEqual(self.registry.ids('todo'), ('t1', 't2', 't3'))
        self.assertIsNone(self.session.dispatch(Drop()))
        self.assertEqual(self.persistence.calls, [])

    def test_container_with_index_inserts(self):
        self.session.dispatch(PickUp('t3'))
        self.session.dispatch(MoveTo('doing', 0))
        self.assertEqual(self.registry.ids('doing'), ('t3', 't4'))

    def test_own_container_without_index_keeps_position(self):
        self.session.dispatch(PickUp('t2'))
        self.session.dispatch(MoveTo('todo'))
        self.assertEqual(self.registry.ids('todo'), ('t1', 't2', 't3'))

    def test_into_empty_container(self):
        session, _ = montar({'a': ['x'], 'b': []})
        session.dispatch(PickUp('x'))
        session.dispatch(MoveTo('b', 5))
        self.assertEqual(session.registry.ids('b'), ('x',))
        self.assertEqual(session.registry.ids('a'), ())

    def test_full_destination_is_refused(self):
        session, persistence = montar({'todo': ['t1', 't2'], 'doing': ['t4']}, capacities={'doing': 1})
        registry = session.registry
        session.dispatch(PickUp('t1'))
        session.dispatch(MoveTo('t2'))
        antes = registry.snapshot()

        self.assertFalse(session.dispatch(MoveTo('t4')))
        self.assertFalse(session.dispatch(MoveTo('droppable-doing')))
        self.assertEqual(registry.snapshot(), antes)
        self.assertEqual(session.target, ItemTarget('t2', 'todo'))

        session.dispatch(Drop())
        self.assertEqual(persistence.calls, [('persist', 't1', 'todo', 1, 0)])

    def test_full_column_still_reorders_internally(self):
        session, _ = montar({'a': ['x', 'y'], 'b': []}, capacities={'a': 2})
        session.dispatch(PickUp('x'))
        self.assertTrue(session.dispatch(MoveTo('y')))
        self.assertEqual(session.registry.ids('a'), ('y', 'x'))

    def test_column_drag(self):
        session, persistence = montar({'todo': ['t1'], 'doing': [], 'done': ['t2']})
        session.dispatch(PickUp('done'))
        session.dispatch(MoveTo('t1'))
        self.assertEqual(session.registry.snapshot().columns, ('done', 'todo', 'doing'))

        request = session.dispatch(Drop())
        self.assertEqual(request, ColumnOrder(('done', 'todo', 'doing')))
        self.assertEqual(persistence.calls, [('reorder', ['done', 'todo', 'doing'])])
        # colunas mudam de lugar, itens continuam onde estavam
        self.assertEqual(session.registry.ids('done'), ('t2',))
