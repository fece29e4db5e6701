# apps/board/views.py

import json
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_POST

from apps.core.models import Board

from .engine import DragEngine
from .persistence import (
    CapacityExceeded,
    PersistenceError,
    PlacementNotFound,
    ProjectBoardPersistence,
    RevisionConflict,
    TaskBoardPersistence,
)

logger = logging.getLogger(__name__)

PROJETOS_GROUP = 'board_projetos'


# === Métodos auxiliares ===

def _notificar(group_name, tipo, message):
    """Envia evento para todos os clientes conectados ao board"""
    message['timestamp'] = timezone.now().isoformat()
    channel_layer = get_channel_layer()
    async_to_sync(channel_layer.group_send)(
        group_name,
        {
            'type': tipo,
            'message': message
        }
    )


def _dados(request):
    try:
        return json.loads(request.body or b'{}')
    except json.JSONDecodeError:
        return None


def _erro(e):
    """Converte falha de persistência em resposta JSON"""
    if isinstance(e, PlacementNotFound):
        status = 404
    elif isinstance(e, (RevisionConflict, CapacityExceeded)):
        status = 409
    else:
        status = 400
    return JsonResponse({'success': False, 'error': str(e), 'kind': e.kind}, status=status)


def _item_json(item):
    data = dict(item.payload)
    data.update({
        'id': item.id,
        'container_id': item.container_id,
        'revisao': item.revision,
    })
    return data


def _usuario(request):
    return request.user.get_full_name() or request.user.username


# === Board de tarefas ===

@login_required
@require_GET
def board_estado(request, board_id):
    """
    Estado completo do board para o cliente montar o Kanban
    """
    board = get_object_or_404(Board, id=board_id, ativo=True)
    engine = DragEngine.for_tasks(board)

    return JsonResponse({
        'success': True,
        'board_id': board.id,
        'titulo': board.titulo,
        'websocket_group': f'board_{board.id}',
        'board': engine.render(),
    })


@login_required
@require_POST
def mover_tarefa(request, board_id):
    """
    Grava a posição final de um card depois do drop

    Recebe apenas (coluna, índice final); os vizinhos nunca são enviados.
    """
    board = get_object_or_404(Board, id=board_id, ativo=True)
    data = _dados(request)
    if data is None:
        return JsonResponse({'success': False, 'error': 'JSON inválido'}, status=400)

    item_id = data.get('item_id')
    container_id = data.get('container_id')
    position = data.get('position')

    # Validar parâmetros
    if not item_id or not container_id or position is None:
        return JsonResponse({'success': False, 'error': 'Parâmetros inválidos'}, status=400)

    try:
        position = int(position)
        expected_revision = data.get('expected_revision')
        if expected_revision is not None:
            expected_revision = int(expected_revision)
    except (TypeError, ValueError):
        return JsonResponse({'success': False, 'error': 'Posição inválida'}, status=400)

    persistence = TaskBoardPersistence(board)
    try:
        item = persistence.persist_item_placement(
            item_id, container_id, position, expected_revision=expected_revision
        )
    except PersistenceError as e:
        logger.warning(f"⚠️ Movimentação recusada para {item_id}: {str(e)}")
        return _erro(e)
    except Exception as e:
        logger.exception(f"❌ Erro ao mover {item_id}: {str(e)}")
        return JsonResponse({'success': False, 'error': str(e)}, status=500)

    _notificar(f'board_{board.id}', 'item_moved', {
        'item_id': item.id,
        'container_id': item.container_id,
        'position': position,
        'usuario': _usuario(request),
    })

    return JsonResponse({'success': True, 'item': _item_json(item)})


@login_required
@require_POST
def criar_tarefa(request, board_id):
    """
    Cria tarefa no fim da coluna

    Criar não passa pelo limite WIP, só mover.
    """
    board = get_object_or_404(Board, id=board_id, ativo=True)
    data = _dados(request)
    if data is None:
        return JsonResponse({'success': False, 'error': 'JSON inválido'}, status=400)

    container_id = data.get('container_id')
    titulo = (data.get('titulo') or '').strip()
    if not container_id or not titulo:
        return JsonResponse({'success': False, 'error': 'Preencha os campos obrigatórios'}, status=400)

    fields = {'titulo': titulo}
    for campo in ('descricao', 'prioridade'):
        if data.get(campo):
            fields[campo] = data[campo]
    if data.get('prazo'):
        try:
            prazo = parse_date(str(data['prazo']))
        except ValueError:
            prazo = None
        if prazo is None:
            return JsonResponse({'success': False, 'error': 'Prazo inválido (use AAAA-MM-DD)'}, status=400)
        fields['prazo'] = prazo

    try:
        item = TaskBoardPersistence(board).create_item(container_id, **fields)
    except PersistenceError as e:
        return _erro(e)
    except Exception as e:
        logger.exception(f"❌ Erro ao criar tarefa: {str(e)}")
        return JsonResponse({'success': False, 'error': str(e)}, status=500)

    _notificar(f'board_{board.id}', 'item_created', {
        'item_id': item.id,
        'container_id': item.container_id,
        'item_titulo': titulo,
        'usuario': _usuario(request),
    })

    return JsonResponse({'success': True, 'item': _item_json(item)}, status=201)


@login_required
@require_POST
def excluir_tarefa(request, board_id, item_id):
    board = get_object_or_404(Board, id=board_id, ativo=True)
    try:
        TaskBoardPersistence(board).delete_item(item_id)
    except PersistenceError as e:
        return _erro(e)

    _notificar(f'board_{board.id}', 'item_deleted', {
        'item_id': item_id,
        'usuario': _usuario(request),
    })
    return JsonResponse({'success': True})


@login_required
@require_POST
def arquivar_tarefa(request, board_id, item_id):
    """Tira a tarefa do board sem excluir"""
    board = get_object_or_404(Board, id=board_id, ativo=True)
    try:
        item = TaskBoardPersistence(board).archive_item(item_id)
    except PersistenceError as e:
        return _erro(e)

    _notificar(f'board_{board.id}', 'item_deleted', {
        'item_id': item_id,
        'arquivada': True,
        'usuario': _usuario(request),
    })
    return JsonResponse({'success': True, 'item': _item_json(item)})


@login_required
@require_POST
def duplicar_tarefa(request, board_id, item_id):
    board = get_object_or_404(Board, id=board_id, ativo=True)
    try:
        item = TaskBoardPersistence(board).duplicate_item(item_id)
    except PersistenceError as e:
        return _erro(e)

    _notificar(f'board_{board.id}', 'item_created', {
        'item_id': item.id,
        'container_id': item.container_id,
        'item_titulo': item.payload.get('titulo'),
        'usuario': _usuario(request),
    })
    return JsonResponse({'success': True, 'item': _item_json(item)}, status=201)


# === Colunas ===

@login_required
@require_POST
def criar_coluna(request, board_id):
    board = get_object_or_404(Board, id=board_id, ativo=True)
    data = _dados(request)
    if data is None:
        return JsonResponse({'success': False, 'error': 'JSON inválido'}, status=400)

    titulo = (data.get('titulo') or '').strip()
    if not titulo:
        return JsonResponse({'success': False, 'error': 'Título obrigatório'}, status=400)

    try:
        limite_wip = int(data.get('limite_wip') or 0)
    except (TypeError, ValueError):
        return JsonResponse({'success': False, 'error': 'Limite WIP inválido'}, status=400)

    container = TaskBoardPersistence(board).create_container(titulo, limite_wip, data.get('cor'))

    _notificar(f'board_{board.id}', 'board_refresh', {
        'motivo': 'coluna_criada',
        'container_id': container.id,
        'usuario': _usuario(request),
    })
    return JsonResponse({
        'success': True,
        'coluna': {
            'id': container.id,
            'titulo': container.title,
            'ordem': container.order,
            'limite_wip': container.capacity,
        }
    }, status=201)


@login_required
@require_POST
def definir_limite_wip(request, board_id, container_id):
    board = get_object_or_404(Board, id=board_id, ativo=True)
    data = _dados(request)
    if data is None:
        return JsonResponse({'success': False, 'error': 'JSON inválido'}, status=400)

    try:
        limite_wip = int(data.get('limite_wip') or 0)
    except (TypeError, ValueError):
        return JsonResponse({'success': False, 'error': 'Limite WIP inválido'}, status=400)
    if limite_wip < 0:
        return JsonResponse({'success': False, 'error': 'Limite WIP não pode ser negativo'}, status=400)

    try:
        container = TaskBoardPersistence(board).set_capacity(container_id, limite_wip)
    except PersistenceError as e:
        return _erro(e)

    _notificar(f'board_{board.id}', 'board_refresh', {
        'motivo': 'limite_wip',
        'container_id': container.id,
        'usuario': _usuario(request),
    })
    return JsonResponse({'success': True, 'limite_wip': container.capacity})


@login_required
@require_POST
def reordenar_colunas(request, board_id):
    board = get_object_or_404(Board, id=board_id, ativo=True)
    data = _dados(request)
    if data is None or not isinstance(data.get('container_ids'), list):
        return JsonResponse({'success': False, 'error': 'Parâmetros inválidos'}, status=400)

    container_ids = [str(c) for c in data['container_ids']]
    try:
        TaskBoardPersistence(board).reorder_containers(container_ids)
    except PersistenceError as e:
        return _erro(e)

    _notificar(f'board_{board.id}', 'columns_reordered', {
        'container_ids': container_ids,
        'usuario': _usuario(request),
    })
    return JsonResponse({'success': True})


# === Board de projetos ===

@login_required
@require_GET
def projetos_estado(request):
    engine = DragEngine.for_projects()
    return JsonResponse({
        'success': True,
        'websocket_group': PROJETOS_GROUP,
        'board': engine.render(),
    })


@login_required
@require_POST
def mover_projeto(request):
    data = _dados(request)
    if data is None:
        return JsonResponse({'success': False, 'error': 'JSON inválido'}, status=400)

    item_id = data.get('item_id')
    container_id = data.get('container_id')
    try:
        position = int(data.get('position'))
    except (TypeError, ValueError):
        return JsonResponse({'success': False, 'error': 'Parâmetros inválidos'}, status=400)
    if not item_id or not container_id:
        return JsonResponse({'success': False, 'error': 'Parâmetros inválidos'}, status=400)

    expected_revision = data.get('expected_revision')
    try:
        item = ProjectBoardPersistence().persist_item_placement(
            item_id, container_id, position,
            expected_revision=int(expected_revision) if expected_revision is not None else None
        )
    except PersistenceError as e:
        logger.warning(f"⚠️ Movimentação recusada para {item_id}: {str(e)}")
        return _erro(e)
    except (TypeError, ValueError):
        return JsonResponse({'success': False, 'error': 'Revisão inválida'}, status=400)

    _notificar(PROJETOS_GROUP, 'item_moved', {
        'item_id': item.id,
        'container_id': item.container_id,
        'position': position,
        'usuario': _usuario(request),
    })
    return JsonResponse({'success': True, 'item': _item_json(item)})
