# apps/board/persistence.py

"""
Colaborador de persistência do motor de reordenação

O motor só conhece a interface PersistenceGateway. As implementações
usam o ORM do Django e convertem o índice final enviado pelo motor numa
posição esparsa entre os vizinhos, sem reescrever as outras tarefas.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from django.conf import settings
from django.db import transaction

from apps.core.models import Board, Coluna, Projeto, Tarefa

from .positions import needs_renumber, position_between, spaced_positions
from .registry import Container, Item

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Falha ao gravar no backend"""

    kind = 'error'


class RevisionConflict(PersistenceError):
    """Outro cliente alterou o item depois da última leitura"""

    kind = 'conflict'


class CapacityExceeded(PersistenceError):
    """Coluna de destino atingiu o limite WIP"""

    kind = 'capacity'


class PlacementNotFound(PersistenceError):
    """Item ou coluna inexistente"""

    kind = 'not_found'


class PersistenceGateway(ABC):
    """Interface CRUD mínima consumida pelo motor"""

    @abstractmethod
    def fetch_containers(self) -> List[Container]:
        pass

    @abstractmethod
    def fetch_items(self) -> List[Item]:
        pass

    @abstractmethod
    def persist_item_placement(self, item_id: str, container_id: str, position: int,
                               expected_revision: Optional[int] = None) -> Item:
        """Grava (coluna, índice final) de um item; idempotente"""

    @abstractmethod
    def create_item(self, container_id: str, **fields) -> Item:
        """Cria item no fim da coluna"""

    @abstractmethod
    def delete_item(self, item_id: str) -> None:
        pass

    @abstractmethod
    def reorder_containers(self, container_ids: Sequence[str]) -> None:
        pass


def _spacing() -> int:
    return getattr(settings, 'AUTOFLOW_POSITION_SPACING', 1000)


def _parse_key(key, prefix: str) -> int:
    key = str(key)
    if not key.startswith(prefix):
        raise PlacementNotFound(f"Id inválido: {key}")
    try:
        return int(key[len(prefix):])
    except ValueError:
        raise PlacementNotFound(f"Id inválido: {key}")


def _ordem_no_indice(siblings: list, index: int) -> Optional[int]:
    """Posição esparsa para inserir no índice, ou None se faltar espaço"""
    before = siblings[index - 1].ordem if index > 0 else None
    after = siblings[index].ordem if index < len(siblings) else None
    return position_between(before, after, _spacing())


def _inserir(obj, siblings: list, index: int) -> None:
    """
    Define obj.ordem para ocupar o índice entre os irmãos

    Renumera os irmãos só quando não há mais espaço entre os vizinhos
    ou quando já há posições repetidas (dados antigos com ordem 0).
    """
    index = max(0, min(index, len(siblings)))
    ordem = None
    if not needs_renumber([s.ordem for s in siblings]):
        ordem = _ordem_no_indice(siblings, index)
    if ordem is None:
        logger.info(f"🔢 Renumerando {len(siblings)} posições")
        _respacar(siblings)
        ordem = _ordem_no_indice(siblings, index)
    obj.ordem = ordem


def _respacar(objs: list) -> int:
    """Regrava as posições com espaçamento uniforme; retorna quantas mudaram"""
    alterados = 0
    for obj, nova in zip(objs, spaced_positions(len(objs), _spacing())):
        if obj.ordem != nova:
            obj.ordem = nova
            obj.save(update_fields=['ordem'])
            alterados += 1
    return alterados


class TaskBoardPersistence(PersistenceGateway):
    """Colunas + tarefas de um Board"""

    ITEM_PREFIX = 'tarefa-'
    CONTAINER_PREFIX = 'coluna-'

    def __init__(self, board: Board):
        self.board = board

    # === Ids ===

    @classmethod
    def item_key(cls, pk) -> str:
        return f"{cls.ITEM_PREFIX}{pk}"

    @classmethod
    def container_key(cls, pk) -> str:
        return f"{cls.CONTAINER_PREFIX}{pk}"

    # === Conversões ===

    def to_container(self, coluna: Coluna) -> Container:
        return Container(
            id=self.container_key(coluna.pk),
            order=coluna.ordem,
            capacity=coluna.limite_wip,
            title=coluna.titulo,
        )

    def to_item(self, tarefa: Tarefa) -> Item:
        return Item(
            id=self.item_key(tarefa.pk),
            container_id=self.container_key(tarefa.coluna_id) if tarefa.coluna_id else None,
            position=tarefa.ordem,
            revision=tarefa.revisao,
            payload={
                'titulo': tarefa.titulo,
                'descricao': tarefa.descricao,
                'prioridade': tarefa.prioridade,
                'prazo': tarefa.prazo.isoformat() if tarefa.prazo else None,
                'concluida': tarefa.concluida,
            },
        )

    def _coluna(self, container_id) -> Coluna:
        pk = _parse_key(container_id, self.CONTAINER_PREFIX)
        try:
            return self.board.colunas.get(pk=pk)
        except Coluna.DoesNotExist:
            raise PlacementNotFound(f"Coluna {container_id} não encontrada")

    def _tarefa(self, item_id, for_update=False) -> Tarefa:
        pk = _parse_key(item_id, self.ITEM_PREFIX)
        queryset = Tarefa.objects.filter(board=self.board)
        if for_update:
            queryset = queryset.select_for_update()
        tarefa = queryset.filter(pk=pk).first()
        if tarefa is None:
            raise PlacementNotFound(f"Tarefa {item_id} não encontrada")
        return tarefa

    # === Interface ===

    def fetch_containers(self) -> List[Container]:
        return [self.to_container(c) for c in self.board.colunas.order_by('ordem')]

    def fetch_items(self) -> List[Item]:
        tarefas = Tarefa.objects.filter(
            board=self.board, coluna__isnull=False
        ).order_by('ordem', 'id')
        return [self.to_item(t) for t in tarefas]

    def persist_item_placement(self, item_id, container_id, position, expected_revision=None) -> Item:
        with transaction.atomic():
            tarefa = self._tarefa(item_id, for_update=True)
            coluna = self._coluna(container_id)

            siblings = list(coluna.tarefas.exclude(pk=tarefa.pk).order_by('ordem', 'id'))
            index = max(0, min(int(position), len(siblings)))

            if tarefa.coluna_id == coluna.pk:
                atual = [t.pk for t in coluna.tarefas.order_by('ordem', 'id')]
                if atual.index(tarefa.pk) == index:
                    # mesma entrada, nada a gravar
                    return self.to_item(tarefa)

            if expected_revision is not None and expected_revision != tarefa.revisao:
                raise RevisionConflict(
                    f"Tarefa {item_id} mudou no servidor (revisão {tarefa.revisao}, "
                    f"esperada {expected_revision})"
                )

            if tarefa.coluna_id != coluna.pk and not coluna.pode_adicionar_item():
                raise CapacityExceeded(
                    f"Coluna {coluna.titulo} atingiu limite WIP ({coluna.limite_wip})"
                )

            _inserir(tarefa, siblings, index)
            tarefa.coluna = coluna
            tarefa.revisao += 1
            tarefa.save(update_fields=['coluna', 'ordem', 'revisao', 'atualizado_em'])

        return self.to_item(tarefa)

    def create_item(self, container_id, **fields) -> Item:
        coluna = self._coluna(container_id)
        tarefa = Tarefa.objects.create(
            board=self.board,
            coluna=coluna,
            ordem=coluna.proxima_ordem_item(),
            **fields
        )
        return self.to_item(tarefa)

    def delete_item(self, item_id) -> None:
        self._tarefa(item_id).delete()

    def reorder_containers(self, container_ids) -> None:
        colunas = {self.container_key(c.pk): c for c in self.board.colunas.all()}
        if sorted(container_ids) != sorted(colunas) or len(set(container_ids)) != len(container_ids):
            raise PersistenceError("Ordem de colunas não corresponde ao board")

        with transaction.atomic():
            # ordem é única por board: passa por valores temporários negativos
            for idx, key in enumerate(container_ids):
                Coluna.objects.filter(pk=colunas[key].pk).update(ordem=-(idx + 1))
            for idx, key in enumerate(container_ids):
                Coluna.objects.filter(pk=colunas[key].pk).update(ordem=idx)

    # === Operações extras do board ===

    def renumber(self) -> int:
        """Reespaça as posições de todas as colunas do board"""
        alterados = 0
        with transaction.atomic():
            for coluna in self.board.colunas.all():
                alterados += _respacar(list(coluna.tarefas.order_by('ordem', 'id')))
        return alterados

    def archive_item(self, item_id) -> Item:
        """Tira a tarefa do board (coluna nula) sem excluir"""
        tarefa = self._tarefa(item_id)
        tarefa.coluna = None
        tarefa.revisao += 1
        tarefa.save(update_fields=['coluna', 'revisao', 'atualizado_em'])
        return self.to_item(tarefa)

    def duplicate_item(self, item_id) -> Item:
        """Cópia no fim da mesma coluna; tarefas arquivadas não podem ser duplicadas"""
        original = self._tarefa(item_id)
        if original.coluna_id is None:
            raise PersistenceError("Não é possível duplicar uma tarefa arquivada, restaure primeiro")

        copia = Tarefa.objects.create(
            board=self.board,
            coluna=original.coluna,
            titulo=f"{original.titulo} (Cópia)",
            descricao=original.descricao,
            prioridade=original.prioridade,
            prazo=original.prazo,
            concluida=False,
            ordem=original.coluna.proxima_ordem_item(),
        )
        return self.to_item(copia)

    def create_container(self, titulo, limite_wip=0, cor=None) -> Container:
        """Nova coluna sempre no fim do board"""
        dados = {'titulo': titulo, 'limite_wip': limite_wip or 0}
        if cor:
            dados['cor'] = cor
        with transaction.atomic():
            coluna = Coluna.objects.create(
                board=self.board,
                ordem=self.board.proxima_ordem_coluna(),
                **dados
            )
        return self.to_container(coluna)

    def set_capacity(self, container_id, limite_wip) -> Container:
        coluna = self._coluna(container_id)
        coluna.limite_wip = max(0, int(limite_wip or 0))
        coluna.save(update_fields=['limite_wip', 'atualizado_em'])
        return self.to_container(coluna)


class ProjectBoardPersistence(PersistenceGateway):
    """Projetos agrupados por status; as raias têm ordem fixa"""

    ITEM_PREFIX = 'projeto-'

    @classmethod
    def item_key(cls, pk) -> str:
        return f"{cls.ITEM_PREFIX}{pk}"

    def to_item(self, projeto: Projeto) -> Item:
        return Item(
            id=self.item_key(projeto.pk),
            container_id=projeto.status if projeto.status in Projeto.STATUS_BOARD else None,
            position=projeto.ordem,
            revision=projeto.revisao,
            payload={
                'nome': projeto.nome,
                'descricao': projeto.descricao,
                'prioridade': projeto.prioridade,
                'status': projeto.status,
            },
        )

    def _status(self, container_id) -> str:
        if container_id not in Projeto.STATUS_BOARD:
            raise PlacementNotFound(f"Status {container_id} não existe no board")
        return container_id

    def _projeto(self, item_id, for_update=False) -> Projeto:
        pk = _parse_key(item_id, self.ITEM_PREFIX)
        queryset = Projeto.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        projeto = queryset.filter(pk=pk).first()
        if projeto is None:
            raise PlacementNotFound(f"Projeto {item_id} não encontrado")
        return projeto

    def fetch_containers(self) -> List[Container]:
        labels = dict(Projeto.STATUS_CHOICES)
        return [
            Container(id=status, order=idx, capacity=0, title=str(labels[status]))
            for idx, status in enumerate(Projeto.STATUS_BOARD)
        ]

    def fetch_items(self) -> List[Item]:
        projetos = Projeto.objects.filter(status__in=Projeto.STATUS_BOARD).order_by('ordem', 'id')
        return [self.to_item(p) for p in projetos]

    def persist_item_placement(self, item_id, container_id, position, expected_revision=None) -> Item:
        status = self._status(container_id)
        with transaction.atomic():
            projeto = self._projeto(item_id, for_update=True)

            siblings = list(
                Projeto.objects.filter(status=status).exclude(pk=projeto.pk).order_by('ordem', 'id')
            )
            index = max(0, min(int(position), len(siblings)))

            if projeto.status == status:
                atual = list(
                    Projeto.objects.filter(status=status).order_by('ordem', 'id').values_list('pk', flat=True)
                )
                if atual.index(projeto.pk) == index:
                    return self.to_item(projeto)

            if expected_revision is not None and expected_revision != projeto.revisao:
                raise RevisionConflict(
                    f"Projeto {item_id} mudou no servidor (revisão {projeto.revisao}, "
                    f"esperada {expected_revision})"
                )

            _inserir(projeto, siblings, index)
            projeto.status = status
            projeto.revisao += 1
            projeto.save(update_fields=['status', 'ordem', 'revisao', 'atualizado_em'])

        return self.to_item(projeto)

    def create_item(self, container_id, **fields) -> Item:
        status = self._status(container_id)
        projeto = Projeto.objects.create(
            status=status,
            ordem=Projeto.proxima_ordem(status),
            **fields
        )
        return self.to_item(projeto)

    def delete_item(self, item_id) -> None:
        self._projeto(item_id).delete()

    def reorder_containers(self, container_ids) -> None:
        raise PersistenceError("As raias de status têm ordem fixa")

    def renumber(self) -> int:
        alterados = 0
        with transaction.atomic():
            for status in Projeto.STATUS_BOARD:
                alterados += _respacar(list(Projeto.objects.filter(status=status).order_by('ordem', 'id')))
        return alterados
