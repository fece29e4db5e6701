# apps/core/models.py

from django.conf import settings
from django.db import models
from django.utils import timezone


def _espacamento():
    return getattr(settings, 'AUTOFLOW_POSITION_SPACING', 1000)


class Board(models.Model):
    """Quadro Kanban de tarefas"""

    titulo = models.CharField(max_length=200)
    descricao = models.TextField(blank=True)
    ativo = models.BooleanField(default=True)
    criado_em = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'board'
        ordering = ['titulo']

    def __str__(self):
        return self.titulo

    def criar_colunas_padrao(self):
        """Cria colunas padrão para novo board"""
        colunas_padrao = getattr(
            settings, 'AUTOFLOW_DEFAULT_COLUMNS', ['A Fazer', 'Em Progresso', 'Concluído']
        )
        for idx, nome in enumerate(colunas_padrao):
            Coluna.objects.create(
                titulo=nome,
                board=self,
                ordem=idx
            )

    def proxima_ordem_coluna(self):
        """Ordem para uma coluna nova, sempre no fim"""
        ultima = self.colunas.aggregate(maior=models.Max('ordem'))['maior']
        return 0 if ultima is None else ultima + 1


class Coluna(models.Model):
    """Coluna do board Kanban"""

    titulo = models.CharField(max_length=100)
    board = models.ForeignKey(
        Board,
        on_delete=models.CASCADE,
        related_name='colunas'
    )
    ordem = models.IntegerField(default=0)
    limite_wip = models.PositiveIntegerField(
        default=0,
        help_text="Work In Progress - 0 = sem limite"
    )
    cor = models.CharField(max_length=7, default='#6B7280')
    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'coluna'
        ordering = ['ordem', 'titulo']
        unique_together = ['board', 'ordem']

    def __str__(self):
        return f"{self.titulo} - {self.board.titulo}"

    def pode_adicionar_item(self):
        """Verifica se pode adicionar item respeitando WIP"""
        if self.limite_wip == 0:
            return True
        return self.tarefas.count() < self.limite_wip

    def proxima_ordem_item(self):
        """Posição esparsa para uma tarefa adicionada ao fim"""
        ultima = self.tarefas.aggregate(maior=models.Max('ordem'))['maior']
        return _espacamento() if ultima is None else ultima + _espacamento()


class Tarefa(models.Model):
    """
    Card do board de tarefas

    coluna nula = tarefa arquivada, fora de qualquer board.
    ordem é esparsa e só vale relativamente às outras tarefas da coluna.
    """

    PRIORIDADE_CHOICES = [
        ('baixa', '🟢 Baixa'),
        ('media', '🟡 Média'),
        ('alta', '🟠 Alta'),
        ('critica', '🔴 Crítica'),
    ]

    board = models.ForeignKey(
        Board,
        on_delete=models.CASCADE,
        related_name='tarefas'
    )
    coluna = models.ForeignKey(
        Coluna,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tarefas'
    )
    titulo = models.CharField(max_length=200)
    descricao = models.TextField(blank=True)
    prioridade = models.CharField(
        max_length=10,
        choices=PRIORIDADE_CHOICES,
        default='media'
    )
    prazo = models.DateField(null=True, blank=True)
    concluida = models.BooleanField(default=False)
    ordem = models.IntegerField(default=0)
    revisao = models.PositiveIntegerField(
        default=0,
        help_text="Incrementada a cada mudança de posição (controle de concorrência)"
    )
    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tarefa'
        ordering = ['ordem', 'id']
        indexes = [
            models.Index(fields=['coluna', 'ordem']),
        ]

    def __str__(self):
        return self.titulo

    @property
    def arquivada(self):
        return self.coluna_id is None

    def esta_atrasada(self):
        """Verifica se a tarefa está atrasada"""
        if self.prazo and not self.concluida:
            return timezone.now().date() > self.prazo
        return False


class Projeto(models.Model):
    """Card do board de projetos, agrupado por status"""

    STATUS_CHOICES = [
        ('backlog', 'Backlog'),
        ('planning', 'Planejamento'),
        ('in_progress', 'Em Progresso'),
        ('review', 'Em Revisão'),
        ('done', 'Concluído'),
        ('archived', 'Arquivado'),
    ]

    # raias exibidas no board; arquivados ficam de fora
    STATUS_BOARD = ['backlog', 'planning', 'in_progress', 'review', 'done']

    PRIORIDADE_CHOICES = Tarefa.PRIORIDADE_CHOICES

    nome = models.CharField(max_length=200)
    descricao = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='backlog', db_index=True)
    prioridade = models.CharField(
        max_length=10,
        choices=PRIORIDADE_CHOICES,
        default='media'
    )
    ordem = models.IntegerField(default=0)
    revisao = models.PositiveIntegerField(default=0)
    criado_em = models.DateTimeField(auto_now_add=True)
    atualizado_em = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'projeto'
        ordering = ['status', 'ordem', 'id']

    def __str__(self):
        return f"{self.nome} ({self.get_status_display()})"

    @classmethod
    def proxima_ordem(cls, status):
        ultima = cls.objects.filter(status=status).aggregate(maior=models.Max('ordem'))['maior']
        return _espacamento() if ultima is None else ultima + _espacamento()
