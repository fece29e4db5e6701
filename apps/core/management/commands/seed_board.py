# apps/core/management/commands/seed_board.py

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.core.models import Board, Projeto, Tarefa

TAREFAS_DEMO = {
    0: [
        ('Levantar requisitos do cliente', 'alta'),
        ('Definir paleta de cores', 'baixa'),
        ('Configurar CI', 'media'),
    ],
    1: [
        ('Implementar login', 'alta'),
    ],
    2: [
        ('Criar repositório', 'media'),
    ],
}

PROJETOS_DEMO = [
    ('Portal do cliente', 'backlog'),
    ('App mobile', 'planning'),
    ('Migração do ERP', 'in_progress'),
    ('Site institucional', 'review'),
    ('Intranet', 'done'),
]


class Command(BaseCommand):
    help = 'Cria um board de demonstração com tarefas e projetos'

    def add_arguments(self, parser):
        parser.add_argument(
            '--titulo',
            default='Board Demo',
            help='Título do board criado'
        )
        parser.add_argument(
            '--limite-wip',
            type=int,
            default=3,
            help='Limite WIP da coluna "Em Progresso" (0 = sem limite)'
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('🌱 Criando board de demonstração...')

        # sinal post_save cria as colunas padrão
        board = Board.objects.create(
            titulo=options['titulo'],
            descricao='Board criado pelo seed_board'
        )
        colunas = list(board.colunas.order_by('ordem'))

        if len(colunas) > 1:
            em_progresso = colunas[1]
            em_progresso.limite_wip = options['limite_wip']
            em_progresso.save(update_fields=['limite_wip'])

        espacamento = getattr(settings, 'AUTOFLOW_POSITION_SPACING', 1000)
        total_tarefas = 0
        for indice, tarefas in TAREFAS_DEMO.items():
            if indice >= len(colunas):
                continue
            for posicao, (titulo, prioridade) in enumerate(tarefas, start=1):
                Tarefa.objects.create(
                    board=board,
                    coluna=colunas[indice],
                    titulo=titulo,
                    prioridade=prioridade,
                    ordem=posicao * espacamento
                )
                total_tarefas += 1

        total_projetos = 0
        if not Projeto.objects.exists():
            for nome, status in PROJETOS_DEMO:
                Projeto.objects.create(nome=nome, status=status, ordem=Projeto.proxima_ordem(status))
                total_projetos += 1

        self.stdout.write(
            self.style.SUCCESS(
                f'✅ Board "{board.titulo}" (id {board.id}) criado com '
                f'{len(colunas)} colunas, {total_tarefas} tarefas e {total_projetos} projetos'
            )
        )
