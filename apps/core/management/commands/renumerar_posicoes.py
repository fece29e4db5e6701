# apps/core/management/commands/renumerar_posicoes.py

from django.core.management.base import BaseCommand, CommandError

from apps.board.persistence import ProjectBoardPersistence, TaskBoardPersistence
from apps.core.models import Board


class Command(BaseCommand):
    help = 'Reespaça as posições gravadas das tarefas (e opcionalmente dos projetos)'

    def add_arguments(self, parser):
        parser.add_argument(
            'board_ids',
            nargs='*',
            type=int,
            help='Boards a renumerar (padrão: todos os ativos)'
        )
        parser.add_argument(
            '--projetos',
            action='store_true',
            help='Renumera também o board de projetos'
        )

    def handle(self, *args, **options):
        if options['board_ids']:
            boards = Board.objects.filter(id__in=options['board_ids'])
            faltando = set(options['board_ids']) - set(boards.values_list('id', flat=True))
            if faltando:
                raise CommandError(f"Boards não encontrados: {sorted(faltando)}")
        else:
            boards = Board.objects.filter(ativo=True)

        for board in boards:
            total = TaskBoardPersistence(board).renumber()
            self.stdout.write(f'  🔢 {board.titulo}: {total} posições atualizadas')

        if options['projetos']:
            total = ProjectBoardPersistence().renumber()
            self.stdout.write(f'  🔢 Projetos: {total} posições atualizadas')

        self.stdout.write(self.style.SUCCESS('✅ Renumeração concluída'))
