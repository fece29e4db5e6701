# apps/board/urls.py

from django.urls import path
from . import views

app_name = 'board'

urlpatterns = [
    # Estado do board de tarefas
    path('<int:board_id>/', views.board_estado, name='estado'),

    # Drag-and-drop
    path('<int:board_id>/mover/', views.mover_tarefa, name='mover_tarefa'),

    # Tarefas
    path('<int:board_id>/tarefas/', views.criar_tarefa, name='criar_tarefa'),
    path('<int:board_id>/tarefas/<str:item_id>/excluir/', views.excluir_tarefa, name='excluir_tarefa'),
    path('<int:board_id>/tarefas/<str:item_id>/arquivar/', views.arquivar_tarefa, name='arquivar_tarefa'),
    path('<int:board_id>/tarefas/<str:item_id>/duplicar/', views.duplicar_tarefa, name='duplicar_tarefa'),

    # Colunas
    path('<int:board_id>/colunas/', views.criar_coluna, name='criar_coluna'),
    path('<int:board_id>/colunas/reordenar/', views.reordenar_colunas, name='reordenar_colunas'),
    path('<int:board_id>/colunas/<str:container_id>/wip/', views.definir_limite_wip, name='definir_limite_wip'),

    # Board de projetos por status
    path('projetos/', views.projetos_estado, name='projetos'),
    path('projetos/mover/', views.mover_projeto, name='mover_projeto'),
]
