# apps/board/routing.py

from django.urls import re_path
from . import consumers

# Rotas WebSocket para a aplicação board
websocket_urlpatterns = [
    # Board de tarefas - motor de arraste por conexão
    re_path(r'ws/board/(?P<board_id>\d+)/$', consumers.BoardConsumer.as_asgi()),

    # Board de projetos por status
    re_path(r'ws/projetos/$', consumers.ProjectBoardConsumer.as_asgi()),
]
