# apps/board/__init__.py

"""
Board - Motor de reordenação dos boards Kanban

Funcionalidades:
- Drag-and-drop por ponteiro, toque e teclado
- Reordenação especulativa em memória com commit único no drop
- WebSockets para atualizações em tempo real
"""
