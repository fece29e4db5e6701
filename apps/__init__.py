# apps/__init__.py

"""
Autoflow - Aplicações Django

Este pacote contém as aplicações do sistema:
- core: Models do board (Board, Coluna, Tarefa, Projeto) e admin
- board: Motor de arraste, views JSON e WebSockets
"""

__version__ = '0.1.0'
