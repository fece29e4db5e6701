# apps/core/__init__.py

"""
Core - Aplicação principal do Autoflow

Contém:
- Models dos boards (colunas com limite WIP, tarefas, projetos por status)
- Sinais de criação das colunas padrão
- Comandos de seed e manutenção das posições
"""
