#!/usr/bin/env python
"""
Django's command-line utility for administrative tasks.

Autoflow - Boards Kanban com drag-and-drop
"""

import os
import sys


def main():
    """Run administrative tasks."""

    # Configuração padrão para desenvolvimento
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc

    # Comando de setup inicial
    if len(sys.argv) > 1 and sys.argv[1] == 'setup':
        print("🚀 Configurando Autoflow...")

        print("📊 Criando tabelas...")
        if os.system('python manage.py migrate --run-syncdb') != 0:
            print("❌ Erro nas migrações")
            return

        print("🌱 Criando board de demonstração...")
        os.system('python manage.py seed_board')

        print("✅ Setup concluído!")
        print("👤 Crie um usuário com: python manage.py createsuperuser")
        return

    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
