# apps/core/apps.py

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuração da app Core"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core - Boards e Projetos'

    def ready(self):
        """
        Conecta os sinais dos models
        """
        from . import signals  # noqa: F401
