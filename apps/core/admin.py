# apps/core/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import Board, Coluna, Projeto, Tarefa

CORES_PRIORIDADE = {
    'baixa': '#10B981',  # verde
    'media': '#F59E0B',  # amarelo
    'alta': '#F97316',  # laranja
    'critica': '#EF4444',  # vermelho
}


def _badge(cor, texto):
    return format_html(
        '<span style="background-color: {}; color: white; '
        'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{}</span>',
        cor, texto
    )


class ColunaInline(admin.TabularInline):
    """Colunas editadas direto no board"""
    model = Coluna
    extra = 0
    fields = ['titulo', 'ordem', 'limite_wip', 'cor']
    ordering = ['ordem']


@admin.register(Board)
class BoardAdmin(admin.ModelAdmin):
    """Admin para boards Kanban"""

    list_display = ['titulo', 'colunas_count', 'tarefas_count', 'ativo', 'criado_em']
    list_filter = ['ativo', 'criado_em']
    search_fields = ['titulo', 'descricao']
    readonly_fields = ['criado_em']
    inlines = [ColunaInline]

    def colunas_count(self, obj):
        return obj.colunas.count()

    colunas_count.short_description = 'Colunas'

    def tarefas_count(self, obj):
        """Conta tarefas no board (sem as arquivadas)"""
        return obj.tarefas.filter(coluna__isnull=False).count()

    tarefas_count.short_description = 'Tarefas'


@admin.register(Coluna)
class ColunaAdmin(admin.ModelAdmin):
    list_display = ['titulo', 'board', 'ordem', 'wip_badge']
    list_filter = ['board']
    search_fields = ['titulo', 'board__titulo']
    ordering = ['board', 'ordem']

    def wip_badge(self, obj):
        """Ocupação da coluna frente ao limite WIP"""
        total = obj.tarefas.count()
        if obj.limite_wip == 0:
            return f"{total} / ∞"
        cor = '#EF4444' if total >= obj.limite_wip else '#10B981'
        return _badge(cor, f"{total} / {obj.limite_wip}")

    wip_badge.short_description = 'WIP'


@admin.register(Tarefa)
class TarefaAdmin(admin.ModelAdmin):
    list_display = ['titulo', 'board', 'coluna', 'prioridade_badge', 'ordem', 'revisao', 'prazo', 'concluida']
    list_filter = ['board', 'prioridade', 'concluida']
    search_fields = ['titulo', 'descricao']
    readonly_fields = ['revisao', 'criado_em', 'atualizado_em']

    fieldsets = (
        ('Informações Básicas', {
            'fields': ('board', 'coluna', 'titulo', 'descricao')
        }),
        ('Planejamento', {
            'fields': ('prioridade', 'prazo', 'concluida')
        }),
        ('Posição', {
            'fields': ('ordem', 'revisao'),
            'classes': ('collapse',)
        }),
        ('Datas', {
            'fields': ('criado_em', 'atualizado_em'),
            'classes': ('collapse',)
        })
    )

    def prioridade_badge(self, obj):
        return _badge(CORES_PRIORIDADE.get(obj.prioridade, '#6B7280'), obj.get_prioridade_display())

    prioridade_badge.short_description = 'Prioridade'


@admin.register(Projeto)
class ProjetoAdmin(admin.ModelAdmin):
    """Admin para o board de projetos"""

    list_display = ['nome', 'status', 'prioridade_badge', 'ordem', 'criado_em']
    list_filter = ['status', 'prioridade']
    search_fields = ['nome', 'descricao']
    readonly_fields = ['revisao', 'criado_em', 'atualizado_em']

    def prioridade_badge(self, obj):
        return _badge(CORES_PRIORIDADE.get(obj.prioridade, '#6B7280'), obj.get_prioridade_display())

    prioridade_badge.short_description = 'Prioridade'
