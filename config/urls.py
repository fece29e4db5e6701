# config/urls.py

from django.conf import settings
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Boards
    path('board/', include('apps.board.urls')),
]

# Health checks (apenas em produção)
if 'health_check' in settings.INSTALLED_APPS:
    urlpatterns += [path('health/', include('health_check.urls'))]

# Customizar títulos do admin
admin.site.site_header = 'Autoflow Admin'
admin.site.site_title = 'Autoflow'
admin.site.index_title = 'Administração dos Boards'
