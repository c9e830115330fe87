"""Root URL configuration for the sitechat server."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('sitechat.urls')),
]
