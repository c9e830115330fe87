"""URL configuration for the sitechat app."""

from django.urls import path

from . import views

app_name = 'sitechat'

urlpatterns = [
    path('chat', views.chat, name='chat'),
    path('clear', views.clear, name='clear'),
]
