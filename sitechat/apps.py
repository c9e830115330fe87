from django.apps import AppConfig


class SitechatConfig(AppConfig):
    """Configuration for the sitechat Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'sitechat'
