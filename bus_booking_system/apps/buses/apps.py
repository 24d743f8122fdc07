from django.apps import AppConfig


class BusesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.buses'
    verbose_name = 'Buses'
