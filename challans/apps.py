from django.apps import AppConfig


class ChallansConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'challans'
    verbose_name = 'Challans'
