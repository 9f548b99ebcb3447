from django.apps import AppConfig


class DocumentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.documents'
    label = 'documents'

    def ready(self):
        # Pick the numbering backend once, from the configured database vendor
        from apps.documents.services.numbering import configure_backend
        configure_backend()
