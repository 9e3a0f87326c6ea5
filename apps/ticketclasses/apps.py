from django.apps import AppConfig


class TicketClassesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.ticketclasses'
    verbose_name = 'Ticket Classes'
