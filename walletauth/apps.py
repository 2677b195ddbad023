from django.apps import AppConfig


class WalletauthAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "walletauth"
    verbose_name = "Wallet signature authentication"
