import os
from decimal import Decimal


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        self.app_name = "Compta"
        self.api_version = "1.0.0"
        self.environment = os.getenv("COMPTA_ENVIRONMENT", "development")
        self.secret_key = os.getenv("COMPTA_SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = int(os.getenv("COMPTA_TOKEN_EXPIRE_MINUTES", "30"))
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = os.getenv("COMPTA_DATABASE_URL", "sqlite:///./compta.db")
        self.log_level = os.getenv("COMPTA_LOG_LEVEL", "INFO").upper()
        # Swiss VAT
        self.default_tva_rate = Decimal(os.getenv("COMPTA_TVA_RATE", "0.081"))
        self.payment_terms_days = 30
        # When False, a failed item copy keeps the generated invoice header
        self.atomic_generation = _env_flag("COMPTA_ATOMIC_GENERATION", True)


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
