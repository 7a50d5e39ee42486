"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FINLEDGER_",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./finledger.db"

    # Service
    service_name: str = "finledger"
    log_level: str = "INFO"

    # Ledger rules
    enforce_sufficient_funds: bool = False  # reject expense legs that would overdraw the account
    max_term_months: int = 600


settings = Settings()
