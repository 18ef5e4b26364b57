from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Back Office"
    DATABASE_URL: str = "sqlite:///./backoffice.db"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    LOG_LEVEL: str = "INFO"

    DEFAULT_CURRENCY: str = "MYR"

    # Stock policy: allow stock to go negative on deduction (backorder) or clamp to zero
    ALLOW_NEGATIVE_STOCK: bool = True
    LOW_STOCK_THRESHOLD: int = 5

    # Reject status changes not listed in the transition table
    ENFORCE_STATUS_TRANSITIONS: bool = False

    # Webhook: list of callback URLs notified on order changes (comma-separated)
    WEBHOOK_URLS: str = ""

    model_config = {"env_file": ".env"}


settings = Settings()
