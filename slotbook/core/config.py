from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BUSINESS_NAME: str = "Your Club"
    BUSINESS_TIMEZONE: str = "America/Los_Angeles"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    ADMIN_EMAIL: str = "admin@example.com"
    OPERATOR_EMAIL: str = "operator@example.com"

    TOKEN_SECRET: str | None = None
    TOKEN_MAX_AGE_DAYS: int = 14

    SLOT_DURATION_MINUTES: int = 60
    AUTO_CHARGE_GRACE_MINUTES: int = 60
    DECLINE_ALTERNATIVES_LIMIT: int = 5
    CURRENCY: str = "usd"

    CRON_SECRET: str | None = None

    STORE_PROVIDER: str = "json"
    STORE_PATH: str = "./data/slotbook.json"

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_BASE_URL: str = "https://api.stripe.com/v1"
    PAYMENT_TIMEOUT_SECONDS: float = 15.0

    RESEND_API_KEY: str | None = None
    RESEND_BASE_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "Bookings <bookings@example.com>"
    EMAIL_ENABLED: bool = True


settings = Settings()
