from typing import List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # Full async SQLAlchemy URL; when unset it is built from the postgres_* parts
    DATABASE_URL: Optional[str] = None
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "storefront"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    APP_URL: str = "http://localhost:3000"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "inr"
    STRIPE_WEBHOOK_TOLERANCE: int = 300

    # Orders
    ORDER_NUMBER_PREFIX: str = "BAB"
    ORDER_NUMBER_MAX_ATTEMPTS: int = 10
    ORDER_CREATE_MAX_ATTEMPTS: int = 5

    # Pricing, all amounts in paise
    FREE_SHIPPING_THRESHOLD: int = 150000
    FLAT_SHIPPING_COST: int = 5000
    TAX_RATE_BPS: int = 1800

    # Email (Brevo)
    BREVO_API_KEY: str = ""
    MAIL_FROM: str = "orders@baabuji.com"
    STORE_NAME: str = "Baabuji"
    EMAIL_MAX_RETRIES: int = 3

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+asyncpg://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sync_database_url(self) -> str:
        """URL for Alembic, which runs migrations on a blocking driver."""
        return (
            self.database_url
            .replace("+asyncpg", "+psycopg2")
            .replace("+aiosqlite", "")
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
