from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class CartHandoffPolicy(str, Enum):
    KEEP = "keep"
    CLEAR_ON_INVOICE = "clear_on_invoice"


class Settings(BaseSettings):
    env: str = "production"

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "stivans"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # full SQLAlchemy URL, wins over the postgres_* parts when set
    sqlalchemy_url: Optional[str] = None
    # seconds a SQLite connection waits for the write lock
    sqlite_busy_timeout: float = 30.0

    secret_key: str
    algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"
    access_token_expire_minutes: int = 60

    xendit_secret_key: str = ""
    xendit_callback_token: str = ""
    xendit_api_base: str = "https://api.xendit.co"
    xendit_timeout_seconds: float = 10.0

    currency: str = "PHP"
    invoice_description: str = "Memorial service order"
    frontend_url: str = "http://localhost:5173"
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    cart_handoff_policy: CartHandoffPolicy = CartHandoffPolicy.KEEP
    total_tolerance: Decimal = Decimal("0.01")

    log_level: str = "INFO"

    @property
    def database_url(self):
        if self.sqlalchemy_url:
            return self.sqlalchemy_url
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"


@lru_cache
def get_settings() -> Settings:
    return Settings()
