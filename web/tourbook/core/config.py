import os
from typing import List
from functools import lru_cache


class Settings:
    """Application settings read from the environment"""

    # Database
    DB_DSN: str = os.getenv("DB_DSN", "")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_ECHO: bool = os.getenv("DB_ECHO", "false").lower() == "true"

    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = int(os.getenv("JWT_ACCESS_TTL", "900"))  # 15 minutes
    OPERATOR_ROLE: str = os.getenv("OPERATOR_ROLE", "operator")

    # CORS
    CORS_ALLOW_ORIGINS: List[str] = []
    CORS_ALLOW_CREDENTIALS: bool = True

    # Redis
    REDIS_DSN: str = os.getenv("REDIS_DSN", "redis://redis:6379/0")
    CAPACITY_EVENTS_CHANNEL: str = os.getenv("CAPACITY_EVENTS_CHANNEL", "capacity:invalidated")

    # Rate Limiting
    RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Business Rules
    MAX_RANGE_DAYS: int = int(os.getenv("MAX_RANGE_DAYS", "62"))
    MAX_RESERVATION_QUANTITY: int = int(os.getenv("MAX_RESERVATION_QUANTITY", "50"))
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "TRY")
    DEFAULT_PHONE_REGION: str = os.getenv("DEFAULT_PHONE_REGION", "TR")

    # WooCommerce
    WOOCOMMERCE_WEBHOOK_SECRET: str = os.getenv("WOOCOMMERCE_WEBHOOK_SECRET", "")
    WEBHOOK_LOCK_TTL: int = int(os.getenv("WEBHOOK_LOCK_TTL", "30"))
    WEBHOOK_LOCK_TIMEOUT: float = float(os.getenv("WEBHOOK_LOCK_TIMEOUT", "5.0"))

    # WhatsApp bot
    BOT_ORCHESTRATOR_URL: str = os.getenv("BOT_ORCHESTRATOR_URL", "")
    BOT_ORCHESTRATOR_TIMEOUT: float = float(os.getenv("BOT_ORCHESTRATOR_TIMEOUT", "10.0"))

    def __init__(self):
        self._validate()
        self._parse_cors_origins()

    def _validate(self):
        """Validate required settings"""
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set")
        if not self.DB_DSN:
            raise ValueError("DB_DSN environment variable must be set")
        if self.MAX_RANGE_DAYS < 1:
            raise ValueError("MAX_RANGE_DAYS must be positive")

    def _parse_cors_origins(self):
        """Parse CORS origins from environment"""
        raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")

        if raw_origins.strip() == "*":
            self.CORS_ALLOW_ORIGINS = ["*"]
            self.CORS_ALLOW_CREDENTIALS = False  # wildcard forbids credentials
        else:
            self.CORS_ALLOW_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
            self.CORS_ALLOW_CREDENTIALS = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
