"""Configuration management with environment variable support."""

import os
import secrets
from dataclasses import dataclass, field
from typing import Literal


def _parse_cors_origins() -> list[str]:
    """Parse CORS_ORIGINS environment variable."""
    origins = os.getenv("CORS_ORIGINS", "http://localhost:8000")
    return [o.strip() for o in origins.split(",") if o.strip()]


def _parse_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration."""

    allowed_origins: list[str] = field(default_factory=_parse_cors_origins)
    allow_credentials: bool = True
    allow_methods: list[str] = field(default_factory=lambda: ["*"])
    allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limiting configuration."""

    enabled: bool = field(
        default_factory=lambda: os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    )
    requests_per_minute: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_RPM", "60"))
    )


@dataclass(frozen=True)
class SecurityConfig:
    """Security configuration."""

    secret_key: str = field(
        default_factory=lambda: os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    )


@dataclass(frozen=True)
class RedisConfig:
    """Redis connection configuration."""

    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    password: str | None = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))

    @property
    def url(self) -> str:
        """Build Redis connection URL."""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass(frozen=True)
class StoreConfig:
    """Round and balance storage configuration."""

    # "memory" keeps everything in process, "redis" is durable,
    # "auto" tries Redis and falls back to memory
    backend: Literal["memory", "redis", "auto"] = field(
        default_factory=lambda: os.getenv("STORE_BACKEND", "memory").lower()  # type: ignore[return-value]
    )
    starting_balance: int = field(
        default_factory=lambda: int(os.getenv("STARTING_BALANCE", "1000"))
    )
    history_page_size: int = field(
        default_factory=lambda: int(os.getenv("HISTORY_PAGE_SIZE", "10"))
    )


@dataclass(frozen=True)
class GameConfig:
    """Default table rules."""

    min_bet: int = field(default_factory=lambda: int(os.getenv("MIN_BET", "1")))
    max_bet: int | None = field(default_factory=lambda: _parse_optional_int("MAX_BET"))
    blackjack_payout: float = field(
        default_factory=lambda: float(os.getenv("BLACKJACK_PAYOUT", "1.5"))
    )
    dealer_stands_on: int = field(
        default_factory=lambda: int(os.getenv("DEALER_STANDS_ON", "17"))
    )
    hit_mode: Literal["multi", "single"] = field(
        default_factory=lambda: os.getenv("HIT_MODE", "multi").lower()  # type: ignore[return-value]
    )
    deal_hole_card: bool = field(
        default_factory=lambda: os.getenv("DEAL_HOLE_CARD", "false").lower() == "true"
    )


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    session_ttl: int = field(default_factory=lambda: int(os.getenv("SESSION_TTL", "3600")))

    redis: RedisConfig = field(default_factory=RedisConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    game: GameConfig = field(default_factory=GameConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)


# Global configuration instance
config = AppConfig()
