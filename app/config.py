# app/config.py
"""Runtime configuration.

Settings are read once from the environment (and `.env`) at process start and
passed explicitly into the components that need them.
"""
import os
from dataclasses import dataclass, field
from typing import Dict
from dotenv import load_dotenv

AMAZON_DOMAINS: Dict[str, str] = {
    "amazon.com": "https://www.amazon.com",
    "amazon.in": "https://www.amazon.in",
    "amazon.co.uk": "https://www.amazon.co.uk",
    "amazon.de": "https://www.amazon.de",
    "amazon.ca": "https://www.amazon.ca",
}

DEFAULT_MARKETPLACE = "amazon.in"
PRODUCT_CACHE_TTL_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout_ms: int = 60000
    product_cache_ttl_ms: int = PRODUCT_CACHE_TTL_MS
    default_marketplace: str = DEFAULT_MARKETPLACE
    marketplaces: Dict[str, str] = field(default_factory=lambda: dict(AMAZON_DOMAINS))
    database_url: str = "sqlite:///./listing_optimizer.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    log_level: str = "INFO"
    environment: str = "production"
    optimize_rate_limit: int = 10
    api_rate_limit: int = 60
    trust_proxy: bool = False

    @property
    def supported_marketplaces(self):
        return list(self.marketplaces)

    def base_url_for(self, marketplace: str) -> str:
        """Base URL for a marketplace, falling back to the default one."""
        return self.marketplaces.get(marketplace) or self.marketplaces.get(
            self.default_marketplace, AMAZON_DOMAINS[DEFAULT_MARKETPLACE]
        )


def normalize_database_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def load_settings() -> Settings:
    load_dotenv()

    marketplaces = dict(AMAZON_DOMAINS)
    enabled = os.getenv("SUPPORTED_MARKETPLACES")
    if enabled:
        wanted = [m.strip() for m in enabled.split(",") if m.strip()]
        unknown = [m for m in wanted if m not in AMAZON_DOMAINS]
        if unknown:
            raise RuntimeError(f"Unknown marketplaces in SUPPORTED_MARKETPLACES: {', '.join(unknown)}")
        marketplaces = {m: AMAZON_DOMAINS[m] for m in wanted}

    default_marketplace = os.getenv("DEFAULT_MARKETPLACE", DEFAULT_MARKETPLACE)
    if default_marketplace not in marketplaces:
        raise RuntimeError(f"DEFAULT_MARKETPLACE {default_marketplace!r} is not a supported marketplace")

    database_url = os.getenv("DATABASE_URL") or os.getenv("POSTGRES_URL") or Settings.database_url

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", Settings.gemini_model),
        gemini_timeout_ms=int(os.getenv("GEMINI_TIMEOUT_MS", 60000)),
        product_cache_ttl_ms=int(os.getenv("PRODUCT_CACHE_TTL_MS", PRODUCT_CACHE_TTL_MS)),
        default_marketplace=default_marketplace,
        marketplaces=marketplaces,
        database_url=normalize_database_url(database_url),
        db_pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
        db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", 10)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        environment=os.getenv("APP_ENV", "production").lower(),
        optimize_rate_limit=int(os.getenv("OPTIMIZE_RATE_LIMIT", 10)),
        api_rate_limit=int(os.getenv("API_RATE_LIMIT", 60)),
        trust_proxy=os.getenv("TRUST_PROXY", "0").lower() in ("1", "true", "yes"),
    )
