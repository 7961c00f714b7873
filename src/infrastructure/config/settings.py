from pathlib import Path
from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parents[3] / ".env"  # noqa: E402
load_dotenv(dotenv_path=ENV_PATH)  # noqa: E402

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator, model_validator
from typing import Dict, List, Optional, Literal
from enum import Enum
import logging
import socket

from src.domain.prices.dtos.price_dto import PriceRange


logger = logging.getLogger(__name__)


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class ParadexNetwork(str, Enum):
    PROD = "prod"
    TESTNET = "testnet"


DEFAULT_PRICE_RANGES: Dict[str, Dict[str, float]] = {
    "BTC": {"min": 20_000, "max": 200_000, "typical": 100_000},
    "ETH": {"min": 1_000, "max": 10_000, "typical": 3_000},
    "SOL": {"min": 20, "max": 500, "typical": 150},
    "DOGE": {"min": 0.05, "max": 1, "typical": 0.15},
    "AVAX": {"min": 10, "max": 200, "typical": 40},
    "MATIC": {"min": 0.3, "max": 3, "typical": 0.8},
}


class Settings(BaseSettings):
    # ============= DATABASE =============
    db_url: str = Field(
        ...,
        description="PostgreSQL connection URL"
    )
    db_pool_size: int = Field(
        default=5,
        ge=1,
        le=50
    )
    db_max_overflow: int = Field(
        default=10,
        ge=0,
        le=100
    )
    db_pool_timeout: int = Field(
        default=30,
        ge=1
    )
    db_pool_recycle: int = Field(
        default=3600,
        description="Recycle connections after N seconds"
    )
    db_echo: bool = Field(
        default=False,
        description="Log all SQL statements"
    )

    # ============= APPLICATION =============
    app_name: str = Field(default="LeftCurve Portfolio API")
    app_version: str = Field(default="1.0.0")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)

    # ============= LOGGING =============
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # ============= CORS =============
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000"
    )
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: List[str] = Field(default=["*"])
    cors_allow_headers: List[str] = Field(default=["*"])

    # ============= SCHEDULER  =============
    scheduler_enabled: bool = Field(default=True)
    scheduler_timezone: str = Field(default="UTC")
    markets_refresh_schedule: str = Field(
        default="EVERY_30_MINUTES",
        description="CronSchedule name for the Paradex market listing refresh"
    )
    markets_validity_seconds: int = Field(default=30 * 60, ge=1)

    # ============= PARADEX =============
    paradex_network: ParadexNetwork = Field(default=ParadexNetwork.TESTNET)
    paradex_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Request-level timeout (seconds) for every market data call"
    )

    # ============= PRICES =============
    price_cache_ttl_seconds: int = Field(default=30 * 60, ge=1)
    price_retry_attempts: int = Field(default=3, ge=1)
    price_retry_delay_seconds: float = Field(default=1.0, ge=0)
    price_ask_discount: float = Field(
        default=0.995,
        gt=0,
        le=1,
        description="Factor applied to best ask when no bid is available"
    )
    price_generic_max: float = Field(
        default=10_000.0,
        gt=0,
        description="Upper bound for tokens without a configured range"
    )
    price_high_value_token: str = Field(default="BTC")
    stable_tokens: List[str] = Field(default=["USDC", "USDT", "DAI"])
    price_ranges: Dict[str, PriceRange] = Field(
        default_factory=lambda: {
            symbol: PriceRange(**bounds)
            for symbol, bounds in DEFAULT_PRICE_RANGES.items()
        }
    )

    # ============= PORTFOLIO =============
    base_token: str = Field(default="USDC")
    initial_base_balance: float = Field(default=1000.0, ge=0)
    trade_history_limit: int = Field(default=5, ge=1)
    pnl_check_window_seconds: int = Field(default=5 * 60, ge=1)
    rebalance_threshold_pct: float = Field(default=5.0, ge=0)

    # ============= JOURNAL =============
    journal_explanations_keep: int = Field(default=3, ge=1)
    journal_strategies_keep: int = Field(default=1, ge=1)

    # ============= BACKEND REPORTING =============
    backend_host: Optional[str] = Field(default=None)
    backend_port: int = Field(default=8080)
    backend_api_key: Optional[str] = Field(default=None)
    backend_timeout: float = Field(default=10.0, gt=0)
    runtime_agent_id: str = Field(
        default_factory=socket.gethostname,
        validation_alias=AliasChoices("runtime_agent_id", "container_id"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        validate_default=True,
        env_prefix="",
    )

    # ============= COMPUTED PROPERTIES =============
    @property
    def database_url(self) -> str:
        return self.db_url

    @property
    def async_database_url(self) -> str:
        if "postgresql://" in self.db_url:
            return self.db_url.replace("postgresql://", "postgresql+asyncpg://")
        elif "postgresql+psycopg://" in self.db_url:
            return self.db_url.replace("postgresql+psycopg://", "postgresql+asyncpg://")
        return self.db_url

    @property
    def paradex_api_base_url(self) -> str:
        if self.paradex_network == ParadexNetwork.PROD:
            return "https://api.prod.paradex.trade/v1"
        return "https://api.testnet.paradex.trade/v1"

    @property
    def backend_base_url(self) -> Optional[str]:
        if not self.backend_host:
            return None
        return f"http://{self.backend_host}:{self.backend_port}"

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    # ============= VALIDATORS =============
    @field_validator("db_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Database URL cannot be empty")
        if not any(v.startswith(prefix) for prefix in ["postgresql://", "postgresql+asyncpg://", "postgresql+psycopg://"]):
            raise ValueError("Database URL must be a valid PostgreSQL URL")
        return v

    @field_validator("stable_tokens")
    @classmethod
    def normalize_stable_tokens(cls, v: List[str]) -> List[str]:
        return [s.strip().upper() for s in v if s and s.strip()]

    @field_validator("price_ranges")
    @classmethod
    def normalize_price_ranges(cls, v: Dict[str, PriceRange]) -> Dict[str, PriceRange]:
        return {symbol.upper(): rng for symbol, rng in v.items()}

    @field_validator("base_token", "price_high_value_token")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def base_token_is_stable(self) -> "Settings":
        if self.base_token not in self.stable_tokens:
            self.stable_tokens = [*self.stable_tokens, self.base_token]
        return self

    def get_logging_config(self) -> dict:
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": self.log_format
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": self.log_level,
                }
            },
            "root": {
                "level": self.log_level,
                "handlers": ["console"]
            },
            "loggers": {
                "uvicorn": {
                    "level": self.log_level,
                    "handlers": ["console"],
                    "propagate": False
                },
                "httpx": {
                    "level": "WARNING",
                    "handlers": ["console"],
                    "propagate": False
                },
                "sqlalchemy": {
                    "level": "WARNING" if not self.db_echo else "INFO",
                    "handlers": ["console"],
                    "propagate": False
                },
                "sqlalchemy.engine": {
                    "level": "INFO" if self.db_echo else "WARNING",
                    "handlers": ["console"],
                    "propagate": False
                }
            }
        }


settings = Settings()
