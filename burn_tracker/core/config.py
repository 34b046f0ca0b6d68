"""
Configuration management using Pydantic Settings.
Supports multiple environments: development, staging, production.
"""

from typing import Optional, List
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment-based configuration."""

    # Application
    app_name: str = "Burn Tracker"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = Field(default="development")

    # API
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["*"]

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_prefix: str = "burn_tracker:"

    # RPC endpoints (comma-separated)
    rpc_primary_urls: str = Field(
        default="https://bsc-dataseed.bnbchain.org,https://bsc-dataseed1.binance.org,https://bsc-dataseed2.binance.org"
    )
    rpc_fallback_urls: str = Field(
        default="https://bsc-dataseed3.binance.org,https://bsc-dataseed4.binance.org"
    )
    rpc_timeout: int = 30  # seconds
    rpc_probe_timeout: int = 10  # seconds

    # Retry and pacing
    rpc_max_retries: int = 3
    rpc_retry_delay_ms: int = 2000
    rate_limit_delay_ms: int = 200
    token_delay_ms: int = 600

    # Fleet
    worker_concurrency: int = 3
    token_timeout_seconds: Optional[int] = 900

    # Scheduler settings
    scheduler_enabled: bool = True
    scheduler_mode: str = "interval"  # interval or daily
    scheduler_interval: int = 300  # seconds
    scheduler_utc_hour: int = 0
    run_on_startup: bool = True

    # Burn records
    next_update_minutes: int = 5
    stale_after_seconds: int = 900

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    log_file: Optional[str] = None

    @validator("environment")
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @validator("scheduler_mode")
    def validate_scheduler_mode(cls, v: str) -> str:
        allowed = ["interval", "daily"]
        if v.lower() not in allowed:
            raise ValueError(f"Scheduler mode must be one of: {allowed}")
        return v.lower()

    @validator("scheduler_utc_hour")
    def validate_utc_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("Scheduler UTC hour must be between 0 and 23")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def primary_rpc_urls(self) -> List[str]:
        return _split_urls(self.rpc_primary_urls)

    @property
    def fallback_rpc_urls(self) -> List[str]:
        return _split_urls(self.rpc_fallback_urls)

    class Config:
        env_file = ".env"
        case_sensitive = False


def _split_urls(raw: str) -> List[str]:
    return [url.strip() for url in raw.split(",") if url.strip()] if raw else []


# Global settings instance
settings = Settings()


class ChainConfig:
    """EVM chain constants: token interface, event topic and burn sinks."""

    TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"

    # keccak256("Transfer(address,address,uint256)")
    TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

    BURN_ADDRESSES = [
        "0x000000000000000000000000000000000000dEaD",
        "0x0000000000000000000000000000000000000000",
    ]

    ERC20_ABI = [
        {
            "anonymous": False,
            "inputs": [
                {"indexed": True, "name": "from", "type": "address"},
                {"indexed": True, "name": "to", "type": "address"},
                {"indexed": False, "name": "value", "type": "uint256"},
            ],
            "name": "Transfer",
            "type": "event",
        },
        {
            "constant": True,
            "inputs": [],
            "name": "decimals",
            "outputs": [{"name": "", "type": "uint8"}],
            "stateMutability": "view",
            "type": "function",
        },
    ]

    @staticmethod
    def get_rpc_config() -> dict:
        """Get RPC client configuration."""
        return {
            "timeout": settings.rpc_timeout,
            "probe_timeout": settings.rpc_probe_timeout,
        }
