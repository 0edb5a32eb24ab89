"""
Configuration Management Module
Loads and manages application configuration from config.yaml
"""

from pathlib import Path
from typing import List, Optional
import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvSettings(BaseSettings):
    """Environment overrides (TALLY_SYNC_*)"""
    model_config = SettingsConfigDict(env_prefix="TALLY_SYNC_")

    config_path: str = "config.yaml"
    ingest_api_key: str = ""


class TallyConfig(BaseModel):
    """Tally connection configuration"""
    server: str = "localhost"
    port: int = 9000
    url: str = ""
    company: str = ""
    from_date: str = "2025-04-01"
    to_date: str = "2026-03-31"
    timeout: float = 30.0
    education_mode: bool = True

    @property
    def endpoint(self) -> str:
        return self.url or f"http://{self.server}:{self.port}"


class DatabaseConfig(BaseModel):
    """Database configuration"""
    path: str = "./data/tally_sync.db"


class SyncConfig(BaseModel):
    """Sync configuration"""
    batch_size: int = 1000
    repair_batch_size: int = 1000
    amount_batch_cap: int = 5000
    categories: List[str] = [
        "groups", "ledgers", "stockItems", "voucherTypes", "godowns",
        "costCategories", "costCentres", "employees", "payheads", "units",
        "vouchers"
    ]
    diagnostic_voucher_number: str = ""


class ApiConfig(BaseModel):
    """API configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000"]
    ingest_api_key: str = ""


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    file: str = "./logs/tally_sync.log"
    max_size: int = 10
    backup_count: int = 5
    console: bool = True
    colorize: bool = True
    serialize: bool = False


class RetryConfig(BaseModel):
    """Retry configuration for Tally requests"""
    max_attempts: int = 1
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0


class HealthConfig(BaseModel):
    """Health check configuration"""
    tally_timeout: float = 5.0


class ScheduledTenant(BaseModel):
    """One tenant synced automatically"""
    company_id: str
    division_id: str
    sync_frequency: str = "1hour"
    mode: str = "incremental"
    lookback_days: int = 7
    categories: Optional[List[str]] = None


class SchedulerConfig(BaseModel):
    """Scheduled sync configuration"""
    enabled: bool = False
    check_interval: int = 1  # minutes between due checks
    tenants: List[ScheduledTenant] = []


class AppConfig(BaseModel):
    """Main application configuration"""
    tally: TallyConfig = TallyConfig()
    database: DatabaseConfig = DatabaseConfig()
    sync: SyncConfig = SyncConfig()
    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()
    health: HealthConfig = HealthConfig()
    scheduler: SchedulerConfig = SchedulerConfig()


env_settings = EnvSettings()


def load_config(config_path: str = None) -> AppConfig:
    """Load configuration from YAML file, then apply environment overrides"""
    config_file = Path(config_path or env_settings.config_path)

    app_config = AppConfig()
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
            app_config = AppConfig(**config_data)

    if env_settings.ingest_api_key:
        app_config.api.ingest_api_key = env_settings.ingest_api_key

    return app_config


def save_config(config: AppConfig, config_path: str = None) -> None:
    """Save configuration to YAML file"""
    config_file = Path(config_path or env_settings.config_path)

    with open(config_file, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, allow_unicode=True)


# Global configuration instance
config = load_config()
