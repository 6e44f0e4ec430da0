"""Configuration for the Bitcoin Cash analytics pipeline."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


# Largest value a BIGINT / INT64 column can hold
INT64_MAX = 2 ** 63 - 1


class PipelineConfig(BaseSettings):
    """Configuration for the staging and balance transforms."""
    
    # Database Settings
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_name: str = Field(default="bch_data", description="Database name")
    db_user: str = Field(description="Database username")
    db_password: str = Field(description="Database password")
    db_pool_size: int = Field(default=10, description="Connection pool size")
    db_max_overflow: int = Field(default=20, description="Max pool overflow")
    db_url: Optional[str] = Field(default=None, description="Full SQLAlchemy URL, overrides host/port/name")
    
    # Transform Settings
    staging_window_days: int = Field(default=90, description="Trailing window for the staging table (days)")
    max_balance_sats: int = Field(default=INT64_MAX, description="Largest per-address balance accepted (satoshis)")
    enable_parallel_processing: bool = Field(default=True, description="Run staging and mart transforms concurrently")
    chunk_size: int = Field(default=10000, description="Source query fetch size")
    
    # Quality Settings
    source_check_severity: str = Field(default="warn", description="Severity of source checks (warn|error)")
    
    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default="logs/bch_analytics.log", description="Log file path")
    log_max_size_mb: int = Field(default=100, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "BCH_"
    
    @property
    def database_url(self) -> str:
        """Generate the database URL."""
        if self.db_url:
            return self.db_url
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
    
    def validate_settings(self) -> bool:
        """Validate enumerated and ranged settings."""
        if self.source_check_severity not in {"warn", "error"}:
            return False
        if self.log_format.lower() not in {"json", "text"}:
            return False
        return self.staging_window_days > 0 and self.max_balance_sats > 0
