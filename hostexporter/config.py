"""Configuration models using Pydantic for validation."""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import os


class PrometheusExporterConfig(BaseModel):
    """Prometheus pull exporter configuration."""
    enabled: bool = True
    port: int = 9108
    prefix: str = "game_"
    bind_address: str = "0.0.0.0"
    self_metrics: bool = True


class ExportersConfig(BaseModel):
    """Configuration for all exporters."""
    prometheus: PrometheusExporterConfig = Field(default_factory=PrometheusExporterConfig)


class SourcesConfig(BaseModel):
    """Where each reader gets its raw text."""
    uptime_path: str = "/proc/uptime"
    loadavg_path: str = "/proc/loadavg"
    stat_path: str = "/proc/stat"
    meminfo_path: str = "/proc/meminfo"
    diskstats_path: str = "/proc/diskstats"
    netdev_path: str = "/proc/net/dev"
    df_command: List[str] = Field(default_factory=lambda: ["df", "-k"])
    netstat_command: List[str] = Field(default_factory=lambda: ["netstat", "-nat"])
    # None disables the timeout
    command_timeout_s: Optional[float] = 10.0

    @field_validator('df_command', 'netstat_command')
    @classmethod
    def validate_command(cls, v):
        if not v:
            raise ValueError("Command must not be empty")
        return v

    @field_validator('command_timeout_s')
    @classmethod
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError("command_timeout_s must be positive or null")
        return v


class CollectionConfig(BaseModel):
    """How collected counters are turned into samples."""
    rate_mode: Literal["cumulative", "delta"] = "cumulative"


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    collect_interval_s: float = 5.0
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    control_api_enabled: bool = True
    control_api_port: int = 9109

    @field_validator('collect_interval_s')
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("collect_interval_s must be positive")
        return v


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    exporters: ExportersConfig = Field(default_factory=ExportersConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)


def _apply_env_overrides(raw_config: dict) -> dict:
    """Apply environment variable overrides to a raw config dict."""
    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    if env_interval := os.getenv('COLLECT_INTERVAL_S'):
        raw_config.setdefault('global', {})['collect_interval_s'] = env_interval

    if env_port := os.getenv('EXPORTER_PORT'):
        exporters = raw_config.setdefault('exporters', {})
        exporters.setdefault('prometheus', {})['port'] = env_port

    return raw_config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate configuration from YAML file.

    Without a path the built-in defaults are used; environment overrides
    apply in both cases.
    """
    import yaml

    raw_config = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(raw_config).__name__}")

    raw_config = _apply_env_overrides(raw_config)

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
