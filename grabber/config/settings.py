import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class ExtractorConfig(BaseModel):
    binary: str = Field(default="yt-dlp", description="yt-dlp executable name or path")
    extra_args: List[str] = Field(default_factory=list, description="Extra arguments passed to every yt-dlp call")
    info_timeout: Optional[float] = Field(default=None, gt=0, description="Metadata fetch timeout in seconds (None = wait for yt-dlp)")
    socket_timeout: Optional[int] = Field(default=None, ge=1, description="Socket timeout passed to yt-dlp")
    no_playlist: bool = Field(default=True, description="Never expand playlist URLs")


class DownloadConfig(BaseModel):
    chunk_size: int = Field(default=64 * 1024, ge=1024, description="Bytes read from yt-dlp stdout per chunk")
    stderr_max_lines: int = Field(default=50, ge=1, description="stderr lines kept for failure logs")
    kill_grace_seconds: float = Field(default=5.0, gt=0, description="Wait for yt-dlp to exit before killing it")
    default_extension: str = Field(default="mp4", description="Extension used when the format is unknown")


class FormatsConfig(BaseModel):
    max_video: int = Field(default=10, ge=1, description="Max video formats returned")
    max_audio: int = Field(default=5, ge=1, description="Max audio formats returned")


class RedisConfig(BaseModel):
    url: Optional[str] = Field(default=None, description="Redis connection URL (rate limiting only)")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=False, description="Enable rate limiting")
    max_requests: int = Field(default=30, ge=1, description="Max requests per window")
    window_seconds: int = Field(default=60, ge=1, description="Rate limit window in seconds")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: List[str] = Field(default=["en", "vi"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="Video Grabber API", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Bind address for the built-in runner")
    port: int = Field(default=3000, ge=1, le=65535, description="Port for the built-in runner")


class Config(BaseSettings):
    """Main configuration model"""
    model_config = SettingsConfigDict(env_prefix="GRABBER_", env_nested_delimiter="__")

    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    formats: FormatsConfig = Field(default_factory=FormatsConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: str = "config.json") -> "Config":
        """Load configuration from a JSON file; environment variables still win"""
        file_data: Dict[str, Any] = {}

        if os.path.exists(config_path):
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    file_data = json.load(f)
                logger.info(f"Configuration loaded from {config_path}")
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load config from {config_path}: {str(e)}")
                logger.info("Using default configuration")
                file_data = {}
        else:
            logger.info(f"Config file {config_path} not found, using environment and defaults")

        env_data = cls().model_dump(exclude_unset=True)
        return cls(**_deep_merge(file_data, env_data))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config() -> Config:
    """Load configuration with priority: env vars > config.json > defaults"""
    return Config.load_from_file(CONFIG_PATH)


config = load_config()
