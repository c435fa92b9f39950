"""Configuration management for wheelaway.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings

from wheelaway.domain.models import ImageFormat

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/wheelaway.yaml")

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"


class CaptureConfig(BaseModel):
    monitor: int = Field(default=1, ge=0, description="mss monitor index (0 = all monitors)")
    image_format: ImageFormat = Field(default=ImageFormat.PNG)
    max_height: int = Field(default=1080, gt=0)
    jpeg_quality: int = Field(default=85, ge=1, le=100)


class ClassifierConfig(BaseModel):
    model: str = Field(default="gemini-2.0-flash-lite")
    base_url: str | None = Field(default=GEMINI_OPENAI_BASE_URL)
    max_tokens: int = Field(default=512, gt=0)
    instruction_override: str | None = Field(default=None)


class SensingConfig(BaseModel):
    interval_ms: int = Field(default=10_000, gt=0)
    min_interval_ms: int = Field(default=5_000, gt=0)
    capture_failure_warn_threshold: int = Field(default=5, gt=0)

    @model_validator(mode="after")
    def _interval_above_floor(self) -> SensingConfig:
        if self.interval_ms < self.min_interval_ms:
            raise ValueError(
                f"interval_ms ({self.interval_ms}) is below min_interval_ms ({self.min_interval_ms})"
            )
        return self


class DeviceConfig(BaseModel):
    baudrate: int = Field(default=9600, gt=0)
    timeout: float = Field(default=2.0, gt=0, description="Serial read timeout in seconds")
    settle_delay: float = Field(
        default=2.0, ge=0, description="Seconds to wait after open for the board to reset"
    )
    default_port: str | None = Field(default=None)


class PointerConfig(BaseModel):
    interval_ms: int = Field(default=100, gt=0)


class ApiConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the wheelaway system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "WHEELAWAY_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    google_api_key: SecretStr = Field(default=SecretStr(""))
    openai_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    sensing: SensingConfig = Field(default_factory=SensingConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    pointer: PointerConfig = Field(default_factory=PointerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def classifier_api_key(self) -> str:
        """The key matching the configured endpoint, Google's first."""
        return (
            self.google_api_key.get_secret_value()
            or self.openai_api_key.get_secret_value()
        )


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    google_key = os.environ.get("GOOGLE_API_KEY", "")
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    serial_port = os.environ.get("WHEELAWAY_SERIAL_PORT", "")

    if google_key and not yaml_data.get("google_api_key"):
        yaml_data["google_api_key"] = google_key

    if openai_key and not yaml_data.get("openai_api_key"):
        yaml_data["openai_api_key"] = openai_key
        # A bare OpenAI key without a Google key means the OpenAI endpoint,
        # unless the YAML already points somewhere other than Gemini
        if not yaml_data.get("google_api_key"):
            classifier = yaml_data.get("classifier") or {}
            yaml_data["classifier"] = classifier
            if classifier.get("base_url", GEMINI_OPENAI_BASE_URL) == GEMINI_OPENAI_BASE_URL:
                classifier["base_url"] = None
                if str(classifier.get("model", "gemini")).startswith("gemini"):
                    classifier["model"] = OPENAI_DEFAULT_MODEL

    if serial_port:
        device = yaml_data.setdefault("device", {})
        device.setdefault("default_port", serial_port)
