"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from wheelaway.config.settings import (
    GEMINI_OPENAI_BASE_URL,
    SensingConfig,
    Settings,
    load_settings,
)
from wheelaway.domain.models import ImageFormat

SHIPPED_CONFIG = Path(__file__).parents[3] / "config" / "wheelaway.yaml"


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run from an empty directory with no key variables set."""
    for name in ("GOOGLE_API_KEY", "OPENAI_API_KEY", "WHEELAWAY_SERIAL_PORT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestSettings:
    def test_default_settings(self, clean_env: Path) -> None:
        settings = Settings()
        assert settings.sensing.interval_ms == 10_000
        assert settings.sensing.min_interval_ms == 5_000
        assert settings.device.baudrate == 9600
        assert settings.pointer.interval_ms == 100
        assert settings.capture.max_height == 1080
        assert settings.capture.image_format == ImageFormat.PNG
        assert settings.classifier.base_url == GEMINI_OPENAI_BASE_URL

    def test_interval_below_floor_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SensingConfig(interval_ms=1000)

    def test_missing_file_uses_defaults(self, clean_env: Path) -> None:
        settings = load_settings(clean_env / "nope.yaml")
        assert settings.api.port == 8765
        assert settings.classifier_api_key() == ""

    def test_yaml_file_loaded(self, clean_env: Path) -> None:
        path = clean_env / "wheelaway.yaml"
        path.write_text(
            "sensing:\n"
            "  interval_ms: 15000\n"
            "capture:\n"
            "  image_format: jpeg\n"
            "device:\n"
            "  default_port: COM3\n"
        )
        settings = load_settings(path)
        assert settings.sensing.interval_ms == 15_000
        assert settings.capture.image_format == ImageFormat.JPEG
        assert settings.device.default_port == "COM3"

    def test_google_key_from_env(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        settings = load_settings(clean_env / "nope.yaml")
        assert settings.classifier_api_key() == "g-key"
        assert settings.classifier.base_url == GEMINI_OPENAI_BASE_URL

    def test_openai_key_switches_endpoint(
        self, clean_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        settings = load_settings(clean_env / "nope.yaml")
        assert settings.classifier_api_key() == "sk-test"
        assert settings.classifier.base_url is None
        assert settings.classifier.model == "gpt-4o-mini"

    def test_openai_key_overrides_shipped_gemini_config(
        self, clean_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = clean_env / "wheelaway.yaml"
        config_file.write_text(SHIPPED_CONFIG.read_text())
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        settings = load_settings(config_file)

        assert settings.classifier_api_key() == "sk-test"
        assert settings.classifier.base_url is None
        assert settings.classifier.model == "gpt-4o-mini"
        assert settings.classifier.max_tokens == 512

    def test_openai_key_keeps_custom_endpoint(
        self, clean_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = clean_env / "custom.yaml"
        config_file.write_text(
            "classifier:\n"
            "  base_url: http://localhost:11434/v1\n"
            "  model: llava\n"
        )
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        settings = load_settings(config_file)

        assert settings.classifier.base_url == "http://localhost:11434/v1"
        assert settings.classifier.model == "llava"

    def test_google_key_keeps_shipped_endpoint(
        self, clean_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = clean_env / "wheelaway.yaml"
        config_file.write_text(SHIPPED_CONFIG.read_text())
        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        settings = load_settings(config_file)

        assert settings.classifier_api_key() == "g-key"
        assert settings.classifier.base_url == GEMINI_OPENAI_BASE_URL
        assert settings.classifier.model == "gemini-2.0-flash-lite"

    def test_dotenv_file(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        # Empty so the loader fills it in and monkeypatch clears it afterwards
        monkeypatch.setenv("GOOGLE_API_KEY", "")
        (clean_env / ".env").write_text("# keys\nGOOGLE_API_KEY='from-dotenv'\n")
        settings = load_settings(clean_env / "nope.yaml")
        assert settings.classifier_api_key() == "from-dotenv"

    def test_serial_port_from_env(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WHEELAWAY_SERIAL_PORT", "/dev/ttyACM0")
        settings = load_settings(clean_env / "nope.yaml")
        assert settings.device.default_port == "/dev/ttyACM0"
