# config.py

"""Application configuration utilities.

Values are primarily loaded from ``config.json`` and may be overridden by
environment variables (or a ``.env`` file). The :func:`get_settings` helper
builds the merged settings once and caches the result.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

CONFIG_PATH = Path(__file__).with_name("config.json")


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", json_file=CONFIG_PATH
    )

    env: str = "dev"
    log_level: str = "INFO"
    error_dsn: str | None = None

    # "vvvv:pppp" hex ids the operator already paired with this till
    usb_authorized_devices: list[str] = []
    usb_write_timeout_ms: int = 5000
    watchdog_interval_secs: float = 5.0

    shop_name: str = "M|N COLLECTION"
    shop_tagline: str = "WHERE VALUE MEETS QUALITY"
    shop_address_lines: list[str] = ["168/C, Fatha Hajiar Mawatha,", "Dharga Town"]
    shop_contact: str = "Tel: 0783714171 / 0774684087"
    thank_you_lines: list[str] = [
        "Thank you for shopping with us!",
        "We truly appreciate your trust.",
    ]
    qr_invite_text: str = "Scan to join our WhatsApp:"
    qr_url: str = "https://chat.whatsapp.com/Eu3HUPRtS24LHtytOz9ziP"
    qr_module_size: int = Field(default=6, ge=1, le=8)
    qr_image_service: str = "https://api.qrserver.com/v1/create-qr-code/"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment variables override values from the JSON file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )


# Cached singleton to avoid repeated file reads
@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence."""

    return Settings()
