"""
Configuration Management for ReceiptBook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage location, export layout and validation thresholds are read
from the environment (or a .env file) and validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Local record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RECEIPTBOOK_STORE_",
        extra="ignore"
    )

    db_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the database file"
    )
    db_name: str = Field(
        default="ReceiptBookDB",
        min_length=1,
        description="Database name (file stem)"
    )

    @property
    def db_path(self) -> Path:
        """Full path of the SQLite database file."""
        return self.db_dir / f"{self.db_name}.sqlite3"


class ExportSettings(BaseSettings):
    """PDF / spreadsheet export configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RECEIPTBOOK_EXPORT_",
        extra="ignore"
    )

    page_size: str = Field(
        default="A4",
        pattern="^(A4|LETTER)$",
        description="Paper size for PDF exports"
    )
    unicode_font_path: Optional[str] = Field(
        default=None,
        description="TrueType font registered for non-Latin (Gujarati) captions"
    )
    signature_width_mm: float = Field(
        default=40.0,
        gt=0,
        le=120,
        description="Width of the signature image on a receipt"
    )
    signature_height_mm: float = Field(
        default=20.0,
        gt=0,
        le=60,
        description="Height of the signature image on a receipt"
    )

    @field_validator('unicode_font_path')
    @classmethod
    def validate_font_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if the font file doesn't exist (Helvetica is used instead)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Export font not found at {v}. "
                "PDF exports will fall back to Helvetica."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level"
    )
    default_language: str = Field(
        default="en",
        pattern="^(en|gu)$",
        description="Language used for captions until the user switches"
    )

    # Validation thresholds
    max_receipt_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Maximum reasonable receipt amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a receipt date can be"
    )

    # Upload limits
    max_signature_size_kb: int = Field(
        default=512,
        ge=16,
        le=4096,
        description="Maximum uploaded signature image size in KB"
    )

    @property
    def max_signature_size_bytes(self) -> int:
        """Get max signature size in bytes."""
        return self.max_signature_size_kb * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def export(self) -> ExportSettings:
        return ExportSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("store", "export", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
