"""Service settings for uploads, export naming and logging."""
from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class AppSettings:
    # Uploads
    allowed_extensions: tuple[str, ...] = field(default_factory=lambda: (".xlsx", ".xls"))
    max_upload_bytes: int = 20 * 1024 * 1024

    # Export
    merge_sheet_label: str = "Merged Result"
    merge_output_filename: str = "merged_output.xlsx"

    log_level: str = "INFO"


def _load_settings_from_env() -> AppSettings:
    settings = AppSettings()

    if os.getenv("MAX_UPLOAD_BYTES"):
        settings.max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES"))
    settings.merge_sheet_label = os.getenv("MERGE_SHEET_LABEL", settings.merge_sheet_label)
    settings.merge_output_filename = os.getenv("MERGE_OUTPUT_FILENAME", settings.merge_output_filename)
    settings.log_level = os.getenv("LOG_LEVEL", settings.log_level).upper()

    return settings


_settings: AppSettings | None = None


def get_app_settings() -> AppSettings:
    """Get the app settings singleton (loaded from environment on first access)."""
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_app_settings() -> AppSettings:
    global _settings
    _settings = _load_settings_from_env()
    return _settings
