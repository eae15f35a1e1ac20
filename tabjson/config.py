from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .project import DuplicateColumnPolicy


class ConverterConfig(BaseModel):
    """
    Per-instance converter settings, fixed at construction.
    """
    model_config = ConfigDict(frozen=True)

    # Return an empty document instead of raising ConversionError
    ignore_errors: bool = False
    duplicate_columns: DuplicateColumnPolicy = Field(default=DuplicateColumnPolicy.LAST_WRITE_WINS)
    # Send flattened sheets through the delimiter sniffer instead of the fixed "," dialect
    sniff_flattened_sheets: bool = False


class ConverterSettings(BaseSettings):
    """Converter settings read from TABJSON_* environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="TABJSON_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    ignore_errors: bool = Field(
        default=False,
        description="Return an empty document instead of raising (TABJSON_IGNORE_ERRORS)",
    )
    duplicate_columns: DuplicateColumnPolicy = Field(
        default=DuplicateColumnPolicy.LAST_WRITE_WINS,
        description="last_write_wins, error or suffix (TABJSON_DUPLICATE_COLUMNS)",
    )
    sniff_sheets: bool = Field(
        default=False,
        description="Sniff flattened spreadsheet sheets (TABJSON_SNIFF_SHEETS)",
    )

    def to_config(self) -> ConverterConfig:
        return ConverterConfig(
            ignore_errors=self.ignore_errors,
            duplicate_columns=self.duplicate_columns,
            sniff_flattened_sheets=self.sniff_sheets,
        )
