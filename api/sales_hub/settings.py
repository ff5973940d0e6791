# sales_hub/settings.py
"""
Sales Hub Settings - register desk + sales backend connection.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs)
    # =========================================================================
    SALES_HUB_DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "sales-data"),
        validation_alias=AliasChoices("SALES_HUB_DATA_ROOT", "sh_data_root"),
    )

    # =========================================================================
    # Sales backend (REST)
    # =========================================================================
    SALES_API_BASE_URL: str = Field(
        default="http://localhost:8080",
        validation_alias=AliasChoices("SALES_API_BASE_URL", "VITE_API_BASE_URL"),
    )
    SALES_API_TOKEN: str = Field(default="", validation_alias="SALES_API_TOKEN")
    SALES_API_TOKEN_TYPE: str = Field(default="Bearer", validation_alias="SALES_API_TOKEN_TYPE")
    # None = transport default (no client-side timeout)
    SALES_API_TIMEOUT: Optional[float] = Field(default=None, validation_alias="SALES_API_TIMEOUT")

    # =========================================================================
    # Order desk rules
    # =========================================================================
    PENDING_POLL_INTERVAL_SEC: float = Field(default=5.0, validation_alias="PENDING_POLL_INTERVAL_SEC")
    LOT_SEARCH_LIMIT: int = Field(default=30, validation_alias="LOT_SEARCH_LIMIT")
    LOYALTY_REDEMPTION_STEP: int = Field(default=1000, validation_alias="LOYALTY_REDEMPTION_STEP")
    LOYALTY_EARN_RATE: int = Field(
        default=100,
        description="Currency units of final payment per earned loyalty point",
    )
    WEIGHT_UOM: str = Field(default="KG", validation_alias="WEIGHT_UOM")

    # =========================================================================
    # HTTP facade
    # =========================================================================
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
