from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache

from scheme_engine.core.enum_utils import normalize_to_uppercase


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (prefix SCHEME_ENGINE_)."""

    # Units of measure
    EACH_UOM: str = "EA"  # Unit assumed when a cart line carries no UOM
    NOT_AVAILABLE_UOM: str = "N/A"  # Label some catalogs send instead of an empty UOM
    DEFAULT_WEIGHT_UOM: str = "KG"  # Target unit for weight aggregation

    # Prorating
    PRORATE_UNIT_VALUE: Decimal = Decimal("100")  # Every ₹100 of group value = 1 application

    # Scheme selection
    INVOICE_GROUP_KEY: str = "invoice_schemes"  # Implicit exclusion group for invoice schemes

    # Money
    MONEY_QUANTUM: Decimal = Decimal("0.01")

    @field_validator('EACH_UOM', 'NOT_AVAILABLE_UOM', 'DEFAULT_WEIGHT_UOM', mode='before')
    @classmethod
    def normalize_uom(cls, v):
        """Accept unit labels in any case."""
        return normalize_to_uppercase(v)

    model_config = SettingsConfigDict(
        env_prefix="SCHEME_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
