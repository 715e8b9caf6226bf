from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Gold AI Trader"
    debug: bool = False
    log_level: str = "INFO"

    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("supabase_url", "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
    )
    supabase_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("supabase_key", "SUPABASE_KEY", "NEXT_PUBLIC_SUPABASE_KEY"),
    )
    supabase_schema: str = "public"
    trades_table: str = "trades"
    account_stats_table: str = "account_stats"
    # Column used to pick the most recent account row; None keeps the store's order.
    account_stats_order_column: str | None = None

    display_timezone: str = "UTC"
    currency: str = "USD"
    default_bins: int = 12
    bin_choices: list[int] = Field(default_factory=lambda: [6, 8, 10, 12, 16, 20])

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url) and bool(self.supabase_key)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
