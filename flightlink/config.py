# flightlink/config.py
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging"] = "dev"
    TZ: str = "Australia/Sydney"

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"

    # Redis
    REDIS_URL: str = ""
    REDIS_TTL_SECONDS: int = 86400  # conversations live for a day

    # Partner booking system
    BOOKING_BASE_URL: str = "https://app.paylatertravel.com.au"
    BOOKING_CURRENCY: Optional[str] = "AUD"
    BOOKING_MARKET: Optional[str] = "AU"
    BOOKING_AFFILIATE_ID: Optional[str] = None
    DEEP_LINK_BASE: str = "paylaterflights://search"

    # Search rules
    MIN_DAYS_AHEAD: int = 14  # payment plan must be settled before departure
    TRIP_KIND_POLICY: Literal["infer", "always_return"] = "infer"
    REQUIRE_CONNECTED_LEGS: bool = False

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
